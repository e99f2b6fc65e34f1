"""
Incremental Differ - regenerate only the files a schema edit touches.

Every template file records the schema fragments it is rendered from
(``TemplateFile.sources``). ``diff_schemas`` turns two schema revisions into
a set of changed fragment keys; ``generate_incremental`` renders the new
schema and keeps the previous content of every file none of whose sources
changed, byte for byte.

Fragment keys:
    meta, design.<key>, structure.navigation, structure.layouts, pages,
    page:<id>, component:<id>, components.footer, features.<name>,
    integrations

A changed key matches a source when they are equal or one is a dotted
prefix of the other (``design`` matches ``design.colors`` and vice versa).

The file-level helpers at the bottom (``compute_file_diff``, ``merge_files``,
``format_diff_summary``) compare two concrete file sets.
"""
import difflib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Set

from appforge.models.schemas.app_schema import as_list, section
from appforge.models.schemas.generation import GeneratedFile
from appforge.services.generation.templates import generate_with_sources
from appforge.services.generation.templates.common import footer_component
from appforge.utils.logging import get_logger

logger = get_logger(__name__)

Schema = Dict[str, Any]

# Affected share of the project above which a full rebuild is suggested
FULL_REBUILD_RATIO = 0.5
ESTIMATED_MS_PER_FILE = 200
ESTIMATED_FULL_MS = 5000


# =============================================================================
# SCHEMA DIFF
# =============================================================================

@dataclass
class SchemaDiff:
    changed_pages: List[str] = field(default_factory=list)
    removed_pages: List[str] = field(default_factory=list)
    added_pages: List[str] = field(default_factory=list)
    changed_components: List[str] = field(default_factory=list)
    removed_components: List[str] = field(default_factory=list)
    added_components: List[str] = field(default_factory=list)
    changed_design_keys: List[str] = field(default_factory=list)
    changed_features: List[str] = field(default_factory=list)
    meta_changed: bool = False
    platform_changed: bool = False
    navigation_changed: bool = False
    layouts_changed: bool = False
    page_order_changed: bool = False
    footer_changed: bool = False
    integrations_changed: bool = False
    old_schema: Optional[Schema] = field(default=None, repr=False, compare=False)

    @property
    def features_changed(self) -> bool:
        return bool(self.changed_features)

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_keys)

    @property
    def can_incremental(self) -> bool:
        return self.old_schema is not None and not self.platform_changed

    @property
    def changed_keys(self) -> Set[str]:
        keys: Set[str] = set()
        if self.meta_changed:
            keys.add("meta")
        keys.update(f"design.{key}" for key in self.changed_design_keys)
        if self.navigation_changed:
            keys.add("structure.navigation")
        if self.layouts_changed:
            keys.add("structure.layouts")
        if self.page_order_changed or self.added_pages or self.removed_pages:
            keys.add("pages")
        keys.update(f"page:{page_id}" for page_id in self.changed_pages + self.removed_pages + self.added_pages)
        keys.update(
            f"component:{component_id}"
            for component_id in self.changed_components + self.removed_components + self.added_components
        )
        if self.footer_changed:
            keys.add("components.footer")
        keys.update(f"features.{name}" for name in self.changed_features)
        if self.integrations_changed:
            keys.add("integrations")
        return keys


def key_matches(changed: str, source: str) -> bool:
    if changed == source:
        return True
    return source.startswith(changed + ".") or changed.startswith(source + ".")


def is_affected(sources: Iterable[str], changed_keys: Set[str]) -> bool:
    return any(key_matches(changed, source) for source in sources for changed in changed_keys)


def _by_id(items: Any) -> Dict[str, Dict[str, Any]]:
    result: Dict[str, Dict[str, Any]] = {}
    for item in as_list(items):
        if isinstance(item, dict) and item.get("id") is not None:
            result[str(item["id"])] = item
    return result


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _changed_keys_of(old: Dict[str, Any], new: Dict[str, Any]) -> List[str]:
    return sorted(key for key in set(old) | set(new) if old.get(key) != new.get(key))


def diff_schemas(old_schema: Optional[Schema], new_schema: Schema) -> SchemaDiff:
    """
    Compare two schema revisions section by section.

    With no previous schema everything counts as added.
    """
    old = old_schema if isinstance(old_schema, dict) else {}
    diff = SchemaDiff(old_schema=old_schema if isinstance(old_schema, dict) else None)

    old_meta, new_meta = _dict(old.get("meta")), _dict(new_schema.get("meta"))
    diff.meta_changed = old_meta != new_meta
    diff.platform_changed = bool(old_meta) and old_meta.get("platform") != new_meta.get("platform")

    diff.changed_design_keys = _changed_keys_of(_dict(old.get("design")), _dict(new_schema.get("design")))

    diff.navigation_changed = section(old, "structure", "navigation") != section(new_schema, "structure", "navigation")
    diff.layouts_changed = section(old, "structure", "layouts") != section(new_schema, "structure", "layouts")

    old_pages = _by_id(section(old, "structure", "pages"))
    new_pages = _by_id(section(new_schema, "structure", "pages"))
    diff.added_pages = [page_id for page_id in new_pages if page_id not in old_pages]
    diff.removed_pages = [page_id for page_id in old_pages if page_id not in new_pages]
    diff.changed_pages = [
        page_id for page_id, page in new_pages.items()
        if page_id in old_pages and old_pages[page_id] != page
    ]
    diff.page_order_changed = [p for p in old_pages if p in new_pages] != [p for p in new_pages if p in old_pages]

    old_components = _by_id(old.get("components"))
    new_components = _by_id(new_schema.get("components"))
    diff.added_components = [cid for cid in new_components if cid not in old_components]
    diff.removed_components = [cid for cid in old_components if cid not in new_components]
    diff.changed_components = [
        cid for cid, component in new_components.items()
        if cid in old_components and old_components[cid] != component
    ]
    diff.footer_changed = footer_component(old) != footer_component(new_schema)

    diff.changed_features = _changed_keys_of(_dict(old.get("features")), _dict(new_schema.get("features")))
    diff.integrations_changed = (old.get("integrations") or []) != (new_schema.get("integrations") or [])

    logger.debug(
        "incremental.diff.computed",
        extra={"changed_keys": sorted(diff.changed_keys), "platform_changed": diff.platform_changed},
    )
    return diff


# =============================================================================
# INCREMENTAL GENERATION
# =============================================================================

@dataclass
class IncrementalResult:
    files_to_regenerate: List[GeneratedFile] = field(default_factory=list)
    files_to_keep: List[GeneratedFile] = field(default_factory=list)
    files_to_delete: List[str] = field(default_factory=list)
    full_rebuild: bool = False

    @property
    def files(self) -> List[GeneratedFile]:
        """The complete project after the update."""
        return merge_files(self.files_to_keep, self.files_to_regenerate, self.files_to_delete)

    def get_stats(self) -> Dict[str, int]:
        return {
            "regenerated": len(self.files_to_regenerate),
            "kept": len(self.files_to_keep),
            "deleted": len(self.files_to_delete),
        }


def generate_incremental(
    diff: SchemaDiff,
    old_files: Sequence[GeneratedFile],
    new_schema: Schema,
    platform: Optional[str] = None,
) -> IncrementalResult:
    """
    Split the new template output into regenerated and kept files.

    - a file whose path existed before, was rendered from the same sources
      then, and none of whose sources changed keeps its previous content
      untouched
    - every other generated file is emitted with new content
    - files the previous schema generated but the new one does not are deleted
    - files that no schema generated (hand-written additions) are kept
    """
    target = platform or section(new_schema, "meta", "platform")
    rendered = generate_with_sources(new_schema, target)
    previous = {file.path: file for file in old_files}
    changed = diff.changed_keys
    full_rebuild = not diff.can_incremental

    # path -> sources under the previous schema; None when it cannot be rendered
    sources_before: Optional[Dict[str, tuple]] = None
    if not full_rebuild:
        sources_before = {f.path: f.sources for f in generate_with_sources(diff.old_schema, target)}

    result = IncrementalResult(full_rebuild=full_rebuild)
    new_paths = set()
    for template_file in rendered:
        new_paths.add(template_file.path)
        old = previous.get(template_file.path)
        if (
            old is not None
            and sources_before is not None
            # a suffixed name can move to another page without that page changing
            and sources_before.get(template_file.path) == template_file.sources
            and not is_affected(template_file.sources, changed)
        ):
            result.files_to_keep.append(old)
        else:
            result.files_to_regenerate.append(template_file.to_generated())

    for path, old in previous.items():
        if path in new_paths:
            continue
        if sources_before is None or path in sources_before:
            result.files_to_delete.append(path)
        else:
            result.files_to_keep.append(old)

    logger.info(
        "♻️ incremental.generation.planned",
        extra={"platform": target, "full_rebuild": full_rebuild, **result.get_stats()},
    )
    return result


# =============================================================================
# UPDATE STRATEGY
# =============================================================================

@dataclass
class UpdateSuggestion:
    type: Literal["none", "incremental", "full"]
    reason: str
    affected_files: List[str] = field(default_factory=list)
    estimated_time_ms: int = 0


def affected_paths(diff: SchemaDiff, new_schema: Schema, platform: Optional[str] = None) -> List[str]:
    target = platform or section(new_schema, "meta", "platform")
    changed = diff.changed_keys
    return [
        file.path
        for file in generate_with_sources(new_schema, target)
        if is_affected(file.sources, changed)
    ]


def suggest_update_strategy(old_schema: Optional[Schema], new_schema: Schema) -> UpdateSuggestion:
    diff = diff_schemas(old_schema, new_schema)
    if not diff.has_changes:
        return UpdateSuggestion(type="none", reason="No changes detected")

    affected = affected_paths(diff, new_schema)
    if not diff.can_incremental:
        return UpdateSuggestion(
            type="full",
            reason="Platform or base schema changed; a full rebuild is required",
            affected_files=affected,
            estimated_time_ms=ESTIMATED_FULL_MS,
        )

    total = len(generate_with_sources(new_schema))
    if total and len(affected) > total * FULL_REBUILD_RATIO:
        return UpdateSuggestion(
            type="full",
            reason="Too many changes for incremental update",
            affected_files=affected,
            estimated_time_ms=ESTIMATED_FULL_MS,
        )

    return UpdateSuggestion(
        type="incremental",
        reason=f"Only {len(affected)} files changed",
        affected_files=affected,
        estimated_time_ms=len(affected) * ESTIMATED_MS_PER_FILE,
    )


# =============================================================================
# FILE-LEVEL DIFF
# =============================================================================

@dataclass
class LineChange:
    type: Literal["add", "remove", "context"]
    line: int
    content: str


@dataclass
class FileDiff:
    path: str
    type: Literal["added", "modified", "deleted", "unchanged"]
    language: str
    old_content: Optional[str] = None
    new_content: Optional[str] = None
    changes: List[LineChange] = field(default_factory=list)

    @property
    def change_count(self) -> int:
        return sum(1 for change in self.changes if change.type != "context")


@dataclass
class FileDiffResult:
    diffs: List[FileDiff] = field(default_factory=list)

    def _count(self, kind: str) -> int:
        return sum(1 for diff in self.diffs if diff.type == kind)

    @property
    def total_files(self) -> int:
        return len(self.diffs)

    @property
    def added(self) -> int:
        return self._count("added")

    @property
    def modified(self) -> int:
        return self._count("modified")

    @property
    def deleted(self) -> int:
        return self._count("deleted")

    @property
    def unchanged(self) -> int:
        return self._count("unchanged")


def normalize_content(content: str) -> str:
    """Line endings unified, trailing whitespace and outer blank lines dropped."""
    lines = content.replace("\r\n", "\n").split("\n")
    return "\n".join(line.rstrip(" \t") for line in lines).strip()


def has_significant_changes(old_content: str, new_content: str) -> bool:
    return normalize_content(old_content) != normalize_content(new_content)


def compute_line_diff(old_content: str, new_content: str) -> List[LineChange]:
    """Line changes along the longest common subsequence of the two texts."""
    old_lines = old_content.split("\n")
    new_lines = new_content.split("\n")
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)

    changes: List[LineChange] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            changes.extend(LineChange("context", j + 1, new_lines[j]) for j in range(j1, j2))
            continue
        if tag in ("replace", "delete"):
            changes.extend(LineChange("remove", i + 1, old_lines[i]) for i in range(i1, i2))
        if tag in ("replace", "insert"):
            changes.extend(LineChange("add", j + 1, new_lines[j]) for j in range(j1, j2))
    return changes


def compute_file_diff(old_files: Sequence[GeneratedFile], new_files: Sequence[GeneratedFile]) -> FileDiffResult:
    old_by_path = {file.path: file for file in old_files}
    new_by_path = {file.path: file for file in new_files}
    result = FileDiffResult()

    for path, new in new_by_path.items():
        old = old_by_path.get(path)
        if old is None:
            result.diffs.append(FileDiff(path, "added", new.language, new_content=new.content))
        elif has_significant_changes(old.content, new.content):
            result.diffs.append(FileDiff(
                path,
                "modified",
                new.language,
                old_content=old.content,
                new_content=new.content,
                changes=compute_line_diff(old.content, new.content),
            ))
        else:
            result.diffs.append(FileDiff(path, "unchanged", new.language, old.content, new.content))

    for path, old in old_by_path.items():
        if path not in new_by_path:
            result.diffs.append(FileDiff(path, "deleted", old.language, old_content=old.content))

    return result


def merge_files(
    existing: Sequence[GeneratedFile],
    updated: Sequence[GeneratedFile],
    deleted: Iterable[str] = (),
) -> List[GeneratedFile]:
    """Existing files minus ``deleted``, with ``updated`` replacing by path."""
    doomed = set(deleted)
    merged: Dict[str, GeneratedFile] = {f.path: f for f in existing if f.path not in doomed}
    for file in updated:
        merged[file.path] = file
    return list(merged.values())


def format_diff_summary(diff: FileDiffResult) -> str:
    lines = [
        "📊 File Changes Summary",
        "─" * 25,
        f"  Added:     {diff.added}",
        f"  Modified:  {diff.modified}",
        f"  Deleted:   {diff.deleted}",
        f"  Unchanged: {diff.unchanged}",
        f"  Total:     {diff.total_files}",
    ]

    if diff.added:
        lines.append("\n✅ Added Files:")
        lines.extend(f"  + {d.path}" for d in diff.diffs if d.type == "added")
    if diff.modified:
        lines.append("\n📝 Modified Files:")
        lines.extend(f"  ~ {d.path} ({d.change_count} changes)" for d in diff.diffs if d.type == "modified")
    if diff.deleted:
        lines.append("\n🗑️ Deleted Files:")
        lines.extend(f"  - {d.path}" for d in diff.diffs if d.type == "deleted")

    return "\n".join(lines)
