"""
Schema versioning and migrations.

Schemas carry their format version under ``$schemaVersion``; unmarked
schemas are treated as 1.0.0. ``migrate_schema`` walks the registered
step migrations on a deep copy until the current version is reached.
"""
import copy
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from appforge.models.schemas.app_schema import DEFAULT_COLORS, Platform, create_empty_schema
from appforge.utils.logging import get_logger

logger = get_logger(__name__)

Schema = Dict[str, Any]

CURRENT_SCHEMA_VERSION = "2.0.0"
MIN_SUPPORTED_VERSION = "1.0.0"
UNVERSIONED_DEFAULT = "1.0.0"
VERSION_KEY = "$schemaVersion"

VERSION_HISTORY: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("1.0.0", ("Initial schema structure",)),
    ("1.1.0", ("Added PWA support", "Added responsive config")),
    ("1.2.0", ("Added integrations", "Enhanced auth schema")),
    ("2.0.0", ("Unified schema format", "Enhanced validation")),
)

_VERSION_FORMAT = re.compile(r"^\d+\.\d+\.\d+$")


@dataclass
class MigrationResult:
    success: bool
    from_version: str
    to_version: str
    schema: Schema
    warnings: List[str] = field(default_factory=list)
    changes: List[str] = field(default_factory=list)


def _parse_version(version: str) -> Tuple[int, int, int]:
    parts = []
    for piece in (version or "").split(".")[:3]:
        try:
            parts.append(int(piece))
        except ValueError:
            parts.append(0)
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def compare_versions(a: str, b: str) -> int:
    """-1 if a < b, 0 if equal, 1 if a > b"""
    va, vb = _parse_version(a), _parse_version(b)
    if va == vb:
        return 0
    return -1 if va < vb else 1


def is_version_supported(version: str) -> bool:
    return compare_versions(version, MIN_SUPPORTED_VERSION) >= 0


def schema_version_of(schema: Optional[Schema]) -> str:
    if isinstance(schema, dict) and isinstance(schema.get(VERSION_KEY), str):
        return schema[VERSION_KEY]
    return UNVERSIONED_DEFAULT


def migration_path(from_version: str, to_version: str = CURRENT_SCHEMA_VERSION) -> List[str]:
    versions = [version for version, _ in VERSION_HISTORY]
    start = versions.index(from_version) if from_version in versions else 0
    if to_version not in versions:
        return []
    end = versions.index(to_version)
    return versions[start + 1:end + 1] if start < end else []


def version_info(schema: Optional[Schema]) -> Dict[str, Any]:
    current = schema_version_of(schema)
    return {
        "current": current,
        "minimum": MIN_SUPPORTED_VERSION,
        "is_valid": is_version_supported(current),
        "needs_migration": compare_versions(current, CURRENT_SCHEMA_VERSION) < 0,
        "migration_path": migration_path(current),
    }


# =============================================================================
# MIGRATIONS
# =============================================================================

MigrationFn = Callable[[Schema], List[str]]
_MIGRATIONS: Dict[Tuple[str, str], MigrationFn] = {}


def migration(from_version: str, to_version: str):
    """Register an in-place step migration returning its change notes."""
    def decorator(func: MigrationFn) -> MigrationFn:
        _MIGRATIONS[(from_version, to_version)] = func
        return func
    return decorator


@migration("1.0.0", "1.1.0")
def _add_responsive_and_pwa(schema: Schema) -> List[str]:
    changes = []
    design = schema.get("design")
    if isinstance(design, dict) and not design.get("responsive"):
        design["responsive"] = {
            "strategy": "mobile-first",
            "breakpoints": {"sm": 640, "md": 768, "lg": 1024, "xl": 1280, "2xl": 1536},
        }
        changes.append("Added default responsive configuration")

    meta = schema.get("meta") if isinstance(schema.get("meta"), dict) else {}
    features = schema.get("features")
    if meta.get("platform") == "webapp" and not (isinstance(features, dict) and features.get("pwa")):
        if not isinstance(features, dict):
            features = schema["features"] = {}
        name = meta.get("name") or ""
        colors = design.get("colors") if isinstance(design, dict) else None
        features["pwa"] = {
            "enabled": False,
            "name": name,
            "shortName": name[:12],
            "themeColor": (colors or {}).get("primary", DEFAULT_COLORS["primary"]),
            "backgroundColor": "#ffffff",
            "display": "standalone",
            "startUrl": "/",
        }
        changes.append("Added PWA configuration (disabled by default)")
    return changes


@migration("1.1.0", "1.2.0")
def _add_integrations_and_auth_redirects(schema: Schema) -> List[str]:
    changes = []
    if not isinstance(schema.get("integrations"), list):
        schema["integrations"] = []
        changes.append("Added empty integrations array")

    auth = (schema.get("features") or {}).get("auth") if isinstance(schema.get("features"), dict) else None
    if isinstance(auth, dict):
        if not auth.get("redirectAfterLogin"):
            auth["redirectAfterLogin"] = "/"
            changes.append("Added default redirectAfterLogin")
        if not auth.get("redirectAfterLogout"):
            auth["redirectAfterLogout"] = "/login"
            changes.append("Added default redirectAfterLogout")
    return changes


@migration("1.2.0", "2.0.0")
def _unify_format(schema: Schema) -> List[str]:
    changes = []
    meta = schema.get("meta")
    if isinstance(meta, dict) and not meta.get("version"):
        meta["version"] = "1.0.0"
        changes.append("Added default meta.version")

    structure = schema.get("structure")
    if isinstance(structure, dict):
        if not isinstance(structure.get("pages"), list):
            structure["pages"] = []
            changes.append("Initialized empty pages array")
        if not isinstance(structure.get("layouts"), list):
            structure["layouts"] = []
            changes.append("Initialized empty layouts array")

    if not isinstance(schema.get("components"), list):
        schema["components"] = []
        changes.append("Initialized empty components array")

    design = schema.get("design")
    if isinstance(design, dict) and not design.get("spacing"):
        design["spacing"] = "normal"
        changes.append("Added default spacing mode")
    return changes


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def migrate_schema(schema: Schema) -> MigrationResult:
    """Bring ``schema`` up to CURRENT_SCHEMA_VERSION without mutating it."""
    current = schema_version_of(schema)

    if not is_version_supported(current):
        return MigrationResult(
            success=False,
            from_version=current,
            to_version=CURRENT_SCHEMA_VERSION,
            schema=schema,
            warnings=[f"Version {current} is not supported. Minimum: {MIN_SUPPORTED_VERSION}"],
        )

    if compare_versions(current, CURRENT_SCHEMA_VERSION) >= 0:
        return MigrationResult(
            success=True,
            from_version=current,
            to_version=current,
            schema=schema,
            changes=["No migration needed"],
        )

    migrated = copy.deepcopy(schema)
    warnings: List[str] = []
    changes: List[str] = []

    steps = migration_path(current)
    if not steps:
        warnings.append("No migration path found, applying defaults")

    last = current
    for target in steps:
        step = _MIGRATIONS.get((last, target))
        if step is None:
            warnings.append(f"No migration handler for {last}→{target}")
        else:
            changes.extend(f"[{last}→{target}] {change}" for change in step(migrated))
        last = target

    migrated[VERSION_KEY] = CURRENT_SCHEMA_VERSION
    migrated["$updatedAt"] = _now()
    history = migrated.get("$history") if isinstance(migrated.get("$history"), list) else []
    history.append({"version": CURRENT_SCHEMA_VERSION, "timestamp": migrated["$updatedAt"], "changes": changes})
    migrated["$history"] = history

    logger.info(
        "schema_version.migrated",
        extra={"from_version": current, "to_version": CURRENT_SCHEMA_VERSION, "changes": len(changes)},
    )

    return MigrationResult(
        success=True,
        from_version=current,
        to_version=CURRENT_SCHEMA_VERSION,
        schema=migrated,
        warnings=warnings,
        changes=changes,
    )


def stamp_version(schema: Schema) -> Schema:
    """Mark a freshly planned schema as current-format (returns a copy)."""
    stamped = copy.deepcopy(schema)
    stamped[VERSION_KEY] = CURRENT_SCHEMA_VERSION
    return stamped


def create_versioned_schema(schema: Optional[Schema], platform: Platform) -> Schema:
    """Fill a partial schema with defaults and version metadata."""
    base = create_empty_schema(platform)
    schema = copy.deepcopy(schema) if isinstance(schema, dict) else {}

    meta = {**base["meta"], **(schema.get("meta") or {})}
    meta["platform"] = platform

    versioned = {
        **schema,
        "meta": meta,
        "design": schema.get("design") or base["design"],
        "structure": schema.get("structure") or base["structure"],
        "features": schema.get("features") or {},
        "components": schema.get("components") or [],
        "integrations": schema.get("integrations") or [],
    }
    now = _now()
    versioned[VERSION_KEY] = CURRENT_SCHEMA_VERSION
    versioned["$createdAt"] = now
    versioned["$updatedAt"] = now
    versioned["$history"] = [
        {"version": CURRENT_SCHEMA_VERSION, "timestamp": now, "changes": ["Initial schema creation"]}
    ]
    return versioned


def validate_compatibility(schema: Schema) -> Tuple[bool, List[str]]:
    issues = []
    version = schema_version_of(schema)

    if not _VERSION_FORMAT.match(version):
        issues.append(f"Invalid version format: {version}")
    if not is_version_supported(version):
        issues.append(f"Version {version} is below minimum supported ({MIN_SUPPORTED_VERSION})")
    if compare_versions(version, CURRENT_SCHEMA_VERSION) > 0:
        issues.append(f"Schema version {version} is newer than current {CURRENT_SCHEMA_VERSION}")

    for key in ("meta", "design", "structure"):
        if not schema.get(key):
            issues.append(f"Missing required field: {key}")

    return not issues, issues


def export_schema(schema: Schema) -> Schema:
    """Strip version metadata for external consumers."""
    return {key: value for key, value in schema.items() if not key.startswith("$")}
