"""
Shared helpers for the platform template generators.

Every emitted file carries the schema fragments it was rendered from
(``sources``). The incremental differ uses them to decide which files a
schema edit invalidates, so a generator must list every fragment it reads
while building a file. Fragment keys:

- ``meta``, ``design`` (or a dotted sub-key such as ``design.colors``)
- ``structure.navigation``, ``structure.layouts``, ``pages`` (page set/order)
- ``page:<id>``, ``component:<id>``, ``components.footer``
- ``features.<name>``, ``integrations``
"""
import html
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from appforge.models.schemas.app_schema import DEFAULT_COLORS, as_list, section
from appforge.models.schemas.generation import GeneratedFile

Schema = Dict[str, Any]

LANGUAGE_BY_EXTENSION = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "json": "json",
    "css": "css",
    "html": "html",
    "md": "markdown",
}

SPACING_SCALE = {
    "compact": ("4rem", "0.75rem"),
    "normal": ("6rem", "1rem"),
    "spacious": ("8rem", "1.5rem"),
}

RADIUS_SCALE = {
    "none": "0",
    "sm": "0.5rem",
    "md": "0.75rem",
    "lg": "1rem",
    "xl": "1.5rem",
    "full": "9999px",
}

DESIGN_SOURCES = ("design",)
HOME_PATHS = ("/", "/index", "")


def language_for_path(path: str) -> str:
    extension = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return LANGUAGE_BY_EXTENSION.get(extension, "plaintext")


@dataclass(frozen=True)
class TemplateFile:
    """A generated file plus the schema fragments it derives from"""
    path: str
    content: str
    language: str
    sources: Tuple[str, ...] = ()

    def to_generated(self) -> GeneratedFile:
        return GeneratedFile(path=self.path, content=self.content, language=self.language)


@dataclass
class FileSet:
    """
    Ordered file collection with unique paths.

    A colliding path gets a numeric suffix before its extension
    (``about.html`` -> ``about-2.html``) so no two files share a path. The
    suffix depends on the files added earlier, so such a file also lists
    ``pages`` among its sources.
    """
    files: List[TemplateFile] = field(default_factory=list)
    _paths: set = field(default_factory=set)

    def unique_path(self, path: str) -> str:
        if path not in self._paths:
            return path
        stem, dot, extension = path.rpartition(".")
        if not dot or "/" in extension:
            stem, extension = path, ""
        counter = 2
        while True:
            candidate = f"{stem}-{counter}.{extension}" if extension else f"{stem}-{counter}"
            if candidate not in self._paths:
                return candidate
            counter += 1

    def add(self, path: str, content: str, sources: Iterable[str] = ()) -> str:
        unique = self.unique_path(path)
        if unique != path:
            sources = (*sources, "pages")
        path = unique
        self._paths.add(path)
        self.files.append(TemplateFile(path, content, language_for_path(path), tuple(sources)))
        return path

    def __contains__(self, path: str) -> bool:
        return path in self._paths


# =============================================================================
# SCHEMA ACCESSORS
# =============================================================================
# Generators must be total over validator-passing schemas, so every read
# tolerates missing or mistyped sections and falls back to defaults.

def meta_name(schema: Schema, default: str = "My App") -> str:
    name = section(schema, "meta", "name")
    return name if isinstance(name, str) and name.strip() else default


def meta_description(schema: Schema) -> str:
    description = section(schema, "meta", "description")
    return description if isinstance(description, str) else ""


def colors(schema: Schema) -> Dict[str, str]:
    palette = section(schema, "design", "colors")
    merged = dict(DEFAULT_COLORS)
    if isinstance(palette, dict):
        merged.update({k: v for k, v in palette.items() if isinstance(v, str) and v})
    return merged


def typography(schema: Schema) -> Dict[str, Any]:
    data = section(schema, "design", "typography")
    data = data if isinstance(data, dict) else {}
    return {
        "headingFont": data.get("headingFont") or "Inter",
        "bodyFont": data.get("bodyFont") or "Inter",
        "monoFont": data.get("monoFont") or "ui-monospace",
        "baseFontSize": data.get("baseFontSize") or 16,
        "lineHeight": data.get("lineHeight") or 1.5,
    }


def spacing(schema: Schema) -> Tuple[str, str]:
    mode = section(schema, "design", "spacing")
    return SPACING_SCALE.get(mode, SPACING_SCALE["normal"])


def radius(schema: Schema) -> str:
    return RADIUS_SCALE.get(section(schema, "design", "borderRadius"), RADIUS_SCALE["md"])


def shadows_enabled(schema: Schema) -> bool:
    return section(schema, "design", "shadows") is not False


def pages(schema: Schema) -> List[Dict[str, Any]]:
    return [p for p in as_list(section(schema, "structure", "pages")) if isinstance(p, dict)]


def components(schema: Schema) -> List[Dict[str, Any]]:
    return [c for c in as_list(schema.get("components")) if isinstance(c, dict)]


def components_by_id(schema: Schema) -> Dict[str, Dict[str, Any]]:
    return {str(c.get("id")): c for c in components(schema) if c.get("id") is not None}


def page_components(schema: Schema, page: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Components a page references, in order, skipping dangling ids."""
    lookup = components_by_id(schema)
    return [lookup[str(ref)] for ref in as_list(page.get("components")) if str(ref) in lookup]


def footer_component(schema: Schema) -> Optional[Dict[str, Any]]:
    for component in components(schema):
        if component.get("type") == "footer":
            return component
    return None


def navigation_items(schema: Schema) -> List[Dict[str, str]]:
    items = []
    for item in as_list(section(schema, "structure", "navigation", "items")):
        if isinstance(item, dict) and item.get("label"):
            items.append({"label": str(item["label"]), "path": str(item.get("path") or "#")})
    return items


def feature(schema: Schema, name: str) -> Optional[Dict[str, Any]]:
    value = section(schema, "features", name)
    return value if isinstance(value, dict) else None


def auth_enabled(schema: Schema) -> bool:
    auth = feature(schema, "auth")
    return bool(auth and auth.get("enabled"))


def database_enabled(schema: Schema) -> bool:
    return feature(schema, "database") is not None


def prop_default(component: Dict[str, Any], name: str, fallback: str) -> str:
    for prop in as_list(component.get("props")):
        if isinstance(prop, dict) and prop.get("name") == name and prop.get("default") not in (None, ""):
            return str(prop["default"])
    return fallback


def page_sources(schema: Schema, page: Dict[str, Any], *extra: str) -> Tuple[str, ...]:
    """Fragments a rendered page depends on: the page, its components and ``extra``."""
    sources = [f"page:{page.get('id')}"]
    sources.extend(f"component:{ref}" for ref in as_list(page.get("components")))
    sources.extend(extra)
    return tuple(sources)


def is_home(page: Dict[str, Any]) -> bool:
    return str(page.get("path") or "").strip() in HOME_PATHS


# =============================================================================
# TEXT HELPERS
# =============================================================================

def esc(value: Any) -> str:
    return html.escape(str(value if value is not None else ""), quote=True)


def js_string(value: Any) -> str:
    """JSON string literal, valid in both JS/TS and JSON contexts."""
    return json.dumps(str(value if value is not None else ""))


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2) + "\n"


def slugify(value: str, default: str = "page") -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or default


def safe_path(path: str, default: str = "page") -> str:
    """Route path -> relative file stem limited to ``[A-Za-z0-9/_-]``."""
    stem = re.sub(r"[^A-Za-z0-9/_-]", "-", (path or "").strip().strip("/"))
    stem = re.sub(r"/+", "/", stem).strip("/")
    return stem or default


def pascal_case(value: str, default: str = "Page") -> str:
    words = re.findall(r"[A-Za-z0-9]+", value or "")
    name = "".join(word[:1].upper() + word[1:] for word in words)
    if not name:
        return default
    return name if name[0].isalpha() else f"{default}{name}"


def route_path(path: Any) -> str:
    path = str(path or "/").strip()
    return path if path.startswith("/") else f"/{path}"


def hex_to_rgb(value: str) -> str:
    match = re.fullmatch(r"#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})", (value or "").strip())
    if not match:
        return "0, 0, 0"
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return ", ".join(str(int(digits[i:i + 2], 16)) for i in (0, 2, 4))


def google_fonts_import(schema: Schema) -> str:
    fonts = typography(schema)
    families = []
    for font, weights in ((fonts["headingFont"], "400;500;600;700"), (fonts["bodyFont"], "400;500;600")):
        family = f"family={font.strip().replace(' ', '+')}:wght@{weights}"
        if family.split(":")[0] not in [f.split(":")[0] for f in families]:
            families.append(family)
    return f"@import url('https://fonts.googleapis.com/css2?{'&'.join(families)}&display=swap');"


def css_variables(schema: Schema) -> str:
    """``:root`` block with every design token as a CSS custom property."""
    palette = colors(schema)
    fonts = typography(schema)
    section_padding, gap = spacing(schema)
    lines = [f"  --color-{key}: {value};" for key, value in palette.items()]
    lines.append(f"  --color-primary-rgb: {hex_to_rgb(palette['primary'])};")
    lines.extend([
        f"  --font-heading: '{fonts['headingFont']}', system-ui, sans-serif;",
        f"  --font-body: '{fonts['bodyFont']}', system-ui, sans-serif;",
        f"  --font-mono: '{fonts['monoFont']}', monospace;",
        f"  --font-size-base: {fonts['baseFontSize']}px;",
        f"  --line-height: {fonts['lineHeight']};",
        f"  --spacing-section: {section_padding};",
        f"  --spacing-gap: {gap};",
        f"  --radius: {radius(schema)};",
    ])
    if shadows_enabled(schema):
        lines.extend([
            "  --shadow-sm: 0 1px 2px rgba(0, 0, 0, 0.05);",
            "  --shadow-md: 0 4px 12px rgba(0, 0, 0, 0.08);",
            "  --shadow-lg: 0 12px 32px rgba(0, 0, 0, 0.12);",
        ])
    else:
        lines.extend(["  --shadow-sm: none;", "  --shadow-md: none;", "  --shadow-lg: none;"])
    return ":root {\n" + "\n".join(lines) + "\n}"


def dark_overrides(selector: str) -> str:
    return f"""{selector} {{
  --color-background: #0a0a0a;
  --color-foreground: #fafafa;
  --color-muted: #a1a1aa;
  --color-border: #27272a;
}}"""
