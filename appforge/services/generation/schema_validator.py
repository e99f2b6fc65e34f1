"""
Unified App Schema Validator

Checks a (possibly partial) schema before code generation. Pure and
deterministic: no I/O, no retries. Problems are returned as data, never
raised.

Checkers:
1. meta        - name, platform, description, version
2. design      - palette, contrast, typography, theme
3. structure   - pages, paths, navigation, layouts
4. components  - ids, names, types, page references
5. features    - auth, database, PWA

Score: 100, -10 per error, -2 per warning, small bonuses for populated
sections, clamped to 0..100.
"""
import copy
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from appforge.models.schemas.app_schema import COLOR_KEYS, PLATFORMS, as_list, section
from appforge.models.schemas.generation import ValidationIssue, ValidationResult

Schema = Dict[str, Any]
Checker = Callable[[Schema], List[ValidationIssue]]

HEX_COLOR_REGEX = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')
BARE_HEX_REGEX = re.compile(r'^[0-9A-Fa-f]{3,8}$')

THEMES = ("light", "dark", "system")
MIN_FONT_SIZE = 12
MAX_FONT_SIZE = 24
MIN_PASSWORD_LENGTH = 8


def _error(field: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, message=message, severity="error")


def _warning(field: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, message=message, severity="warning")


def is_valid_hex_color(color: Any) -> bool:
    return isinstance(color, str) and bool(HEX_COLOR_REGEX.match(color))


def is_valid_path(path: Any) -> bool:
    return isinstance(path, str) and path.startswith('/') and ' ' not in path


def has_good_contrast(foreground: str, background: str) -> bool:
    """
    Cheap light/dark guess from the hex digits, not a luminance calculation.

    Low digits in the foreground read as dark, high digits in the
    background read as light; mixed pairs are flagged.
    """
    fg = foreground.lower()
    bg = background.lower()
    is_dark_fg = any(digit in fg for digit in "012")
    is_light_bg = any(digit in bg for digit in "fed")
    return (is_dark_fg and is_light_bg) or (not is_dark_fg and not is_light_bg)


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


# =============================================================================
# CHECKERS
# =============================================================================

def check_meta(schema: Schema) -> List[ValidationIssue]:
    meta = schema.get("meta")
    if not isinstance(meta, dict):
        return [_error("meta", "Meta section is required")]

    issues = []
    if _blank(meta.get("name")):
        issues.append(_error("meta.name", "App name is required"))
    if _blank(meta.get("description")):
        issues.append(_warning("meta.description", "App description is required"))
    if meta.get("platform") not in PLATFORMS:
        issues.append(_error("meta.platform", "Valid platform (website/webapp/mobile) is required"))
    if not meta.get("version"):
        issues.append(_warning("meta.version", "Version is required"))
    return issues


def check_design(schema: Schema) -> List[ValidationIssue]:
    design = schema.get("design")
    if not isinstance(design, dict):
        return [_error("design", "Design section is required")]

    issues = []
    colors = design.get("colors")
    if not isinstance(colors, dict) or not colors:
        issues.append(_error("design.colors", "Color palette is required"))
    else:
        for key in COLOR_KEYS:
            value = colors.get(key)
            if not value:
                issues.append(_error(f"design.colors.{key}", f"{key} color is required"))
            elif not is_valid_hex_color(value):
                issues.append(_error(f"design.colors.{key}", f"{key} must be a valid hex color"))

        foreground = colors.get("foreground")
        background = colors.get("background")
        if isinstance(foreground, str) and isinstance(background, str) and foreground and background:
            if not has_good_contrast(foreground, background):
                issues.append(_warning("design.colors", "Foreground/background colors may have poor contrast (WCAG)"))

    typography = design.get("typography")
    if not isinstance(typography, dict):
        issues.append(_error("design.typography", "Typography settings are required"))
    else:
        if not typography.get("headingFont"):
            issues.append(_warning("design.typography.headingFont", "Heading font is required"))
        if not typography.get("bodyFont"):
            issues.append(_warning("design.typography.bodyFont", "Body font is required"))
        size = typography.get("baseFontSize")
        if not isinstance(size, (int, float)) or isinstance(size, bool) or not MIN_FONT_SIZE <= size <= MAX_FONT_SIZE:
            issues.append(_warning(
                "design.typography.baseFontSize",
                f"Base font size should be between {MIN_FONT_SIZE}-{MAX_FONT_SIZE}px",
            ))

    if design.get("theme") not in THEMES:
        issues.append(_warning("design.theme", "Valid theme (light/dark/system) is required"))

    return issues


def check_structure(schema: Schema) -> List[ValidationIssue]:
    structure = schema.get("structure")
    if not isinstance(structure, dict):
        return [_error("structure", "Structure section is required")]

    issues = []
    pages = as_list(structure.get("pages"))
    if not pages:
        issues.append(_error("structure.pages", "At least one page is required"))
    else:
        page_ids = set()
        page_paths = set()
        for i, page in enumerate(pages):
            if not isinstance(page, dict):
                issues.append(_error(f"structure.pages[{i}]", "Page must be an object"))
                continue

            page_id = page.get("id")
            if not page_id:
                issues.append(_error(f"structure.pages[{i}].id", "Page ID is required"))
            elif str(page_id) in page_ids:
                issues.append(_error(f"structure.pages[{i}].id", f"Duplicate page ID: {page_id}"))
            else:
                page_ids.add(str(page_id))

            path = page.get("path")
            if not path:
                issues.append(_error(f"structure.pages[{i}].path", "Page path is required"))
            elif not is_valid_path(path):
                issues.append(_error(f"structure.pages[{i}].path", f"Invalid path format: {path}"))
            elif path in page_paths:
                issues.append(_error(f"structure.pages[{i}].path", f"Duplicate page path: {path}"))
            else:
                page_paths.add(path)

            if not page.get("name"):
                issues.append(_warning(f"structure.pages[{i}].name", "Page name is required"))

        if "/" not in page_paths:
            issues.append(_warning("structure.pages", "Home page (path: /) is recommended"))

    navigation = structure.get("navigation")
    if not isinstance(navigation, dict):
        issues.append(_warning("structure.navigation", "Navigation is required"))
    else:
        if not navigation.get("type"):
            issues.append(_warning("structure.navigation.type", "Navigation type is required"))
        if not as_list(navigation.get("items")):
            issues.append(_warning("structure.navigation.items", "Navigation items are recommended"))

    if not as_list(structure.get("layouts")):
        issues.append(_warning("structure.layouts", "At least one layout is recommended"))

    return issues


def check_components(schema: Schema) -> List[ValidationIssue]:
    issues = []
    components = schema.get("components")
    if not isinstance(components, list):
        issues.append(_warning("components", "Components section is required"))
        components = []

    component_ids = set()
    for i, component in enumerate(components):
        if not isinstance(component, dict):
            issues.append(_error(f"components[{i}]", "Component must be an object"))
            continue

        component_id = component.get("id")
        if not component_id:
            issues.append(_error(f"components[{i}].id", "Component ID is required"))
        elif str(component_id) in component_ids:
            issues.append(_error(f"components[{i}].id", f"Duplicate component ID: {component_id}"))
        else:
            component_ids.add(str(component_id))

        if not component.get("name"):
            issues.append(_warning(f"components[{i}].name", "Component name is required"))
        if not component.get("type"):
            issues.append(_error(f"components[{i}].type", "Component type is required"))

    # Dangling references are errors even when the components section is absent
    for page in as_list(section(schema, "structure", "pages")):
        if not isinstance(page, dict):
            continue
        for component_ref in as_list(page.get("components")):
            if not isinstance(component_ref, str) or component_ref not in component_ids:
                issues.append(_error(
                    f"structure.pages.{page.get('id')}.components",
                    f"Referenced component not found: {component_ref}",
                ))

    return issues


def check_features(schema: Schema) -> List[ValidationIssue]:
    features = schema.get("features")
    if not isinstance(features, dict):
        return []  # optional section

    issues = []
    platform = section(schema, "meta", "platform")

    auth = features.get("auth")
    if isinstance(auth, dict) and auth.get("enabled"):
        if not as_list(auth.get("providers")):
            issues.append(_error(
                "features.auth.providers",
                "At least one auth provider is required when auth is enabled",
            ))
        min_length = auth.get("passwordMinLength")
        if isinstance(min_length, (int, float)) and min_length < MIN_PASSWORD_LENGTH:
            issues.append(_warning(
                "features.auth.passwordMinLength",
                f"Password minimum length should be at least {MIN_PASSWORD_LENGTH}",
            ))

    database = features.get("database")
    if isinstance(database, dict):
        tables = as_list(database.get("tables"))
        if not tables:
            issues.append(_warning(
                "features.database.tables",
                "At least one table is required when database is configured",
            ))
        table_names = set()
        for table in tables:
            if not isinstance(table, dict):
                continue
            name = table.get("name")
            if str(name) in table_names:
                issues.append(_error("features.database.tables", f"Duplicate table name: {name}"))
            table_names.add(str(name))
            if not as_list(table.get("fields")):
                issues.append(_error(f"features.database.tables.{name}", "Table must have at least one field"))

    pwa = features.get("pwa")
    if platform == "webapp" and isinstance(pwa, dict) and pwa.get("enabled"):
        if not pwa.get("name"):
            issues.append(_warning("features.pwa.name", "PWA name is required when PWA is enabled"))
        if not pwa.get("shortName"):
            issues.append(_warning("features.pwa.shortName", "PWA short name is required"))

    return issues


CHECKERS: Tuple[Checker, ...] = (
    check_meta,
    check_design,
    check_structure,
    check_components,
    check_features,
)


# =============================================================================
# SUGGESTIONS / SCORE
# =============================================================================

def generate_suggestions(schema: Schema) -> List[str]:
    suggestions = []
    platform = section(schema, "meta", "platform")

    if platform == "webapp":
        if not section(schema, "features", "auth", "enabled"):
            suggestions.append("Consider enabling authentication for user management")
        if not section(schema, "features", "pwa", "enabled"):
            suggestions.append("Enable PWA for offline support and better mobile experience")
        if not section(schema, "features", "database"):
            suggestions.append("Consider adding a database for data persistence")

    if platform == "mobile" and section(schema, "structure", "navigation", "type") != "tabs":
        suggestions.append("Tab navigation is recommended for mobile apps")

    if section(schema, "design", "theme") == "light":
        suggestions.append('Consider supporting dark mode with theme: "system"')

    if len(as_list(section(schema, "structure", "pages"))) > 10:
        suggestions.append("Large number of pages detected - consider grouping with layouts")

    components = schema.get("components")
    if isinstance(components, list) and len(components) < 3:
        suggestions.append("Consider defining more reusable components for consistency")

    return suggestions


def calculate_score(errors: List[ValidationIssue], warnings: List[ValidationIssue], schema: Schema) -> int:
    score = 100
    score -= len(errors) * 10
    score -= len(warnings) * 2

    if section(schema, "meta", "name") and section(schema, "meta", "description"):
        score += 2
    if section(schema, "design", "colors") and section(schema, "design", "typography"):
        score += 2
    if as_list(section(schema, "structure", "pages")):
        score += 2
    if as_list(schema.get("components")):
        score += 2
    if section(schema, "features", "auth"):
        score += 1
    if section(schema, "features", "database"):
        score += 1

    return max(0, min(100, score))


# =============================================================================
# PUBLIC API
# =============================================================================

def validate_schema(schema: Optional[Schema]) -> ValidationResult:
    """Run every checker and aggregate; any error makes the schema invalid."""
    if not isinstance(schema, dict):
        schema = {}

    issues: List[ValidationIssue] = []
    for checker in CHECKERS:
        issues.extend(checker(schema))

    errors = [issue for issue in issues if issue.severity == "error"]
    warnings = [issue for issue in issues if issue.severity == "warning"]

    return ValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        suggestions=generate_suggestions(schema),
        score=calculate_score(errors, warnings, schema),
    )


def is_valid_schema(schema: Optional[Schema]) -> bool:
    return validate_schema(schema).valid


def validation_summary(result: ValidationResult) -> str:
    lines = [
        f"Schema Validation: {'✅ PASSED' if result.valid else '❌ FAILED'}",
        f"Completeness Score: {result.score}/100",
    ]

    if result.errors:
        lines.append(f"\nErrors ({len(result.errors)}):")
        lines.extend(f"  ❌ {e.field}: {e.message}" for e in result.errors)

    if result.warnings:
        lines.append(f"\nWarnings ({len(result.warnings)}):")
        lines.extend(f"  ⚠️ {w.field}: {w.message}" for w in result.warnings)

    if result.suggestions:
        lines.append("\nSuggestions:")
        lines.extend(f"  💡 {s}" for s in result.suggestions)

    return "\n".join(lines)


def repair_schema(schema: Schema) -> Tuple[Schema, List[str]]:
    """
    Fix cosmetic problems common in model output.

    Returns a repaired copy and a list of the fixes applied. Structural
    problems (missing pages, dangling references) are left for the
    Validator to report.
    """
    repaired = copy.deepcopy(schema)
    fixes: List[str] = []

    meta = repaired.get("meta")
    if isinstance(meta, dict) and not meta.get("version"):
        meta["version"] = "1.0.0"
        fixes.append("meta.version")

    colors = section(repaired, "design", "colors")
    if isinstance(colors, dict):
        for key, color in colors.items():
            if isinstance(color, str) and BARE_HEX_REGEX.match(color):
                colors[key] = f"#{color}"
                fixes.append(f"design.colors.{key}")

    for key in ("components", "integrations"):
        if not isinstance(repaired.get(key), list):
            repaired[key] = []
            fixes.append(key)

    structure = repaired.get("structure")
    if isinstance(structure, dict):
        for key in ("pages", "layouts"):
            if not isinstance(structure.get(key), list):
                structure[key] = []
                fixes.append(f"structure.{key}")
        navigation = structure.get("navigation")
        if isinstance(navigation, dict) and not isinstance(navigation.get("items"), list):
            navigation["items"] = []
            fixes.append("structure.navigation.items")

    design = repaired.get("design")
    if isinstance(design, dict):
        if not design.get("spacing"):
            design["spacing"] = "normal"
            fixes.append("design.spacing")
        if not design.get("theme"):
            design["theme"] = "system"
            fixes.append("design.theme")

    return repaired, fixes
