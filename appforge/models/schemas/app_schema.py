"""
Unified App Schema.

The structured description of an application exchanged between the
Controller, the Validator and CodeGen. The wire format is camelCase JSON;
models accept partial input so the Validator can report what is missing
instead of failing to parse.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Platform = Literal["website", "webapp", "mobile"]
ThemeMode = Literal["light", "dark", "system"]
SpacingMode = Literal["compact", "normal", "spacious"]
BorderRadius = Literal["none", "sm", "md", "lg", "xl", "full"]
PageType = Literal["static", "dynamic", "protected"]
NavigationType = Literal["tabs", "drawer", "stack", "header", "sidebar"]

PLATFORMS = ("website", "webapp", "mobile")
COLOR_KEYS = (
    "primary",
    "secondary",
    "accent",
    "background",
    "foreground",
    "muted",
    "border",
    "error",
    "success",
    "warning",
)

DEFAULT_COLORS: Dict[str, str] = {
    "primary": "#6366f1",
    "secondary": "#8b5cf6",
    "accent": "#06b6d4",
    "background": "#ffffff",
    "foreground": "#0a0a0a",
    "muted": "#6b7280",
    "border": "#e5e7eb",
    "error": "#ef4444",
    "success": "#22c55e",
    "warning": "#f59e0b",
}


class SchemaModel(BaseModel):
    """camelCase on the wire, snake_case in Python, unknown keys kept"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# META / DESIGN
# =============================================================================

class AppMeta(SchemaModel):
    name: str = ""
    description: str = ""
    platform: Optional[Platform] = None
    version: str = "1.0.0"
    icon: Optional[str] = None
    keywords: Optional[List[str]] = None


class ColorPalette(SchemaModel):
    primary: str = DEFAULT_COLORS["primary"]
    secondary: str = DEFAULT_COLORS["secondary"]
    accent: str = DEFAULT_COLORS["accent"]
    background: str = DEFAULT_COLORS["background"]
    foreground: str = DEFAULT_COLORS["foreground"]
    muted: str = DEFAULT_COLORS["muted"]
    border: str = DEFAULT_COLORS["border"]
    error: str = DEFAULT_COLORS["error"]
    success: str = DEFAULT_COLORS["success"]
    warning: str = DEFAULT_COLORS["warning"]


class Typography(SchemaModel):
    heading_font: str = "Inter"
    body_font: str = "Inter"
    mono_font: Optional[str] = None
    base_font_size: int = 16
    line_height: float = 1.5


class DesignSchema(SchemaModel):
    theme: ThemeMode = "system"
    colors: ColorPalette = Field(default_factory=ColorPalette)
    typography: Typography = Field(default_factory=Typography)
    spacing: SpacingMode = "normal"
    border_radius: BorderRadius = "md"
    shadows: bool = True


# =============================================================================
# STRUCTURE
# =============================================================================

class PageSchema(SchemaModel):
    id: str
    name: str = ""
    path: str
    type: PageType = "static"
    title: str = ""
    description: Optional[str] = None
    components: List[str] = Field(default_factory=list)
    layout: Optional[str] = None


class NavigationItem(SchemaModel):
    id: str
    label: str
    path: Optional[str] = None
    icon: Optional[str] = None


class NavigationSchema(SchemaModel):
    type: NavigationType = "header"
    items: List[NavigationItem] = Field(default_factory=list)


class LayoutSchema(SchemaModel):
    id: str
    name: str = ""
    type: str = "default"
    header: bool = True
    footer: bool = True
    sidebar: bool = False


class StructureSchema(SchemaModel):
    pages: List[PageSchema] = Field(default_factory=list)
    navigation: NavigationSchema = Field(default_factory=NavigationSchema)
    layouts: List[LayoutSchema] = Field(default_factory=list)


# =============================================================================
# FEATURES
# =============================================================================

class AuthFeature(SchemaModel):
    enabled: bool = False
    providers: List[str] = Field(default_factory=list)
    require_email_verification: bool = False
    password_min_length: int = 8
    redirect_after_login: Optional[str] = None
    redirect_after_logout: Optional[str] = None


class DatabaseField(SchemaModel):
    name: str
    type: str = "string"
    required: bool = False
    unique: Optional[bool] = None


class DatabaseTable(SchemaModel):
    name: str
    fields: List[DatabaseField] = Field(default_factory=list)
    timestamps: bool = True


class DatabaseFeature(SchemaModel):
    provider: str = "supabase"
    tables: List[DatabaseTable] = Field(default_factory=list)


class ApiFeature(SchemaModel):
    name: str
    base_path: str = "/api"
    endpoints: List[Dict[str, Any]] = Field(default_factory=list)


class StorageFeature(SchemaModel):
    provider: str = "supabase"
    buckets: List[Dict[str, Any]] = Field(default_factory=list)


class PWAConfig(SchemaModel):
    enabled: bool = False
    name: Optional[str] = None
    short_name: Optional[str] = None
    theme_color: Optional[str] = None
    background_color: Optional[str] = None
    display: str = "standalone"
    offline_support: bool = True


class FeaturesSchema(SchemaModel):
    auth: Optional[AuthFeature] = None
    database: Optional[DatabaseFeature] = None
    api: Optional[List[ApiFeature]] = None
    storage: Optional[StorageFeature] = None
    pwa: Optional[PWAConfig] = None


# =============================================================================
# COMPONENTS / INTEGRATIONS
# =============================================================================

class PropSchema(SchemaModel):
    name: str
    type: str = "string"
    required: bool = False


class ComponentSchema(SchemaModel):
    id: str
    name: str = ""
    type: str = "custom"
    description: Optional[str] = None
    props: List[PropSchema] = Field(default_factory=list)


class IntegrationSchema(SchemaModel):
    type: str
    provider: str
    config: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


class UnifiedAppSchema(SchemaModel):
    meta: AppMeta = Field(default_factory=AppMeta)
    design: DesignSchema = Field(default_factory=DesignSchema)
    structure: StructureSchema = Field(default_factory=StructureSchema)
    features: FeaturesSchema = Field(default_factory=FeaturesSchema)
    components: List[ComponentSchema] = Field(default_factory=list)
    integrations: List[IntegrationSchema] = Field(default_factory=list)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "meta": {"name": "Portfolio", "description": "Personal portfolio", "platform": "website", "version": "1.0.0"},
            "design": {"theme": "light", "colors": DEFAULT_COLORS, "spacing": "normal", "borderRadius": "md", "shadows": True},
            "structure": {
                "pages": [{"id": "home", "name": "Home", "path": "/", "type": "static", "title": "Home", "components": ["hero"]}],
                "navigation": {"type": "header", "items": [{"id": "nav-home", "label": "Home", "path": "/"}]},
                "layouts": [],
            },
            "features": {},
            "components": [{"id": "hero", "name": "Hero", "type": "hero", "props": []}],
            "integrations": [],
        }
    })


# =============================================================================
# HELPERS
# =============================================================================

def create_empty_schema(platform: Platform, name: str = "") -> Dict[str, Any]:
    """Default schema skeleton for a new generation session."""
    schema = UnifiedAppSchema(meta=AppMeta(name=name, platform=platform))
    data = schema.to_json_dict()
    data["features"] = {}
    return data


def is_schema_complete(schema: Optional[Dict[str, Any]]) -> bool:
    """name, platform, colors and at least one page"""
    if not isinstance(schema, dict):
        return False
    meta = schema.get("meta") or {}
    design = schema.get("design") or {}
    structure = schema.get("structure") or {}
    pages = structure.get("pages") if isinstance(structure, dict) else None
    return bool(
        isinstance(meta, dict)
        and meta.get("name")
        and meta.get("platform")
        and isinstance(design, dict)
        and design.get("colors")
        and isinstance(pages, list)
        and len(pages) > 0
    )


def section(schema: Optional[Dict[str, Any]], *keys: str) -> Any:
    """Safe nested lookup; returns None on any missing or non-dict step."""
    current: Any = schema
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []
