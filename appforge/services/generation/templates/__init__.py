"""
Deterministic template generators, one per target platform.

    website -> static HTML/CSS/JS
    webapp  -> Vite + React + React Router
    mobile  -> Expo Router
"""
from typing import Any, Dict, List, Optional

from appforge.models.schemas.generation import GeneratedFile

from .common import FileSet, TemplateFile, language_for_path
from .mobile import generate_mobile
from .pwa import generate_pwa_files, pwa_enabled
from .static import generate_static
from .web import generate_web

GENERATORS = {
    "website": generate_static,
    "webapp": generate_web,
    "mobile": generate_mobile,
}


def generate_with_sources(schema: Dict[str, Any], platform: Optional[str] = None) -> List[TemplateFile]:
    """Template files together with the schema fragments each one derives from."""
    target = platform or ((schema.get("meta") or {}).get("platform") if isinstance(schema.get("meta"), dict) else None)
    generator = GENERATORS.get(target)
    if generator is None:
        raise ValueError(f"Unknown platform: {target}")
    return generator(schema)


def generate_files_from_schema(schema: Dict[str, Any], platform: Optional[str] = None) -> List[GeneratedFile]:
    return [file.to_generated() for file in generate_with_sources(schema, platform)]


def file_sources(schema: Dict[str, Any], platform: Optional[str] = None) -> Dict[str, tuple]:
    """path -> schema fragments the file is rendered from"""
    return {file.path: file.sources for file in generate_with_sources(schema, platform)}


__all__ = [
    "FileSet",
    "GENERATORS",
    "TemplateFile",
    "file_sources",
    "generate_files_from_schema",
    "generate_mobile",
    "generate_pwa_files",
    "generate_static",
    "generate_web",
    "generate_with_sources",
    "language_for_path",
    "pwa_enabled",
]
