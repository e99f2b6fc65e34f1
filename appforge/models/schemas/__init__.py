"""
Unified schema system for the app generation pipeline.

This module provides the app schema, the generation artifacts, the event
stream and the API request/response models.
"""

from .app_schema import (
    PLATFORMS,
    AppMeta,
    ComponentSchema,
    DesignSchema,
    FeaturesSchema,
    PageSchema,
    StructureSchema,
    UnifiedAppSchema,
    create_empty_schema,
    is_schema_complete,
)

from .generation import (
    CodeGenOutput,
    CodeIssue,
    GeneratedFile,
    PlanResult,
    ReviewResult,
    ValidationIssue,
    ValidationResult,
)

from .events import (
    ActionsEvent,
    CompleteEvent,
    ContentEvent,
    ErrorEvent,
    FileAction,
    FileEvent,
    GeneratingEvent,
    GenerationEvent,
    PlanningEvent,
    SchemaEvent,
    format_sse,
    parse_event,
)

from .input_output import (
    ChatTurn,
    ClassifyRequest,
    ClassifyResponse,
    ErrorResponse,
    GenerationRequest,
    GenerationResult,
)

__all__ = [
    # App schema
    "PLATFORMS",
    "AppMeta",
    "ComponentSchema",
    "DesignSchema",
    "FeaturesSchema",
    "PageSchema",
    "StructureSchema",
    "UnifiedAppSchema",
    "create_empty_schema",
    "is_schema_complete",

    # Generation artifacts
    "CodeGenOutput",
    "CodeIssue",
    "GeneratedFile",
    "PlanResult",
    "ReviewResult",
    "ValidationIssue",
    "ValidationResult",

    # Events
    "ActionsEvent",
    "CompleteEvent",
    "ContentEvent",
    "ErrorEvent",
    "FileAction",
    "FileEvent",
    "GeneratingEvent",
    "GenerationEvent",
    "PlanningEvent",
    "SchemaEvent",
    "format_sse",
    "parse_event",

    # API models
    "ChatTurn",
    "ClassifyRequest",
    "ClassifyResponse",
    "ErrorResponse",
    "GenerationRequest",
    "GenerationResult",
]
