"""
Models package - schemas and prompts.

Exports:
- schemas: App schema, generation artifacts, events and API models
- prompts: Prompt templates
"""

from .schemas import (
    CodeGenOutput,
    GeneratedFile,
    GenerationRequest,
    GenerationResult,
    PlanResult,
    ReviewResult,
    UnifiedAppSchema,
    ValidationResult,
)

from .prompts import (
    PromptLibrary,
    PromptType,
)

__all__ = [
    "CodeGenOutput",
    "GeneratedFile",
    "GenerationRequest",
    "GenerationResult",
    "PlanResult",
    "ReviewResult",
    "UnifiedAppSchema",
    "ValidationResult",
    "PromptLibrary",
    "PromptType",
]
