"""
Generation services.

Controller (planning) -> Schema Validator -> CodeGen (templates or LLM)
-> Reviewer, with the Schema Cache and Incremental Differ on the side.
"""

from appforge.services.generation.codegen import (
    CodeGen,
    StreamingFileExtractor,
    manifest_data,
)

from appforge.services.generation.controller import Controller

from appforge.services.generation.incremental import (
    IncrementalResult,
    SchemaDiff,
    diff_schemas,
    generate_incremental,
    suggest_update_strategy,
)

from appforge.services.generation.reviewer import (
    CodeReviewer,
    format_review,
)

from appforge.services.generation.schema_cache import SchemaCache

from appforge.services.generation.schema_validator import (
    repair_schema,
    validate_schema,
    validation_summary,
)

from appforge.services.generation.schema_version import (
    CURRENT_SCHEMA_VERSION,
    migrate_schema,
    stamp_version,
)

__all__ = [
    # Pipeline stages
    "Controller",
    "CodeGen",
    "CodeReviewer",
    "StreamingFileExtractor",
    "manifest_data",
    "format_review",

    # Validation
    "validate_schema",
    "repair_schema",
    "validation_summary",

    # Versioning
    "CURRENT_SCHEMA_VERSION",
    "migrate_schema",
    "stamp_version",

    # Caching and incremental updates
    "SchemaCache",
    "SchemaDiff",
    "IncrementalResult",
    "diff_schemas",
    "generate_incremental",
    "suggest_update_strategy",
]
