"""
Generation event stream.

A closed set of event kinds, discriminated by ``type``. The Orchestrator
emits ``GenerationEvent`` values; the API layer renders each one as a
server-sent event with ``format_sse``.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .generation import CodeGenOutput, GeneratedFile, PlanResult


class EventModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PlanningEvent(EventModel):
    """Stage transition or status text"""
    type: Literal["planning"] = "planning"
    phase: str
    message: str


class SchemaEvent(EventModel):
    """Controller produced or updated the schema"""
    type: Literal["schema"] = "schema"
    app_schema: Dict[str, Any] = Field(..., alias="schema")
    complete: bool = False


class GeneratingEvent(EventModel):
    type: Literal["generating"] = "generating"
    message: str
    progress: Optional[int] = None
    total: Optional[int] = None


class FileEvent(EventModel):
    type: Literal["file"] = "file"
    path: str
    content: str
    language: str = "plaintext"

    @classmethod
    def from_file(cls, file: GeneratedFile) -> "FileEvent":
        return cls(path=file.path, content=file.content, language=file.language)


class FileAction(EventModel):
    type: Literal["create_or_update_file", "delete_file"]
    path: str
    content: Optional[str] = None
    language: Optional[str] = None


class ActionsEvent(EventModel):
    """Persistence instructions derived from file events"""
    type: Literal["actions"] = "actions"
    actions: List[FileAction]


class ContentEvent(EventModel):
    """Free-text assistant message"""
    type: Literal["content"] = "content"
    content: str


class ErrorEvent(EventModel):
    type: Literal["error"] = "error"
    error: str
    retryable: bool = False


class CompleteEvent(EventModel):
    """Session result; always the last event of a stream"""
    type: Literal["complete"] = "complete"
    app_schema: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
    files: Optional[List[GeneratedFile]] = None
    dependencies: Optional[Dict[str, str]] = None
    scripts: Optional[Dict[str, str]] = None
    reasoning: Optional[str] = None
    suggestions: Optional[List[str]] = None
    review: Optional[Dict[str, Any]] = None
    incomplete: Optional[bool] = None
    error: Optional[bool] = None
    mode: Optional[str] = None
    duration: float = 0.0


GenerationEvent = Annotated[
    Union[
        PlanningEvent,
        SchemaEvent,
        GeneratingEvent,
        FileEvent,
        ActionsEvent,
        ContentEvent,
        ErrorEvent,
        CompleteEvent,
    ],
    Field(discriminator="type"),
]

generation_event_adapter: TypeAdapter = TypeAdapter(GenerationEvent)


def parse_event(data: Dict[str, Any]) -> BaseModel:
    """Rebuild a typed event from its wire form."""
    return generation_event_adapter.validate_python(data)


def format_sse(event: BaseModel) -> str:
    """Render one event as a server-sent-event frame."""
    return f"data: {event.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


# =============================================================================
# STAGE-INTERNAL COMPLETION EVENTS
# =============================================================================
# Controller and CodeGen streams end with these; the Orchestrator folds them
# into the public CompleteEvent and never forwards them directly.

class PlanCompleteEvent(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: Literal["complete"] = "complete"
    result: PlanResult


class CodeGenCompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    output: CodeGenOutput
