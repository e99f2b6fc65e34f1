"""
Request/response models for the generation API.
"""
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .app_schema import Platform
from .generation import GeneratedFile
Mode = Literal["auto", "controller", "codegen"]


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "system"] = "user"
    content: str


class GenerationRequest(BaseModel):
    """One generation session requested by the UI"""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "prompt": "Build a landing page for my bakery with a menu and contact form",
                "platform": "website",
                "project_id": "proj_123",
                "user_id": "user_123",
                "mode": "auto",
            }
        },
    )

    request_id: str = Field(default_factory=lambda: str(uuid4()))
    prompt: str = Field(..., min_length=1, max_length=8000)
    platform: Platform = "webapp"
    mode: Mode = "auto"
    project_id: Optional[str] = None
    user_id: str = "anonymous"
    session_id: Optional[str] = None
    existing_schema: Optional[Dict[str, Any]] = None
    existing_files: List[GeneratedFile] = Field(default_factory=list)
    conversation_history: List[ChatTurn] = Field(default_factory=list)
    use_templates: Optional[bool] = None
    enable_review: Optional[bool] = None

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        """Ensure prompt is not just whitespace"""
        if not v.strip():
            raise ValueError("Prompt cannot be empty or whitespace")
        return v.strip()


class GenerationResult(BaseModel):
    """Non-streaming result of one session"""
    model_config = ConfigDict(populate_by_name=True)

    request_id: str
    mode: str
    app_schema: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
    files: List[GeneratedFile] = Field(default_factory=list)
    dependencies: Dict[str, str] = Field(default_factory=dict)
    scripts: Dict[str, str] = Field(default_factory=dict)
    reasoning: Optional[str] = None
    suggestions: List[str] = Field(default_factory=list)
    review: Optional[Dict[str, Any]] = None
    messages: List[str] = Field(default_factory=list)
    incomplete: bool = False
    error: Optional[str] = None
    retryable: bool = False
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None and not self.incomplete


class ClassifyRequest(BaseModel):
    message: str = Field(..., max_length=8000)


class ClassifyResponse(BaseModel):
    is_generation: bool
    rule: str
    matched: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body for non-streaming endpoints"""
    error: str
    retryable: bool = False
    retry_after: Optional[int] = None
