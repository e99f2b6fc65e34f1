"""
Result models produced by the generation stages.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

Severity = Literal["error", "warning"]
ReviewSeverity = Literal["critical", "error", "warning", "info"]
ReviewCategory = Literal["security", "performance", "accessibility", "best-practice", "bug", "style"]


class GeneratedFile(BaseModel):
    """One emitted source file"""
    path: str
    content: str
    language: str = "plaintext"


class CodeGenOutput(BaseModel):
    """Batch of files plus the package manifest data needed to run them"""
    files: List[GeneratedFile] = Field(default_factory=list)
    dependencies: Dict[str, str] = Field(default_factory=dict)
    scripts: Dict[str, str] = Field(default_factory=dict)

    def paths(self) -> List[str]:
        return [f.path for f in self.files]


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    field: str
    message: str
    severity: Severity

    def __str__(self) -> str:
        emoji = {"warning": "⚠️", "error": "❌"}
        return f"{emoji.get(self.severity, '•')} [{self.severity.upper()}] {self.field}: {self.message}"


class ValidationResult(BaseModel):
    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    score: int = Field(..., ge=0, le=100)

    def error_fields(self) -> List[str]:
        return [issue.field for issue in self.errors]


# =============================================================================
# REVIEW
# =============================================================================

class CodeIssue(BaseModel):
    file: str = "unknown"
    line: Optional[int] = None
    severity: ReviewSeverity = "info"
    category: ReviewCategory = "best-practice"
    message: str = "Unknown issue"
    suggestion: Optional[str] = None


class ReviewResult(BaseModel):
    passed: bool
    score: int = Field(..., ge=0, le=100)
    issues: List[CodeIssue] = Field(default_factory=list)
    summary: str = ""
    improvements: List[str] = Field(default_factory=list)


# =============================================================================
# PLANNING
# =============================================================================

@dataclass
class PlanResult:
    """Controller output"""
    schema: Dict[str, Any]
    reasoning: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    cached: bool = False
