"""
Exception hierarchy for the generation service.

Validation problems are never raised: they travel as ValidationResult data.
"""
from typing import Optional


class AppForgeError(Exception):
    """Base exception for all service errors"""
    pass


# ============================================================================
# PROVIDER ERRORS
# ============================================================================

class ProviderError(AppForgeError):
    """Raised by an LLM provider call"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        model: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.model = model

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message


class TransientProviderError(ProviderError):
    """Retryable upstream condition: rate limit, 5xx, network"""
    pass


class ModelUnavailableError(ProviderError):
    """The requested model itself is missing or not authorized"""
    pass


class EmptyResponseError(ProviderError):
    """Provider answered without any content"""
    pass


# ============================================================================
# PIPELINE ERRORS
# ============================================================================

class JSONExtractionError(AppForgeError):
    """No JSON object could be recovered from model output"""

    def __init__(self, message: str, raw_content: str = ""):
        super().__init__(message)
        self.raw_content = raw_content


class PlanningError(AppForgeError):
    """Controller could not produce a schema"""

    def __init__(self, message: str, code: Optional[str] = None, raw_content: str = ""):
        super().__init__(message)
        self.code = code
        self.raw_content = raw_content


class CodeGenError(AppForgeError):
    """CodeGen could not produce files"""

    def __init__(self, message: str, code: Optional[str] = None, raw_content: str = ""):
        super().__init__(message)
        self.code = code
        self.raw_content = raw_content


# ============================================================================
# INFRASTRUCTURE ERRORS
# ============================================================================

class PersistenceError(AppForgeError):
    """Project store write failed"""
    pass


class RateLimitExceededError(AppForgeError):
    """Caller exceeded the request quota"""

    def __init__(self, message: str, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after
