"""
appforge/llm/__init__.py
LLM module exports
"""
from .base import (
    BaseLLMProvider,
    ChatOptions,
    ChatResult,
    LLMMessage,
    StreamChunk,
)
from .openrouter_provider import OpenRouterProvider
from .retry import (
    ErrorKind,
    ResilientLLMClient,
    RetryPolicy,
    StreamAttempt,
    StreamState,
    call_with_retry,
    classify_error,
    describe_failure,
    stream_with_retry,
)

__all__ = [
    "BaseLLMProvider",
    "ChatOptions",
    "ChatResult",
    "LLMMessage",
    "StreamChunk",
    "OpenRouterProvider",
    "ErrorKind",
    "ResilientLLMClient",
    "RetryPolicy",
    "StreamAttempt",
    "StreamState",
    "call_with_retry",
    "classify_error",
    "describe_failure",
    "stream_with_retry",
]
