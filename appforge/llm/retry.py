"""
appforge/llm/retry.py
Retry and model-fallback policy around provider calls.

Two independent mechanisms:

- Retry: a bounded loop with an explicit delay schedule, only for transient
  upstream conditions (429, 502, 503, 504, network, timeout).
- Fallback: one substitution of the configured fallback model when the
  requested model is unavailable (401, 403, 404, "model not found").

Streams are retried only while nothing has reached the caller. The
``StreamAttempt`` state machine makes that rule structural.
"""
import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Tuple, TypeVar

import httpx

from appforge.config import Settings
from appforge.core.exceptions import (
    CodeGenError,
    JSONExtractionError,
    ModelUnavailableError,
    PlanningError,
    ProviderError,
    TransientProviderError,
)
from appforge.utils.logging import get_logger
from .base import BaseLLMProvider, ChatOptions, ChatResult, StreamChunk

logger = get_logger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


# ============================================================================
# ERROR CLASSIFICATION
# ============================================================================

class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    MODEL_UNAVAILABLE = "model_unavailable"
    PERMANENT = "permanent"


TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})
MODEL_UNAVAILABLE_STATUS_CODES = frozenset({401, 403, 404})

TRANSIENT_MESSAGE_PATTERN = re.compile(
    r"network|timeout|timed out|econnreset|econnrefused|connection reset|"
    r"connection refused|socket hang up|fetch failed|rate limit",
    re.IGNORECASE,
)
MODEL_UNAVAILABLE_MESSAGE_PATTERN = re.compile(
    r"model\W+(?:\S+\W+)?(?:not found|does not exist|is not available|unavailable)|"
    r"no endpoints found|invalid model|unauthorized|not authorized",
    re.IGNORECASE,
)

_TRANSPORT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    asyncio.TimeoutError,
    ConnectionError,
)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception onto the retry taxonomy."""
    if isinstance(exc, TransientProviderError):
        return ErrorKind.TRANSIENT
    if isinstance(exc, ModelUnavailableError):
        return ErrorKind.MODEL_UNAVAILABLE

    status = getattr(exc, "status_code", None)
    if status in TRANSIENT_STATUS_CODES:
        return ErrorKind.TRANSIENT
    if status in MODEL_UNAVAILABLE_STATUS_CODES:
        return ErrorKind.MODEL_UNAVAILABLE

    if isinstance(exc, _TRANSPORT_ERRORS):
        return ErrorKind.TRANSIENT

    message = str(exc)
    if TRANSIENT_MESSAGE_PATTERN.search(message):
        return ErrorKind.TRANSIENT
    if MODEL_UNAVAILABLE_MESSAGE_PATTERN.search(message):
        return ErrorKind.MODEL_UNAVAILABLE
    return ErrorKind.PERMANENT


def describe_failure(exc: BaseException) -> Tuple[str, bool]:
    """
    Human-readable message and retryable flag for an outward error event.

    Raw upstream text never leaves this function; it belongs in logs.
    """
    cause: Optional[BaseException] = exc
    while cause is not None and not isinstance(cause, ProviderError):
        cause = cause.__cause__

    if cause is not None:
        kind = classify_error(cause)
        if kind is ErrorKind.TRANSIENT:
            return "AI provider temporarily unavailable, please try again.", True
        if kind is ErrorKind.MODEL_UNAVAILABLE:
            return "The AI model is currently unavailable. Please try again later.", False
        return "The AI provider rejected the request. Please try again later.", False

    if isinstance(exc, (PlanningError, CodeGenError, JSONExtractionError)):
        return "The AI response could not be understood. Please try rephrasing your request.", True

    if classify_error(exc) is ErrorKind.TRANSIENT:
        return "AI provider temporarily unavailable, please try again.", True
    return "Something went wrong while generating your app. Please try again.", False


# ============================================================================
# POLICY
# ============================================================================

@dataclass(frozen=True)
class RetryPolicy:
    """``max_retries`` counts retries after the first attempt."""
    max_retries: int = 3
    delays: Tuple[float, ...] = (1.0, 2.0, 4.0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(max_retries=settings.max_retries, delays=tuple(settings.retry_delays))

    def delay_for(self, retry_number: int) -> float:
        """Delay before the n-th retry (1-based); the last delay repeats."""
        if not self.delays:
            return 0.0
        index = min(max(retry_number, 1), len(self.delays)) - 1
        return self.delays[index]


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    label: str = "llm.call",
) -> T:
    """Await ``fn()``, retrying transient failures on the policy schedule."""
    retries = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            kind = classify_error(exc)
            if kind is not ErrorKind.TRANSIENT or retries >= policy.max_retries:
                raise
            retries += 1
            delay = policy.delay_for(retries)
            logger.warning(
                "llm.retry.scheduled",
                extra={
                    "label": label,
                    "retry": retries,
                    "max_retries": policy.max_retries,
                    "delay_seconds": delay,
                    "error": str(exc),
                },
            )
            await sleep(delay)


# ============================================================================
# STREAM STATE MACHINE
# ============================================================================

class StreamState(str, Enum):
    NOT_STARTED = "not_started"
    STREAMING = "streaming"
    YIELDED = "yielded"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    StreamState.NOT_STARTED: {StreamState.STREAMING, StreamState.FAILED},
    StreamState.STREAMING: {StreamState.YIELDED, StreamState.DONE, StreamState.FAILED},
    StreamState.YIELDED: {StreamState.YIELDED, StreamState.DONE, StreamState.FAILED},
    StreamState.DONE: set(),
    StreamState.FAILED: set(),
}

# Failing from these states means the caller has seen nothing yet
_RETRYABLE_STATES = frozenset({StreamState.NOT_STARTED, StreamState.STREAMING})


class StreamAttempt:
    """Lifecycle of one streaming attempt."""

    def __init__(self):
        self.state = StreamState.NOT_STARTED
        self.chunks_yielded = 0

    def _transition(self, target: StreamState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal stream transition {self.state.value} -> {target.value}")
        self.state = target

    def start(self) -> None:
        self._transition(StreamState.STREAMING)

    def mark_yielded(self) -> None:
        self._transition(StreamState.YIELDED)
        self.chunks_yielded += 1

    def finish(self) -> None:
        self._transition(StreamState.DONE)

    def fail(self) -> bool:
        """Move to FAILED. Returns True when a retry is still legal."""
        retry_legal = self.state in _RETRYABLE_STATES
        self._transition(StreamState.FAILED)
        return retry_legal


async def stream_with_retry(
    factory: Callable[[], AsyncIterator[T]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    label: str = "llm.stream",
) -> AsyncIterator[T]:
    """
    Re-yield ``factory()``'s items, retrying transient failures that happen
    before the first item of an attempt reached the caller.
    """
    retries = 0
    while True:
        attempt = StreamAttempt()
        try:
            attempt.start()
            async for item in factory():
                attempt.mark_yielded()
                yield item
            attempt.finish()
            return
        except Exception as exc:
            retry_legal = attempt.fail()
            kind = classify_error(exc)
            if not retry_legal:
                logger.warning(
                    "llm.stream.failed_after_output",
                    extra={"label": label, "chunks_yielded": attempt.chunks_yielded, "error": str(exc)},
                )
                raise
            if kind is not ErrorKind.TRANSIENT or retries >= policy.max_retries:
                raise
            retries += 1
            delay = policy.delay_for(retries)
            logger.warning(
                "llm.stream.retry_scheduled",
                extra={
                    "label": label,
                    "retry": retries,
                    "max_retries": policy.max_retries,
                    "delay_seconds": delay,
                    "error": str(exc),
                },
            )
            await sleep(delay)


# ============================================================================
# CLIENT
# ============================================================================

async def _raise_on_error_chunks(chunks: AsyncIterator[StreamChunk], model: str) -> AsyncIterator[StreamChunk]:
    """Turn in-band ``error`` chunks into exceptions the retry layer can see."""
    async for chunk in chunks:
        if chunk.type == "error":
            raise ProviderError(chunk.error or "Stream error", model=model)
        yield chunk


class ResilientLLMClient:
    """
    Provider wrapper combining transient retry with one-shot model fallback.

    Fallback triggers at most once per call and only for the primary model.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        settings: Settings,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.provider = provider
        self.settings = settings
        self.policy = policy or RetryPolicy.from_settings(settings)
        self._sleep = sleep

        self.stats = {
            "calls": 0,
            "streams": 0,
            "fallbacks": 0,
            "failures": 0,
        }

    def _fallback_for(self, model: str, exc: BaseException) -> Optional[str]:
        if classify_error(exc) is not ErrorKind.MODEL_UNAVAILABLE:
            return None
        return self.settings.fallback_model_for(model)

    async def chat(self, options: ChatOptions) -> ChatResult:
        self.stats["calls"] += 1
        try:
            return await call_with_retry(
                lambda: self.provider.chat(options), self.policy, self._sleep, label=options.model
            )
        except Exception as exc:
            fallback = self._fallback_for(options.model, exc)
            if fallback is None:
                self.stats["failures"] += 1
                raise

            self.stats["fallbacks"] += 1
            logger.warning(
                "llm.fallback.engaged",
                extra={"model": options.model, "fallback_model": fallback, "error": str(exc)},
            )
            fallback_options = options.with_model(fallback)
            try:
                return await call_with_retry(
                    lambda: self.provider.chat(fallback_options), self.policy, self._sleep, label=fallback
                )
            except Exception:
                self.stats["failures"] += 1
                raise

    async def stream_chat(self, options: ChatOptions) -> AsyncIterator[StreamChunk]:
        self.stats["streams"] += 1
        outer = StreamAttempt()
        outer.start()
        try:
            async for chunk in stream_with_retry(
                lambda: _raise_on_error_chunks(self.provider.stream_chat(options), options.model),
                self.policy,
                self._sleep,
                label=options.model,
            ):
                outer.mark_yielded()
                yield chunk
            outer.finish()
            return
        except Exception as exc:
            fallback_legal = outer.fail()
            fallback = self._fallback_for(options.model, exc)
            if not fallback_legal or fallback is None:
                self.stats["failures"] += 1
                raise
            self.stats["fallbacks"] += 1
            logger.warning(
                "llm.fallback.engaged",
                extra={"model": options.model, "fallback_model": fallback, "error": str(exc), "stream": True},
            )

        fallback_options = options.with_model(fallback)
        try:
            async for chunk in stream_with_retry(
                lambda: _raise_on_error_chunks(self.provider.stream_chat(fallback_options), fallback),
                self.policy,
                self._sleep,
                label=fallback,
            ):
                yield chunk
        except Exception:
            self.stats["failures"] += 1
            raise

    async def health_check(self) -> bool:
        return await self.provider.health_check()

    def get_stats(self):
        return {**self.stats, "provider": self.provider.get_stats()}
