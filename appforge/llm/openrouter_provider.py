"""
appforge/llm/openrouter_provider.py
OpenRouter provider using the OpenAI-compatible SDK
"""
from datetime import datetime
from typing import AsyncIterator, Dict, Any, Optional

from loguru import logger
from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
)

from appforge.config import Settings
from appforge.core.exceptions import EmptyResponseError, ProviderError
from .base import BaseLLMProvider, ChatOptions, ChatResult, StreamChunk


def _to_provider_error(exc: Exception, model: str) -> ProviderError:
    """Normalise SDK exceptions so the retry layer only sees ProviderError."""
    if isinstance(exc, APITimeoutError):
        return ProviderError(f"Request timeout: {exc}", code="timeout", model=model)
    if isinstance(exc, APIConnectionError):
        return ProviderError(f"Network error: {exc}", code="network_error", model=model)
    if isinstance(exc, APIStatusError):
        body = exc.body if isinstance(exc.body, dict) else {}
        error = body.get("error", body) if isinstance(body, dict) else {}
        code = error.get("code") if isinstance(error, dict) else None
        return ProviderError(
            exc.message,
            status_code=exc.status_code,
            code=str(code) if code is not None else None,
            model=model,
        )
    return ProviderError(str(exc), model=model)


class OpenRouterProvider(BaseLLMProvider):

    name = "openrouter"

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings

        # Stats
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0

        if client is None:
            if not settings.openrouter_api_key:
                raise ValueError("OpenRouter API key (APP_OPENROUTER_API_KEY) is required")
            client = AsyncOpenAI(
                api_key=settings.openrouter_api_key,
                base_url=settings.openrouter_base_url,
                timeout=settings.llm_timeout,
                max_retries=0,  # retries are owned by appforge.llm.retry
                default_headers={
                    "HTTP-Referer": settings.openrouter_referer,
                    "X-Title": settings.openrouter_title,
                },
            )
        self._client = client

        logger.info(
            f"OpenRouter provider initialized: base_url={settings.openrouter_base_url}, "
            f"timeout={settings.llm_timeout}s"
        )

    def _request_kwargs(self, options: ChatOptions) -> Dict[str, Any]:
        if not self.validate_messages(options.messages):
            raise ValueError("Invalid messages format")

        kwargs: Dict[str, Any] = {
            "model": options.model,
            "messages": self.format_messages(options.messages),
            "temperature": max(0.0, min(2.0, options.temperature)),
        }
        if options.max_tokens:
            kwargs["max_tokens"] = options.max_tokens
        if options.json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    # ------------------------------------------------------------------ #
    # Non-streaming
    # ------------------------------------------------------------------ #

    async def chat(self, options: ChatOptions) -> ChatResult:
        self.total_requests += 1
        start = datetime.now()

        try:
            completion = await self._client.chat.completions.create(**self._request_kwargs(options))
        except (APIStatusError, APIConnectionError) as e:
            self.failed_requests += 1
            raise _to_provider_error(e, options.model) from e

        if not completion.choices:
            self.failed_requests += 1
            raise EmptyResponseError("No choices in completion", code="empty_response", model=options.model)

        choice = completion.choices[0]
        content = choice.message.content or ""
        usage = completion.usage
        self.successful_requests += 1

        response_time = (datetime.now() - start).total_seconds()
        logger.info(
            f"OpenRouter response: model={completion.model}, "
            f"tokens={usage.total_tokens if usage else '?'}, time={response_time:.2f}s"
        )

        return ChatResult(
            content=content,
            model=completion.model or options.model,
            usage={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
            },
            finish_reason=choice.finish_reason,
        )

    # ------------------------------------------------------------------ #
    # Streaming
    # ------------------------------------------------------------------ #

    async def stream_chat(self, options: ChatOptions) -> AsyncIterator[StreamChunk]:
        self.total_requests += 1

        try:
            stream = await self._client.chat.completions.create(
                stream=True, **self._request_kwargs(options)
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield StreamChunk(type="content", content=delta)
        except (APIStatusError, APIConnectionError) as e:
            self.failed_requests += 1
            raise _to_provider_error(e, options.model) from e

        self.successful_requests += 1
        yield StreamChunk(type="done")

    # ------------------------------------------------------------------ #
    # Health check
    # ------------------------------------------------------------------ #

    async def health_check(self) -> bool:
        try:
            await self._client.models.list()
            return True
        except (APIStatusError, APIConnectionError) as e:
            logger.warning(f"OpenRouter health check FAILED: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        return {
            "provider": self.name,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": (
                self.successful_requests / self.total_requests * 100
                if self.total_requests > 0 else 0
            ),
        }
