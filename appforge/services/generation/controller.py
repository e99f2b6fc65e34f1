"""
Controller - planning stage.

Turns a natural-language request (plus an optional existing schema and
conversation history) into a Unified App Schema.

Flow:
1. 🔍 Serve fresh requests from the Schema Cache when possible
2. 🧠 Ask the planning model for strict JSON
3. 🧩 Recover the JSON object (fences, brace matching, regex)
4. 📌 Force meta.platform to the requested platform and stamp the schema version
"""
import json
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Union

from appforge.config import Settings, settings as default_settings
from appforge.core.exceptions import JSONExtractionError, PlanningError, ProviderError
from appforge.llm.base import ChatOptions, LLMMessage
from appforge.models.prompts import PromptLibrary, PromptType
from appforge.models.schemas.app_schema import is_schema_complete
from appforge.models.schemas.events import PlanCompleteEvent, PlanningEvent, SchemaEvent
from appforge.models.schemas.generation import PlanResult
from appforge.services.generation.schema_cache import SchemaCache
from appforge.services.generation.schema_version import (
    CURRENT_SCHEMA_VERSION,
    compare_versions,
    migrate_schema,
    schema_version_of,
    stamp_version,
)
from appforge.utils.json_extraction import extract_json
from appforge.utils.logging import get_logger, trace_async

logger = get_logger(__name__)

HistoryItem = Union[LLMMessage, Dict[str, str]]


def history_messages(history: Iterable[HistoryItem]) -> List[LLMMessage]:
    """Prior turns as messages; entries without content are dropped."""
    messages = []
    for item in history:
        if isinstance(item, LLMMessage):
            messages.append(item)
        elif isinstance(item, dict) and item.get("content"):
            messages.append(LLMMessage(role=item.get("role", "user"), content=item["content"]))
    return messages


def is_fresh_request(existing_schema: Optional[Dict[str, Any]], history: Sequence[LLMMessage]) -> bool:
    """Only requests without a schema and without prior turns may use the plan cache."""
    return not existing_schema and not history


# Section markers in the streamed JSON that advance the visible phase
DESIGN_MARKER = '"design"'
DETAIL_MARKERS = ('"components"', '"features"')


class Controller:
    """
    Planning stage of the pipeline.

    Usage:
        controller = Controller(llm, settings, cache=schema_cache)
        result = await controller.plan("Build a bakery website", "website")
    """

    def __init__(
        self,
        llm,
        settings: Optional[Settings] = None,
        cache: Optional[SchemaCache] = None,
        prompts: Optional[PromptLibrary] = None,
    ):
        self.llm = llm
        self.settings = settings or default_settings
        self.cache = cache if self.settings.schema_cache_enabled else None
        self.prompts = prompts or PromptLibrary()

        self.stats = {
            "total_requests": 0,
            "successful": 0,
            "failed": 0,
            "cache_hits": 0,
            "json_errors": 0,
        }

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def build_messages(
        self,
        user_prompt: str,
        platform: str,
        existing_schema: Optional[Dict[str, Any]] = None,
        history: Iterable[HistoryItem] = (),
    ) -> List[LLMMessage]:
        system, user = self.prompts.get(PromptType.SCHEMA_PLANNING).format(prompt=user_prompt)
        messages = [LLMMessage(role="system", content=system.strip())]

        messages.extend(history_messages(history))

        if existing_schema:
            messages.append(LLMMessage(
                role="system",
                content=f"{self.prompts.EXISTING_SCHEMA_PREFIX}\n{json.dumps(existing_schema, indent=2)}",
            ))

        messages.append(LLMMessage(
            role="system",
            content=f"{self.prompts.TARGET_PLATFORM_PREFIX} {platform}\nGenerate schema appropriate for this platform.",
        ))
        messages.append(LLMMessage(role="user", content=user.strip()))
        return messages

    def _options(self, messages: List[LLMMessage]) -> ChatOptions:
        return ChatOptions(
            model=self.settings.model_for("primary"),
            messages=messages,
            temperature=self.settings.planning_temperature,
            max_tokens=self.settings.planning_max_tokens,
            json_mode=True,
        )

    @staticmethod
    def _prepare_existing(existing_schema: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Bring an older stored schema up to the current format before planning."""
        if not existing_schema:
            return existing_schema
        if compare_versions(schema_version_of(existing_schema), CURRENT_SCHEMA_VERSION) < 0:
            migration = migrate_schema(existing_schema)
            if migration.success:
                return migration.schema
        return existing_schema

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    def parse_response(self, content: str, platform: str) -> PlanResult:
        """
        Build a PlanResult from raw model output.

        Raises:
            PlanningError: no usable JSON or no schema object in it
        """
        try:
            parsed = extract_json(content)
        except JSONExtractionError as e:
            self.stats["json_errors"] += 1
            logger.error(
                "❌ controller.response.unparseable",
                extra={"reason": str(e), "raw_content": (content or "")[:2000]},
            )
            raise PlanningError(f"Controller failed: {e} (invalid_json)", code="invalid_json", raw_content=content) from e

        schema = parsed.get("schema")
        if not isinstance(schema, dict):
            # Some models answer with the bare schema
            schema = parsed if "meta" in parsed else None
        if schema is None:
            logger.error("❌ controller.response.missing_schema", extra={"raw_content": (content or "")[:2000]})
            raise PlanningError(
                "Controller failed: Controller did not return a schema (missing_schema)",
                code="missing_schema",
                raw_content=content,
            )

        meta = schema.get("meta") if isinstance(schema.get("meta"), dict) else {}
        schema["meta"] = {**meta, "platform": platform}

        suggestions = parsed.get("suggestions") if schema is not parsed else None
        reasoning = parsed.get("reasoning") if schema is not parsed else None
        return PlanResult(
            schema=stamp_version(schema),
            reasoning=reasoning if isinstance(reasoning, str) else None,
            suggestions=[s for s in suggestions if isinstance(s, str)] if isinstance(suggestions, list) else [],
        )

    @staticmethod
    def _wrap_provider_error(exc: Exception) -> PlanningError:
        code = getattr(exc, "code", None) or (
            f"http_{exc.status_code}" if isinstance(exc, ProviderError) and exc.status_code else "provider_error"
        )
        return PlanningError(f"Controller failed: {exc} ({code})", code=code)

    async def _cached(self, user_prompt: str, platform: str, fresh: bool) -> Optional[PlanResult]:
        if self.cache is None or not fresh:
            return None
        cached = await self.cache.get_schema(user_prompt, platform)
        if not isinstance(cached, dict) or not isinstance(cached.get("schema"), dict):
            return None
        self.stats["cache_hits"] += 1
        logger.info("🎯 controller.cache.hit", extra={"platform": platform})
        return PlanResult(
            schema=cached["schema"],
            reasoning=cached.get("reasoning"),
            suggestions=cached.get("suggestions") or [],
            cached=True,
        )

    async def _remember(self, user_prompt: str, platform: str, fresh: bool, result: PlanResult) -> None:
        if self.cache is None or not fresh:
            return
        await self.cache.set_schema(
            user_prompt,
            platform,
            {"schema": result.schema, "reasoning": result.reasoning, "suggestions": result.suggestions},
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @trace_async("controller.plan")
    async def plan(
        self,
        user_prompt: str,
        platform: str,
        existing_schema: Optional[Dict[str, Any]] = None,
        history: Iterable[HistoryItem] = (),
    ) -> PlanResult:
        """
        Plan or update a schema in one call.

        Raises:
            PlanningError: provider failure after retries/fallback, or unusable output
        """
        self.stats["total_requests"] += 1

        history = history_messages(history)
        fresh = is_fresh_request(existing_schema, history)
        cached = await self._cached(user_prompt, platform, fresh)
        if cached is not None:
            self.stats["successful"] += 1
            return cached

        existing_schema = self._prepare_existing(existing_schema)
        options = self._options(self.build_messages(user_prompt, platform, existing_schema, history))

        logger.info(
            "🧠 controller.plan.started",
            extra={"platform": platform, "model": options.model, "updating": bool(existing_schema)},
        )

        try:
            response = await self.llm.chat(options)
        except Exception as e:
            self.stats["failed"] += 1
            logger.error("❌ controller.plan.provider_failed", extra={"platform": platform}, exc_info=e)
            raise self._wrap_provider_error(e) from e

        try:
            result = self.parse_response(response.content, platform)
        except PlanningError:
            self.stats["failed"] += 1
            raise

        await self._remember(user_prompt, platform, fresh, result)
        self.stats["successful"] += 1
        logger.info(
            "✅ controller.plan.completed",
            extra={
                "platform": platform,
                "model": response.model,
                "pages": len((result.schema.get("structure") or {}).get("pages") or []),
                "complete": is_schema_complete(result.schema),
            },
        )
        return result

    async def stream_plan(
        self,
        user_prompt: str,
        platform: str,
        existing_schema: Optional[Dict[str, Any]] = None,
        history: Iterable[HistoryItem] = (),
    ) -> AsyncIterator[Union[PlanningEvent, SchemaEvent, PlanCompleteEvent]]:
        """
        Streaming variant of ``plan``.

        Yields planning progress (analyzing -> designing -> finalizing), one
        SchemaEvent, and a PlanCompleteEvent carrying the PlanResult.
        """
        self.stats["total_requests"] += 1
        yield PlanningEvent(phase="analyzing", message="Analyzing requirements")

        history = history_messages(history)
        fresh = is_fresh_request(existing_schema, history)
        cached = await self._cached(user_prompt, platform, fresh)
        if cached is not None:
            self.stats["successful"] += 1
            yield PlanningEvent(phase="finalizing", message="Reusing a matching plan")
            yield SchemaEvent(app_schema=cached.schema, complete=is_schema_complete(cached.schema))
            yield PlanCompleteEvent(result=cached)
            return

        existing_schema = self._prepare_existing(existing_schema)
        options = self._options(self.build_messages(user_prompt, platform, existing_schema, history))
        yield PlanningEvent(phase="analyzing", message=f"Configuring platform: {platform}")
        yield PlanningEvent(phase="designing", message="Designing app structure")

        logger.info(
            "🧠 controller.stream.started",
            extra={"platform": platform, "model": options.model, "updating": bool(existing_schema)},
        )

        parts: List[str] = []
        seen_design = False
        seen_details = False
        try:
            async for chunk in self.llm.stream_chat(options):
                if chunk.type != "content" or not chunk.content:
                    continue
                parts.append(chunk.content)
                if seen_design and seen_details:
                    continue
                content = "".join(parts)
                if not seen_design and DESIGN_MARKER in content:
                    seen_design = True
                    yield PlanningEvent(phase="designing", message="Configuring design system")
                if not seen_details and any(marker in content for marker in DETAIL_MARKERS):
                    seen_details = True
                    yield PlanningEvent(phase="finalizing", message="Defining components and features")
        except Exception as e:
            self.stats["failed"] += 1
            logger.error("❌ controller.stream.provider_failed", extra={"platform": platform}, exc_info=e)
            raise self._wrap_provider_error(e) from e

        yield PlanningEvent(phase="finalizing", message="Finalizing schema")
        try:
            result = self.parse_response("".join(parts), platform)
        except PlanningError:
            self.stats["failed"] += 1
            raise

        await self._remember(user_prompt, platform, fresh, result)
        self.stats["successful"] += 1
        logger.info(
            "✅ controller.stream.completed",
            extra={"platform": platform, "complete": is_schema_complete(result.schema)},
        )
        yield SchemaEvent(app_schema=result.schema, complete=is_schema_complete(result.schema))
        yield PlanCompleteEvent(result=result)

    def get_statistics(self) -> Dict[str, Any]:
        return {**self.stats, "cache": self.cache.get_stats() if self.cache else None}
