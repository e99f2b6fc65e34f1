"""
Service assembly.

Builds every pipeline component from one ``Settings`` object and wires them
together. Nothing in the generation path reaches for a module-level
singleton; the API layer receives a ``ServiceContainer`` through
``app.state``.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from appforge.config import Settings, settings as default_settings
from appforge.core.cache import CacheManager
from appforge.core.database import DatabaseManager
from appforge.llm.base import BaseLLMProvider
from appforge.llm.openrouter_provider import OpenRouterProvider
from appforge.llm.retry import ResilientLLMClient
from appforge.models.prompts.templates import PromptLibrary
from appforge.services.generation.codegen import CodeGen
from appforge.services.generation.controller import Controller
from appforge.services.generation.reviewer import CodeReviewer
from appforge.services.generation.schema_cache import SchemaCache
from appforge.services.orchestrator import GenerationOrchestrator
from appforge.services.persistence import BestEffortPersistence, PostgresProjectStore
from appforge.utils.logging import get_logger
from appforge.utils.rate_limiter import RateLimiter

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    cache_manager: CacheManager
    database: Optional[DatabaseManager]
    schema_cache: SchemaCache
    llm: ResilientLLMClient
    persistence: BestEffortPersistence
    rate_limiter: RateLimiter
    orchestrator: GenerationOrchestrator

    async def connect(self) -> Dict[str, bool]:
        """
        Connect Redis and PostgreSQL in degraded mode.

        A failed connection is logged and the service keeps running: the
        schema cache stays in memory, the rate limiter counts locally and
        persistence becomes a no-op.
        """
        status = {"redis": False, "postgres": False}

        if self.settings.remote_cache_enabled:
            try:
                await self.cache_manager.connect()
                status["redis"] = True
                logger.info("app.startup.redis.connected")
            except Exception as e:
                logger.error("app.startup.redis.failed", exc_info=e)
                logger.warning("app.startup.redis.degraded_mode", message="Continuing with in-memory cache")

        if self.database is not None:
            try:
                await self.database.connect()
                await self.database.create_tables()
                status["postgres"] = True
                logger.info("app.startup.postgresql.connected")
            except Exception as e:
                logger.error("app.startup.postgresql.failed", exc_info=e)
                logger.warning("app.startup.postgresql.degraded_mode", message="Continuing without persistence")
                self.persistence.store = None

        return status

    async def disconnect(self) -> None:
        await self.cache_manager.disconnect()
        logger.info("app.shutdown.redis.disconnected")
        if self.database is not None:
            await self.database.disconnect()
            logger.info("app.shutdown.postgresql.disconnected")

    async def health(self) -> Dict[str, Any]:
        return {
            "redis": await self.cache_manager.ping(),
            "postgres": await self.database.ping() if self.database is not None else False,
        }


def build_services(
    settings: Optional[Settings] = None,
    provider: Optional[BaseLLMProvider] = None,
) -> ServiceContainer:
    """
    Assemble the full pipeline.

    Args:
        settings: Configuration; defaults to the process settings
        provider: LLM provider; defaults to OpenRouter built from settings
    """
    settings = settings or default_settings
    prompts = PromptLibrary()

    cache_manager = CacheManager(settings)
    schema_cache = SchemaCache(settings, remote=cache_manager)

    llm = ResilientLLMClient(provider or OpenRouterProvider(settings), settings)

    database = DatabaseManager(settings) if settings.persistence_enabled else None
    persistence = BestEffortPersistence(PostgresProjectStore(database) if database is not None else None)

    controller = Controller(llm, settings, cache=schema_cache, prompts=prompts)
    codegen = CodeGen(llm, settings, cache=schema_cache, prompts=prompts)
    reviewer = CodeReviewer(llm, settings, prompts=prompts)

    orchestrator = GenerationOrchestrator(
        controller,
        codegen,
        reviewer=reviewer,
        persistence=persistence,
        settings=settings,
    )

    logger.info(
        "services.built",
        extra={
            "primary_model": settings.primary_model,
            "fallback_model": settings.fallback_model,
            "persistence": persistence.enabled,
            "schema_cache": settings.schema_cache_enabled,
        },
    )

    return ServiceContainer(
        settings=settings,
        cache_manager=cache_manager,
        database=database,
        schema_cache=schema_cache,
        llm=llm,
        persistence=persistence,
        rate_limiter=RateLimiter(settings, cache=cache_manager),
        orchestrator=orchestrator,
    )
