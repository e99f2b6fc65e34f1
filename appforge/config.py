"""
Application configuration management using Pydantic Settings.
Model routing, retry schedule, cache and persistence knobs for the generation pipeline.
"""
import logging
from typing import Literal, Optional
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from dotenv import load_dotenv

# Load .env first
load_dotenv()

logger = logging.getLogger(__name__)

ModelRole = Literal["primary", "fallback", "reviewer"]


class Settings(BaseSettings):
    """Application settings for the AppForge generation service"""

    # -------------------------
    # APPLICATION METADATA & RUNTIME
    # -------------------------
    app_name: str = "AppForge Generation Service"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_file: str = "logs/appforge.log"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # -------------------------
    # LLM SETTINGS (OpenRouter-compatible endpoint)
    # -------------------------
    openrouter_api_key: Optional[str] = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_referer: str = "http://localhost:3000"
    openrouter_title: str = "AppForge"
    llm_timeout: float = 120.0

    primary_model: str = "deepseek/deepseek-chat"
    fallback_model: str = "anthropic/claude-3.5-sonnet"
    reviewer_model: str = "deepseek/deepseek-chat"

    llm_default_temperature: float = 0.7
    planning_temperature: float = 0.3
    review_temperature: float = 0.2
    planning_max_tokens: int = 8192
    codegen_max_tokens: int = 16000
    review_max_tokens: int = 4096

    # -------------------------
    # PROCESSING & RETRIES
    # -------------------------
    max_retries: int = 3
    retry_delays: list[float] = [1.0, 2.0, 4.0]

    # -------------------------
    # SCHEMA CACHE
    # -------------------------
    schema_cache_enabled: bool = True
    schema_cache_max_size: int = 100
    schema_cache_ttl: int = 3600
    schema_cache_similarity_threshold: float = 0.85
    schema_cache_fuzzy_enabled: bool = True
    remote_cache_enabled: bool = True

    # -------------------------
    # REDIS
    # -------------------------
    redis_url: str = "redis://localhost:6379/0"
    redis_cache_ttl: int = 86400
    redis_socket_timeout: int = 5
    redis_max_connections: int = 10

    # -------------------------
    # POSTGRESQL
    # -------------------------
    persistence_enabled: bool = True
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "appforge"
    postgres_user: str = "admin"
    postgres_password: str = "devpass"
    postgres_min_connections: int = 2
    postgres_max_connections: int = 10
    postgres_connection_timeout: int = 30

    # -------------------------
    # RATE LIMITING
    # -------------------------
    rate_limit_enabled: bool = True
    rate_limit_requests_per_hour: int = 100
    rate_limit_window_size: int = 3600

    # -------------------------
    # PIPELINE
    # -------------------------
    review_enabled: bool = False
    use_templates: bool = True

    # -------------------------
    # VALIDATORS
    # -------------------------
    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production"]
        if v not in valid_envs:
            logger.warning(f"Invalid environment '{v}', defaulting to 'development'")
            return "development"
        return v

    @field_validator('retry_delays')
    @classmethod
    def validate_retry_delays(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("retry_delays must contain at least one delay")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def model_for(self, role: ModelRole) -> str:
        return {
            "primary": self.primary_model,
            "fallback": self.fallback_model,
            "reviewer": self.reviewer_model,
        }[role]

    def fallback_model_for(self, model_id: str) -> Optional[str]:
        """Fallback is only offered for the primary model; never chains."""
        if model_id == self.primary_model and model_id != self.fallback_model:
            return self.fallback_model
        return None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        env_prefix="APP_",
        validate_default=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    logger.info("Initializing settings...")
    return Settings()


settings = get_settings()
