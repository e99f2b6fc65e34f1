from typing import Any, Dict

import pytest

from appforge.config import Settings

from tests.fakes import FakeStore, build_schema


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openrouter_api_key="test-key",
        persistence_enabled=False,
        remote_cache_enabled=False,
        schema_cache_enabled=True,
        review_enabled=False,
        use_templates=True,
        rate_limit_enabled=True,
        rate_limit_requests_per_hour=100,
        max_retries=3,
        retry_delays=[1.0, 2.0, 4.0],
    )


@pytest.fixture
def schema() -> Dict[str, Any]:
    return build_schema()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
