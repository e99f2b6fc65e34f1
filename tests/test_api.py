import json

import pytest
from fastapi.testclient import TestClient

from appforge.core.exceptions import ProviderError
from appforge.main import create_app
from appforge.services.container import build_services

from tests.fakes import FakeLLM, build_schema, chunked


def plan_stream():
    return chunked(json.dumps({"schema": build_schema(), "reasoning": "A bakery site"}), size=64)


def sse_events(body: str):
    frames = [frame for frame in body.split("\n\n") if frame.strip()]
    assert all(frame.startswith("data: ") for frame in frames)
    return [json.loads(frame[len("data: "):]) for frame in frames]


@pytest.fixture
def make_client(settings):
    def factory(llm):
        app = create_app(settings, build_services(settings, provider=llm))
        return TestClient(app)
    return factory


def test_root(make_client):
    with make_client(FakeLLM()) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert response.json()["api"]["generate"] == "POST /api/v1/generate"


def test_liveness(make_client):
    with make_client(FakeLLM()) as client:
        response = client.get("/api/v1/health/live")

    assert response.json()["status"] == "alive"


def test_health_reports_degraded_without_dependencies(make_client):
    with make_client(FakeLLM()) as client:
        response = client.get("/api/v1/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "degraded"
    assert body["dependencies"] == {"redis": False, "postgres": False}
    assert "llm" in body["statistics"]


def test_correlation_id_is_echoed(make_client):
    with make_client(FakeLLM()) as client:
        response = client.get("/api/v1/health/live", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_generate_streams_sse_frames(make_client):
    with make_client(FakeLLM(streams=[plan_stream()])) as client:
        response = client.post("/api/v1/generate", json={"prompt": "Build a bakery website"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = sse_events(response.text)
    types = [event["type"] for event in events]
    assert types[0] == "planning"
    assert types[-1] == "complete"
    assert types.count("complete") == 1
    assert "file" in types

    complete = events[-1]
    assert complete["mode"] == "controller"
    assert complete["schema"]["meta"]["name"] == "Bakery Co"
    assert len(complete["files"]) == 15


def test_generate_stream_reports_provider_failure(make_client):
    failing = FakeLLM(streams=[[ProviderError("model not found", status_code=404)]] * 2)

    with make_client(failing) as client:
        response = client.post("/api/v1/generate", json={"prompt": "Build a bakery website"})

    events = sse_events(response.text)
    assert events[-2]["type"] == "error"
    assert events[-2]["error"] == "The AI model is currently unavailable. Please try again later."
    assert events[-1]["type"] == "complete"
    assert events[-1]["error"] is True
    assert "files" not in events[-1]


def test_generate_rejects_blank_prompt(make_client):
    with make_client(FakeLLM()) as client:
        response = client.post("/api/v1/generate", json={"prompt": "   "})

    assert response.status_code == 422


def test_rate_limit_returns_429(settings):
    settings.rate_limit_requests_per_hour = 1
    app = create_app(settings, build_services(settings, provider=FakeLLM(streams=[plan_stream()])))

    with TestClient(app) as client:
        first = client.post("/api/v1/generate", json={"prompt": "Build a bakery website", "user_id": "u1"})
        second = client.post("/api/v1/generate", json={"prompt": "Build a bakery website", "user_id": "u1"})

    assert first.status_code == 200
    assert second.status_code == 429
    assert int(second.headers["Retry-After"]) > 0
    body = second.json()
    assert body["retryable"] is True
    assert body["error"].startswith("Rate limit exceeded")


def test_generate_sync(make_client):
    with make_client(FakeLLM(streams=[plan_stream()])) as client:
        response = client.post("/api/v1/generate/sync", json={"prompt": "Build a bakery website"})

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "controller"
    assert body["error"] is None
    assert body["reasoning"] == "A bakery site"
    assert body["schema"]["meta"]["platform"] == "webapp"
    assert len(body["files"]) == 15


@pytest.mark.parametrize(
    "message,is_generation",
    [
        ("Build me a landing page for my bakery", True),
        ("hi", False),
        ("Thanks, that looks great!", False),
    ],
)
def test_classify(make_client, message, is_generation):
    with make_client(FakeLLM()) as client:
        response = client.post("/api/v1/chat/classify", json={"message": message})

    assert response.status_code == 200
    assert response.json()["is_generation"] is is_generation
