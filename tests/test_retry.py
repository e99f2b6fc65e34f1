import httpx
import pytest

from appforge.core.exceptions import CodeGenError, PlanningError, ProviderError
from appforge.llm.base import ChatOptions, LLMMessage
from appforge.llm.retry import (
    ErrorKind,
    ResilientLLMClient,
    RetryPolicy,
    StreamAttempt,
    StreamState,
    call_with_retry,
    classify_error,
    describe_failure,
)

from tests.fakes import FakeLLM


class Sleeper:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def options(model="deepseek/deepseek-chat"):
    return ChatOptions(model=model, messages=[LLMMessage(role="user", content="hi")])


# ---------------------------------------------------------------------------
# classification
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status", [429, 502, 503, 504])
def test_transient_status_codes(status):
    assert classify_error(ProviderError("boom", status_code=status)) is ErrorKind.TRANSIENT


@pytest.mark.parametrize("status", [401, 403, 404])
def test_model_unavailable_status_codes(status):
    assert classify_error(ProviderError("nope", status_code=status)) is ErrorKind.MODEL_UNAVAILABLE


def test_transient_messages_and_transport_errors():
    assert classify_error(ProviderError("socket hang up")) is ErrorKind.TRANSIENT
    assert classify_error(ProviderError("ECONNRESET while reading")) is ErrorKind.TRANSIENT
    assert classify_error(httpx.ConnectTimeout("slow")) is ErrorKind.TRANSIENT


def test_model_not_found_message():
    assert classify_error(ProviderError("model foo/bar not found")) is ErrorKind.MODEL_UNAVAILABLE


def test_other_errors_are_permanent():
    assert classify_error(ProviderError("bad request", status_code=400)) is ErrorKind.PERMANENT
    assert classify_error(ValueError("oops")) is ErrorKind.PERMANENT


def test_describe_failure_hides_upstream_text():
    message, retryable = describe_failure(ProviderError("secret upstream detail", status_code=503))

    assert retryable
    assert "secret" not in message


def test_describe_failure_walks_causes():
    try:
        try:
            raise ProviderError("gone", status_code=404)
        except ProviderError as e:
            raise PlanningError("Controller failed: gone (http_404)") from e
    except PlanningError as wrapped:
        message, retryable = describe_failure(wrapped)

    assert message == "The AI model is currently unavailable. Please try again later."
    assert not retryable


def test_describe_failure_for_unusable_output():
    message, retryable = describe_failure(CodeGenError("CodeGen failed: x (invalid_json)", code="invalid_json"))

    assert retryable
    assert "could not be understood" in message


# ---------------------------------------------------------------------------
# retry loop
# ---------------------------------------------------------------------------

def test_delay_schedule_repeats_last_delay():
    policy = RetryPolicy(max_retries=5, delays=(1.0, 2.0, 4.0))

    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 4.0, 4.0]


async def test_call_with_retry_retries_transient_then_succeeds():
    sleeper = Sleeper()
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ProviderError("busy", status_code=503)
        return "ok"

    result = await call_with_retry(flaky, RetryPolicy(), sleeper)

    assert result == "ok"
    assert len(attempts) == 3
    assert sleeper.delays == [1.0, 2.0]


async def test_call_with_retry_gives_up_after_max_retries():
    sleeper = Sleeper()
    attempts = []

    async def always_busy():
        attempts.append(1)
        raise ProviderError("rate limited", status_code=429)

    with pytest.raises(ProviderError):
        await call_with_retry(always_busy, RetryPolicy(max_retries=3), sleeper)

    assert len(attempts) == 4
    assert sleeper.delays == [1.0, 2.0, 4.0]


async def test_permanent_error_is_not_retried():
    sleeper = Sleeper()
    attempts = []

    async def bad_request():
        attempts.append(1)
        raise ProviderError("bad request", status_code=400)

    with pytest.raises(ProviderError):
        await call_with_retry(bad_request, RetryPolicy(), sleeper)

    assert len(attempts) == 1
    assert sleeper.delays == []


# ---------------------------------------------------------------------------
# stream state machine
# ---------------------------------------------------------------------------

def test_stream_attempt_transitions():
    attempt = StreamAttempt()
    attempt.start()
    attempt.mark_yielded()
    attempt.mark_yielded()
    attempt.finish()

    assert attempt.state is StreamState.DONE
    assert attempt.chunks_yielded == 2


def test_stream_attempt_fail_reports_retry_legality():
    before_output = StreamAttempt()
    before_output.start()
    assert before_output.fail() is True

    after_output = StreamAttempt()
    after_output.start()
    after_output.mark_yielded()
    assert after_output.fail() is False


def test_illegal_transition_raises():
    attempt = StreamAttempt()
    with pytest.raises(RuntimeError):
        attempt.finish()


# ---------------------------------------------------------------------------
# resilient client
# ---------------------------------------------------------------------------

async def test_fallback_model_used_once_on_model_unavailable(settings):
    provider = FakeLLM(replies=[ProviderError("model not found", status_code=404), "from fallback"])
    client = ResilientLLMClient(provider, settings, sleep=Sleeper())

    result = await client.chat(options(settings.primary_model))

    assert result.content == "from fallback"
    assert [call.model for call in provider.calls] == [settings.primary_model, settings.fallback_model]
    assert client.stats["fallbacks"] == 1


async def test_no_fallback_when_already_on_fallback_model(settings):
    provider = FakeLLM(replies=[ProviderError("model not found", status_code=404)])
    client = ResilientLLMClient(provider, settings, sleep=Sleeper())

    with pytest.raises(ProviderError):
        await client.chat(options(settings.fallback_model))

    assert len(provider.calls) == 1
    assert client.stats["failures"] == 1


async def test_transient_errors_do_not_trigger_fallback(settings):
    sleeper = Sleeper()
    provider = FakeLLM(replies=[ProviderError("busy", status_code=503)] * 4)
    client = ResilientLLMClient(provider, settings, sleep=sleeper)

    with pytest.raises(ProviderError):
        await client.chat(options(settings.primary_model))

    assert {call.model for call in provider.calls} == {settings.primary_model}
    assert sleeper.delays == [1.0, 2.0, 4.0]


async def test_stream_retries_before_first_chunk(settings):
    sleeper = Sleeper()
    provider = FakeLLM(streams=[[ProviderError("busy", status_code=502)], ["hel", "lo"]])
    client = ResilientLLMClient(provider, settings, sleep=sleeper)

    chunks = [chunk async for chunk in client.stream_chat(options(settings.primary_model))]

    assert "".join(c.content for c in chunks if c.type == "content") == "hello"
    assert sleeper.delays == [1.0]


async def test_stream_failure_after_output_is_not_retried(settings):
    sleeper = Sleeper()
    provider = FakeLLM(streams=[["partial", ProviderError("busy", status_code=503)], ["never"]])
    client = ResilientLLMClient(provider, settings, sleep=sleeper)

    received = []
    with pytest.raises(ProviderError):
        async for chunk in client.stream_chat(options(settings.primary_model)):
            received.append(chunk.content)

    assert received == ["partial"]
    assert sleeper.delays == []
    assert len(provider.stream_calls) == 1


async def test_stream_falls_back_before_output(settings):
    provider = FakeLLM(streams=[[ProviderError("model not found", status_code=404)], ["ok"]])
    client = ResilientLLMClient(provider, settings, sleep=Sleeper())

    chunks = [chunk async for chunk in client.stream_chat(options(settings.primary_model))]

    assert [c.content for c in chunks if c.type == "content"] == ["ok"]
    assert [call.model for call in provider.stream_calls] == [settings.primary_model, settings.fallback_model]


def test_fallback_only_offered_for_primary_model(settings):
    assert settings.fallback_model_for(settings.primary_model) == settings.fallback_model
    assert settings.fallback_model_for(settings.fallback_model) is None
    assert settings.fallback_model_for("some/other-model") is None
    assert settings.model_for("reviewer") == settings.reviewer_model
