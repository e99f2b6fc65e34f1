import copy
import json

import pytest

from appforge.core.exceptions import ProviderError
from appforge.models.schemas.events import (
    ActionsEvent,
    CompleteEvent,
    ContentEvent,
    ErrorEvent,
    FileEvent,
    GeneratingEvent,
    PlanningEvent,
    SchemaEvent,
)
from appforge.models.schemas.input_output import GenerationRequest
from appforge.services.generation.codegen import CodeGen
from appforge.services.generation.controller import Controller
from appforge.services.generation.reviewer import CodeReviewer
from appforge.services.generation.templates import generate_files_from_schema
from appforge.services.orchestrator import (
    NEED_MORE_INFO_MESSAGE,
    GenerationOrchestrator,
    determine_mode,
)
from appforge.services.persistence import BestEffortPersistence

from tests.fakes import FakeLLM, FakeStore, build_schema, chunked, collect


def plan_stream(schema=None, **extra):
    return chunked(json.dumps({"schema": schema or build_schema(), **extra}), size=64)


def make_orchestrator(settings, llm, store=None):
    return GenerationOrchestrator(
        Controller(llm, settings),
        CodeGen(llm, settings),
        reviewer=CodeReviewer(llm, settings),
        persistence=BestEffortPersistence(store),
        settings=settings,
    )


def phases(events):
    return [e.phase for e in events if isinstance(e, PlanningEvent)]


# ---------------------------------------------------------------------------
# mode selection
# ---------------------------------------------------------------------------

def test_mode_defaults_to_planning(schema):
    assert determine_mode("Build a bakery site") == "controller"
    assert determine_mode("generate the code", None) == "controller"


@pytest.mark.parametrize("message", ["Generate the code", "Please implement it", "refactor the app"])
def test_code_request_on_complete_schema_is_codegen(schema, message):
    assert determine_mode(message, schema) == "codegen"


def test_planning_words_win_over_code_words(schema):
    assert determine_mode("generate code and add page for pricing", schema) == "controller"


def test_incomplete_schema_never_codegen(schema):
    schema["structure"]["pages"] = []

    assert determine_mode("generate the code", schema) == "controller"


# ---------------------------------------------------------------------------
# controller sessions
# ---------------------------------------------------------------------------

async def test_full_session_event_order(settings, fake_store):
    llm = FakeLLM(streams=[plan_stream(reasoning="A bakery needs a menu", suggestions=["Add ordering"])])
    orchestrator = make_orchestrator(settings, llm, fake_store)
    request = GenerationRequest(prompt="Build a bakery site", platform="webapp", project_id="proj-1")

    events = await collect(orchestrator.stream(request))

    assert phases(events)[:3] == ["determining-mode", "start", "planning"]
    assert phases(events)[-3:] == ["validating", "transition", "generating"]
    assert any(isinstance(e, SchemaEvent) for e in events)

    for index, event in enumerate(events):
        if isinstance(event, FileEvent):
            assert isinstance(events[index + 1], ActionsEvent)
            assert events[index + 1].actions[0].path == event.path

    assert isinstance(events[-2], ContentEvent)
    assert events[-2].content == "Generated 15 files for Bakery Co."
    complete = events[-1]
    assert isinstance(complete, CompleteEvent)
    assert complete.mode == "controller"
    assert len(complete.files) == 15
    assert complete.dependencies["react"]
    assert complete.reasoning == "A bakery needs a menu"
    assert complete.suggestions == ["Add ordering"]
    assert complete.app_schema["$schemaVersion"] == "2.0.0"

    assert len(fake_store.files) == 15
    assert fake_store.messages[0]["content"] == "Generated 15 files for Bakery Co."
    assert fake_store.history[0]["project_id"] == "proj-1"
    assert fake_store.history[0]["file_count"] == 15


async def test_exactly_one_complete_event(settings):
    llm = FakeLLM(streams=[plan_stream()])

    events = await collect(make_orchestrator(settings, llm).stream(GenerationRequest(prompt="Build a bakery site")))

    assert [type(e) for e in events].count(CompleteEvent) == 1
    assert isinstance(events[-1], CompleteEvent)


async def test_incomplete_plan_asks_for_more_information(settings):
    schema = build_schema()
    schema["structure"]["pages"] = []
    llm = FakeLLM(streams=[plan_stream(schema)])
    orchestrator = make_orchestrator(settings, llm)

    events = await collect(orchestrator.stream(GenerationRequest(prompt="Make me something")))

    assert not [e for e in events if isinstance(e, FileEvent)]
    assert events[-2].content == NEED_MORE_INFO_MESSAGE
    assert events[-1].incomplete
    assert orchestrator.stats["incomplete"] == 1


async def test_incomplete_plan_uses_model_reasoning(settings):
    schema = build_schema()
    schema["structure"]["pages"] = []
    llm = FakeLLM(streams=[plan_stream(schema, reasoning="What should the bakery site include?")])

    events = await collect(make_orchestrator(settings, llm).stream(GenerationRequest(prompt="Make me something")))

    assert events[-2].content == "What should the bakery site include?"
    assert events[-1].reasoning == "What should the bakery site include?"


async def test_cosmetic_problems_are_repaired(settings):
    schema = build_schema()
    schema["design"]["colors"]["primary"] = "6366f1"
    llm = FakeLLM(streams=[plan_stream(schema)])
    orchestrator = make_orchestrator(settings, llm)

    events = await collect(orchestrator.stream(GenerationRequest(prompt="Build a bakery site")))

    assert events[-1].files
    assert events[-1].app_schema["design"]["colors"]["primary"] == "#6366f1"
    assert orchestrator.stats["repairs"] == 1


async def test_structural_problems_stop_generation(settings):
    schema = build_schema()
    schema["structure"]["pages"][0]["components"] = ["ghost"]
    llm = FakeLLM(streams=[plan_stream(schema)])

    events = await collect(make_orchestrator(settings, llm).stream(GenerationRequest(prompt="Build a bakery site")))

    assert events[-2].content.startswith("The application plan needs a few fixes")
    assert "Referenced component not found: ghost" in events[-2].content
    assert events[-1].incomplete
    assert not [e for e in events if isinstance(e, FileEvent)]


async def test_provider_failure_ends_with_error_then_complete(settings):
    llm = FakeLLM(streams=[[ProviderError("upstream detail", status_code=503)]])
    orchestrator = make_orchestrator(settings, llm)

    events = await collect(orchestrator.stream(GenerationRequest(prompt="Build a bakery site")))

    error, complete = events[-2], events[-1]
    assert isinstance(error, ErrorEvent)
    assert error.error == "AI provider temporarily unavailable, please try again."
    assert error.retryable
    assert complete.error
    assert orchestrator.stats["failed"] == 1


async def test_persistence_failure_does_not_fail_session(settings):
    store = FakeStore(fail_on={"upsert_file", "append_message"})
    llm = FakeLLM(streams=[plan_stream()])
    orchestrator = make_orchestrator(settings, llm, store)

    events = await collect(orchestrator.stream(GenerationRequest(prompt="Build a bakery site", project_id="proj-1")))

    assert not events[-1].error
    assert len(events[-1].files) == 15
    assert store.history
    assert orchestrator.persistence.get_stats()["failures"] == 16


async def test_without_project_id_nothing_is_persisted(settings, fake_store):
    llm = FakeLLM(streams=[plan_stream()])

    await collect(make_orchestrator(settings, llm, fake_store).stream(GenerationRequest(prompt="Build a bakery site")))

    assert fake_store.files == {}
    assert fake_store.history == []


async def test_review_runs_when_requested(settings):
    review = json.dumps({"passed": True, "score": 90, "issues": [], "summary": "Solid"})
    llm = FakeLLM(replies=[review], streams=[plan_stream()])

    events = await collect(make_orchestrator(settings, llm).stream(
        GenerationRequest(prompt="Build a bakery site", enable_review=True)
    ))

    assert "reviewing" in phases(events)
    assert events[-2].content == "Generated 15 files for Bakery Co. Code review score: 90/100."
    assert events[-1].review["score"] == 90


# ---------------------------------------------------------------------------
# codegen sessions
# ---------------------------------------------------------------------------

async def test_codegen_mode_skips_planning(settings, schema):
    llm = FakeLLM()
    orchestrator = make_orchestrator(settings, llm)

    events = await collect(orchestrator.stream(GenerationRequest(prompt="Generate the code", existing_schema=schema)))

    assert phases(events) == ["determining-mode", "start", "validating", "transition", "generating"]
    assert llm.calls == [] and llm.stream_calls == []
    assert events[-1].mode == "codegen"
    assert orchestrator.stats["codegen_sessions"] == 1


async def test_explicit_codegen_requires_complete_schema(settings):
    events = await collect(make_orchestrator(settings, FakeLLM()).stream(
        GenerationRequest(prompt="Generate the code", mode="codegen")
    ))

    assert events[-2].error == "CodeGen mode requires a complete schema"
    assert not events[-2].retryable
    assert events[-1].error


async def test_codegen_renders_for_the_schema_platform(settings):
    orchestrator = make_orchestrator(settings, FakeLLM())
    request = GenerationRequest(prompt="Generate the code", existing_schema=build_schema("mobile"))

    events = await collect(orchestrator.stream(request))

    assert request.platform == "webapp"
    paths = [f.path for f in events[-1].files]
    assert "app.json" in paths
    assert "vite.config.ts" not in paths and "index.html" not in paths
    assert paths == [f.path for f in generate_files_from_schema(build_schema("mobile"))]


async def test_codegen_update_keeps_files_of_the_schema_platform(settings):
    schema = build_schema("mobile")
    old_files = generate_files_from_schema(schema)
    orchestrator = make_orchestrator(settings, FakeLLM())

    events = await collect(orchestrator.stream(GenerationRequest(
        prompt="Generate the code",
        existing_schema=schema,
        existing_files=old_files,
    )))

    assert [e for e in events if isinstance(e, FileEvent)] == []
    assert {f.path for f in events[-1].files} == {f.path for f in old_files}


async def test_incremental_update_only_emits_changed_files(settings, schema):
    old_files = generate_files_from_schema(schema)
    new_schema = copy.deepcopy(schema)
    new_schema["design"]["colors"]["primary"] = "#000000"
    llm = FakeLLM(streams=[plan_stream(new_schema)])
    orchestrator = make_orchestrator(settings, llm)

    events = await collect(orchestrator.stream(GenerationRequest(
        prompt="Change the primary color to black",
        existing_schema=schema,
        existing_files=old_files,
    )))

    generating = [e for e in events if isinstance(e, GeneratingEvent)]
    assert generating[0].message == "Updating 1 files, keeping 14"
    assert [e.path for e in events if isinstance(e, FileEvent)] == ["src/index.css"]
    assert len(events[-1].files) == 15
    assert orchestrator.stats["incremental_runs"] == 1


# ---------------------------------------------------------------------------
# non-streaming
# ---------------------------------------------------------------------------

async def test_run_folds_events(settings):
    llm = FakeLLM(streams=[plan_stream(reasoning="ok")])

    result = await make_orchestrator(settings, llm).run(GenerationRequest(prompt="Build a bakery site"))

    assert result.success
    assert result.mode == "controller"
    assert len(result.files) == 15
    assert result.messages == ["Generated 15 files for Bakery Co."]
    assert result.reasoning == "ok"


async def test_run_reports_errors(settings):
    llm = FakeLLM(streams=[[ProviderError("model gone", status_code=404)]])

    result = await make_orchestrator(settings, llm).run(GenerationRequest(prompt="Build a bakery site"))

    assert not result.success
    assert result.error == "The AI model is currently unavailable. Please try again later."
    assert not result.retryable


def test_statistics_shape(settings):
    stats = make_orchestrator(settings, FakeLLM()).get_statistics()

    assert stats["total_sessions"] == 0
    assert {"controller", "codegen", "reviewer", "persistence"} <= set(stats)
