import json

import pytest
from pydantic import ValidationError

from appforge.models.schemas.app_schema import create_empty_schema, is_schema_complete, section
from appforge.models.schemas.events import (
    CompleteEvent,
    ErrorEvent,
    FileEvent,
    SchemaEvent,
    format_sse,
    parse_event,
)
from appforge.models.schemas.input_output import GenerationRequest

from tests.fakes import build_schema


def test_empty_schema_uses_wire_names_and_defaults():
    schema = create_empty_schema("mobile", name="Tracker")

    assert schema["meta"]["platform"] == "mobile"
    assert schema["meta"]["name"] == "Tracker"
    assert schema["design"]["colors"]["primary"] == "#6366f1"
    assert schema["design"]["borderRadius"] == "md"
    assert schema["design"]["typography"]["headingFont"] == "Inter"
    assert schema["structure"]["navigation"]["type"] == "header"
    assert schema["structure"]["pages"] == []
    assert schema["features"] == {}


def test_empty_schema_is_not_complete():
    assert not is_schema_complete(create_empty_schema("webapp", name="Shop"))


def test_schema_completeness(schema):
    assert is_schema_complete(schema)
    assert not is_schema_complete(None)
    assert not is_schema_complete({"meta": {"name": "x", "platform": "webapp"}})


def test_section_lookup(schema):
    assert section(schema, "meta", "name") == "Bakery Co"
    assert section(schema, "meta", "name", "deeper") is None
    assert section(None, "meta") is None


def test_sse_frame_uses_aliases_and_drops_empty_fields():
    frame = format_sse(CompleteEvent(app_schema={"meta": {}}, mode="controller"))

    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    payload = json.loads(frame[len("data: "):])
    assert payload["type"] == "complete"
    assert payload["schema"] == {"meta": {}}
    assert "files" not in payload


def test_parse_event_picks_the_right_kind():
    assert isinstance(parse_event({"type": "file", "path": "a.ts", "content": "x"}), FileEvent)
    assert isinstance(parse_event({"type": "error", "error": "boom"}), ErrorEvent)

    event = parse_event({"type": "schema", "schema": build_schema(), "complete": True})
    assert isinstance(event, SchemaEvent)
    assert event.app_schema["meta"]["name"] == "Bakery Co"


def test_parse_event_rejects_unknown_kind():
    with pytest.raises(ValidationError):
        parse_event({"type": "mystery"})


def test_request_rejects_unknown_platform():
    with pytest.raises(ValidationError):
        GenerationRequest(prompt="Build a shop", platform="desktop")


def test_request_strips_prompt():
    assert GenerationRequest(prompt="  Build a shop  ").prompt == "Build a shop"
