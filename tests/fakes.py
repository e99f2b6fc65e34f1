"""Test doubles and sample data shared across the suite."""
import copy
from typing import Any, Dict, List, Sequence, Union

from appforge.core.exceptions import PersistenceError
from appforge.llm.base import BaseLLMProvider, ChatOptions, ChatResult, StreamChunk
from appforge.models.schemas.app_schema import DEFAULT_COLORS

Scripted = Union[str, Exception]


class FakeLLM(BaseLLMProvider):
    """
    Provider double with scripted answers.

    ``replies`` feeds ``chat`` in order; ``streams`` feeds ``stream_chat`` in
    order, each entry being a list of text chunks (an Exception entry in the
    list is raised at that point of the stream).
    """

    name = "fake"

    def __init__(self, replies: Sequence[Scripted] = (), streams: Sequence[Sequence[Scripted]] = ()):
        self.replies: List[Scripted] = list(replies)
        self.streams: List[List[Scripted]] = [list(s) for s in streams]
        self.calls: List[ChatOptions] = []
        self.stream_calls: List[ChatOptions] = []

    async def chat(self, options: ChatOptions) -> ChatResult:
        self.calls.append(options)
        if not self.replies:
            raise AssertionError("FakeLLM.chat called more often than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return ChatResult(content=reply, model=options.model)

    async def stream_chat(self, options: ChatOptions):
        self.stream_calls.append(options)
        if not self.streams:
            raise AssertionError("FakeLLM.stream_chat called more often than scripted")
        for item in self.streams.pop(0):
            if isinstance(item, Exception):
                raise item
            yield StreamChunk(type="content", content=item)
        yield StreamChunk(type="done")

    async def health_check(self) -> bool:
        return True


class FakeStore:
    """In-memory ProjectStore; ``fail_on`` names operations that raise."""

    def __init__(self, fail_on: Sequence[str] = ()):
        self.fail_on = set(fail_on)
        self.files: Dict[str, Dict[str, str]] = {}
        self.messages: List[Dict[str, str]] = []
        self.history: List[Dict[str, Any]] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise PersistenceError(f"{operation} unavailable")

    async def upsert_file(self, project_id: str, path: str, content: str, language: str) -> None:
        self._maybe_fail("upsert_file")
        self.files[path] = {"project_id": project_id, "content": content, "language": language}

    async def delete_file(self, project_id: str, path: str) -> None:
        self._maybe_fail("delete_file")
        self.files.pop(path, None)

    async def append_message(self, project_id: str, role: str, content: str) -> None:
        self._maybe_fail("append_message")
        self.messages.append({"project_id": project_id, "role": role, "content": content})

    async def append_generation_history(self, record: Dict[str, Any]) -> None:
        self._maybe_fail("append_generation_history")
        self.history.append(record)


def chunked(text: str, size: int = 7) -> List[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


def build_schema(platform: str = "webapp", **overrides: Any) -> Dict[str, Any]:
    """A complete, validator-passing schema."""
    schema = {
        "meta": {
            "name": "Bakery Co",
            "description": "Fresh bread and pastries",
            "platform": platform,
            "version": "1.0.0",
        },
        "design": {
            "colors": dict(DEFAULT_COLORS),
            "typography": {"headingFont": "Inter", "bodyFont": "Inter", "baseFontSize": 16},
            "theme": "system",
            "spacing": "normal",
            "borderRadius": "md",
        },
        "structure": {
            "pages": [
                {"id": "home", "name": "Home", "path": "/", "components": ["hero"]},
                {"id": "menu", "name": "Menu", "path": "/menu", "components": ["menu-grid"]},
                {"id": "about", "name": "About", "path": "/about", "components": []},
            ],
            "navigation": {
                "type": "header",
                "items": [
                    {"label": "Home", "path": "/"},
                    {"label": "Menu", "path": "/menu"},
                    {"label": "About", "path": "/about"},
                ],
            },
            "layouts": [{"id": "main", "name": "Main", "type": "default"}],
        },
        "components": [
            {"id": "hero", "name": "Hero", "type": "hero", "props": {}},
            {"id": "menu-grid", "name": "Menu Grid", "type": "features", "props": {}},
            {"id": "footer", "name": "Footer", "type": "footer", "props": {}},
        ],
        "features": {},
        "integrations": [],
    }
    schema.update(overrides)
    return schema




def fresh_schema(platform: str = "webapp", **overrides: Any) -> Dict[str, Any]:
    return copy.deepcopy(build_schema(platform, **overrides))


async def collect(stream) -> List[Any]:
    return [event async for event in stream]
