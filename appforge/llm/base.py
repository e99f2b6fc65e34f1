"""
appforge/llm/base.py
Provider boundary shared by every LLM backend
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Literal, Optional, Any


@dataclass
class LLMMessage:
    """Standardized message format"""
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class ChatOptions:
    """Arguments for a single completion call"""
    model: str
    messages: List[LLMMessage]
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    json_mode: bool = False

    def with_model(self, model: str) -> "ChatOptions":
        return ChatOptions(
            model=model,
            messages=self.messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            json_mode=self.json_mode,
        )


@dataclass
class ChatResult:
    """Standardized completion result"""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    finish_reason: Optional[str] = None


@dataclass
class StreamChunk:
    """One element of a streamed completion"""
    type: Literal["content", "done", "error"]
    content: str = ""
    error: Optional[str] = None


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers"""

    name: str = "base"

    @abstractmethod
    async def chat(self, options: ChatOptions) -> ChatResult:
        """
        Run one completion.

        Raises:
            ProviderError: with the upstream status code where one exists
        """

    @abstractmethod
    def stream_chat(self, options: ChatOptions) -> AsyncIterator[StreamChunk]:
        """
        Stream a completion as content chunks followed by a single ``done``.

        Upstream failures are raised, not yielded, so the retry layer sees them.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """True if provider is reachable"""

    def format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, str]]:
        return [{"role": msg.role, "content": msg.content} for msg in messages]

    def validate_messages(self, messages: List[LLMMessage]) -> bool:
        if not messages:
            return False

        valid_roles = {"system", "user", "assistant"}
        for msg in messages:
            if msg.role not in valid_roles:
                return False
            if not isinstance(msg.content, str):
                return False

        return True

    def get_stats(self) -> Dict[str, Any]:
        return {"provider": self.name}
