"""Provider-agnostic LLM interfaces."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Message:
    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass
class LLMConfig:
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    json_schema: dict[str, Any] | None = None


@dataclass
class LLMResponse:
    content: str
    structured_data: dict[str, Any] | None = None
    usage: dict[str, int | None] = field(default_factory=dict)
    model: str | None = None
    finish_reason: str | None = None


class LLMProvider(ABC):
    """Chat-completion backend used by plan generation."""

    @abstractmethod
    async def chat(self, messages: list[Message], config: LLMConfig) -> LLMResponse:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...

    async def close(self):
        """Release network resources. No-op by default."""
