"""Model reply and tool call dataclasses."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Usage:
    """Token counters reported by one model exchange."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass(frozen=True)
class RawArguments:
    """Tool arguments the model sent as a JSON-encoded string."""
    text: str


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""
    name: str
    arguments: dict | RawArguments = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"call_{uuid.uuid4().hex[:8]}")

    def to_dict(self) -> dict:
        """Ollama wire shape, used when replaying history to the model."""
        arguments = self.arguments
        if isinstance(arguments, RawArguments):
            arguments = arguments.text
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": arguments},
        }


@dataclass(frozen=True)
class TextReply:
    """Model reply carrying a final natural-language answer."""
    text: str
    usage: Usage = field(default_factory=Usage)


@dataclass(frozen=True)
class ToolCallReply:
    """Model reply requesting one or more tool executions."""
    tool_calls: tuple[ToolCall, ...]
    text: str = ""
    usage: Usage = field(default_factory=Usage)


ModelReply = TextReply | ToolCallReply
