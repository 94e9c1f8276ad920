"""Conversation state owned by a single agent instance."""

from __future__ import annotations

from dataclasses import dataclass

from agent.response import ToolCall

ROLES = ("system", "user", "assistant", "tool")


@dataclass(frozen=True)
class Message:
    """One conversation turn."""
    role: str
    content: str = ""
    tool_calls: tuple[ToolCall, ...] | None = None
    tool_name: str | None = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")
        if self.tool_calls and self.role != "assistant":
            raise ValueError("Only assistant messages may carry tool calls")

    def to_dict(self) -> dict:
        data = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_name:
            data["tool_name"] = self.tool_name
        return data


class Conversation:
    """
    Ordered message log plus the running cost estimate.
    The seed system message is always first and is never replaced.
    """

    def __init__(self, system_prompt: str):
        self._system = Message(role="system", content=system_prompt)
        self._messages: list[Message] = [self._system]
        self._total_cost: float = 0.0

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def total_cost(self) -> float:
        return self._total_cost

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> None:
        if message.role == "system":
            raise ValueError("The conversation already has its system message")
        self._messages.append(message)

    def add_cost(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("Cost must be non-negative")
        self._total_cost += amount

    def reset(self) -> None:
        self._messages = [self._system]
        self._total_cost = 0.0
