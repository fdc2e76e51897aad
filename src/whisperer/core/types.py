"""Shared core dataclasses."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal


def empty_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


@dataclass
class ToolCall:
    """One tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    response: str | None = None


@dataclass(frozen=True)
class SystemMessage:
    content: str
    role: Literal["system"] = "system"


@dataclass(frozen=True)
class UserMessage:
    content: str
    role: Literal["user"] = "user"


@dataclass(frozen=True)
class AssistantMessage:
    content: str
    role: Literal["assistant"] = "assistant"


@dataclass(frozen=True)
class ToolInvocationMessage:
    """Assistant message carrying the tool calls it asked for."""

    tool_calls: tuple[ToolCall, ...]
    content: str = ""
    role: Literal["assistant"] = "assistant"


@dataclass(frozen=True)
class ToolResultMessage:
    tool_call_id: str
    content: str
    role: Literal["tool"] = "tool"


Message = SystemMessage | UserMessage | AssistantMessage | ToolInvocationMessage | ToolResultMessage


@dataclass(frozen=True)
class HistoryMessage:
    """A prior thread message, already mapped to a model role."""

    role: Literal["user", "assistant"]
    content: str


def normalize_schema(schema: Any) -> dict[str, Any]:
    """Coerce a tool parameter schema into an object schema with properties.

    Strings are parsed as JSON. Anything that is not a mapping afterwards
    falls back to an empty object schema.
    """
    if isinstance(schema, str | bytes):
        try:
            schema = json.loads(schema)
        except ValueError:
            return empty_schema()
    if not isinstance(schema, dict):
        return empty_schema()

    normalized = dict(schema)
    if normalized.get("type") != "object":
        normalized["type"] = "object"
    if "properties" not in normalized:
        normalized["properties"] = {}
    return normalized


@dataclass(frozen=True)
class ToolDefinition:
    """Tool metadata as offered to the model."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=empty_schema)

    @classmethod
    def create(cls, name: str, description: str | None, schema: Any) -> ToolDefinition:
        return cls(name=name, description=description or "", parameters=normalize_schema(schema))

    def normalized(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=normalize_schema(self.parameters))


@dataclass(frozen=True)
class ChatResponse:
    """One model reply: either final content or a batch of tool calls."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    is_complete: bool = True


class TurnOutcome(StrEnum):
    COMPLETE = "complete"
    MAX_ROUNDS = "max_rounds"
    FAILED = "failed"


@dataclass(frozen=True)
class TurnResult:
    """The single final answer of one turn."""

    text: str
    outcome: TurnOutcome
    rounds: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not TurnOutcome.FAILED


@dataclass
class ConversationTurn:
    """Transient state of one inbound event; never persisted."""

    turn_id: str
    channel_id: str
    thread_ts: str
    user_id: str
    credential: str | None
    messages: list[Message]
    max_rounds: int
    round: int = 0
    last_content: str = ""

    @property
    def exhausted(self) -> bool:
        return self.round >= self.max_rounds
