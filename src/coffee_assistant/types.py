"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CatalogRecord(BaseModel):
    """Immutable snapshot of one sellable menu item."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    item_id: str = Field(default="", alias="id")
    name: str = Field(min_length=1)
    description: str = ""
    category: str = ""
    price: Decimal = Field(ge=0)
    tags: frozenset[str] = Field(default_factory=frozenset)
    add_ons: tuple[str, ...] = Field(default_factory=tuple, alias="addOns")

    @field_validator("tags", mode="before")
    @classmethod
    def _strip_tags(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        return frozenset(str(tag).strip() for tag in value if str(tag).strip())


@dataclass(frozen=True, slots=True)
class Document:
    """Embeddable text linked back to a catalog record."""

    doc_id: str
    text: str


@dataclass(frozen=True, slots=True)
class IndexEntry:
    document: Document
    vector: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class ScoredMatch:
    """A retrieval result; higher score means more similar."""

    document: Document
    score: float
    rank: int = 0


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ToolInvocation:
    """A tool call requested by the chat model within one turn."""

    name: str
    arguments: dict[str, Any]
    call_id: str = ""
    parse_error: str | None = None


@dataclass(frozen=True, slots=True)
class Turn:
    """One entry of a conversation.

    Assistant turns that requested tools carry `tool_calls` and usually empty
    content. Tool turns carry the `tool_call_id` and `name` of the call they
    answer. `Role.SYSTEM` turns are only ever built into prompts, never stored
    in a session's history.
    """

    role: Role
    content: str
    tool_calls: tuple[ToolInvocation, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class FinalAnswer:
    text: str


@dataclass(frozen=True, slots=True)
class ToolCallRequest:
    """Model reply asking for one or more tool invocations."""

    invocations: tuple[ToolInvocation, ...]
    content: str = ""


ModelReply = FinalAnswer | ToolCallRequest


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
    ok: bool = True


@dataclass(slots=True)
class ConversationState:
    """Ordered turns of one session; grows until the session ends."""

    session_id: str
    turns: list[Turn] = field(default_factory=list)

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)

    def snapshot(self) -> tuple[Turn, ...]:
        return tuple(self.turns)
