"""Deterministic chat model used when no external LLM is configured."""

from __future__ import annotations

import re
from collections.abc import Sequence

from coffee_assistant.agent.registry import ToolSpec
from coffee_assistant.types import FinalAnswer, ModelReply, Role, Turn

_CONTEXT_LINE = re.compile(r"^- \[(?P<doc_id>[^\]]+)\]\s+(?P<body>.+)$")


class RetrievalOnlyChatModel:
    """Answers from the grounding context without calling tools.

    It keeps the `ChatModel` contract, so the orchestrator runs unchanged in
    local/offline environments where `OPENAI_API_KEY` is not configured. It
    never places orders.
    """

    def __init__(self, max_items: int = 3) -> None:
        self.max_items = max_items

    def complete(self, messages: Sequence[Turn], tools: Sequence[ToolSpec]) -> ModelReply:
        del tools  # never requests tool calls.
        system = next((turn.content for turn in messages if turn.role is Role.SYSTEM), "")
        return FinalAnswer(text=_build_answer(_parse_context(system)[: self.max_items]))


def _parse_context(system_text: str) -> list[str]:
    items: list[str] = []
    for line in system_text.splitlines():
        match = _CONTEXT_LINE.match(line.strip())
        if match:
            items.append(match.group("body").strip())
    return items


def _build_answer(items: list[str]) -> str:
    if not items:
        return "Sorry, I could not find anything matching that on our menu."

    lines = ["Here is what I found on our menu:"]
    for idx, item in enumerate(items, start=1):
        lines.append(f"{idx}. {item}")
    lines.append("Ordering is unavailable right now; please ask a barista to place your order.")
    return "\n".join(lines)
