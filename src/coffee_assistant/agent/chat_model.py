"""Chat model contract and the LangChain-backed implementation."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from coffee_assistant.agent.registry import ToolSpec
from coffee_assistant.config import ModelConfig
from coffee_assistant.errors import ModelError
from coffee_assistant.types import (
    FinalAnswer,
    ModelReply,
    Role,
    ToolCallRequest,
    ToolInvocation,
    Turn,
)


class ChatModel(Protocol):
    """A chat model that either answers or asks for tool calls."""

    def complete(self, messages: Sequence[Turn], tools: Sequence[ToolSpec]) -> ModelReply:
        """Return the model's next reply for the given prompt."""


class LangChainChatModel:
    """Adapts a LangChain chat model supporting `bind_tools`."""

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    def complete(self, messages: Sequence[Turn], tools: Sequence[ToolSpec]) -> ModelReply:
        try:
            runnable = self.llm.bind_tools([_tool_schema(spec) for spec in tools]) if tools else self.llm
            response = runnable.invoke(to_langchain_messages(messages))
        except Exception as exc:
            raise ModelError("Chat model request failed", details=str(exc)) from exc
        return parse_reply(response)


def create_openai_chat_model(config: ModelConfig, *, timeout: float | None = None) -> LangChainChatModel:
    from langchain_openai import ChatOpenAI

    kwargs: dict[str, Any] = {
        "model": config.chat_model,
        "temperature": config.temperature,
        "timeout": timeout,
    }
    if config.api_key:
        kwargs["api_key"] = config.api_key
    return LangChainChatModel(ChatOpenAI(**kwargs))


def to_langchain_messages(turns: Sequence[Turn]) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    for turn in turns:
        if turn.role is Role.SYSTEM:
            messages.append(SystemMessage(content=turn.content))
        elif turn.role is Role.USER:
            messages.append(HumanMessage(content=turn.content))
        elif turn.role is Role.ASSISTANT:
            messages.append(
                AIMessage(
                    content=turn.content,
                    tool_calls=[
                        {
                            "name": call.name,
                            "args": call.arguments,
                            "id": call.call_id or call.name,
                            "type": "tool_call",
                        }
                        for call in turn.tool_calls
                    ],
                )
            )
        else:
            messages.append(
                ToolMessage(
                    content=turn.content,
                    tool_call_id=turn.tool_call_id or turn.name or "tool",
                    name=turn.name,
                    status="error" if turn.is_error else "success",
                )
            )
    return messages


def parse_reply(response: Any) -> ModelReply:
    """Turn a LangChain `AIMessage` into a `FinalAnswer` or `ToolCallRequest`."""
    text = _message_text(response)
    invocations = [
        ToolInvocation(
            name=str(call.get("name") or ""),
            arguments=dict(call.get("args") or {}),
            call_id=str(call.get("id") or ""),
        )
        for call in getattr(response, "tool_calls", None) or []
    ]
    invocations.extend(
        ToolInvocation(
            name=str(call.get("name") or ""),
            arguments={},
            call_id=str(call.get("id") or ""),
            parse_error=str(call.get("error") or "malformed tool call arguments"),
        )
        for call in getattr(response, "invalid_tool_calls", None) or []
    )
    if invocations:
        return ToolCallRequest(invocations=tuple(invocations), content=text)
    return FinalAnswer(text=text)


def _tool_schema(spec: ToolSpec) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": spec.name,
            "description": spec.description,
            "parameters": spec.json_schema(),
        },
    }


def _message_text(message: Any) -> str:
    if isinstance(message, str):
        return message
    content = getattr(message, "content", "")
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                if "text" in item:
                    parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)
