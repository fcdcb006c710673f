"""Tool-augmented chat orchestration over the menu index."""

from __future__ import annotations

import json
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from pydantic import BaseModel

from coffee_assistant.agent.chat_model import ChatModel
from coffee_assistant.agent.registry import ToolRegistry
from coffee_assistant.config import AgentConfig
from coffee_assistant.errors import (
    BackendUnavailable,
    DimensionMismatch,
    EmbeddingError,
    ExternalServiceError,
    InvalidArguments,
    ModelError,
    OrchestrationError,
    SessionBusy,
    ToolExecutionError,
    ToolFailure,
    ToolLoopExceeded,
    ToolNotFound,
)
from coffee_assistant.obs.log import get_logger
from coffee_assistant.obs.tracing import Timer, TraceStore
from coffee_assistant.retrieval.retriever import MenuRetriever
from coffee_assistant.timeouts import call_with_timeout
from coffee_assistant.types import (
    ConversationState,
    FinalAnswer,
    ModelReply,
    Role,
    ScoredMatch,
    ToolCallRequest,
    ToolInvocation,
    ToolTrace,
    Turn,
)

logger = get_logger(__name__)

_SYSTEM_PROMPT = """
You are the ordering assistant of a coffee shop.

Rules:
1) Answer questions about the menu only from the menu context below or from `search_menu` results.
2) Use `place_order` to place orders and `get_order` to look them up; never claim an order
   was placed before the tool confirmed it.
3) Quote order ids, quantities and prices exactly as the tools return them.
4) If a tool reports an error, correct the call or explain the problem to the customer.
5) If the menu does not contain what the customer asks for, say so.
""".strip()


class OrchestratorState(str, Enum):
    AWAITING_USER_INPUT = "awaiting_user_input"
    MODEL_INVOKED = "model_invoked"
    TOOL_REQUESTED = "tool_requested"
    TOOL_EXECUTED = "tool_executed"
    FINAL_ANSWER_READY = "final_answer_ready"


@dataclass(slots=True)
class _Session:
    conversation: ConversationState
    lock: threading.Lock = field(default_factory=threading.Lock)
    state: OrchestratorState = OrchestratorState.AWAITING_USER_INPUT


@dataclass(slots=True)
class _TurnContext:
    retrieved: list[ScoredMatch] = field(default_factory=list)
    tool_traces: list[ToolTrace] = field(default_factory=list)
    model_calls: int = 0


class ChatOrchestrator:
    """Runs one chat turn at a time per session.

    A turn appends the user message, retrieves grounding context once, then
    alternates between the chat model and tool execution until the model
    gives a final answer. Tool failures and unknown tools are written back as
    error tool-result turns so the model can correct itself. More than
    `max_tool_depth` tool-requesting replies in one turn abort the turn with
    `ToolLoopExceeded`. Chat or embedding backend failures abort the turn with
    `BackendUnavailable`.
    """

    def __init__(
        self,
        *,
        chat_model: ChatModel,
        tool_registry: ToolRegistry,
        retriever: MenuRetriever | None = None,
        config: AgentConfig | None = None,
        trace_store: TraceStore | None = None,
        system_prompt: str = _SYSTEM_PROMPT,
    ) -> None:
        self.chat_model = chat_model
        self.tool_registry = tool_registry
        self.retriever = retriever
        self.config = config or AgentConfig()
        self.trace_store = trace_store or TraceStore()
        self.system_prompt = system_prompt
        self._sessions: dict[str, _Session] = {}
        self._sessions_lock = threading.Lock()

    def send(self, session_id: str, user_text: str) -> str:
        """Process one user message and return the assistant's answer.

        Raises:
            SessionBusy: another turn of the same session is still running.
            ToolLoopExceeded: the tool-call depth bound was exceeded.
            BackendUnavailable: the chat or embedding backend failed.
            OrchestrationError: empty message or misconfigured retrieval.

        Every started turn is recorded in the trace store, failed ones too.
        """
        if not user_text.strip():
            raise OrchestrationError("User message must not be empty")

        session = self._get_or_create(session_id)
        if not session.lock.acquire(blocking=False):
            raise SessionBusy(session_id)

        context = _TurnContext()
        timer = Timer()
        try:
            try:
                with timer:
                    answer = self._run_turn(session, user_text, context)
            except Exception as exc:
                self._record(session_id, user_text, "", context, timer.elapsed_ms, error=str(exc))
                raise
            self._record(session_id, user_text, answer, context, timer.elapsed_ms)
            return answer
        finally:
            session.state = OrchestratorState.AWAITING_USER_INPUT
            session.lock.release()

    def history(self, session_id: str) -> tuple[Turn, ...]:
        session = self._sessions.get(session_id)
        return session.conversation.snapshot() if session else ()

    def state(self, session_id: str) -> OrchestratorState:
        session = self._sessions.get(session_id)
        return session.state if session else OrchestratorState.AWAITING_USER_INPUT

    def end_session(self, session_id: str) -> None:
        with self._sessions_lock:
            self._sessions.pop(session_id, None)

    def _get_or_create(self, session_id: str) -> _Session:
        with self._sessions_lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = _Session(conversation=ConversationState(session_id=session_id))
                self._sessions[session_id] = session
            return session

    def _run_turn(self, session: _Session, user_text: str, context: _TurnContext) -> str:
        conversation = session.conversation
        conversation.append(Turn(role=Role.USER, content=user_text))
        logger.info("Turn started for session %s", conversation.session_id)

        # Context is retrieved once per turn and reused for every model call.
        context.retrieved = self._retrieve(user_text)
        system_turn = Turn(role=Role.SYSTEM, content=self._system_message(context.retrieved))

        depth = 0
        while True:
            session.state = OrchestratorState.MODEL_INVOKED
            reply = self._complete([system_turn, *conversation.turns])
            context.model_calls += 1

            if isinstance(reply, FinalAnswer):
                session.state = OrchestratorState.FINAL_ANSWER_READY
                conversation.append(Turn(role=Role.ASSISTANT, content=reply.text))
                logger.info(
                    "Turn finished for session %s after %d model call(s)",
                    conversation.session_id,
                    context.model_calls,
                )
                return reply.text

            session.state = OrchestratorState.TOOL_REQUESTED
            depth += 1
            if depth > self.config.max_tool_depth:
                logger.warning(
                    "Tool loop exceeded for session %s (max depth %d)",
                    conversation.session_id,
                    self.config.max_tool_depth,
                )
                raise ToolLoopExceeded(self.config.max_tool_depth)

            invocations = _with_call_ids(reply, depth)
            conversation.append(
                Turn(role=Role.ASSISTANT, content=reply.content, tool_calls=invocations)
            )
            for invocation in invocations:
                conversation.append(self._execute(invocation, context))
            session.state = OrchestratorState.TOOL_EXECUTED

    def _retrieve(self, user_text: str) -> list[ScoredMatch]:
        if self.retriever is None or not self.retriever.config.enabled:
            return []
        try:
            return self.retriever.retrieve(user_text)
        except EmbeddingError as exc:
            logger.error("Menu retrieval failed: %s", exc)
            raise BackendUnavailable(
                "The assistant could not reach its embedding backend", details=str(exc)
            ) from exc
        except DimensionMismatch as exc:
            logger.error("Menu retrieval is misconfigured: %s", exc)
            raise OrchestrationError(
                "Menu retrieval failed: query embedding does not match the index",
                details=str(exc),
            ) from exc

    def _system_message(self, matches: Sequence[ScoredMatch]) -> str:
        if not matches:
            return f"{self.system_prompt}\n\nMenu context:\nNo matching menu items were found."
        lines = [f"- [{match.document.doc_id}] {match.document.text}" for match in matches]
        return f"{self.system_prompt}\n\nMenu context:\n" + "\n".join(lines)

    def _complete(self, prompt: list[Turn]) -> ModelReply:
        try:
            return call_with_timeout(
                self.chat_model.complete,
                prompt,
                self.tool_registry.specs(),
                timeout=self.config.model_timeout_seconds,
                error_cls=ModelError,
                operation="Chat model request",
            )
        except ExternalServiceError as exc:
            logger.error("Chat model failed: %s", exc)
            raise BackendUnavailable(
                "The assistant could not reach its chat model backend", details=str(exc)
            ) from exc

    def _execute(self, invocation: ToolInvocation, context: _TurnContext) -> Turn:
        logger.info("Tool call %s(%s)", invocation.name, invocation.arguments)
        try:
            result = self.tool_registry.dispatch(invocation, observer=context.tool_traces.append)
        except (ToolFailure, ToolNotFound) as exc:
            logger.warning("Tool call %s failed: %s", invocation.name, exc)
            return Turn(
                role=Role.TOOL,
                content=f"ERROR ({_failure_kind(exc)}): {exc}",
                tool_call_id=invocation.call_id,
                name=invocation.name,
                is_error=True,
            )
        return Turn(
            role=Role.TOOL,
            content=render_tool_result(result),
            tool_call_id=invocation.call_id,
            name=invocation.name,
        )

    def _record(
        self,
        session_id: str,
        user_text: str,
        answer: str,
        context: _TurnContext,
        latency_ms: float,
        *,
        error: str | None = None,
    ) -> None:
        self.trace_store.create_record(
            session_id=session_id,
            user_text=user_text,
            answer=answer,
            retrieved_ids=[match.document.doc_id for match in context.retrieved],
            tool_traces=context.tool_traces,
            model_calls=context.model_calls,
            latency_ms=latency_ms,
            error=error,
        )


def render_tool_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    if isinstance(result, (dict, list, tuple)):
        return json.dumps(result, default=str, ensure_ascii=False)
    return str(result)


def _with_call_ids(reply: ToolCallRequest, depth: int) -> tuple[ToolInvocation, ...]:
    return tuple(
        invocation if invocation.call_id else replace(invocation, call_id=f"call-{depth}-{idx}")
        for idx, invocation in enumerate(reply.invocations)
    )


def _failure_kind(exc: Exception) -> str:
    if isinstance(exc, InvalidArguments):
        return "invalid_arguments"
    if isinstance(exc, ToolExecutionError):
        return "tool_execution"
    if isinstance(exc, ToolNotFound):
        return "unknown_tool"
    return "tool_failure"
