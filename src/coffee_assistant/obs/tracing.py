"""Per-turn tracing for the chat orchestrator."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from coffee_assistant.types import ToolTrace


@dataclass(slots=True)
class TurnTrace:
    trace_id: str
    timestamp_utc: str
    session_id: str
    user_text: str
    answer: str
    retrieved_ids: list[str]
    tool_traces: list[ToolTrace]
    model_calls: int
    latency_ms: float
    error: str | None = None


class TraceStore:
    """In-memory trace storage for turn-level observability."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, TurnTrace] = {}
        self._max_records = max_records

    def create_record(
        self,
        *,
        session_id: str,
        user_text: str,
        answer: str,
        retrieved_ids: list[str],
        tool_traces: list[ToolTrace],
        model_calls: int,
        latency_ms: float,
        error: str | None = None,
    ) -> TurnTrace:
        record = TurnTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            session_id=session_id,
            user_text=user_text,
            answer=answer,
            retrieved_ids=retrieved_ids,
            tool_traces=tool_traces,
            model_calls=model_calls,
            latency_ms=latency_ms,
            error=error,
        )
        self._records[record.trace_id] = record
        while len(self._records) > self._max_records:
            del self._records[next(iter(self._records))]
        return record

    def get(self, trace_id: str) -> TurnTrace:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TurnTrace]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate turn metrics for dashboard display."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_turns": 0,
                "failed_turns": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "total_tool_calls": 0,
                "failed_tool_calls": 0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        tool_traces = [trace for record in records for trace in record.tool_traces]
        return {
            "total_turns": total,
            "failed_turns": sum(1 for record in records if record.error),
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "total_tool_calls": len(tool_traces),
            "failed_tool_calls": sum(1 for trace in tool_traces if not trace.ok),
        }


class Timer:
    """Simple context timer used by the orchestrator and ingestor."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
