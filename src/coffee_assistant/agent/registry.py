"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from time import perf_counter
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from coffee_assistant.errors import (
    DuplicateTool,
    InvalidArguments,
    ToolExecutionError,
    ToolFailure,
    ToolNotFound,
)
from coffee_assistant.types import ToolInvocation, ToolTrace


@dataclass(frozen=True, slots=True)
class ToolParameter:
    name: str
    type_name: str
    required: bool
    description: str | None = None


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[BaseModel], Any]
    tags: list[str] = Field(default_factory=list)

    def parameters(self) -> list[ToolParameter]:
        """Parameters in declaration order."""
        params: list[ToolParameter] = []
        for field_name, info in self.args_schema.model_fields.items():
            annotation = info.annotation
            type_name = getattr(annotation, "__name__", None) or str(annotation)
            params.append(
                ToolParameter(
                    name=field_name,
                    type_name=type_name,
                    required=info.is_required(),
                    description=info.description,
                )
            )
        return params

    def json_schema(self) -> dict[str, Any]:
        return self.args_schema.model_json_schema()


class ToolRegistry:
    """Stores tool specs and runs validated tool calls.

    `invoke` validates arguments before calling a handler. Schema violations
    raise `InvalidArguments`; anything the handler raises becomes
    `ToolExecutionError`. Unknown names raise `ToolNotFound`.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise DuplicateTool(spec.name)
        self._tools[spec.name] = spec

    def get(self, name: str) -> ToolSpec:
        spec = self._tools.get(name)
        if spec is None:
            raise ToolNotFound(name)
        return spec

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def invoke(
        self,
        name: str,
        arguments: dict[str, Any],
        *,
        observer: Callable[[ToolTrace], None] | None = None,
    ) -> Any:
        return self.dispatch(ToolInvocation(name=name, arguments=arguments), observer=observer)

    def dispatch(
        self,
        invocation: ToolInvocation,
        *,
        observer: Callable[[ToolTrace], None] | None = None,
    ) -> Any:
        """Run one model-requested tool call.

        Every outcome is reported to `observer`, including unknown names and
        arguments the model failed to encode (`invocation.parse_error`).
        """
        start = perf_counter()
        try:
            if invocation.parse_error:
                raise InvalidArguments(invocation.name, details=invocation.parse_error)
            output = self._execute_spec(self.get(invocation.name), invocation.arguments)
        except (ToolFailure, ToolNotFound) as exc:
            _notify(observer, invocation, str(exc), start, ok=False)
            raise
        _notify(observer, invocation, str(output), start, ok=True)
        return output

    def _execute_spec(self, spec: ToolSpec, payload: dict[str, Any]) -> Any:
        try:
            data = spec.args_schema.model_validate(payload)
        except ValidationError as exc:
            raise InvalidArguments(spec.name, details=_validation_summary(exc)) from exc

        try:
            return spec.handler(data)
        except ToolFailure:
            raise
        except Exception as exc:
            raise ToolExecutionError(spec.name, details=str(exc)) from exc


def _notify(
    observer: Callable[[ToolTrace], None] | None,
    invocation: ToolInvocation,
    output: str,
    start: float,
    *,
    ok: bool,
) -> None:
    if observer is None:
        return
    observer(
        ToolTrace(
            name=invocation.name,
            input_payload=invocation.arguments,
            output_preview=output[:320],
            latency_ms=(perf_counter() - start) * 1000.0,
            ok=ok,
        )
    )


def _validation_summary(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)
