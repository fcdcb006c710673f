"""Exception hierarchy for ingestion, retrieval, tools and orchestration.

Hierarchy:
    AssistantError (base)
    ├── ConfigurationError
    │   └── DimensionMismatch
    ├── ExternalServiceError
    │   ├── EmbeddingError
    │   └── ModelError
    ├── RegistryError
    │   ├── DuplicateTool
    │   └── ToolNotFound
    ├── ToolFailure
    │   ├── InvalidArguments
    │   └── ToolExecutionError
    ├── IngestionError
    └── OrchestrationError
        ├── ToolLoopExceeded
        ├── BackendUnavailable
        └── SessionBusy

`ToolFailure` subclasses are recoverable inside a chat turn: the orchestrator
writes them back into the conversation. `ExternalServiceError` subclasses are
transient and surfaced to the caller without internal retries.
"""

from __future__ import annotations


class AssistantError(Exception):
    """Base exception carrying a message and optional technical details."""

    def __init__(self, message: str = "An assistant error occurred", details: str | None = None):
        self.message = message
        self.details = details

        full_message = message
        if details:
            full_message = f"{message} | Details: {details}"

        super().__init__(full_message)


class ConfigurationError(AssistantError):
    """Raised when components are wired with inconsistent settings."""


class DimensionMismatch(ConfigurationError):
    """Raised when a vector length disagrees with the index dimensionality."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            "Vector dimensionality mismatch",
            details=f"expected {expected}, got {actual}",
        )


class ExternalServiceError(AssistantError):
    """Raised when an external model service fails or times out."""


class EmbeddingError(ExternalServiceError):
    """Raised when the embedding provider fails."""


class ModelError(ExternalServiceError):
    """Raised when the chat model fails."""


class RegistryError(AssistantError):
    """Raised on tool registration or lookup programming errors."""


class DuplicateTool(RegistryError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool already registered: {name}")


class ToolNotFound(RegistryError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ToolFailure(AssistantError):
    """Base for failures of a single tool invocation."""

    def __init__(self, tool_name: str, message: str, details: str | None = None):
        self.tool_name = tool_name
        super().__init__(message, details=details)


class InvalidArguments(ToolFailure):
    """The model produced arguments that do not match the tool schema."""

    def __init__(self, tool_name: str, details: str | None = None):
        super().__init__(tool_name, f"Invalid arguments for tool {tool_name}", details=details)


class ToolExecutionError(ToolFailure):
    """The tool's own logic failed."""

    def __init__(self, tool_name: str, details: str | None = None):
        super().__init__(tool_name, f"Tool {tool_name} failed", details=details)


class IngestionError(AssistantError):
    """Raised when the catalog could not be fully indexed."""


class OrchestrationError(AssistantError):
    """Raised when a chat turn cannot produce an answer."""


class ToolLoopExceeded(OrchestrationError):
    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        super().__init__(
            "The assistant requested too many tool calls in one turn",
            details=f"maximum tool depth is {max_depth}",
        )


class BackendUnavailable(OrchestrationError):
    """The assistant could not reach its chat or embedding backend."""


class SessionBusy(OrchestrationError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session is already processing a turn: {session_id}")
