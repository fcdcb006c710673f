"""Explicit startup sequence: build components, ingest, then serve."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from coffee_assistant.agent.chat_model import ChatModel, create_openai_chat_model
from coffee_assistant.agent.fallback import RetrievalOnlyChatModel
from coffee_assistant.agent.orchestrator import ChatOrchestrator
from coffee_assistant.agent.registry import ToolRegistry
from coffee_assistant.agent.tools import OrderBackend, register_menu_tools, register_order_tools
from coffee_assistant.config import AssistantSettings, ModelConfig
from coffee_assistant.ingest.embedder import (
    EmbeddingProvider,
    HashingEmbedder,
    SentenceTransformerEmbedder,
    create_openai_embedder,
)
from coffee_assistant.ingest.pipeline import Ingestor
from coffee_assistant.obs.log import get_logger, setup_logging
from coffee_assistant.obs.tracing import TraceStore
from coffee_assistant.retrieval.retriever import MenuRetriever
from coffee_assistant.retrieval.vector_index import InMemoryVectorIndex, VectorIndex
from coffee_assistant.types import CatalogRecord

logger = get_logger(__name__)


class CatalogSource(Protocol):
    def snapshot(self) -> Sequence[CatalogRecord]:
        """Return every sellable item."""


class StaticCatalog:
    """Catalog source over records already in memory (e.g. parsed JSON)."""

    def __init__(self, records: Sequence[CatalogRecord | dict[str, Any]]) -> None:
        self._records = [
            record if isinstance(record, CatalogRecord) else CatalogRecord.model_validate(record)
            for record in records
        ]

    def snapshot(self) -> list[CatalogRecord]:
        return list(self._records)


@dataclass(slots=True)
class Assistant:
    settings: AssistantSettings
    embedder: EmbeddingProvider
    index: VectorIndex
    retriever: MenuRetriever
    tool_registry: ToolRegistry
    orchestrator: ChatOrchestrator
    trace_store: TraceStore
    indexed_count: int


def create_embedder(config: ModelConfig) -> EmbeddingProvider:
    backend = config.embedding_backend
    if backend == "auto":
        backend = "openai" if config.api_key else "hashing"
    logger.info("Embedding backend: %s", backend)
    if backend == "openai":
        return create_openai_embedder(config.embedding_model, config.api_key)
    if backend == "local":
        return SentenceTransformerEmbedder(
            config.local_embedding_model, device=config.local_embedding_device
        )
    return HashingEmbedder(dimension=config.hashing_dimension)


def create_chat_model(settings: AssistantSettings) -> ChatModel:
    if settings.model.api_key:
        return create_openai_chat_model(
            settings.model, timeout=settings.agent.model_timeout_seconds
        )
    return RetrievalOnlyChatModel()


def build_assistant(
    catalog: CatalogSource,
    *,
    settings: AssistantSettings | None = None,
    order_backend: OrderBackend | None = None,
    chat_model: ChatModel | None = None,
    embedder: EmbeddingProvider | None = None,
    index: VectorIndex | None = None,
    configure_logging: bool = True,
) -> Assistant:
    """Construct every component in dependency order and ingest the catalog.

    Ingestion completes before the orchestrator exists, so no chat turn can
    observe a partial index. An `IngestionError` propagates and aborts startup.
    """
    settings = settings or AssistantSettings.from_env()
    if configure_logging:
        setup_logging(settings.log_level)

    embedder = embedder or create_embedder(settings.model)
    index = index if index is not None else InMemoryVectorIndex()

    ingestor = Ingestor(
        embedder,
        index,
        settings.ingestion,
        timeout_seconds=settings.agent.embedding_timeout_seconds,
    )
    indexed_count = ingestor.run(catalog.snapshot())

    retriever = MenuRetriever(
        index,
        embedder,
        settings.retrieval,
        timeout_seconds=settings.agent.embedding_timeout_seconds,
    )
    registry = ToolRegistry()
    register_menu_tools(registry, retriever)
    if order_backend is not None:
        register_order_tools(registry, order_backend)
    else:
        logger.warning("No order backend configured; ordering tools are disabled")

    trace_store = TraceStore()
    orchestrator = ChatOrchestrator(
        chat_model=chat_model or create_chat_model(settings),
        tool_registry=registry,
        retriever=retriever,
        config=settings.agent,
        trace_store=trace_store,
    )
    logger.info("Assistant ready with %d menu items and %d tools", indexed_count, len(registry))
    return Assistant(
        settings=settings,
        embedder=embedder,
        index=index,
        retriever=retriever,
        tool_registry=registry,
        orchestrator=orchestrator,
        trace_store=trace_store,
        indexed_count=indexed_count,
    )
