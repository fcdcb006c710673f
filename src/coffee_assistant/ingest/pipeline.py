"""Startup ingestion: encode -> embed -> index."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from coffee_assistant.config import IngestionConfig
from coffee_assistant.errors import DimensionMismatch, EmbeddingError, IngestionError
from coffee_assistant.ingest.embedder import EmbeddingProvider
from coffee_assistant.ingest.encoder import encode
from coffee_assistant.obs.log import get_logger
from coffee_assistant.obs.tracing import Timer
from coffee_assistant.retrieval.vector_index import VectorIndex
from coffee_assistant.timeouts import call_with_timeout
from coffee_assistant.types import CatalogRecord, Document, IndexEntry

logger = get_logger(__name__)


class Ingestor:
    """Populates a vector index from a full catalog snapshot.

    Meant to run once at startup against a fresh index, before any chat turn
    is served. Running it again on the same index appends duplicates.
    Embedding batches may run in parallel (`max_workers > 1`); the index is
    written with a single `add` call after every batch has succeeded, so a
    failed run leaves the index untouched.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: VectorIndex,
        config: IngestionConfig | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self.config = config or IngestionConfig()
        self.timeout_seconds = timeout_seconds

    def run(self, records: Sequence[CatalogRecord]) -> int:
        """Index every record and return the number of documents added."""
        if not records:
            raise IngestionError("Catalog snapshot is empty; refusing to serve an empty index")

        with Timer() as timer:
            documents = [encode(record) for record in records]
            try:
                vectors = self._embed_documents(documents)
            except EmbeddingError as exc:
                raise IngestionError("Embedding failed during ingestion", details=str(exc)) from exc

            entries = [
                IndexEntry(document=document, vector=tuple(vector))
                for document, vector in zip(documents, vectors, strict=True)
            ]
            try:
                self._index.add(entries)
            except DimensionMismatch as exc:
                raise IngestionError(
                    "Embedding dimensionality does not match the index", details=str(exc)
                ) from exc

        logger.info("Ingested menu items: %d (%.1f ms)", len(entries), timer.elapsed_ms)
        return len(entries)

    def _embed_documents(self, documents: list[Document]) -> list[list[float]]:
        size = self.config.batch_size
        batches = [
            [document.text for document in documents[start : start + size]]
            for start in range(0, len(documents), size)
        ]

        if self.config.max_workers > 1 and len(batches) > 1:
            with ThreadPoolExecutor(
                max_workers=self.config.max_workers, thread_name_prefix="ingest"
            ) as pool:
                results = list(pool.map(self._embed_batch, batches))
        else:
            results = [self._embed_batch(batch) for batch in batches]

        return [vector for batch_vectors in results for vector in batch_vectors]

    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        try:
            vectors = call_with_timeout(
                self._embedder.embed_many,
                texts,
                timeout=self.timeout_seconds,
                error_cls=EmbeddingError,
                operation="Batch embedding",
            )
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError("Batch embedding failed", details=str(exc)) from exc

        if len(vectors) != len(texts):
            raise EmbeddingError(
                "Embedding provider returned a wrong number of vectors",
                details=f"expected {len(texts)}, got {len(vectors)}",
            )
        logger.debug("Embedded batch of %d documents", len(texts))
        return vectors
