"""Query-time retrieval of menu documents."""

from __future__ import annotations

from coffee_assistant.config import RetrievalConfig
from coffee_assistant.errors import EmbeddingError
from coffee_assistant.ingest.embedder import EmbeddingProvider
from coffee_assistant.retrieval.vector_index import VectorIndex
from coffee_assistant.timeouts import call_with_timeout
from coffee_assistant.types import ScoredMatch


class MenuRetriever:
    """Embeds query text and looks it up in the vector index."""

    def __init__(
        self,
        index: VectorIndex,
        embedder: EmbeddingProvider,
        config: RetrievalConfig | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self.index = index
        self.embedder = embedder
        self.config = config or RetrievalConfig()
        self.timeout_seconds = timeout_seconds

    def retrieve(self, query: str, *, top_k: int | None = None) -> list[ScoredMatch]:
        k = top_k or self.config.top_k
        if self.index.size() == 0:
            return []

        try:
            vector = call_with_timeout(
                self.embedder.embed,
                query,
                timeout=self.timeout_seconds,
                error_cls=EmbeddingError,
                operation="Query embedding",
            )
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError("Query embedding failed", details=str(exc)) from exc

        matches = self.index.query(vector, k)
        return [match for match in matches if match.score >= self.config.min_score]
