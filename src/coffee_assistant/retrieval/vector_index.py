"""Vector index interfaces and concrete adapters."""

from __future__ import annotations

import heapq
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from math import sqrt
from typing import Any, Literal, Protocol

from coffee_assistant.errors import DimensionMismatch
from coffee_assistant.ingest.embedder import EmbeddingProvider
from coffee_assistant.types import Document, IndexEntry, ScoredMatch

_FAISS_TIE_DECIMALS = 6

Metric = Literal["cosine", "dot"]


class VectorIndex(Protocol):
    """Nearest-neighbor contract shared by all index implementations."""

    @property
    def dimension(self) -> int | None:
        """Dimensionality fixed by the first added vector, if any."""

    def add(self, entries: Sequence[IndexEntry]) -> None:
        """Append entries; all-or-nothing on dimensionality errors."""

    def query(self, vector: Sequence[float], k: int) -> list[ScoredMatch]:
        """Return up to `k` matches by descending similarity."""

    def size(self) -> int:
        """Number of stored entries."""


@dataclass(frozen=True, slots=True)
class _StoredVector:
    entry: IndexEntry
    norm: float


class InMemoryVectorIndex:
    """Flat-scan index with exact cosine (default) or dot-product scoring.

    Writers build a new tuple of entries and publish it with one reference
    swap, so readers never lock and never observe a partial `add`. Ties in
    score keep insertion order.
    """

    def __init__(self, metric: Metric = "cosine") -> None:
        if metric not in ("cosine", "dot"):
            raise ValueError(f"Unsupported metric: {metric}")
        self.metric = metric
        self._entries: tuple[_StoredVector, ...] = ()
        self._dimension: int | None = None
        self._write_lock = threading.Lock()

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def add(self, entries: Sequence[IndexEntry]) -> None:
        if not entries:
            return
        with self._write_lock:
            dimension = self._dimension if self._dimension is not None else len(entries[0].vector)
            for entry in entries:
                if len(entry.vector) != dimension:
                    raise DimensionMismatch(dimension, len(entry.vector))

            stored = tuple(
                _StoredVector(entry=entry, norm=_norm(entry.vector)) for entry in entries
            )
            self._dimension = dimension
            self._entries = self._entries + stored

    def query(self, vector: Sequence[float], k: int) -> list[ScoredMatch]:
        if k < 1:
            raise ValueError("k must be >= 1")
        entries = self._entries
        dimension = self._dimension
        if not entries:
            return []
        if len(vector) != dimension:
            raise DimensionMismatch(dimension, len(vector))

        query_norm = _norm(vector)
        scored = (
            (self._score(vector, query_norm, stored), seq, stored.entry.document)
            for seq, stored in enumerate(entries)
        )
        best = heapq.nsmallest(k, scored, key=lambda item: (-item[0], item[1]))
        return [
            ScoredMatch(document=document, score=score, rank=rank)
            for rank, (score, _, document) in enumerate(best, start=1)
        ]

    def size(self) -> int:
        return len(self._entries)

    def _score(self, vector: Sequence[float], query_norm: float, stored: _StoredVector) -> float:
        dot = sum(x * y for x, y in zip(vector, stored.entry.vector, strict=True))
        if self.metric == "dot":
            return dot
        if query_norm == 0 or stored.norm == 0:
            return 0.0
        return dot / (query_norm * stored.norm)


class FaissVectorIndex:
    """FAISS-backed index via the LangChain community integration.

    Vectors are L2-normalized before they reach FAISS and searched by inner
    product, which ranks by cosine similarity; zero vectors score 0. FAISS
    computes in float32, so results are re-sorted by (score rounded to 6
    decimals, insertion order) to agree with `InMemoryVectorIndex`. A single lock
    serializes writes against reads because the FAISS index is mutated in place.
    """

    def __init__(self, embedder: EmbeddingProvider) -> None:
        try:
            from langchain_community.vectorstores import FAISS
            from langchain_community.vectorstores.utils import DistanceStrategy
            from langchain_core.embeddings import Embeddings
        except Exception as exc:  # pragma: no cover - import path is environment-dependent
            raise RuntimeError(
                "FAISS dependencies are not available. Install langchain-community/faiss-cpu."
            ) from exc

        class _EmbeddingAdapter(Embeddings):
            def __init__(self, provider: EmbeddingProvider) -> None:
                self._provider = provider

            def embed_documents(self, texts: list[str]) -> list[list[float]]:
                return self._provider.embed_many(texts)

            def embed_query(self, text: str) -> list[float]:
                return self._provider.embed(text)

        self._faiss_cls = FAISS
        self._distance_strategy = DistanceStrategy.MAX_INNER_PRODUCT
        self._embeddings = _EmbeddingAdapter(embedder)
        self._index: Any | None = None
        self._dimension: int | None = None
        self._count = 0
        self._lock = threading.Lock()

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def add(self, entries: Sequence[IndexEntry]) -> None:
        if not entries:
            return
        with self._lock:
            dimension = self._dimension if self._dimension is not None else len(entries[0].vector)
            for entry in entries:
                if len(entry.vector) != dimension:
                    raise DimensionMismatch(dimension, len(entry.vector))

            text_embeddings = [(entry.document.text, _unit(entry.vector)) for entry in entries]
            metadatas = [
                {"doc_id": entry.document.doc_id, "seq": self._count + offset}
                for offset, entry in enumerate(entries)
            ]
            ids = [str(meta["seq"]) for meta in metadatas]

            if self._index is None:
                self._index = self._faiss_cls.from_embeddings(
                    text_embeddings=text_embeddings,
                    embedding=self._embeddings,
                    metadatas=metadatas,
                    ids=ids,
                    distance_strategy=self._distance_strategy,
                )
            else:
                self._index.add_embeddings(
                    text_embeddings=text_embeddings, metadatas=metadatas, ids=ids
                )
            self._dimension = dimension
            self._count += len(entries)

    def query(self, vector: Sequence[float], k: int) -> list[ScoredMatch]:
        if k < 1:
            raise ValueError("k must be >= 1")
        with self._lock:
            if self._index is None:
                return []
            if len(vector) != self._dimension:
                raise DimensionMismatch(self._dimension or 0, len(vector))
            # Every entry is scored so ties at the k boundary resolve by insertion order.
            docs_and_scores = self._index.similarity_search_with_score_by_vector(
                embedding=_unit(vector),
                k=self._count,
            )

        ranked = sorted(docs_and_scores, key=_faiss_rank_key)[:k]
        return [
            ScoredMatch(
                document=Document(doc_id=str(doc.metadata["doc_id"]), text=doc.page_content),
                score=float(score),
                rank=rank,
            )
            for rank, (doc, score) in enumerate(ranked, start=1)
        ]

    def size(self) -> int:
        return self._count


def _norm(vector: Sequence[float]) -> float:
    return sqrt(sum(x * x for x in vector))


def _faiss_rank_key(pair: tuple[Any, float]) -> tuple[float, int]:
    doc, score = pair
    return -round(float(score), _FAISS_TIE_DECIMALS), int(doc.metadata["seq"])


def _unit(vector: Sequence[float]) -> list[float]:
    norm = _norm(vector)
    if norm == 0:
        return [float(x) for x in vector]
    return [x / norm for x in vector]
