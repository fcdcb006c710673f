"""Embedding providers: hashing baseline, LangChain adapter and local models."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from hashlib import blake2b
from math import sqrt
from typing import Any

from coffee_assistant.errors import EmbeddingError

_WORD_PATTERN = re.compile(r"\w+", flags=re.UNICODE)


class EmbeddingProvider(ABC):
    """Maps text to fixed-length vectors."""

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed one text."""

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed many texts, preserving order."""
        return [self.embed(text) for text in texts]


class HashingEmbedder(EmbeddingProvider):
    """Deterministic feature-hashing embedding without external model calls.

    Every lower-cased word token is hashed into one of `dimension` buckets with
    a pseudo-random sign; the result is L2-normalized. Texts sharing words end
    up with positive cosine similarity. Used for tests and offline runs.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = _WORD_PATTERN.findall(text.lower())
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


class LangChainEmbeddingProvider(EmbeddingProvider):
    """Adapts a LangChain `Embeddings` object (e.g. `OpenAIEmbeddings`)."""

    def __init__(self, embeddings: Any) -> None:
        self._embeddings = embeddings

    def embed(self, text: str) -> list[float]:
        try:
            vector = self._embeddings.embed_query(text)
        except Exception as exc:
            raise EmbeddingError("Embedding request failed", details=str(exc)) from exc
        return [float(value) for value in vector]

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = self._embeddings.embed_documents(list(texts))
        except Exception as exc:
            raise EmbeddingError("Batch embedding request failed", details=str(exc)) from exc
        if len(vectors) != len(texts):
            raise EmbeddingError(
                "Embedding provider returned a wrong number of vectors",
                details=f"expected {len(texts)}, got {len(vectors)}",
            )
        return [[float(value) for value in vector] for vector in vectors]


class SentenceTransformerEmbedder(EmbeddingProvider):
    """Local sentence-transformers model; needs no API key once downloaded.

    `all-MiniLM-L6-v2` produces 384-dimensional vectors. Pass `model` to reuse
    an already loaded `SentenceTransformer`.
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        *,
        device: str = "cpu",
        normalize: bool = True,
        model: Any | None = None,
    ) -> None:
        if model is None:
            from sentence_transformers import SentenceTransformer

            model = SentenceTransformer(model_name, device=device)
        self.model_name = model_name
        self.normalize = normalize
        self._model = model

    def embed(self, text: str) -> list[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = self._model.encode(list(texts), normalize_embeddings=self.normalize)
        except Exception as exc:
            raise EmbeddingError("Local embedding model failed", details=str(exc)) from exc
        if len(vectors) != len(texts):
            raise EmbeddingError(
                "Local embedding model returned a wrong number of vectors",
                details=f"expected {len(texts)}, got {len(vectors)}",
            )
        return [[float(value) for value in vector] for vector in vectors]


def create_openai_embedder(model: str, api_key: str | None = None) -> LangChainEmbeddingProvider:
    from langchain_openai import OpenAIEmbeddings

    kwargs: dict[str, Any] = {"model": model}
    if api_key:
        kwargs["api_key"] = api_key
    return LangChainEmbeddingProvider(OpenAIEmbeddings(**kwargs))
