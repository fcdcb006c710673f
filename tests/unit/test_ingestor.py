import threading
import time
from decimal import Decimal

import pytest

from coffee_assistant.config import IngestionConfig
from coffee_assistant.errors import EmbeddingError, IngestionError
from coffee_assistant.ingest.embedder import EmbeddingProvider, HashingEmbedder
from coffee_assistant.ingest.encoder import encode
from coffee_assistant.ingest.pipeline import Ingestor
from coffee_assistant.retrieval.vector_index import InMemoryVectorIndex
from coffee_assistant.types import CatalogRecord


_NAMES = ["Latte", "Mocha", "Cortado", "Americano", "Macchiato", "Chai", "Matcha"]


def _records(count: int) -> list[CatalogRecord]:
    return [
        CatalogRecord(name=name, description=f"{name} recipe", price=Decimal(i))
        for i, name in enumerate(_NAMES[:count])
    ]


class _CountingEmbedder(EmbeddingProvider):
    def __init__(self) -> None:
        self._inner = HashingEmbedder(dimension=256)
        self.batches: list[list[str]] = []
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        return self._inner.embed(text)

    def embed_many(self, texts):
        with self._lock:
            self.batches.append(list(texts))
        return [self.embed(text) for text in texts]


class _FailingEmbedder(EmbeddingProvider):
    def embed(self, text: str) -> list[float]:
        raise EmbeddingError("provider offline")


class _RaggedEmbedder(EmbeddingProvider):
    def embed(self, text: str) -> list[float]:
        return [1.0] * (3 if "1" in text else 4)


class _SlowEmbedder(EmbeddingProvider):
    def embed(self, text: str) -> list[float]:
        time.sleep(0.5)
        return [1.0, 0.0]


def test_run_indexes_every_record(menu_records) -> None:
    index = InMemoryVectorIndex()
    ingestor = Ingestor(HashingEmbedder(), index)

    assert ingestor.run(menu_records) == 2
    assert index.size() == len(menu_records)


def test_entries_match_encoded_documents_in_order() -> None:
    records = _records(7)
    embedder = _CountingEmbedder()
    index = InMemoryVectorIndex()
    ingestor = Ingestor(embedder, index, IngestionConfig(batch_size=2, max_workers=3))

    assert ingestor.run(records) == 7
    assert sorted(len(batch) for batch in embedder.batches) == [1, 2, 2, 2]

    for record in records:
        document = encode(record)
        top = index.query(embedder.embed(document.text), k=1)[0]
        assert top.document == document
        assert top.score == pytest.approx(1.0)


def test_rerun_on_fresh_index_has_same_size_and_on_same_index_duplicates(menu_records) -> None:
    embedder = HashingEmbedder()
    fresh_a, fresh_b = InMemoryVectorIndex(), InMemoryVectorIndex()

    Ingestor(embedder, fresh_a).run(menu_records)
    Ingestor(embedder, fresh_b).run(menu_records)
    assert fresh_a.size() == fresh_b.size() == 2

    Ingestor(embedder, fresh_a).run(menu_records)
    assert fresh_a.size() == 4


def test_empty_snapshot_aborts_ingestion() -> None:
    with pytest.raises(IngestionError):
        Ingestor(HashingEmbedder(), InMemoryVectorIndex()).run([])


def test_embedding_failure_aborts_and_leaves_index_empty(menu_records) -> None:
    index = InMemoryVectorIndex()

    with pytest.raises(IngestionError) as excinfo:
        Ingestor(_FailingEmbedder(), index).run(menu_records)

    assert isinstance(excinfo.value.__cause__, EmbeddingError)
    assert index.size() == 0


def test_inconsistent_dimensions_abort_ingestion() -> None:
    index = InMemoryVectorIndex()

    with pytest.raises(IngestionError, match="dimensionality"):
        Ingestor(_RaggedEmbedder(), index).run(_records(3))

    assert index.size() == 0


def test_embedding_timeout_surfaces_as_ingestion_error(menu_records) -> None:
    ingestor = Ingestor(_SlowEmbedder(), InMemoryVectorIndex(), timeout_seconds=0.05)

    with pytest.raises(IngestionError, match="timed out"):
        ingestor.run(menu_records)
