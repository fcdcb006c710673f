import threading
import warnings

import pytest

from coffee_assistant.errors import DimensionMismatch
from coffee_assistant.ingest.embedder import HashingEmbedder
from coffee_assistant.retrieval.vector_index import InMemoryVectorIndex
from coffee_assistant.types import Document, IndexEntry


def _entry(doc_id: str, vector: list[float]) -> IndexEntry:
    return IndexEntry(document=Document(doc_id=doc_id, text=f"text of {doc_id}"), vector=tuple(vector))


def _index_with(entries: list[IndexEntry]) -> InMemoryVectorIndex:
    index = InMemoryVectorIndex()
    index.add(entries)
    return index


def test_query_ranks_by_descending_cosine_similarity() -> None:
    index = _index_with(
        [
            _entry("a", [1.0, 0.0, 0.0]),
            _entry("b", [0.0, 1.0, 0.0]),
            _entry("c", [1.0, 1.0, 0.0]),
            _entry("d", [-1.0, 0.0, 0.0]),
        ]
    )

    matches = index.query([1.0, 0.2, 0.0], k=4)

    assert [match.document.doc_id for match in matches] == ["a", "c", "b", "d"]
    scores = [match.score for match in matches]
    assert scores == sorted(scores, reverse=True)
    assert [match.rank for match in matches] == [1, 2, 3, 4]
    assert matches[-1].score == pytest.approx(-1.0 / (1.04**0.5))


def test_exact_vector_returns_entry_first_with_similarity_one() -> None:
    index = _index_with(
        [
            _entry("a", [0.3, 0.1, 0.9]),
            _entry("b", [2.0, -1.0, 0.5]),
            _entry("c", [0.0, 0.4, 0.1]),
        ]
    )

    matches = index.query([2.0, -1.0, 0.5], k=1)

    assert len(matches) == 1
    assert matches[0].document.doc_id == "b"
    assert matches[0].score == pytest.approx(1.0)


def test_ties_are_broken_by_insertion_order() -> None:
    index = _index_with(
        [
            _entry("first", [1.0, 0.0]),
            _entry("other", [0.0, 1.0]),
            _entry("second", [2.0, 0.0]),
            _entry("third", [0.5, 0.0]),
        ]
    )

    matches = index.query([1.0, 0.0], k=3)

    assert [match.document.doc_id for match in matches] == ["first", "second", "third"]
    assert {match.score for match in matches} == {1.0}


def test_query_returns_fewer_results_when_index_is_small() -> None:
    index = _index_with([_entry("a", [1.0, 0.0]), _entry("b", [0.0, 1.0])])

    assert len(index.query([1.0, 0.0], k=5)) == 2
    assert len(index.query([1.0, 0.0], k=2)) == 2
    assert InMemoryVectorIndex().query([1.0, 0.0], k=3) == []


def test_query_rejects_invalid_k_and_wrong_dimension() -> None:
    index = _index_with([_entry("a", [1.0, 0.0])])

    with pytest.raises(ValueError):
        index.query([1.0, 0.0], k=0)
    with pytest.raises(DimensionMismatch) as excinfo:
        index.query([1.0, 0.0, 0.0], k=1)
    assert excinfo.value.expected == 2
    assert excinfo.value.actual == 3


def test_add_with_wrong_dimension_leaves_index_unchanged() -> None:
    index = _index_with([_entry("a", [1.0, 0.0]), _entry("b", [0.0, 1.0])])

    with pytest.raises(DimensionMismatch):
        index.add([_entry("c", [1.0, 1.0]), _entry("d", [1.0, 1.0, 1.0])])

    assert index.size() == 2
    assert index.dimension == 2
    assert [m.document.doc_id for m in index.query([1.0, 1.0], k=5)] == ["a", "b"]


def test_first_batch_with_mixed_dimensions_is_rejected() -> None:
    index = InMemoryVectorIndex()

    with pytest.raises(DimensionMismatch):
        index.add([_entry("a", [1.0, 0.0]), _entry("b", [1.0])])

    assert index.size() == 0
    assert index.dimension is None


def test_zero_vectors_score_zero() -> None:
    index = _index_with([_entry("zero", [0.0, 0.0]), _entry("x", [1.0, 0.0])])

    matches = index.query([1.0, 0.0], k=2)

    assert [m.document.doc_id for m in matches] == ["x", "zero"]
    assert matches[1].score == 0.0


def test_dot_metric_uses_unnormalized_scores() -> None:
    index = InMemoryVectorIndex(metric="dot")
    index.add([_entry("short", [1.0, 0.0]), _entry("long", [3.0, 0.0])])

    matches = index.query([1.0, 0.0], k=2)

    assert [m.document.doc_id for m in matches] == ["long", "short"]
    assert matches[0].score == pytest.approx(3.0)

    with pytest.raises(ValueError):
        InMemoryVectorIndex(metric="euclidean")  # type: ignore[arg-type]


def test_concurrent_readers_see_complete_snapshots() -> None:
    index = _index_with([_entry(f"seed-{i}", [1.0, float(i)]) for i in range(10)])
    sizes: list[int] = []

    def _reader() -> None:
        for _ in range(50):
            result = index.query([1.0, 0.0], k=100)
            sizes.append(len(result))

    threads = [threading.Thread(target=_reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    index.add([_entry(f"late-{i}", [1.0, float(i)]) for i in range(10)])
    for thread in threads:
        thread.join()

    assert set(sizes) <= {10, 20}
    assert index.size() == 20


def test_faiss_matches_flat_scan() -> None:
    pytest.importorskip("faiss")
    pytest.importorskip("langchain_community")
    from coffee_assistant.retrieval.vector_index import FaissVectorIndex

    entries = [
        _entry("first", [1.0, 0.0]),
        _entry("other", [0.0, 1.0]),
        _entry("second", [2.0, 0.0]),
        _entry("third", [0.5, 0.0]),
        _entry("neg", [-1.0, 0.0]),
    ]
    flat = _index_with(entries)
    accelerated = FaissVectorIndex(HashingEmbedder(dimension=2))
    assert accelerated.query([1.0, 0.0], k=3) == []

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        accelerated.add(entries)

    assert not [w for w in caught if "Normalizing L2" in str(w.message)]
    assert accelerated.size() == 5
    for query in ([1.0, 0.0], [0.3, -0.7], [0.0, 2.0]):
        for k in range(1, 8):
            expected = flat.query(query, k=k)
            actual = accelerated.query(query, k=k)
            assert [m.document.doc_id for m in actual] == [m.document.doc_id for m in expected]
            assert [m.score for m in actual] == pytest.approx([m.score for m in expected], abs=1e-6)
            assert [m.rank for m in actual] == list(range(1, len(expected) + 1))


def test_faiss_rejects_wrong_dimension_and_invalid_k() -> None:
    pytest.importorskip("faiss")
    pytest.importorskip("langchain_community")
    from coffee_assistant.retrieval.vector_index import FaissVectorIndex

    index = FaissVectorIndex(HashingEmbedder(dimension=2))
    index.add([_entry("a", [1.0, 0.0]), _entry("b", [0.0, 1.0])])

    with pytest.raises(DimensionMismatch):
        index.add([_entry("c", [1.0, 1.0]), _entry("d", [1.0, 1.0, 1.0])])
    with pytest.raises(DimensionMismatch):
        index.query([1.0, 0.0, 0.0], k=1)
    with pytest.raises(ValueError):
        index.query([1.0, 0.0], k=0)

    assert index.size() == 2
    assert index.dimension == 2
    assert [m.document.doc_id for m in index.query([1.0, 1.0], k=5)] == ["a", "b"]
