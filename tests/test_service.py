"""
Test cases for VectorService: validation, duplicate rejection and the create gate.
"""

import math
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest
import numpy as np

from memvector.core.service import VectorService
from memvector.core.store import VectorStore
from memvector.errors import (
    DimensionMismatch,
    DuplicateVector,
    InvalidArgument,
    ValidationError,
)
from memvector.vector.index import DenseIndex, SparseIndex
from memvector.vector.similarity import cosine_similarity
from memvector.vector.types import VectorRecord

SIMILARITY_THRESHOLD = 0.95


@pytest.fixture(params=[DenseIndex, SparseIndex], ids=["dense", "sparse"])
def service(request):
    return VectorService(VectorStore(request.param()), similarity_threshold=SIMILARITY_THRESHOLD)


def _vector(embedding, record_id=None, metadata="test"):
    return VectorRecord(id=record_id, embedding=embedding, metadata=metadata)


def _at_angle(degrees):
    radians = math.radians(degrees)
    return [math.cos(radians), math.sin(radians)]


def test_create_assigns_id(service):
    result = service.create(_vector([0.1, 0.2, 0.3]))

    assert result.id is not None
    uuid.UUID(result.id)
    assert service.count() == 1


def test_create_keeps_supplied_id(service):
    result = service.create(_vector([0.1, 0.2, 0.3], record_id="my-id"))
    assert result.id == "my-id"
    assert service.get("my-id") is result


def test_round_trip(service):
    created = service.create(_vector([0.5, -1.5, 2.0, 0.25]))

    fetched = service.get(created.id)
    assert fetched.embedding.tolist() == [0.5, -1.5, 2.0, 0.25]
    assert fetched.dimension == 4


def test_stored_embedding_is_immutable(service):
    source = np.array([1.0, 2.0, 3.0])
    created = service.create(_vector(source))

    source[0] = 99.0
    assert service.get(created.id).embedding[0] == 1.0
    with pytest.raises(ValueError):
        created.embedding[0] = 5.0


@pytest.mark.parametrize("record", [
    None,
    VectorRecord(id=None, embedding=None),
    VectorRecord(id=None, embedding=[]),
    VectorRecord(id=None, embedding=[1.0, 2.0, 3.0], dimension=2),
    VectorRecord(id=None, embedding=[1.0], dimension=0),
    VectorRecord(id=None, embedding=[1.0, float("nan")]),
    VectorRecord(id=None, embedding=[1.0, float("inf")]),
    VectorRecord(id="  ", embedding=[1.0, 0.0]),
], ids=["none", "null-embedding", "empty", "length-mismatch", "zero-dimension", "nan", "inf", "blank-id"])
def test_create_validation_errors(record):
    """Malformed input fails with ValidationError before the store is touched."""
    store = MagicMock()
    service = VectorService(store)

    with pytest.raises(ValidationError):
        service.create(record)

    store.find_nearest.assert_not_called()
    store.store.assert_not_called()


def test_record_rejects_non_numeric_embedding():
    with pytest.raises(ValidationError):
        VectorRecord(id=None, embedding=["a", "b"])
    with pytest.raises(ValidationError):
        VectorRecord(id=None, embedding=[[1.0, 2.0], [3.0, 4.0]])


def test_duplicate_rejection(service):
    """[1,0,0] twice is rejected; [0,1,0] is accepted."""
    first = service.create(_vector([1.0, 0.0, 0.0]))

    with pytest.raises(DuplicateVector) as exc_info:
        service.create(_vector([1.0, 0.0, 0.0]))
    assert exc_info.value.existing_id == first.id
    assert exc_info.value.similarity == pytest.approx(1.0)

    service.create(_vector([0.0, 1.0, 0.0]))
    assert service.count() == 2


def test_duplicate_at_exact_threshold_is_rejected():
    service = VectorService(VectorStore(), similarity_threshold=1.0)
    service.create(_vector([1.0, 0.0, 0.0]))

    with pytest.raises(DuplicateVector):
        service.create(_vector([2.0, 0.0, 0.0]))


def test_threshold_boundary():
    service = VectorService(VectorStore(), similarity_threshold=0.95)
    service.create(_vector(_at_angle(0)))

    # cos(15 deg) ~ 0.966 is a duplicate, cos(20 deg) ~ 0.940 is not
    with pytest.raises(DuplicateVector):
        service.create(_vector(_at_angle(15)))
    service.create(_vector(_at_angle(20)))
    assert service.count() == 2


def test_duplicate_check_uses_single_nearest_neighbour(service):
    """Only the nearest stored vector is compared against the threshold.

    x (0 deg) and y (30 deg) are below the threshold to each other and both
    get in, although a vector at 14 deg would be within the threshold of both.
    That vector is then rejected against its single nearest neighbour, x.
    """
    x = service.create(_vector(_at_angle(0)))
    y = service.create(_vector(_at_angle(30)))
    assert cosine_similarity(x.embedding, y.embedding) < SIMILARITY_THRESHOLD

    z = _at_angle(14)
    assert cosine_similarity(z, x.embedding) >= SIMILARITY_THRESHOLD
    assert cosine_similarity(z, y.embedding) >= SIMILARITY_THRESHOLD

    with patch.object(service.store, "find_nearest", wraps=service.store.find_nearest) as spy:
        with pytest.raises(DuplicateVector) as exc_info:
            service.create(_vector(z))

    assert exc_info.value.existing_id == x.id
    spy.assert_called_once()
    assert spy.call_args.args[1] == 1


def test_self_similarity(service):
    created = service.create(_vector([0.3, -0.7, 0.2, 0.9]))
    service.create(_vector([-0.9, 0.1, 0.4, 0.0]))

    hits = service.find_similar_with_scores([0.3, -0.7, 0.2, 0.9], 1)

    assert hits[0][0].id == created.id
    assert abs(hits[0][1] - 1.0) <= 1e-9
    assert service.find_similar([0.3, -0.7, 0.2, 0.9], 1)[0].id == created.id


def test_tiny_vector_duplicate_rejected_on_every_index(service):
    service.create(_vector([0.0, 1.0], record_id="a"))
    service.create(_vector([1e-11, 1e-11], record_id="b"))

    with pytest.raises(DuplicateVector) as exc_info:
        service.create(_vector([1e-11, 1e-11]))

    assert exc_info.value.existing_id == "b"
    assert service.count() == 2


def test_top_k_ordering(service):
    a = service.create(_vector([1.0, 0.1, 0.0]))
    b = service.create(_vector([1.0, 1.0, 0.0]))
    service.create(_vector([0.0, 0.0, 1.0]))

    results = service.find_similar([1.0, 0.0, 0.0], 2)

    assert [r.id for r in results] == [a.id, b.id]


def test_dimension_guard(service):
    service.create(_vector([1.0, 0.0, 0.0]))

    with pytest.raises(DimensionMismatch):
        service.find_similar([1.0, 0.0], 1)
    with pytest.raises(DimensionMismatch):
        service.create(_vector([0.0, 1.0]))
    assert service.count() == 1


def test_find_similar_invalid_arguments(service):
    service.create(_vector([1.0, 0.0]))

    with pytest.raises(InvalidArgument):
        service.find_similar([1.0, 0.0], 0)
    with pytest.raises(InvalidArgument):
        service.find_similar([1.0, 0.0], -1)
    with pytest.raises(InvalidArgument):
        service.find_similar(None, 1)
    with pytest.raises(InvalidArgument):
        service.find_similar([], 1)


def test_find_similar_on_empty_store(service):
    assert service.find_similar([1.0, 2.0], 3) == []


def test_idempotent_delete(service):
    service.create(_vector([1.0, 0.0]))

    service.delete("does-not-exist")
    service.delete("does-not-exist")

    assert service.count() == 1


def test_delete_then_recreate(service):
    """Deleting frees the slot: the same vector can be created again."""
    created = service.create(_vector([1.0, 0.0]))
    service.delete(created.id)

    assert service.get(created.id) is None
    assert service.count() == 0
    service.create(_vector([1.0, 0.0]))
    assert service.count() == 1


def test_blank_ids_rejected(service):
    with pytest.raises(ValidationError):
        service.get("")
    with pytest.raises(ValidationError):
        service.delete("   ")


def test_get_all(service):
    service.create(_vector([1.0, 0.0], record_id="a"))
    service.create(_vector([0.0, 1.0], record_id="b"))

    assert [r.id for r in service.get_all()] == ["a", "b"]


def test_invalid_threshold():
    with pytest.raises(InvalidArgument):
        VectorService(VectorStore(), similarity_threshold=1.5)


def test_concurrent_creation_of_dissimilar_vectors(service):
    """N concurrent creates of orthogonal vectors store N records with N ids."""
    n = 32

    def create(i):
        embedding = np.zeros(n)
        embedding[i] = 1.0
        return service.create(_vector(embedding))

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(create, range(n)))

    assert service.count() == n
    assert len({r.id for r in results}) == n
    assert service.store.is_consistent()


def test_concurrent_identical_creates_admit_exactly_one(service):
    """The create gate makes check-then-insert atomic."""
    outcomes = []
    barrier = threading.Barrier(16)

    def create():
        barrier.wait()
        try:
            service.create(_vector([1.0, 2.0, 3.0]))
            outcomes.append("created")
        except DuplicateVector:
            outcomes.append("duplicate")

    threads = [threading.Thread(target=create) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("created") == 1
    assert outcomes.count("duplicate") == 15
    assert service.count() == 1


def test_gate_released_after_failures(service):
    service.create(_vector([1.0, 0.0]))
    with pytest.raises(DuplicateVector):
        service.create(_vector([1.0, 0.0]))
    assert not service._create_lock.locked()

    with patch.object(service.store, "store", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError):
            service.create(_vector([0.0, 1.0]))
    assert not service._create_lock.locked()

    service.create(_vector([0.0, 1.0]))
    assert service.count() == 2


def test_reads_do_not_wait_on_create_gate(service):
    created = service.create(_vector([1.0, 0.0]))
    finished = threading.Event()

    def read():
        service.get(created.id)
        service.get_all()
        service.count()
        service.find_similar([1.0, 0.0], 1)
        service.delete("missing")
        finished.set()

    with service._create_lock:
        reader = threading.Thread(target=read)
        reader.start()
        reader.join(timeout=5)
        assert finished.is_set()


def test_stats(service):
    service.create(_vector([1.0, 0.0]))
    stats = service.stats()

    assert stats["vector_count"] == 1
    assert stats["similarity_threshold"] == SIMILARITY_THRESHOLD
    assert stats["index"]["total_vectors"] == 1
