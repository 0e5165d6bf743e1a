"""
Vector store - single source of truth for which vectors exist.
Owns the id -> record map and keeps the nearest-neighbour index in lock-step with it.
"""

import hashlib
import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from util.logging import logger

from ..errors import InvalidArgument, SnapshotError, ValidationError, VectorDBError
from ..vector.index import INearestNeighborIndex, DenseIndex
from ..vector.types import IndexStats, VectorRecord
from .validation import require_id, validate_record

SNAPSHOT_VERSION = 1


def _records_checksum(records: List[Dict[str, Any]]) -> str:
    payload = json.dumps(records, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()


class VectorStore:
    """In-memory vector storage backed by a nearest-neighbour index.

    Map and index are only mutated together inside ``_commit_lock``, so a
    reader taking a snapshot never sees them disagree. Index queries run
    under the index's own lock and do not block on the commit lock.
    """

    def __init__(self, index: Optional[INearestNeighborIndex] = None):
        self.index = index if index is not None else DenseIndex()
        self._records: Dict[str, VectorRecord] = {}
        self._commit_lock = threading.Lock()

    def store(self, record: VectorRecord) -> None:
        """Insert a record into the map, then the index; roll the map back if the index refuses it."""
        if not record.id:
            raise InvalidArgument("Cannot store a vector without an id")

        with self._commit_lock:
            if record.id in self._records:
                raise InvalidArgument(f"Vector with id {record.id} already exists; delete it before re-inserting")

            self._records[record.id] = record
            try:
                self.index.add(record.id, record.embedding)
            except Exception as e:
                del self._records[record.id]
                logger.log_vector_operation("store", record.id, {"error": str(e)}, status="rolled_back")
                raise

        logger.log_vector_operation("store", record.id, {"dimension": record.dimension})

    def retrieve(self, record_id: str) -> Optional[VectorRecord]:
        return self._records.get(record_id)

    def retrieve_all(self) -> List[VectorRecord]:
        with self._commit_lock:
            return list(self._records.values())

    def remove(self, record_id: str) -> bool:
        """Remove from map and index. Absent ids are a no-op."""
        with self._commit_lock:
            if self._records.pop(record_id, None) is None:
                return False
            self.index.remove(record_id)

        logger.log_vector_operation("remove", record_id)
        return True

    def find_nearest_with_scores(self, query_vector, k: int) -> List[Tuple[VectorRecord, float]]:
        """Rank with the index, then resolve ids back to records.

        An id removed between ranking and resolution is dropped.
        """
        results = []
        for hit in self.index.query_with_scores(query_vector, k):
            record = self._records.get(hit.id)
            if record is not None:
                results.append((record, hit.score))
        return results

    def find_nearest(self, query_vector, k: int) -> List[VectorRecord]:
        return [record for record, _ in self.find_nearest_with_scores(query_vector, k)]

    def size(self) -> int:
        return len(self._records)

    def ids(self) -> List[str]:
        with self._commit_lock:
            return list(self._records.keys())

    def clear(self) -> None:
        with self._commit_lock:
            count = len(self._records)
            self._records.clear()
            self.index.clear()

        logger.log_index_operation("clear", self.index.index_type.value, {"removed": count})

    def is_consistent(self) -> bool:
        """Map ids and index ids are the same set."""
        with self._commit_lock:
            return set(self._records.keys()) == set(self.index.ids())

    def index_stats(self) -> IndexStats:
        return self.index.get_stats()

    # --- Snapshot ---
    def export_snapshot(self, path) -> int:
        """Write every record to a JSON snapshot file; returns the record count."""
        path = Path(path)
        with self._commit_lock:
            records = [record.to_dict() for record in self._records.values()]
            dimension = self.index.dimension

        snapshot = {
            "version": SNAPSHOT_VERSION,
            "created_at": datetime.now().isoformat(),
            "index_type": self.index.index_type.value,
            "dimension": dimension,
            "record_count": len(records),
            "checksum": _records_checksum(records),
            "records": records,
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        # Write beside the target and rename so a crash never leaves half a file
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(snapshot, f)
        tmp_path.replace(path)

        logger.log_snapshot_operation("export", str(path), len(records))
        return len(records)

    def import_snapshot(self, path, replace: bool = False) -> int:
        """Load records from a snapshot file through ``store()``; returns the count loaded.

        Every record is validated before anything is stored or cleared; a
        malformed record raises SnapshotError. With ``replace`` the store is
        cleared first. Ids already present raise InvalidArgument; records
        stored before that failure stay stored.
        """
        path = Path(path)
        snapshot = read_snapshot(path)

        try:
            records = _parse_records(snapshot["records"], path)
        except SnapshotError as e:
            logger.log_snapshot_operation("import", str(path), 0, status="failed", details={"error": str(e)})
            raise

        if replace:
            self.clear()

        loaded = 0
        try:
            for record in records:
                self.store(record)
                loaded += 1
        except VectorDBError as e:
            logger.log_snapshot_operation("import", str(path), loaded, status="failed", details={"error": str(e)})
            raise

        logger.log_snapshot_operation("import", str(path), loaded)
        return loaded


def _parse_records(entries: List[Any], path: Path) -> List[VectorRecord]:
    records = []
    for position, data in enumerate(entries):
        if not isinstance(data, dict):
            raise SnapshotError(f"Malformed snapshot {path}: record {position} is not an object")
        try:
            record = VectorRecord.from_dict(data)
            validate_record(record)
            require_id(record.id)
        except ValidationError as e:
            raise SnapshotError(f"Invalid record {position} in snapshot {path}: {e}") from e
        records.append(record)
    return records


def read_snapshot(path) -> Dict[str, Any]:
    """Read and verify a snapshot file."""
    path = Path(path)
    if not path.exists():
        raise SnapshotError(f"Snapshot file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            snapshot = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e

    if not isinstance(snapshot, dict) or not isinstance(snapshot.get("records"), list):
        raise SnapshotError(f"Malformed snapshot {path}: missing records")

    if snapshot.get("version") != SNAPSHOT_VERSION:
        raise SnapshotError(f"Unsupported snapshot version: {snapshot.get('version')}")

    if snapshot.get("checksum") != _records_checksum(snapshot["records"]):
        raise SnapshotError(f"Snapshot checksum mismatch: {path}")

    return snapshot
