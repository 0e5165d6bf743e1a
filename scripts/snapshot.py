#!/usr/bin/env python3
"""
Snapshot utility for the vector database.

Inspects, verifies and de-duplicates JSON snapshot files written by
VectorStore.export_snapshot (and by the API server when SNAPSHOT_PATH is set).
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from memvector.core.config import get_index, get_similarity_threshold
from memvector.core.service import VectorService
from memvector.core.store import VectorStore, read_snapshot
from memvector.errors import DuplicateVector, VectorDBError
from memvector.vector.types import VectorRecord


def cmd_inspect(args) -> int:
    snapshot = read_snapshot(args.snapshot_path)
    print(f"Snapshot: {args.snapshot_path}")
    print(f"Version: {snapshot['version']}")
    print(f"Created: {snapshot.get('created_at', 'unknown')}")
    print(f"Index type: {snapshot.get('index_type', 'unknown')}")
    print(f"Dimension: {snapshot.get('dimension')}")
    print(f"Records: {len(snapshot['records'])}")
    print("Checksum: OK")
    if args.verbose:
        for data in snapshot["records"]:
            print(f"  {data['id']}  dim={data.get('dimension')}  metadata={data.get('metadata')}")
    return 0


def cmd_verify(args) -> int:
    store = VectorStore(get_index())
    loaded = store.import_snapshot(args.snapshot_path)
    if not store.is_consistent():
        print("ERROR: Store and index disagree after import")
        return 1

    stats = store.index_stats()
    print(f"Loaded {loaded} records into a {stats.index_type} index (dimension={stats.dimension})")
    return 0


def cmd_dedupe(args) -> int:
    threshold = args.threshold if args.threshold is not None else get_similarity_threshold()
    snapshot = read_snapshot(args.snapshot_path)
    service = VectorService(VectorStore(get_index()), similarity_threshold=threshold)

    rejected = 0
    for data in snapshot["records"]:
        try:
            service.create(VectorRecord.from_dict(data))
        except DuplicateVector as e:
            rejected += 1
            if args.verbose:
                print(f"  dropped {data['id']} (similar to {e.existing_id}, {e.similarity:.4f})")

    written = service.store.export_snapshot(args.output_path)
    print(f"Kept {written} records, dropped {rejected} near-duplicates (threshold={threshold})")
    print(f"Written to: {args.output_path}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Inspect and maintain vector database snapshots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s inspect vectors.json            # Show header and validate checksum
  %(prog)s verify vectors.json             # Load into the configured index
  %(prog)s dedupe vectors.json clean.json  # Drop near-duplicates

Environment variables:
- INDEX_TYPE=dense|sparse|faiss (default dense)
- VECTOR_DIMENSION=... (optional)
- SIMILARITY_THRESHOLD=0.95 (used by dedupe)
        """
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show per-record details")
    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser("inspect", help="Show snapshot header and validate checksum")
    inspect_parser.add_argument("snapshot_path", help="Path to the snapshot file")
    inspect_parser.set_defaults(func=cmd_inspect)

    verify_parser = subparsers.add_parser("verify", help="Load the snapshot into a fresh store")
    verify_parser.add_argument("snapshot_path", help="Path to the snapshot file")
    verify_parser.set_defaults(func=cmd_verify)

    dedupe_parser = subparsers.add_parser("dedupe", help="Re-create every record through the duplicate check")
    dedupe_parser.add_argument("snapshot_path", help="Path to the source snapshot file")
    dedupe_parser.add_argument("output_path", help="Path for the de-duplicated snapshot")
    dedupe_parser.add_argument("--threshold", "-t", type=float, help="Similarity threshold (default: SIMILARITY_THRESHOLD)")
    dedupe_parser.set_defaults(func=cmd_dedupe)

    args = parser.parse_args(argv)

    try:
        return args.func(args)
    except VectorDBError as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
