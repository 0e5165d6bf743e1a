"""
Structured operation logging for the vector database.
One line per operation: "Operation: <name>, Status: <status>, Details: {...}".
"""

import logging
import os
from typing import Any, Dict, Optional, Sequence

MAX_VECTOR_PREVIEW = 5


class StructuredLogger:
    """Structured logger for vector store, index and snapshot operations."""

    def __init__(self, name: str = "memvector"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

        # One handler per named logger, even when constructed repeatedly
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_vector_operation(self, operation: str, record_id: Optional[str], details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector record operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        level = logging.WARNING if status in ("failed", "rolled_back") else logging.INFO
        self.log_operation(f"vector.{operation}", status, log_details, level)

    def log_index_operation(self, operation: str, index_type: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log an index-level operation (clear, rebuild)."""
        log_details = {"index_type": index_type}
        if details:
            log_details.update(details)

        self.log_operation(f"index.{operation}", status, log_details)

    def log_duplicate_rejection(self, existing_id: str, similarity: float, threshold: float):
        """Log a create rejected by the near-duplicate check."""
        log_details = {
            "existing_id": existing_id,
            "similarity": round(similarity, 6),
            "threshold": threshold
        }
        self.log_operation("vector.create", "duplicate", log_details, logging.WARNING)

    def log_snapshot_operation(self, operation: str, path: str, record_count: int, status: str = "success", details: Dict[str, Any] = None):
        """Log snapshot export/import."""
        log_details = {"path": path, "record_count": record_count}
        if details:
            log_details.update(details)

        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation(f"snapshot.{operation}", status, log_details, level)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)


def summarize_vector(vector: Optional[Sequence[float]]) -> str:
    """Short printable form of a vector for log lines."""
    if vector is None:
        return "None"
    values = [round(float(v), 4) for v in list(vector)[:MAX_VECTOR_PREVIEW]]
    suffix = ", ..." if len(vector) > MAX_VECTOR_PREVIEW else ""
    return f"[{', '.join(str(v) for v in values)}{suffix}] (dim={len(vector)})"


# Global logger instance
logger = StructuredLogger()
