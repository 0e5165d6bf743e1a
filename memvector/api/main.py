"""
HTTP front-end for the vector database.
Accepts vectors or text, calls the embedding provider and the vector service; holds no storage logic.
"""

import threading
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import psutil
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from util.logging import logger

from ..core.config import (
    VERSION,
    debug_enabled,
    get_default_k,
    get_embedding_provider,
    get_snapshot_path,
    get_vector_service,
)
from ..core.service import VectorService
from ..errors import (
    DimensionMismatch,
    DuplicateVector,
    InvalidArgument,
    ValidationError,
    VectorDBError,
    VectorNotFound,
)
from ..vector.embeddings import EmbeddingProducer
from ..vector.types import VectorRecord
from .schemas import ErrorResponse, HeartbeatResponse, SearchHitResponse, VectorCreateRequest, VectorResponse

TEXT_INPUT_TYPE = "text-input"
SERVER_RUNNING = "Server is running"

_service: Optional[VectorService] = None
_embedding_provider: Optional[EmbeddingProducer] = None
_singleton_lock = threading.Lock()
_start_time = datetime.now()


def get_service() -> VectorService:
    """Process-wide vector service, built from configuration on first use."""
    global _service
    if _service is None:
        with _singleton_lock:
            if _service is None:
                _service = get_vector_service()
    return _service


def get_embedder() -> EmbeddingProducer:
    global _embedding_provider
    if _embedding_provider is None:
        with _singleton_lock:
            if _embedding_provider is None:
                _embedding_provider = get_embedding_provider()
    return _embedding_provider


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Import the configured snapshot at startup and export it at shutdown."""
    snapshot_path = get_snapshot_path()
    service = get_service()
    if snapshot_path and Path(snapshot_path).exists():
        service.store.import_snapshot(snapshot_path)
    logger.info(f"Vector database started (index={service.store.index.index_type.value}, vectors={service.count()})")

    yield

    if snapshot_path:
        service.store.export_snapshot(snapshot_path)
    logger.info("Vector database stopped")


# Initialize the FastAPI application
app = FastAPI(
    title="memvector API",
    version=VERSION,
    description="In-memory vector database with exact cosine similarity search",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan
)


def _responses(*status_codes: int) -> dict:
    """OpenAPI entries for the error bodies a route can return."""
    return {code: {"model": ErrorResponse} for code in status_codes}


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    body = ErrorResponse(timestamp=datetime.now(), status=status_code, error=error, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(400, "Validation failed", str(exc))


@app.exception_handler(DimensionMismatch)
async def dimension_mismatch_handler(request: Request, exc: DimensionMismatch):
    return _error_response(400, "Dimension mismatch", str(exc))


@app.exception_handler(InvalidArgument)
async def invalid_argument_handler(request: Request, exc: InvalidArgument):
    return _error_response(400, "Invalid Argument", str(exc))


@app.exception_handler(DuplicateVector)
async def duplicate_vector_handler(request: Request, exc: DuplicateVector):
    return _error_response(409, "Duplicate vector", str(exc))


@app.exception_handler(VectorNotFound)
async def vector_not_found_handler(request: Request, exc: VectorNotFound):
    return _error_response(404, "Not Found", str(exc))


@app.exception_handler(VectorDBError)
async def vector_db_error_handler(request: Request, exc: VectorDBError):
    logger.error(f"Vector database error: {exc}")
    return _error_response(500, "Internal Server Error", str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return _error_response(400, "Validation failed", "; ".join(messages))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    message = str(exc) if debug_enabled() else "An unexpected error occurred"
    return _error_response(500, "Internal Server Error", message)


# Define fixed paths BEFORE /api/vectors/{id} to avoid path parameter conflict
@app.post("/api/vectors", response_model=VectorResponse, responses=_responses(400, 409))
def create_vector(request: VectorCreateRequest, service: VectorService = Depends(get_service)):
    """Create a vector directly from vector data."""
    record = service.create(request.to_record())
    return VectorResponse.from_record(record)


@app.get("/api/vectors/text", response_model=VectorResponse, responses=_responses(400, 409))
def create_vector_from_text(text: str = Query(..., min_length=1),
                            service: VectorService = Depends(get_service),
                            embedder: EmbeddingProducer = Depends(get_embedder)):
    """Embed raw text and store the resulting vector."""
    if not embedder.is_available():
        raise InvalidArgument("Embedding provider is not available")

    embedding = embedder.embed(text)
    record = service.create(VectorRecord(id=None, embedding=embedding, metadata=TEXT_INPUT_TYPE))
    return VectorResponse.from_record(record)


@app.get("/api/vectors", response_model=List[VectorResponse])
def get_all_vectors(service: VectorService = Depends(get_service)):
    return [VectorResponse.from_record(record) for record in service.get_all()]


@app.get("/api/vectors/count", response_model=int)
def get_vector_count(service: VectorService = Depends(get_service)):
    return service.count()


@app.post("/api/vectors/search", response_model=List[SearchHitResponse], responses=_responses(400))
def find_similar_vectors(query_vector: List[float] = Body(...),
                         k: Optional[int] = Query(None),
                         service: VectorService = Depends(get_service)):
    """Find the k most similar vectors to the query vector."""
    if k is None:
        k = get_default_k()
    hits = service.find_similar_with_scores(query_vector, k)
    return [SearchHitResponse.from_hit(record, score) for record, score in hits]


@app.get("/api/vectors/{vector_id}", response_model=VectorResponse, responses=_responses(404))
def get_vector(vector_id: str, service: VectorService = Depends(get_service)):
    record = service.get(vector_id)
    if record is None:
        raise VectorNotFound(vector_id)
    return VectorResponse.from_record(record)


@app.delete("/api/vectors/{vector_id}", responses=_responses(400))
def delete_vector(vector_id: str, service: VectorService = Depends(get_service)):
    """Delete a vector by id; deleting an unknown id still succeeds."""
    service.delete(vector_id)
    return {"deleted": vector_id}


@app.get("/api/health")
def health_check():
    """Simple health check."""
    logger.debug("Health check requested")
    return SERVER_RUNNING


def _format_size(num_bytes: int) -> str:
    return f"{num_bytes / (1024.0 * 1024.0):.2f} MB"


def _memory_stats() -> dict:
    process_memory = psutil.Process().memory_info()
    system_memory = psutil.virtual_memory()
    return {
        "rss": _format_size(process_memory.rss),
        "vms": _format_size(process_memory.vms),
        "system_total": _format_size(system_memory.total),
        "system_available": _format_size(system_memory.available)
    }


@app.get("/api/health/heartbeat", response_model=HeartbeatResponse)
def heartbeat(service: VectorService = Depends(get_service)):
    """Detailed health check with process memory and index statistics."""
    now = datetime.now()
    stats = service.stats()
    return HeartbeatResponse(
        status="UP",
        version=VERSION,
        timestamp=now,
        start_time=_start_time,
        uptime=f"{int((now - _start_time).total_seconds())} seconds",
        memory=_memory_stats(),
        vector_count=stats["vector_count"],
        similarity_threshold=stats["similarity_threshold"],
        index=stats["index"]
    )
