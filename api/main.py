from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from api.deps import get_note_cache, get_response_cache
from api.routes.notes import router as notes_router
from infrastructure.metrics import get_metrics_response

app = FastAPI(title="tonetrace")

# CORS — allow the notation UI (Vite dev server) to call the API
# Include both localhost and 127.0.0.1 variants — browsers treat them as different origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notes_router)


@app.get("/health")
def health() -> dict[str, str]:
    """Return a simple liveness check."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns metrics in Prometheus text exposition format.
    """
    body, content_type = get_metrics_response()
    return Response(content=body, media_type=content_type)


@app.post("/cache/flush")
def cache_flush() -> dict[str, int]:
    """Drop every cached detect/compose response and all cached segments.

    Returns:
        Dict with ``deleted`` (Redis keys) and ``segments`` (in-memory entries).
    """
    note_cache = get_note_cache()
    segments = note_cache.size()
    note_cache.clear()
    deleted = get_response_cache().flush()
    return {"deleted": deleted, "segments": segments}


@app.get("/cache/stats")
def cache_stats() -> dict:
    """Return response cache and segment cache statistics."""
    stats = get_response_cache().stats()
    stats["segment_entries"] = get_note_cache().size()
    return stats
