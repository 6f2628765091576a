"""
Health check endpoints.
"""

import shutil

from fastapi import APIRouter, Request

from viralcut import __version__
from viralcut.schemas.responses import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the service is running.
    """
    return HealthResponse(status="healthy", version=__version__)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Ready once the queue and store exist. The worker, storage backend and
    ffmpeg are reported but do not gate readiness.
    """
    state = request.app.state
    queue = getattr(state, "job_queue", None)
    store = getattr(state, "video_store", None)
    worker = getattr(state, "worker_task", None)
    storage = getattr(state, "storage", None)

    components = {
        "queue": "ready" if queue is not None else "not_initialized",
        "video_store": "ready" if store is not None else "not_initialized",
        "worker": "running" if worker is not None and not worker.done() else "stopped",
        "storage": "configured" if storage is not None else "local_only",
        "ffmpeg": "available" if shutil.which("ffmpeg") else "not_found",
    }

    return ReadinessResponse(
        ready=queue is not None and store is not None,
        components=components,
    )
