"""
FastAPI application entry point for ViralCut.

ViralCut takes a raw video upload with style preferences and:
1. Queues it on an in-memory processing lane
2. Runs the analysis / captioning / effects pipeline (simulated)
3. Builds the ffmpeg commands that would render the final edit
4. Reports progress to the browser through a polling endpoint
"""

import asyncio
import logging
import os
import shutil
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from viralcut import __version__
from viralcut.config import get_settings
from viralcut.routers import health, videos
from viralcut.routers.videos import UploadError
from viralcut.schemas.responses import ErrorResponse
from viralcut.services.job_queue import InMemoryJobQueue, QueueName
from viralcut.services.supabase_client import SupabaseClient
from viralcut.services.video_processor import VideoProcessorService
from viralcut.services.video_store import InMemoryVideoStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

STATIC_DIRECTORY = Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Builds the queue, store and processor, and starts the PROCESS lane worker.
    """
    settings = get_settings()
    logger.info("Starting ViralCut...")

    os.makedirs(settings.upload_directory, exist_ok=True)
    logger.info(f"Upload directory: {settings.upload_directory}")

    job_queue = InMemoryJobQueue()
    video_store = InMemoryVideoStore()
    video_processor = VideoProcessorService(job_queue, video_store, settings)

    storage = None
    if settings.storage_enabled:
        storage = SupabaseClient(settings)
    else:
        logger.info("Supabase not configured, uploads stay on local disk")

    # Store in app state for dependency injection
    app.state.job_queue = job_queue
    app.state.video_store = video_store
    app.state.video_processor = video_processor
    app.state.storage = storage

    stop_event = asyncio.Event()
    worker_task = None
    if settings.queue_worker_enabled:
        worker_task = asyncio.create_task(job_queue.process_queue(
            QueueName.PROCESS,
            video_processor.handle_queue_job,
            poll_interval=settings.queue_poll_interval_seconds,
            max_retries=settings.queue_max_retries,
            stop_event=stop_event,
            on_failed=video_processor.handle_failed_job,
        ))
        logger.info("Processing worker started")
    app.state.worker_task = worker_task

    _verify_external_tools()

    logger.info("ViralCut ready to accept uploads.")

    yield

    logger.info("Shutting down ViralCut...")
    stop_event.set()
    if worker_task is not None:
        worker_task.cancel()
        with suppress(asyncio.CancelledError):
            await worker_task

    if storage is not None:
        await storage.close()

    logger.info("Shutdown complete")


def _verify_external_tools():
    """Report whether the tools the generated commands target are installed."""
    tools = {
        "ffmpeg": "FFmpeg for rendering",
        "ffprobe": "FFprobe for metadata",
    }

    for tool, description in tools.items():
        if shutil.which(tool):
            logger.info(f"{description} available")
        else:
            logger.warning(f"{description} NOT FOUND - generated commands cannot be run on this host")


# Create FastAPI application
app = FastAPI(
    title="ViralCut",
    description="""
ViralCut - turn raw footage into captioned, effect-rich short videos.

## Features
- Upload with style, pace and color palette
- Transcription via Groq Whisper and virality scoring via a chat-completion model
- Caption, scene, silence and volume-peak heuristics over word timings
- FFmpeg command generation for captions, effects and audio cleanup

## Usage

1. Upload: `POST /api/upload`
2. Poll status: `GET /api/status/{video_id}`
3. Inspect generated commands: `GET /api/videos/{video_id}/commands`
    """,
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(UploadError)
async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
    logger.warning(f"Upload rejected ({exc.code}): {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, code=exc.code).model_dump(),
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(videos.router)


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index():
    """Serve the single-page UI."""
    return HTMLResponse((STATIC_DIRECTORY / "index.html").read_text(encoding="utf-8"))


@app.get("/api")
async def api_info():
    """API info."""
    return {
        "service": get_settings().app_name,
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }
