"""
Video API Router - Upload, status polling and supporting endpoints.
"""

import asyncio
import json
import logging
import os
import shutil
import time
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from viralcut.auth import verify_api_key
from viralcut.config import get_available_presets, get_settings
from viralcut.schemas.responses import QueueStatsResponse, StatusResponse, UploadResponse
from viralcut.schemas.video import StyleConfig, Video
from viralcut.services.job_queue import InMemoryJobQueue
from viralcut.services.supabase_client import StorageError
from viralcut.services.video_processor import VideoProcessorService
from viralcut.services.video_store import InMemoryVideoStore, utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Videos"])


class UploadError(Exception):
    """Rejected upload. Rendered as {"success": false, "error", "code"}."""

    def __init__(self, message: str, code: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


# ============================================================================
# Validation
# ============================================================================


def validate_upload(
    size: int,
    content_type: Optional[str],
    max_size_bytes: int,
    allowed_mime_types: tuple[str, ...],
) -> None:
    """
    Check size and MIME type of an upload.

    A file of exactly ``max_size_bytes`` is accepted.

    Raises:
        UploadError: If the file is too large or of an unsupported type
    """
    if size > max_size_bytes:
        max_mb = max_size_bytes // (1024 * 1024)
        raise UploadError(f"File too large. Maximum: {max_mb}MB", code="file_too_large")

    if content_type not in allowed_mime_types:
        raise UploadError(
            f"Invalid format '{content_type}'. Use MP4, MOV or AVI",
            code="invalid_type",
        )


def parse_style_config(style: str, pace: str, colors: Optional[str]) -> StyleConfig:
    """
    Build a StyleConfig from the form fields.

    ``colors`` is a JSON object string. Missing colors use the default palette.
    """
    try:
        color_values = json.loads(colors) if colors else {}
    except json.JSONDecodeError as e:
        raise UploadError(f"Invalid colors JSON: {e.msg}", code="invalid_style") from e

    if not isinstance(color_values, dict):
        raise UploadError("Invalid colors JSON: expected an object", code="invalid_style")

    try:
        return StyleConfig(style=style, pace=pace, colors=color_values)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise UploadError(f"Invalid style configuration: {errors}", code="invalid_style") from e


def generate_video_id() -> str:
    return f"video_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _file_size(upload: UploadFile) -> int:
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


# ============================================================================
# Dependencies
# ============================================================================


def _from_state(request: Request, name: str) -> Any:
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return component


async def get_job_queue(request: Request) -> InMemoryJobQueue:
    return _from_state(request, "job_queue")


async def get_video_store(request: Request) -> InMemoryVideoStore:
    return _from_state(request, "video_store")


async def get_video_processor(request: Request) -> VideoProcessorService:
    return _from_state(request, "video_processor")


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/upload", response_model=UploadResponse)
async def upload_video(
    request: Request,
    video: Optional[UploadFile] = File(None),
    style: str = Form("modern"),
    pace: str = Form("medium"),
    colors: Optional[str] = Form(None),
    store: InMemoryVideoStore = Depends(get_video_store),
    processor: VideoProcessorService = Depends(get_video_processor),
    _: None = Depends(verify_api_key),
) -> UploadResponse:
    """
    Accept a video upload and queue it for processing.

    The file is spooled to the upload directory and, when a storage backend
    is configured, pushed to the bucket as well.
    """
    settings = get_settings()

    if video is None or not video.filename:
        raise UploadError("No video file provided", code="missing_file")

    size = _file_size(video)
    validate_upload(size, video.content_type, settings.max_video_size_bytes, settings.allowed_mime_types)
    style_config = parse_style_config(style, pace, colors)

    video_id = generate_video_id()
    filename = os.path.basename(video.filename)
    title, extension = os.path.splitext(filename)
    extension = extension or ".mp4"

    os.makedirs(settings.upload_directory, exist_ok=True)
    local_path = os.path.join(settings.upload_directory, f"{video_id}{extension}")

    def _spool():
        with open(local_path, "wb") as out:
            shutil.copyfileobj(video.file, out)

    loop = asyncio.get_event_loop()
    await loop.run_in_executor(None, _spool)
    logger.info(f"Spooled {filename} ({size / 1024 / 1024:.2f} MB) to {local_path}")

    original_url = ""
    storage = getattr(request.app.state, "storage", None)
    if storage is not None:
        object_path = f"{settings.demo_user_id}/{video_id}{extension}"
        try:
            await loop.run_in_executor(
                None, lambda: storage.upload_file(local_path, object_path, video.content_type)
            )
        except StorageError as e:
            # No record will point at the spooled copy
            os.remove(local_path)
            logger.warning(f"Removed {local_path} after storage push failed")
            raise UploadError(str(e), code="storage_error", status_code=status.HTTP_502_BAD_GATEWAY) from e
        original_url = storage.get_public_url(object_path)

    now = utc_now_iso()
    record = Video(
        id=video_id,
        user_id=settings.demo_user_id,
        title=title or filename,
        original_url=original_url,
        status="uploading",
        style_config=style_config,
        format=video.content_type.split("/")[1],
        aspect_ratio=settings.default_aspect_ratio,
        file_size=size,
        created_at=now,
        updated_at=now,
    )
    store.save_video(record)
    processor.queue_video_processing(video_id, record.user_id, local_path, style_config)

    logger.info(f"Video uploaded: {video_id}")

    return UploadResponse(
        success=True,
        video=store.get_video(video_id),
        message="Video uploaded successfully. Processing will start shortly.",
    )


@router.get(
    "/status/{video_id}",
    response_model=StatusResponse,
    response_model_exclude_none=True,
    responses={404: {"description": "Unknown video"}, 500: {"description": "Status lookup failed"}},
)
async def get_status(
    video_id: str,
    store: InMemoryVideoStore = Depends(get_video_store),
    queue: InMemoryJobQueue = Depends(get_job_queue),
):
    """
    Get the processing status of a video from stored job state.
    """
    try:
        video = store.get_video(video_id)
        if video is None:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"status": "error", "error": f"Video not found: {video_id}", "progress": 0},
            )

        if video.status == "completed":
            return StatusResponse(
                status="completed",
                progress=100,
                current_step="Completed",
                time_remaining=0,
                video=video,
            )

        if video.status == "error":
            return StatusResponse(
                status="error",
                progress=0,
                error=video.error_message or "Processing failed",
            )

        if video.status == "processing":
            job_status = queue.get_job_status(video_id) or {}
            return StatusResponse(
                status="processing",
                progress=job_status.get("progress", 0),
                current_step=job_status.get("current_step") or "Validating video",
                time_remaining=job_status.get("time_remaining"),
            )

        return StatusResponse(status="queued", progress=0, current_step="Queued")

    except Exception as e:
        logger.exception(f"Status check failed for {video_id}: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "error": str(e) or "Status check failed", "progress": 0},
        )


@router.get("/videos/{video_id}/commands")
async def get_render_commands(
    video_id: str,
    store: InMemoryVideoStore = Depends(get_video_store),
) -> dict:
    """
    The ffmpeg commands built for a video's latest processing run.
    """
    job = store.get_latest_job(video_id)
    if job is None or "commands" not in job.metadata:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No render commands for video: {video_id}",
        )
    return {"video_id": video_id, "job_id": job.id, "commands": job.metadata["commands"]}


@router.get("/queue/stats", response_model=QueueStatsResponse)
async def queue_stats(queue: InMemoryJobQueue = Depends(get_job_queue)) -> QueueStatsResponse:
    return QueueStatsResponse(**queue.stats())


@router.get("/styles")
async def list_styles() -> list[dict]:
    """
    List the available video styles for the upload form.
    """
    return get_available_presets()
