"""
In-memory store for video records, processing jobs, captions and effects.

The application owns one instance (``app.state.video_store``) and hands it to
the processor and the handlers. Records are pydantic models and are copied on
the way in and out so callers cannot mutate stored state by accident.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from viralcut.schemas.video import (
    AIAnalysis,
    Caption,
    ProcessingJob,
    Video,
    VideoStatus,
    VisualEffect,
)

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryVideoStore:
    """Process-local video and job records."""

    def __init__(self):
        self._videos: dict[str, Video] = {}
        self._jobs: dict[str, ProcessingJob] = {}
        self._latest_job_by_video: dict[str, str] = {}
        self._captions: dict[str, list[Caption]] = {}
        self._effects: dict[str, list[VisualEffect]] = {}

    # ============ VIDEOS ============

    def save_video(self, video: Video) -> Video:
        self._videos[video.id] = video.model_copy(deep=True)
        return video

    def get_video(self, video_id: str) -> Optional[Video]:
        video = self._videos.get(video_id)
        return video.model_copy(deep=True) if video else None

    def update_video_status(
        self,
        video_id: str,
        status: VideoStatus,
        **updates: Any,
    ) -> Optional[Video]:
        """
        Set the status and any other fields of a stored video.

        Unknown ids are ignored and return None.
        """
        video = self._videos.get(video_id)
        if video is None:
            logger.warning(f"Status update for unknown video {video_id} ignored")
            return None

        updated = video.model_copy(update={
            **updates,
            "status": status,
            "updated_at": utc_now_iso(),
        })
        self._videos[video_id] = updated
        logger.debug(f"Video {video_id} -> {status}")
        return updated.model_copy(deep=True)

    def save_ai_analysis(self, video_id: str, analysis: AIAnalysis) -> None:
        video = self._videos.get(video_id)
        if video is not None:
            self._videos[video_id] = video.model_copy(update={"ai_analysis": analysis})

    # ============ PROCESSING JOBS ============

    def create_job(self, job: ProcessingJob) -> ProcessingJob:
        self._jobs[job.id] = job.model_copy(deep=True)
        self._latest_job_by_video[job.video_id] = job.id
        return job

    def get_job(self, job_id: str) -> Optional[ProcessingJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def get_latest_job(self, video_id: str) -> Optional[ProcessingJob]:
        job_id = self._latest_job_by_video.get(video_id)
        return self.get_job(job_id) if job_id else None

    def update_job(self, job_id: str, **updates: Any) -> Optional[ProcessingJob]:
        job = self._jobs.get(job_id)
        if job is None:
            return None
        updated = job.model_copy(update=updates)
        self._jobs[job_id] = updated
        return updated.model_copy(deep=True)

    # ============ CAPTIONS / EFFECTS ============

    def save_captions(self, video_id: str, captions: list[Caption]) -> None:
        self._captions[video_id] = [c.model_copy(deep=True) for c in captions]
        logger.info(f"Captions saved for video {video_id}: {len(captions)}")

    def get_captions(self, video_id: str) -> list[Caption]:
        return sorted(
            (c.model_copy(deep=True) for c in self._captions.get(video_id, [])),
            key=lambda c: c.start_time,
        )

    def save_visual_effects(self, video_id: str, effects: list[VisualEffect]) -> None:
        self._effects[video_id] = [e.model_copy(deep=True) for e in effects]
        logger.info(f"Visual effects saved for video {video_id}: {len(effects)}")

    def get_visual_effects(self, video_id: str) -> list[VisualEffect]:
        return [e.model_copy(deep=True) for e in self._effects.get(video_id, [])]
