"""
Video Processor - Simulated end-to-end editing pipeline.

Replays a fixed list of steps with non-blocking sleeps, reporting progress to
the video store and the queue's status map. Along the way it produces the
artifacts a real run would use: analysis, captions, visual effects and the
ffmpeg command list (stored in the job metadata, never executed).
"""

import asyncio
import logging
import os
import time
import uuid
from typing import Any, Optional

from viralcut.config import Settings, get_caption_preset, get_settings
from viralcut.schemas.video import (
    AIAnalysis,
    Caption,
    CaptionStyle,
    ProcessingJob,
    StyleConfig,
    VisualEffect,
)
from viralcut.services.ai_analyzer import generate_captions, mock_analysis, mock_transcription
from viralcut.services.ffmpeg_commands import generate_complete_editing_pipeline
from viralcut.services.job_queue import InMemoryJobQueue, QueueJob, QueueName
from viralcut.services.video_store import InMemoryVideoStore, utc_now_iso

logger = logging.getLogger(__name__)


# (progress, label, delay seconds)
PROCESSING_STEPS: list[tuple[int, str, float]] = [
    (5, "Validating video", 0.5),
    (15, "Extracting audio", 1.0),
    (30, "Analyzing with AI", 1.5),
    (50, "Generating visual effects", 1.0),
    (70, "Rendering video", 2.0),
    (92, "Generating thumbnail", 0.5),
    (95, "Uploading", 1.0),
    (98, "Finalizing", 0.5),
]

STEP_KEYS = {
    "Validating video": "validation",
    "Extracting audio": "extraction",
    "Analyzing with AI": "analysis",
    "Generating visual effects": "effects",
    "Rendering video": "rendering",
    "Generating thumbnail": "thumbnail",
    "Uploading": "upload",
}

# Duration reported for simulated runs
MOCK_VIDEO_DURATION = 120.0

# Zoom length per pace, in seconds
ZOOM_LENGTHS = {"fast": 1.0, "medium": 1.5, "intense": 0.75}


def calculate_time_remaining(
    current_step: str,
    step_progress: float,
    video_duration: float,
    step_durations: Optional[dict[str, int]] = None,
) -> int:
    """
    Estimate seconds left in the pipeline.

    The remainder of the current step plus every later step, scaled by
    ``min(video_duration / 60, 3)``. Never reports less than 5 seconds.
    Unknown step labels are treated as rendering.
    """
    durations = step_durations or get_settings().step_durations
    step_names = list(durations)
    step_key = STEP_KEYS.get(current_step, "rendering")
    step_index = step_names.index(step_key)

    current_remaining = durations[step_key] * (1 - step_progress / 100)
    future_time = sum(durations[name] for name in step_names[step_index + 1:])

    multiplier = min(video_duration / 60, 3)
    return max(5, round((current_remaining + future_time) * multiplier))


def build_visual_effects(
    video_id: str,
    analysis: AIAnalysis,
    style_config: StyleConfig,
    duration: float,
) -> list[VisualEffect]:
    """
    Derive effects from the analysis.

    A color grade over the whole video, a transition at each scene change and
    a zoom on each strong emotion peak (intensity >= 0.8).
    """
    created_at = utc_now_iso()

    def _effect(effect_type: str, start: float, end: float, priority: int, **parameters: Any) -> VisualEffect:
        return VisualEffect(
            id=f"effect_{uuid.uuid4().hex[:12]}",
            video_id=video_id,
            effect_type=effect_type,
            start_time=start,
            end_time=end,
            parameters=parameters,
            priority=priority,
            created_at=created_at,
        )

    effects = [_effect("color_grade", 0.0, duration, 0)]

    for scene in analysis.scene_changes:
        effects.append(_effect(
            "transition",
            scene.timestamp,
            scene.timestamp + 0.5,
            2,
            duration=0.5,
            type="dissolve" if scene.type == "dissolve" else "fade",
        ))

    zoom_length = ZOOM_LENGTHS[style_config.pace]
    zoom_scale = 1.3 if style_config.style == "energetic" else 1.2
    for peak in analysis.emotion_peaks:
        if peak.intensity >= 0.8:
            effects.append(_effect(
                "zoom",
                peak.timestamp,
                peak.timestamp + zoom_length,
                1,
                scale=zoom_scale,
            ))

    return effects


class VideoProcessorService:
    """
    Runs the simulated pipeline against the shared queue and store.
    """

    def __init__(
        self,
        queue: InMemoryJobQueue,
        store: InMemoryVideoStore,
        settings: Optional[Settings] = None,
    ):
        self.queue = queue
        self.store = store
        self.settings = settings or get_settings()

    async def _sleep(self, seconds: float) -> None:
        scaled = seconds * self.settings.simulation_delay_scale
        if scaled > 0:
            await asyncio.sleep(scaled)

    async def process_video(
        self,
        video_id: str,
        user_id: str,
        video_path: str,
        style_config: StyleConfig,
        retry_count: int = 0,
        final_attempt: bool = True,
    ) -> ProcessingJob:
        """
        Run the pipeline for one video.

        A failed attempt that will be retried puts the video back to queued. Only a
        final attempt marks it as an error.

        Returns:
            The completed ProcessingJob

        Raises:
            VideoProcessingError: If the video or its file is missing
            Exception: Anything raised by a step, after the failure is recorded
        """
        logger.info(f"Starting video processing for {video_id} (user: {user_id}, attempt {retry_count + 1})")

        start_time = time.monotonic()
        job = self.store.create_job(ProcessingJob(
            id=f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
            video_id=video_id,
            status="running",
            current_step="Validating video",
            retry_count=retry_count,
            metadata={"style_config": style_config.model_dump(), "video_path": video_path},
            started_at=utc_now_iso(),
            created_at=utc_now_iso(),
        ))

        try:
            if self.store.update_video_status(video_id, "processing") is None:
                raise VideoProcessingError(f"Video not found: {video_id}")

            analysis: Optional[AIAnalysis] = None
            captions: list[Caption] = []
            effects: list[VisualEffect] = []
            metadata = dict(job.metadata)

            for progress, step, delay in PROCESSING_STEPS:
                await self._sleep(delay)

                if step == "Validating video":
                    if not os.path.exists(video_path):
                        raise VideoProcessingError(f"Video file not found: {video_path}")
                    metadata["source"] = self.get_video_metadata(video_path)

                elif step == "Analyzing with AI":
                    analysis = mock_analysis()
                    caption_style = CaptionStyle(**get_caption_preset(style_config.style))
                    captions = generate_captions(
                        mock_transcription(),
                        [k.word.lower() for k in analysis.keywords],
                        video_id=video_id,
                        words_per_caption=self.settings.words_per_caption,
                        style=caption_style,
                    )
                    self.store.save_ai_analysis(video_id, analysis)
                    self.store.save_captions(video_id, captions)

                elif step == "Generating visual effects":
                    effects = build_visual_effects(video_id, analysis, style_config, MOCK_VIDEO_DURATION)
                    self.store.save_visual_effects(video_id, effects)

                elif step == "Rendering video":
                    output_path = f"{os.path.splitext(video_path)[0]}_processed.mp4"
                    metadata["output_path"] = output_path
                    metadata["commands"] = generate_complete_editing_pipeline(
                        video_path,
                        output_path,
                        captions,
                        effects,
                        style_config,
                        video_width=self.settings.target_output_width,
                        video_height=self.settings.target_output_height,
                    )
                    logger.info(f"Built {len(metadata['commands'])} render commands for {video_id}")

                time_remaining = calculate_time_remaining(
                    step, progress, MOCK_VIDEO_DURATION, self.settings.step_durations
                )
                self.store.update_job(job.id, progress=progress, current_step=step, metadata=metadata)
                self.queue.set_job_status(
                    video_id,
                    progress=progress,
                    current_step=step,
                    time_remaining=time_remaining,
                )

            total_time = round(time.monotonic() - start_time)
            completed_job = self.store.update_job(
                job.id,
                status="completed",
                progress=100,
                current_step="Completed",
                completed_at=utc_now_iso(),
            )
            self.queue.set_job_status(
                video_id,
                progress=100,
                current_step="Completed",
                time_remaining=0,
                total_time=total_time,
            )
            self.store.update_video_status(
                video_id,
                "completed",
                processed_url=self.settings.sample_processed_url,
                thumbnail_url=self.settings.sample_thumbnail_url,
                duration=MOCK_VIDEO_DURATION,
                ai_analysis=analysis,
                error_message=None,
            )

            logger.info(f"Video processing completed for {video_id} in {total_time}s")
            return completed_job

        except Exception as e:
            logger.error(f"Video processing failed for {video_id}: {e}")
            error_message = str(e) or type(e).__name__

            self.store.update_job(
                job.id,
                status="failed",
                progress=0,
                current_step="Failed",
                error_message=error_message,
                completed_at=utc_now_iso(),
            )
            self.queue.set_job_status(
                video_id,
                progress=0,
                current_step="Failed",
                time_remaining=0,
                error=error_message,
            )
            self.store.update_video_status(
                video_id, "error" if final_attempt else "queued", error_message=error_message
            )
            raise

    def queue_video_processing(
        self,
        video_id: str,
        user_id: str,
        video_path: str,
        style_config: StyleConfig,
    ) -> QueueJob:
        """Put a video on the PROCESS lane and mark it queued."""
        logger.info(f"Queueing video {video_id} for processing")

        job = self.queue.enqueue_priority(QueueName.PROCESS, QueueJob(
            id=video_id,
            type="process",
            video_id=video_id,
            priority=1,
            data={
                "user_id": user_id,
                "video_path": video_path,
                "style_config": style_config.model_dump(),
            },
        ))
        self.store.update_video_status(video_id, "queued")
        return job

    async def handle_queue_job(self, job: QueueJob) -> None:
        """
        Queue processor adapter for PROCESS lane entries.

        The worker decides whether a failure is retried, so the video stays
        queued here and handle_failed_job records the final error.
        """
        await self.process_video(
            job.video_id,
            job.data["user_id"],
            job.data["video_path"],
            StyleConfig.model_validate(job.data.get("style_config") or {}),
            retry_count=job.data.get("retry_count", 0),
            final_attempt=False,
        )

    async def handle_failed_job(self, job: QueueJob) -> None:
        """Mark a video as failed once its job has used up its retries."""
        error_message = job.data.get("error") or "Processing failed"
        logger.warning(f"Video {job.video_id} failed after {job.data.get('retry_count', 0)} attempts")
        self.store.update_video_status(job.video_id, "error", error_message=error_message)

    def get_video_metadata(self, file_path: str) -> dict[str, Any]:
        """Source metadata. Canned values, no probing."""
        return {
            "duration": MOCK_VIDEO_DURATION,
            "width": 1920,
            "height": 1080,
            "format": "mp4",
            "size": 50 * 1024 * 1024,
        }


class VideoProcessingError(Exception):
    """Exception raised when a video cannot be processed."""
    pass
