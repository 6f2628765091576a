"""
In-memory job queue with named lanes, priority insertion and a polling worker.

All mutating methods are synchronous and never await, so on a single event
loop each call is atomic with respect to other coroutines.
"""

import asyncio
import copy
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, Optional

logger = logging.getLogger(__name__)


class QueueName(str, Enum):
    """Queue lanes."""

    UPLOAD = "upload"
    PROCESS = "process"
    RENDER = "render"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class QueueJob:
    """Envelope held in a lane."""

    id: str
    type: Literal["upload", "process", "render"]
    video_id: str
    priority: int = 0
    data: dict[str, Any] = field(default_factory=dict)
    created_at: int = 0  # epoch milliseconds, stamped on enqueue


JobProcessor = Callable[[QueueJob], Awaitable[None]]
FailureHandler = Callable[[QueueJob], Awaitable[None]]


class InMemoryJobQueue:
    """
    Process-local queue.

    Lanes are plain lists and job statuses a plain dict keyed by job or video id.
    Nothing survives a restart.
    """

    def __init__(self):
        self._lanes: dict[QueueName, list[QueueJob]] = {name: [] for name in QueueName}
        self._job_statuses: dict[str, dict[str, Any]] = {}

    def _stamp(self, job: QueueJob) -> QueueJob:
        return replace(job, created_at=int(time.time() * 1000))

    # ============ QUEUE OPERATIONS ============

    def enqueue(self, lane: QueueName, job: QueueJob) -> QueueJob:
        """Append a job to the end of a lane."""
        stamped = self._stamp(job)
        self._lanes[QueueName(lane)].append(stamped)
        logger.info(f"Job {job.id} added to {QueueName(lane).value} queue")
        return stamped

    def dequeue(self, lane: QueueName) -> Optional[QueueJob]:
        """Remove and return the job at the head of a lane, or None."""
        jobs = self._lanes[QueueName(lane)]
        if not jobs:
            return None
        job = jobs.pop(0)
        logger.debug(f"Job {job.id} dequeued from {QueueName(lane).value}")
        return job

    def enqueue_priority(self, lane: QueueName, job: QueueJob) -> QueueJob:
        """
        Insert a job before the first job with strictly lower priority.

        Higher numbers run first. Jobs of equal priority keep insertion order.
        """
        stamped = self._stamp(job)
        jobs = self._lanes[QueueName(lane)]

        insert_index = next(
            (i for i, existing in enumerate(jobs) if existing.priority < job.priority),
            len(jobs),
        )
        jobs.insert(insert_index, stamped)

        logger.info(
            f"Priority job {job.id} added to {QueueName(lane).value} "
            f"at position {insert_index} (priority: {job.priority})"
        )
        return stamped

    def dequeue_priority(self, lane: QueueName) -> Optional[QueueJob]:
        # Lanes filled through enqueue_priority are already ordered
        return self.dequeue(lane)

    def size(self, lane: QueueName) -> int:
        return len(self._lanes[QueueName(lane)])

    def clear(self, lane: QueueName) -> None:
        self._lanes[QueueName(lane)] = []
        logger.info(f"Queue {QueueName(lane).value} cleared")

    def peek(self, lane: QueueName) -> list[QueueJob]:
        """Copy of the jobs in a lane, head first."""
        return copy.deepcopy(self._lanes[QueueName(lane)])

    # ============ JOB STATUS TRACKING ============

    def set_job_status(
        self,
        job_id: str,
        progress: int,
        current_step: Optional[str] = None,
        time_remaining: Optional[int] = None,
        total_time: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        self._job_statuses[job_id] = {
            "progress": progress,
            "current_step": current_step,
            "time_remaining": time_remaining,
            "total_time": total_time,
            "error": error,
        }
        logger.debug(f"Job {job_id} status: {self._job_statuses[job_id]}")

    def get_job_status(self, job_id: str) -> Optional[dict[str, Any]]:
        status = self._job_statuses.get(job_id)
        return dict(status) if status else None

    def stats(self) -> dict[str, int]:
        """Lane sizes keyed by lane name."""
        return {name.value: len(jobs) for name, jobs in self._lanes.items()}

    # ============ WORKER ============

    async def process_queue(
        self,
        lane: QueueName,
        processor: JobProcessor,
        poll_interval: float = 1.0,
        max_retries: int = 3,
        stop_event: Optional[asyncio.Event] = None,
        drain: bool = False,
        on_failed: Optional[FailureHandler] = None,
    ) -> int:
        """
        Run jobs from a lane until stopped.

        Successful jobs are moved to COMPLETED. A failed job is re-enqueued on
        the same lane with ``data["retry_count"]`` incremented while the new count
        is below ``max_retries``; after that it is moved to FAILED with
        ``data["error"]`` set.

        Args:
            lane: Lane to consume
            processor: Coroutine function called with each job
            poll_interval: Seconds to wait when the lane is empty
            max_retries: Attempts before a job is moved to FAILED
            stop_event: Loop exits once this is set
            drain: Return as soon as the lane is empty
            on_failed: Awaited with each job moved to FAILED

        Returns:
            Number of jobs taken from the lane (retries included)
        """
        lane = QueueName(lane)
        handled = 0
        logger.info(f"Starting queue processor for {lane.value}")

        while not (stop_event and stop_event.is_set()):
            job = self.dequeue(lane)

            if job is None:
                if drain:
                    break
                await self._idle(poll_interval, stop_event)
                continue

            handled += 1
            logger.info(f"Processing job {job.id}")

            try:
                await processor(job)
            except Exception as e:
                logger.error(f"Job {job.id} failed: {e}")
                retry_count = job.data.get("retry_count", 0) + 1

                if retry_count < max_retries:
                    logger.info(f"Retrying job {job.id} (attempt {retry_count}/{max_retries})")
                    self.enqueue(lane, replace(job, data={**job.data, "retry_count": retry_count}))
                else:
                    logger.warning(f"Job {job.id} failed after {max_retries} attempts")
                    failed = self.enqueue(
                        QueueName.FAILED,
                        replace(job, data={**job.data, "retry_count": retry_count, "error": str(e)}),
                    )
                    if on_failed is not None:
                        await self._notify_failed(on_failed, failed)
            else:
                self.enqueue(QueueName.COMPLETED, job)
                logger.info(f"Job {job.id} completed")

        logger.info(f"Queue processor for {lane.value} stopped after {handled} jobs")
        return handled

    async def _notify_failed(self, on_failed: FailureHandler, job: QueueJob) -> None:
        try:
            await on_failed(job)
        except Exception as e:
            logger.exception(f"Failure handler raised for job {job.id}: {e}")

    async def _idle(self, poll_interval: float, stop_event: Optional[asyncio.Event]) -> None:
        if stop_event is None:
            await asyncio.sleep(poll_interval)
            return
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=poll_interval)
        except asyncio.TimeoutError:
            pass
