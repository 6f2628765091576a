"""
Tests for the in-memory job queue.
"""

import asyncio

import pytest

from viralcut.services.job_queue import InMemoryJobQueue, QueueJob, QueueName


def _job(job_id, priority=0, **data):
    return QueueJob(id=job_id, type="process", video_id=f"video-{job_id}", priority=priority, data=data)


class TestLanes:
    """Tests for FIFO lanes."""

    def test_fifo(self, job_queue):
        job_queue.enqueue(QueueName.PROCESS, _job("a"))
        job_queue.enqueue(QueueName.PROCESS, _job("b"))

        assert job_queue.dequeue(QueueName.PROCESS).id == "a"
        assert job_queue.dequeue(QueueName.PROCESS).id == "b"
        assert job_queue.dequeue(QueueName.PROCESS) is None

    def test_enqueue_stamps_created_at(self, job_queue):
        stamped = job_queue.enqueue(QueueName.UPLOAD, _job("a"))
        assert stamped.created_at > 0

    def test_lanes_are_independent(self, job_queue):
        job_queue.enqueue(QueueName.RENDER, _job("a"))
        assert job_queue.size(QueueName.RENDER) == 1
        assert job_queue.size(QueueName.PROCESS) == 0

    def test_string_lane_names(self, job_queue):
        job_queue.enqueue("process", _job("a"))
        assert job_queue.size(QueueName.PROCESS) == 1

    def test_peek_returns_copy(self, job_queue):
        job_queue.enqueue(QueueName.PROCESS, _job("a", retry_count=0))

        snapshot = job_queue.peek(QueueName.PROCESS)
        snapshot[0].data["retry_count"] = 99
        snapshot.clear()

        assert job_queue.size(QueueName.PROCESS) == 1
        assert job_queue.peek(QueueName.PROCESS)[0].data["retry_count"] == 0

    def test_clear(self, job_queue):
        job_queue.enqueue(QueueName.FAILED, _job("a"))
        job_queue.clear(QueueName.FAILED)
        assert job_queue.size(QueueName.FAILED) == 0

    def test_stats(self, job_queue):
        job_queue.enqueue(QueueName.PROCESS, _job("a"))
        job_queue.enqueue(QueueName.COMPLETED, _job("b"))
        assert job_queue.stats() == {
            "upload": 0,
            "process": 1,
            "render": 0,
            "completed": 1,
            "failed": 0,
        }


class TestPriority:
    """Priority insertion goes before the first strictly lower priority."""

    def test_insertion_order(self, job_queue):
        for job_id, priority in [("a", 1), ("b", 1), ("c", 2), ("d", 0), ("e", 1)]:
            job_queue.enqueue_priority(QueueName.PROCESS, _job(job_id, priority))

        assert [j.id for j in job_queue.peek(QueueName.PROCESS)] == ["c", "a", "b", "e", "d"]

    def test_equal_priorities_keep_insertion_order(self, job_queue):
        for job_id in ["x", "y", "z"]:
            job_queue.enqueue_priority(QueueName.PROCESS, _job(job_id, 3))

        assert [job_queue.dequeue_priority(QueueName.PROCESS).id for _ in range(3)] == ["x", "y", "z"]

    def test_lowest_priority_appends(self, job_queue):
        job_queue.enqueue_priority(QueueName.PROCESS, _job("a", 5))
        job_queue.enqueue_priority(QueueName.PROCESS, _job("b", -1))
        assert [j.id for j in job_queue.peek(QueueName.PROCESS)] == ["a", "b"]


class TestJobStatus:
    def test_set_and_get(self, job_queue):
        job_queue.set_job_status("v1", progress=30, current_step="Analyzing with AI", time_remaining=120)

        status = job_queue.get_job_status("v1")
        assert status["progress"] == 30
        assert status["current_step"] == "Analyzing with AI"
        assert status["time_remaining"] == 120
        assert status["error"] is None

    def test_unknown(self, job_queue):
        assert job_queue.get_job_status("missing") is None


class TestProcessQueue:
    """Tests for the polling worker."""

    @pytest.mark.asyncio
    async def test_success_moves_to_completed(self, job_queue):
        seen = []

        async def processor(job):
            seen.append(job.id)

        job_queue.enqueue(QueueName.PROCESS, _job("a"))
        job_queue.enqueue(QueueName.PROCESS, _job("b"))

        handled = await job_queue.process_queue(QueueName.PROCESS, processor, drain=True)

        assert handled == 2
        assert seen == ["a", "b"]
        assert job_queue.size(QueueName.PROCESS) == 0
        assert [j.id for j in job_queue.peek(QueueName.COMPLETED)] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_retries_then_fails(self, job_queue):
        attempts = []

        async def processor(job):
            attempts.append(job.data.get("retry_count", 0))
            raise RuntimeError("boom")

        job_queue.enqueue(QueueName.PROCESS, _job("a"))

        handled = await job_queue.process_queue(QueueName.PROCESS, processor, max_retries=3, drain=True)

        assert handled == 3
        assert attempts == [0, 1, 2]
        assert job_queue.size(QueueName.COMPLETED) == 0
        failed = job_queue.peek(QueueName.FAILED)
        assert len(failed) == 1
        assert failed[0].data["error"] == "boom"
        assert failed[0].data["retry_count"] == 3

    @pytest.mark.asyncio
    async def test_failure_handler_runs_only_on_final_failure(self, job_queue):
        failed_jobs = []

        async def processor(job):
            raise RuntimeError("boom")

        async def on_failed(job):
            failed_jobs.append((job.id, job.data["retry_count"], job.data["error"]))

        job_queue.enqueue(QueueName.PROCESS, _job("a"))
        await job_queue.process_queue(
            QueueName.PROCESS, processor, max_retries=3, drain=True, on_failed=on_failed,
        )

        assert failed_jobs == [("a", 3, "boom")]

    @pytest.mark.asyncio
    async def test_failure_handler_error_does_not_stop_worker(self, job_queue):
        async def processor(job):
            if job.id == "a":
                raise RuntimeError("boom")

        async def on_failed(job):
            raise RuntimeError("handler broke")

        job_queue.enqueue(QueueName.PROCESS, _job("a"))
        job_queue.enqueue(QueueName.PROCESS, _job("b"))

        handled = await job_queue.process_queue(
            QueueName.PROCESS, processor, max_retries=1, drain=True, on_failed=on_failed,
        )

        assert handled == 2
        assert job_queue.size(QueueName.COMPLETED) == 1

    @pytest.mark.asyncio
    async def test_retry_then_success(self, job_queue):
        async def flaky(job):
            if job.data.get("retry_count", 0) == 0:
                raise RuntimeError("first attempt fails")

        job_queue.enqueue(QueueName.PROCESS, _job("a"))

        await job_queue.process_queue(QueueName.PROCESS, flaky, drain=True)

        completed = job_queue.peek(QueueName.COMPLETED)
        assert len(completed) == 1
        assert completed[0].data["retry_count"] == 1
        assert job_queue.size(QueueName.FAILED) == 0

    @pytest.mark.asyncio
    async def test_single_attempt_when_max_retries_is_one(self, job_queue):
        async def processor(job):
            raise ValueError("bad input")

        job_queue.enqueue(QueueName.PROCESS, _job("a"))
        handled = await job_queue.process_queue(QueueName.PROCESS, processor, max_retries=1, drain=True)

        assert handled == 1
        assert job_queue.size(QueueName.FAILED) == 1

    @pytest.mark.asyncio
    async def test_stop_event_ends_idle_loop(self, job_queue):
        stop_event = asyncio.Event()

        async def processor(job):
            pass

        task = asyncio.create_task(job_queue.process_queue(
            QueueName.PROCESS, processor, poll_interval=0.01, stop_event=stop_event,
        ))
        await asyncio.sleep(0.03)
        job_queue.enqueue(QueueName.PROCESS, _job("late"))
        await asyncio.sleep(0.05)
        stop_event.set()

        handled = await asyncio.wait_for(task, timeout=1.0)

        assert handled == 1
        assert job_queue.size(QueueName.COMPLETED) == 1

    @pytest.mark.asyncio
    async def test_already_stopped(self, job_queue):
        stop_event = asyncio.Event()
        stop_event.set()
        job_queue.enqueue(QueueName.PROCESS, _job("a"))

        async def processor(job):
            raise AssertionError("should not run")

        assert await job_queue.process_queue(QueueName.PROCESS, processor, stop_event=stop_event) == 0
        assert job_queue.size(QueueName.PROCESS) == 1
