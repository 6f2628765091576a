"""
Pytest configuration and fixtures.
"""

import pytest

from viralcut.config import get_settings
from viralcut.schemas.video import StyleConfig, Video
from viralcut.services.ai_analyzer import Transcription, TranscriptionWord
from viralcut.services.job_queue import InMemoryJobQueue
from viralcut.services.video_processor import VideoProcessorService
from viralcut.services.video_store import InMemoryVideoStore, utc_now_iso

UNSET_ENV = [
    "GROQ_API_KEY",
    "LLM_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "VIRALCUT_API_KEY",
    "MAX_VIDEO_SIZE_MB",
]


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """Fast, offline settings: no sleeps, no worker, no external services."""
    for name in UNSET_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SIMULATION_DELAY_SCALE", "0")
    monkeypatch.setenv("QUEUE_WORKER_ENABLED", "false")
    monkeypatch.setenv("UPLOAD_DIRECTORY", str(tmp_path / "uploads"))

    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def job_queue():
    return InMemoryJobQueue()


@pytest.fixture
def video_store():
    return InMemoryVideoStore()


@pytest.fixture
def processor(job_queue, video_store, test_settings):
    return VideoProcessorService(job_queue, video_store, test_settings)


@pytest.fixture
def video_file(tmp_path):
    """Placeholder video file on disk."""
    path = tmp_path / "source.mp4"
    path.write_bytes(b"\x00" * 2048)
    return str(path)


@pytest.fixture
def stored_video(video_store):
    """A freshly uploaded video record."""
    now = utc_now_iso()
    video = Video(
        id="video_1718000000000_abc123def",
        user_id="demo_user",
        title="source",
        status="uploading",
        style_config=StyleConfig(),
        format="mp4",
        aspect_ratio="16:9",
        created_at=now,
        updated_at=now,
    )
    video_store.save_video(video)
    return video


@pytest.fixture
def make_transcription():
    """Build a Transcription from (word, start, end) tuples."""

    def _make(words, language="en"):
        items = [TranscriptionWord(word=w, start=s, end=e) for w, s, e in words]
        return Transcription(
            text=" ".join(w for w, _, _ in words),
            words=items,
            language=language,
            duration=items[-1].end if items else 0.0,
        )

    return _make
