"""
Tests for the Supabase storage and row client.

REST calls run against httpx.MockTransport; the S3 client is a MagicMock.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest
from botocore.exceptions import ClientError

from viralcut.config import Settings
from viralcut.schemas.video import AIAnalysis
from viralcut.services.supabase_client import StorageError, SupabaseClient

BASE_URL = "https://proj.supabase.co"

VIDEO_ROW = {
    "id": "video_1",
    "user_id": "demo_user",
    "title": "clip",
    "status": "processing",
    "style_config": {"style": "modern", "pace": "medium"},
    "created_at": "2024-06-10T12:00:00+00:00",
    "updated_at": "2024-06-10T12:00:00+00:00",
}


@pytest.fixture
def settings():
    return Settings(supabase_url=BASE_URL, supabase_service_key="service-key", supabase_bucket="videos")


@pytest.fixture
def s3(mocker):
    return mocker.MagicMock()


@pytest.fixture
def requests_seen():
    return []


def _client(settings, s3, requests_seen, handler):
    def recording(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request)
        return handler(request)

    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(recording),
        base_url=f"{BASE_URL}/rest/v1",
    )
    return SupabaseClient(settings, http_client=http_client, s3_client=s3)


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


class TestConfiguration:
    def test_unconfigured_raises(self):
        with pytest.raises(StorageError, match="not configured"):
            SupabaseClient(Settings(supabase_url=None, supabase_service_key=None))


class TestDatabase:
    """Tests for PostgREST row access."""

    @pytest.mark.asyncio
    async def test_get_video(self, settings, s3, requests_seen):
        client = _client(settings, s3, requests_seen, lambda r: httpx.Response(200, json=[VIDEO_ROW]))

        video = await client.get_video("video_1")

        assert video.id == "video_1"
        assert video.status == "processing"
        request = requests_seen[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/videos"
        assert request.url.params["id"] == "eq.video_1"
        await client.close()

    @pytest.mark.asyncio
    async def test_create_video_posts_row(self, settings, s3, requests_seen):
        client = _client(settings, s3, requests_seen, lambda r: httpx.Response(201, json=[VIDEO_ROW]))
        video = await client.get_video("video_1")
        requests_seen.clear()

        created = await client.create_video(video)

        assert created.id == "video_1"
        body = json.loads(requests_seen[0].content)
        assert requests_seen[0].method == "POST"
        assert body["style_config"]["colors"]["accent"] == "#FFE66D"
        assert "processed_url" not in body
        await client.close()

    @pytest.mark.asyncio
    async def test_create_processing_job(self, settings, s3, requests_seen):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(201, json=[{"id": "job_1", "created_at": "2024-06-10T12:00:00+00:00", **body}])

        client = _client(settings, s3, requests_seen, handler)

        job = await client.create_processing_job("video_1", metadata={"source": "upload"})

        assert job.id == "job_1"
        assert job.status == "pending"
        assert job.progress == 0
        assert job.metadata == {"source": "upload"}
        assert requests_seen[0].url.path == "/rest/v1/processing_jobs"
        await client.close()

    @pytest.mark.asyncio
    async def test_get_video_no_rows(self, settings, s3, requests_seen):
        client = _client(settings, s3, requests_seen, lambda r: httpx.Response(200, json=[]))

        with pytest.raises(StorageError, match="^Failed to get video: no rows returned$"):
            await client.get_video("missing")
        await client.close()

    @pytest.mark.asyncio
    async def test_error_status_is_prefixed(self, settings, s3, requests_seen):
        client = _client(settings, s3, requests_seen, lambda r: httpx.Response(400, text="bad filter"))

        with pytest.raises(StorageError) as exc_info:
            await client.update_video_status("video_1", "completed")

        assert str(exc_info.value) == "Failed to update video status: (400) bad filter"
        await client.close()

    @pytest.mark.asyncio
    async def test_update_job_progress_stamps(self, settings, s3, requests_seen):
        def handler(request):
            body = json.loads(request.content)
            row = {"id": "job_1", "video_id": "video_1", "created_at": "2024-06-10T12:00:00+00:00", **body}
            return httpx.Response(200, json=[row])

        client = _client(settings, s3, requests_seen, handler)

        running = await client.update_job_progress("job_1", 10, "Validating video", status="running")
        done = await client.update_job_progress("job_1", 100, "Completed", status="completed")
        partial = await client.update_job_progress("job_1", 40)

        assert running.started_at is not None
        assert running.completed_at is None
        assert done.completed_at is not None
        assert "status" not in json.loads(requests_seen[2].content)
        assert partial.progress == 40
        await client.close()

    @pytest.mark.asyncio
    async def test_get_captions_ordered_by_start(self, settings, s3, requests_seen):
        client = _client(settings, s3, requests_seen, lambda r: httpx.Response(200, json=[]))

        assert await client.get_captions("video_1") == []
        assert requests_seen[0].url.params["order"] == "start_time.asc"
        await client.close()

    @pytest.mark.asyncio
    async def test_save_ai_analysis_writes_both_tables(self, settings, s3, requests_seen):
        client = _client(
            settings, s3, requests_seen, lambda r: httpx.Response(201, json=[{"id": "a1"}]),
        )

        row = await client.save_ai_analysis("video_1", AIAnalysis(virality_score=0.9))

        assert row == {"id": "a1"}
        assert [(r.method, r.url.path) for r in requests_seen] == [
            ("POST", "/rest/v1/video_analytics"),
            ("PATCH", "/rest/v1/videos"),
        ]
        assert json.loads(requests_seen[1].content)["ai_analysis"]["virality_score"] == 0.9
        await client.close()


class TestStorage:
    """Tests for bucket operations."""

    def test_upload_new_object(self, settings, s3, tmp_path):
        local = tmp_path / "clip.mp4"
        local.write_bytes(b"\x00" * 10)
        s3.head_object.side_effect = _client_error("404")
        client = SupabaseClient(settings, s3_client=s3)

        assert client.upload_file(str(local), "demo_user/clip.mp4", "video/mp4") == "demo_user/clip.mp4"

        args, kwargs = s3.upload_file.call_args
        assert args == (str(local), "videos", "demo_user/clip.mp4")
        assert kwargs["ExtraArgs"] == {"CacheControl": "max-age=3600", "ContentType": "video/mp4"}

    def test_upload_existing_without_upsert(self, settings, s3, tmp_path):
        local = tmp_path / "clip.mp4"
        local.write_bytes(b"\x00")
        client = SupabaseClient(settings, s3_client=s3)

        with pytest.raises(StorageError, match="already exists"):
            client.upload_file(str(local), "demo_user/clip.mp4")
        s3.upload_file.assert_not_called()

    def test_upsert_skips_existence_check(self, settings, s3, tmp_path):
        local = tmp_path / "clip.mp4"
        local.write_bytes(b"\x00")
        client = SupabaseClient(settings, s3_client=s3)

        client.upload_file(str(local), "demo_user/clip.mp4", upsert=True)

        s3.head_object.assert_not_called()
        s3.upload_file.assert_called_once()

    def test_upload_failure_is_prefixed(self, settings, s3, tmp_path):
        local = tmp_path / "clip.mp4"
        local.write_bytes(b"\x00")
        s3.head_object.side_effect = _client_error("NoSuchKey")
        s3.upload_file.side_effect = _client_error("AccessDenied")
        client = SupabaseClient(settings, s3_client=s3)

        with pytest.raises(StorageError, match="^Upload failed: "):
            client.upload_file(str(local), "demo_user/clip.mp4")

    def test_public_url(self, settings, s3):
        client = SupabaseClient(settings, s3_client=s3)
        assert client.get_public_url("demo_user/clip.mp4") == (
            f"{BASE_URL}/storage/v1/object/public/videos/demo_user/clip.mp4"
        )

    def test_signed_url(self, settings, s3):
        s3.generate_presigned_url.return_value = "https://signed.example/clip"
        client = SupabaseClient(settings, s3_client=s3)

        assert client.get_signed_url("demo_user/clip.mp4", expires_in=60) == "https://signed.example/clip"
        s3.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "videos", "Key": "demo_user/clip.mp4"},
            ExpiresIn=60,
        )

    def test_list_files_newest_first(self, settings, s3):
        older = datetime(2024, 1, 1, tzinfo=timezone.utc)
        newer = datetime(2024, 6, 1, tzinfo=timezone.utc)
        s3.list_objects_v2.return_value = {
            "Contents": [
                {"Key": "a.mp4", "Size": 1, "LastModified": older},
                {"Key": "b.mp4", "Size": 2, "LastModified": newer},
            ]
        }
        client = SupabaseClient(settings, s3_client=s3)

        files = client.list_files(prefix="demo_user/")

        assert [f["name"] for f in files] == ["b.mp4", "a.mp4"]
        s3.list_objects_v2.assert_called_once_with(Bucket="videos", Prefix="demo_user/", MaxKeys=100)

    def test_delete_failure(self, settings, s3):
        s3.delete_object.side_effect = _client_error("AccessDenied")
        client = SupabaseClient(settings, s3_client=s3)

        with pytest.raises(StorageError, match="^Delete failed: "):
            client.delete_file("demo_user/clip.mp4")
