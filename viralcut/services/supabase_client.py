"""
Supabase client - object storage and row persistence on the hosted backend.

Storage goes through Supabase's S3-compatible endpoint with boto3. Rows go
through the PostgREST API with httpx. Every failure surfaces as StorageError
with a message prefixed by the operation that failed.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from viralcut.config import Settings, get_settings
from viralcut.schemas.video import (
    AIAnalysis,
    Caption,
    ProcessingJob,
    Video,
    VisualEffect,
)

logger = logging.getLogger(__name__)


class SupabaseClient:
    """
    Service for the hosted storage bucket and database tables.

    Tables: videos, processing_jobs, video_analytics, captions, visual_effects.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        s3_client=None,
    ):
        """
        Initialize the client.

        Args:
            settings: Settings to read the URL, keys and bucket from
            http_client: Pre-built client for the REST API (tests pass a mock transport)
            s3_client: Pre-built boto3 S3 client
        """
        self.settings = settings or get_settings()
        if not self.settings.supabase_url or not self.settings.supabase_service_key:
            raise StorageError("Supabase is not configured (SUPABASE_URL / SUPABASE_SERVICE_KEY)")

        self.base_url = self.settings.supabase_url.rstrip("/")
        self.bucket = self.settings.supabase_bucket
        self._http_client = http_client

        if s3_client is None:
            client_kwargs = {
                "endpoint_url": f"{self.base_url}/storage/v1/s3",
                "region_name": self.settings.supabase_region,
            }
            if self.settings.supabase_s3_access_key_id and self.settings.supabase_s3_secret_access_key:
                client_kwargs["aws_access_key_id"] = self.settings.supabase_s3_access_key_id
                client_kwargs["aws_secret_access_key"] = self.settings.supabase_s3_secret_access_key
            s3_client = boto3.client("s3", **client_kwargs)

        self._s3 = s3_client
        logger.info(f"Supabase client initialized for bucket: {self.bucket}")

    # ============ STORAGE ============

    def upload_file(
        self,
        local_path: str,
        path: str,
        content_type: Optional[str] = None,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> str:
        """
        Upload a local file to the bucket.

        Returns:
            Object path inside the bucket

        Raises:
            StorageError: If the object exists and upsert is False, or the upload fails
        """
        logger.info(f"Uploading {local_path} to {self.bucket}/{path}")

        if not upsert and self._object_exists(path):
            raise StorageError(f"Upload failed: {path} already exists")

        extra_args = {"CacheControl": f"max-age={cache_control}"}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self._s3.upload_file(local_path, self.bucket, path, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError, OSError) as e:
            logger.error(f"Failed to upload to storage: {e}")
            raise StorageError(f"Upload failed: {e}") from e

        file_size = os.path.getsize(local_path)
        logger.info(f"Uploaded {file_size / 1024 / 1024:.2f} MB to {path}")
        return path

    def _object_exists(self, path: str) -> bool:
        try:
            self._s3.head_object(Bucket=self.bucket, Key=path)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageError(f"Upload failed: {e}") from e

    def get_public_url(self, path: str) -> str:
        """Public URL of an object in a public bucket."""
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def get_signed_url(self, path: str, expires_in: int = 3600) -> str:
        try:
            return self._s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to create signed URL: {e}") from e

    def delete_file(self, path: str) -> None:
        try:
            self._s3.delete_object(Bucket=self.bucket, Key=path)
            logger.info(f"Deleted {self.bucket}/{path}")
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Delete failed: {e}") from e

    def list_files(self, prefix: str = "", limit: int = 100) -> list[dict[str, Any]]:
        """
        List objects under a prefix, newest first.
        """
        try:
            response = self._s3.list_objects_v2(Bucket=self.bucket, Prefix=prefix, MaxKeys=limit)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"List failed: {e}") from e

        objects = sorted(
            response.get("Contents", []),
            key=lambda obj: obj["LastModified"],
            reverse=True,
        )
        return [
            {"name": obj["Key"], "size": obj.get("Size", 0), "last_modified": obj["LastModified"]}
            for obj in objects
        ]

    # ============ DATABASE ============

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=f"{self.base_url}/rest/v1",
                timeout=httpx.Timeout(30.0, connect=10.0),
                headers={
                    "apikey": self.settings.supabase_service_key,
                    "Authorization": f"Bearer {self.settings.supabase_service_key}",
                    "Prefer": "return=representation",
                },
            )
        return self._http_client

    async def _request(
        self,
        method: str,
        table: str,
        error_prefix: str,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        single: bool = False,
    ) -> Any:
        client = await self._get_client()

        try:
            response = await client.request(method, f"/{table}", params=params, json=json)
        except httpx.HTTPError as e:
            logger.error(f"{error_prefix}: {e}")
            raise StorageError(f"{error_prefix}: {e}") from e

        if response.status_code >= 400:
            error_text = response.text[:500]
            logger.error(f"{error_prefix} ({response.status_code}): {error_text}")
            raise StorageError(f"{error_prefix}: ({response.status_code}) {error_text}")

        data = response.json() if response.content else []
        if not single:
            return data

        rows = data if isinstance(data, list) else [data]
        if not rows:
            raise StorageError(f"{error_prefix}: no rows returned")
        return rows[0]

    async def create_video(self, video: Video) -> Video:
        row = await self._request(
            "POST", "videos", "Failed to create video",
            json=video.model_dump(mode="json", exclude_none=True),
            single=True,
        )
        return Video.model_validate(row)

    async def update_video_status(self, video_id: str, status: str, **updates: Any) -> Video:
        payload = {
            "status": status,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            **updates,
        }
        row = await self._request(
            "PATCH", "videos", "Failed to update video status",
            params={"id": f"eq.{video_id}"},
            json=payload,
            single=True,
        )
        return Video.model_validate(row)

    async def get_video(self, video_id: str) -> Video:
        row = await self._request(
            "GET", "videos", "Failed to get video",
            params={"select": "*", "id": f"eq.{video_id}"},
            single=True,
        )
        return Video.model_validate(row)

    async def create_processing_job(
        self,
        video_id: str,
        status: str = "pending",
        metadata: Optional[dict[str, Any]] = None,
    ) -> ProcessingJob:
        row = await self._request(
            "POST", "processing_jobs", "Failed to create processing job",
            json={
                "video_id": video_id,
                "status": status,
                "progress": 0,
                "metadata": metadata or {},
            },
            single=True,
        )
        return ProcessingJob.model_validate(row)

    async def update_job_progress(
        self,
        job_id: str,
        progress: int,
        current_step: Optional[str] = None,
        status: Optional[str] = None,
    ) -> ProcessingJob:
        """
        Update progress, stamping started_at when a job starts running and
        completed_at when it reaches a terminal status.
        """
        payload: dict[str, Any] = {"progress": progress, "current_step": current_step}
        now = datetime.now(timezone.utc).isoformat()

        if status:
            payload["status"] = status
        if status == "running":
            payload["started_at"] = now
        if status in ("completed", "failed"):
            payload["completed_at"] = now

        row = await self._request(
            "PATCH", "processing_jobs", "Failed to update job progress",
            params={"id": f"eq.{job_id}"},
            json=payload,
            single=True,
        )
        return ProcessingJob.model_validate(row)

    async def save_ai_analysis(self, video_id: str, analysis: AIAnalysis) -> dict[str, Any]:
        """Insert an analytics row and copy the analysis onto the video."""
        analysis_data = analysis.model_dump(mode="json")
        row = await self._request(
            "POST", "video_analytics", "Failed to save AI analysis",
            json={"video_id": video_id, **analysis_data},
            single=True,
        )
        await self._request(
            "PATCH", "videos", "Failed to save AI analysis",
            params={"id": f"eq.{video_id}"},
            json={"ai_analysis": analysis_data},
        )
        return row

    async def save_captions(self, video_id: str, captions: list[Caption]) -> list[Caption]:
        rows = await self._request(
            "POST", "captions", "Failed to save captions",
            json=[{**c.model_dump(mode="json", exclude_none=True), "video_id": video_id} for c in captions],
        )
        return [Caption.model_validate(row) for row in rows]

    async def get_captions(self, video_id: str) -> list[Caption]:
        rows = await self._request(
            "GET", "captions", "Failed to get captions",
            params={"select": "*", "video_id": f"eq.{video_id}", "order": "start_time.asc"},
        )
        return [Caption.model_validate(row) for row in rows]

    async def save_visual_effects(self, video_id: str, effects: list[VisualEffect]) -> list[VisualEffect]:
        rows = await self._request(
            "POST", "visual_effects", "Failed to save visual effects",
            json=[{**e.model_dump(mode="json"), "video_id": video_id} for e in effects],
        )
        return [VisualEffect.model_validate(row) for row in rows]

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


class StorageError(Exception):
    """Exception raised when a storage or database call fails."""
    pass
