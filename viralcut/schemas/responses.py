"""
Response schemas for the ViralCut API.

These shapes are what the browser UI polls and renders.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field

from viralcut.schemas.video import Video


class UploadResponse(BaseModel):
    """Successful upload envelope."""

    success: bool = Field(True, description="Always true for accepted uploads")
    video: Video = Field(..., description="The synthesized video record")
    message: str = Field(..., description="Human readable confirmation")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "video": {
                    "id": "video_1718000000000_k3j9x0a2b",
                    "user_id": "demo_user",
                    "title": "my-clip",
                    "original_url": "",
                    "status": "queued",
                    "style_config": {
                        "style": "modern",
                        "pace": "medium",
                        "colors": {"primary": "#FF6B6B", "secondary": "#4ECDC4", "accent": "#FFE66D"},
                    },
                    "format": "mp4",
                    "aspect_ratio": "16:9",
                    "created_at": "2024-06-10T12:00:00+00:00",
                    "updated_at": "2024-06-10T12:00:00+00:00",
                },
                "message": "Video uploaded successfully. Processing will start shortly.",
            }
        }


class ErrorResponse(BaseModel):
    """Error envelope for rejected uploads."""

    success: bool = False
    error: str = Field(..., description="Error message")
    code: Optional[str] = Field(default=None, description="Machine readable error code")


class StatusResponse(BaseModel):
    """Processing status for a video."""

    status: str = Field(..., description="queued, processing, completed or error")
    progress: int = Field(..., ge=0, le=100, description="Progress percentage")
    current_step: Optional[str] = Field(default=None, alias="currentStep")
    time_remaining: Optional[int] = Field(default=None, alias="timeRemaining")
    video: Optional[Video] = None
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class QueueStatsResponse(BaseModel):
    """Sizes of every queue lane."""

    upload: int
    process: int
    render: int
    completed: int
    failed: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool = Field(..., description="Whether the service is ready to accept uploads")
    components: Dict[str, str] = Field(..., description="Status per component")
