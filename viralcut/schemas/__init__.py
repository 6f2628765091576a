"""
Pydantic schemas for domain records and API responses.
"""

from viralcut.schemas.responses import (
    ErrorResponse,
    HealthResponse,
    QueueStatsResponse,
    ReadinessResponse,
    StatusResponse,
    UploadResponse,
)
from viralcut.schemas.video import (
    AIAnalysis,
    Caption,
    CaptionStyle,
    ColorPalette,
    ProcessingJob,
    StyleConfig,
    Video,
    VisualEffect,
)

__all__ = [
    "AIAnalysis",
    "Caption",
    "CaptionStyle",
    "ColorPalette",
    "ProcessingJob",
    "StyleConfig",
    "Video",
    "VisualEffect",
    "UploadResponse",
    "ErrorResponse",
    "StatusResponse",
    "QueueStatsResponse",
    "HealthResponse",
    "ReadinessResponse",
]
