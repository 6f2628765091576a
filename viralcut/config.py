"""
Configuration module using Pydantic Settings for environment variable management.

Only the values that differ between deployments are exposed as environment
variables. Processing constants and presets are hardcoded.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings


DEFAULT_COLORS = {
    "primary": "#FF6B6B",
    "secondary": "#4ECDC4",
    "accent": "#FFE66D",
}


# ============================================================
# CAPTION PRESETS
# ============================================================

class CaptionPreset:
    """Caption presets keyed by the video style chosen at upload."""

    MODERN = "modern"
    MINIMAL = "minimal"
    ENERGETIC = "energetic"


def get_caption_preset(style_id: str) -> dict:
    """
    Get the default caption styling for a video style.

    Args:
        style_id: One of the CaptionPreset constants

    Returns:
        Dict of CaptionStyle fields

    Raises:
        ValueError: If style_id is not recognized
    """
    presets = {
        CaptionPreset.MODERN: {
            "font_size": 60,
            "font_color": "#FFFFFF",
            "background_color": "#000000",
            "opacity": 0.8,
            "position": "bottom",
            "animation": "fade",
        },
        CaptionPreset.MINIMAL: {
            "font_size": 52,
            "font_color": "#FFFFFF",
            "background_color": "#000000",
            "opacity": 0.5,
            "position": "bottom",
            "animation": None,
        },
        CaptionPreset.ENERGETIC: {
            "font_size": 72,
            "font_color": "#FFFFFF",
            "background_color": "#1A1A1A",
            "opacity": 0.9,
            "position": "center",
            "animation": "bounce",
        },
    }

    if style_id not in presets:
        valid_styles = list(presets.keys())
        raise ValueError(f"Unknown video style: {style_id}. Valid styles: {valid_styles}")

    return presets[style_id]


def get_available_presets() -> list[dict]:
    """
    Get list of available styles with metadata for the upload form.
    """
    return [
        {
            "id": CaptionPreset.MODERN,
            "name": "Modern",
            "description": "Boxed white captions at the bottom with fade-in",
        },
        {
            "id": CaptionPreset.MINIMAL,
            "name": "Minimal",
            "description": "Smaller captions on a light box, no animation",
        },
        {
            "id": CaptionPreset.ENERGETIC,
            "name": "Energetic",
            "description": "Large centered captions with bounce",
        },
    ]


class Settings(BaseSettings):
    """
    Application settings.

    Only deployment-specific configuration is loaded from environment variables.
    """

    # ============================================================
    # ENVIRONMENT VARIABLES
    # ============================================================

    # Application
    app_name: str = "viralcut"
    log_level: str = "INFO"

    # Upload limits
    max_video_size_mb: int = 500
    upload_directory: str = "/tmp/viralcut/uploads"

    # Transcription (Whisper via Groq)
    groq_api_key: Optional[str] = None

    # Chat completion (OpenAI-compatible endpoint)
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4"

    # Hosted storage / database backend
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    supabase_bucket: str = "videos"
    supabase_s3_access_key_id: Optional[str] = None
    supabase_s3_secret_access_key: Optional[str] = None
    supabase_region: str = "us-east-1"

    # Security - API authentication for the upload endpoint
    viralcut_api_key: Optional[str] = None

    # Worker
    queue_worker_enabled: bool = True
    queue_poll_interval_seconds: float = 1.0
    queue_max_retries: int = 3
    simulation_delay_scale: float = 1.0

    # ============================================================
    # HARDCODED SETTINGS
    # ============================================================

    @property
    def max_video_size_bytes(self) -> int:
        return self.max_video_size_mb * 1024 * 1024

    @property
    def allowed_mime_types(self) -> tuple[str, ...]:
        return ("video/mp4", "video/quicktime", "video/x-msvideo")

    @property
    def demo_user_id(self) -> str:
        return "demo_user"

    @property
    def default_aspect_ratio(self) -> Literal["9:16", "16:9", "1:1"]:
        return "16:9"

    # Estimated seconds per pipeline stage, in execution order
    @property
    def step_durations(self) -> dict[str, int]:
        return {
            "validation": 3,
            "extraction": 8,
            "analysis": 15,
            "effects": 10,
            "rendering": 50,
            "thumbnail": 5,
            "upload": 9,
        }

    @property
    def transcription_model(self) -> str:
        return "whisper-large-v3-turbo"

    @property
    def llm_temperature(self) -> float:
        return 0.7

    @property
    def words_per_caption(self) -> int:
        return 5

    @property
    def silence_threshold_seconds(self) -> float:
        return 1.0

    @property
    def scene_gap_threshold_seconds(self) -> float:
        return 2.0

    # Rendering targets used when building commands
    @property
    def target_output_width(self) -> int:
        return 1080

    @property
    def target_output_height(self) -> int:
        return 1920

    @property
    def caption_font_file(self) -> str:
        return "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"

    # Sample media returned for completed simulated runs
    @property
    def sample_processed_url(self) -> str:
        return "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4"

    @property
    def sample_thumbnail_url(self) -> str:
        return "https://images.unsplash.com/photo-1574717024653-61fd2cf4d44d?w=400&h=300&fit=crop"

    @property
    def storage_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
