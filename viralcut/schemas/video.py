"""
Domain schemas shared by the API, the processor and the storage client.

Field names are snake_case, which is also the row format of the hosted database.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from viralcut.config import DEFAULT_COLORS

VideoStatus = Literal["uploading", "queued", "processing", "completed", "error"]
VideoStyle = Literal["modern", "minimal", "energetic"]
VideoPace = Literal["fast", "medium", "intense"]
AspectRatio = Literal["9:16", "16:9", "1:1"]
JobStatus = Literal["pending", "running", "completed", "failed"]
EffectType = Literal["zoom", "transition", "color_grade", "blur", "shake", "glow"]


# ============================================================================
# Style
# ============================================================================


class ColorPalette(BaseModel):
    """Three-color palette chosen at upload."""

    primary: str = Field(default=DEFAULT_COLORS["primary"], pattern=r"^#[0-9A-Fa-f]{6}$")
    secondary: str = Field(default=DEFAULT_COLORS["secondary"], pattern=r"^#[0-9A-Fa-f]{6}$")
    accent: str = Field(default=DEFAULT_COLORS["accent"], pattern=r"^#[0-9A-Fa-f]{6}$")


class StyleConfig(BaseModel):
    """Presentation preferences attached to a video."""

    style: VideoStyle = "modern"
    pace: VideoPace = "medium"
    colors: ColorPalette = Field(default_factory=ColorPalette)


# ============================================================================
# AI analysis
# ============================================================================


class EmotionPeak(BaseModel):
    timestamp: float
    emotion: str
    intensity: float = Field(..., ge=0.0, le=1.0)


class Keyword(BaseModel):
    word: str
    frequency: int = 1
    relevance: float = Field(default=0.5, ge=0.0, le=1.0)
    timestamps: list[float] = Field(default_factory=list)


class SceneChange(BaseModel):
    timestamp: float
    type: Literal["cut", "fade", "dissolve"] = "cut"
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class SilencePeriod(BaseModel):
    start: float
    end: float
    duration: float


class VolumePeak(BaseModel):
    timestamp: float
    volume: float


class AIAnalysis(BaseModel):
    """Virality analysis from the language model plus local transcript heuristics."""

    virality_score: float = Field(default=0.5, ge=0.0, le=1.0)
    emotion_peaks: list[EmotionPeak] = Field(default_factory=list)
    keywords: list[Keyword] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    suggested_title: str = ""
    suggested_description: str = ""
    suggested_hashtags: list[str] = Field(default_factory=list)
    suggested_ctas: list[str] = Field(default_factory=list)
    scene_changes: list[SceneChange] = Field(default_factory=list)
    silence_periods: list[SilencePeriod] = Field(default_factory=list)
    volume_peaks: list[VolumePeak] = Field(default_factory=list)


# ============================================================================
# Captions and effects
# ============================================================================


class CaptionStyle(BaseModel):
    font_size: int = 60
    font_color: str = "#FFFFFF"
    background_color: str = "#000000"
    opacity: float = Field(default=0.8, ge=0.0, le=1.0)
    position: Literal["top", "center", "bottom"] = "bottom"
    animation: Optional[Literal["fade", "slide-up", "bounce", "glow"]] = None


class Caption(BaseModel):
    """A subtitle unit built from a chunk of consecutive transcript words."""

    id: str
    video_id: str
    text: str
    start_time: float
    end_time: float
    style: CaptionStyle = Field(default_factory=CaptionStyle)
    is_highlighted: bool = False
    highlight_words: list[str] = Field(default_factory=list)
    confidence: Optional[float] = None
    created_at: str


class VisualEffect(BaseModel):
    id: str
    video_id: str
    effect_type: EffectType
    start_time: float
    end_time: float
    parameters: dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    created_at: str


# ============================================================================
# Video and processing job
# ============================================================================


class Video(BaseModel):
    """A video record, created at upload and mutated by status transitions."""

    id: str
    user_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    original_url: str = ""
    processed_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    status: VideoStatus
    style_config: StyleConfig
    ai_analysis: Optional[AIAnalysis] = None
    duration: Optional[float] = None
    format: Optional[str] = None
    aspect_ratio: Optional[AspectRatio] = None
    file_size: Optional[int] = None
    error_message: Optional[str] = None
    created_at: str
    updated_at: str


class ProcessingJob(BaseModel):
    """Progress record for one run of the processing pipeline."""

    id: str
    video_id: str
    status: JobStatus = "pending"
    progress: int = Field(default=0, ge=0, le=100)
    current_step: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str
