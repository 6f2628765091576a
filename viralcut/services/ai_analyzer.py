"""
AI Analyzer - Transcription, virality analysis and transcript heuristics.

Transcription uses Whisper via Groq. Virality analysis uses an OpenAI-compatible
chat completion endpoint in JSON mode. Scene changes, silences and volume peaks
are derived from word timings without touching the audio.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx
from groq import Groq

from viralcut.config import get_settings
from viralcut.schemas.video import (
    AIAnalysis,
    Caption,
    CaptionStyle,
    SceneChange,
    SilencePeriod,
    VolumePeak,
)

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionWord:
    """A single word with timing in seconds."""

    word: str
    start: float
    end: float
    confidence: Optional[float] = None


@dataclass
class Transcription:
    """Result of a transcription request."""

    text: str
    words: list[TranscriptionWord] = field(default_factory=list)
    language: str = "unknown"
    duration: float = 0.0


@dataclass
class VideoAnalysisResult:
    """Everything produced by a complete analysis run."""

    transcription: Transcription
    analysis: AIAnalysis
    captions: list[Caption]


VIRALITY_SYSTEM_PROMPT = """You are an expert in viral social media content analysis.
Analyze the provided video transcription and return a JSON object with:

1. virality_score (0-1): Overall viral potential
2. emotion_peaks: Array of {timestamp, emotion, intensity} for emotional high points
3. keywords: Array of {word, frequency, relevance, timestamps} for the most impactful words
4. topics: Main topics discussed
5. suggested_title: Catchy, viral-optimized title
6. suggested_description: Engaging description
7. suggested_hashtags: 5-10 relevant hashtags
8. suggested_ctas: Effective calls-to-action

Focus on emotional impact, surprising or controversial statements, quotable
phrases, humor, educational value and relatability.

Return ONLY valid JSON, no additional text."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# Transcript heuristics
# ============================================================================


def generate_captions(
    transcription: Transcription,
    viral_keywords: list[str],
    video_id: str = "",
    words_per_caption: int = 5,
    style: Optional[CaptionStyle] = None,
) -> list[Caption]:
    """
    Group transcript words into captions.

    Each caption holds at most ``words_per_caption`` consecutive words, starts at
    the first word's start and ends at the last word's end. Words whose lowercase
    form appears in ``viral_keywords`` are highlighted.

    Args:
        transcription: Transcription with word timings
        viral_keywords: Lowercase keywords to highlight
        video_id: Owning video id stamped on every caption
        words_per_caption: Maximum words per caption
        style: Caption style to apply (defaults to CaptionStyle())

    Returns:
        Captions in transcript order
    """
    if words_per_caption < 1:
        raise ValueError(f"words_per_caption must be positive, got {words_per_caption}")

    keywords = set(viral_keywords)
    words = transcription.words
    captions: list[Caption] = []
    created_at = _now_iso()

    for i in range(0, len(words), words_per_caption):
        chunk = words[i:i + words_per_caption]
        highlight_words = [w.word for w in chunk if w.word.lower() in keywords]

        captions.append(Caption(
            id=f"caption_{uuid.uuid4().hex[:12]}",
            video_id=video_id,
            text=" ".join(w.word for w in chunk),
            start_time=chunk[0].start,
            end_time=chunk[-1].end,
            style=style.model_copy() if style else CaptionStyle(),
            is_highlighted=bool(highlight_words),
            highlight_words=highlight_words,
            created_at=created_at,
        ))

    logger.info(f"Generated {len(captions)} captions from {len(words)} words")
    return captions


def detect_scenes(transcription: Transcription, threshold: float = 2.0) -> list[SceneChange]:
    """Treat pauses longer than ``threshold`` seconds as probable scene changes."""
    scenes: list[SceneChange] = []
    words = transcription.words

    for previous, current in zip(words, words[1:]):
        gap = current.start - previous.end
        if gap > threshold:
            scenes.append(SceneChange(
                timestamp=previous.end + gap / 2,
                type="fade",
                confidence=min(gap / 5, 1.0),
            ))

    logger.info(f"Detected {len(scenes)} potential scene changes")
    return scenes


def detect_silences(transcription: Transcription, threshold: float = 1.0) -> list[SilencePeriod]:
    """Gaps between consecutive words longer than ``threshold`` seconds."""
    silences: list[SilencePeriod] = []
    words = transcription.words

    for previous, current in zip(words, words[1:]):
        duration = current.start - previous.end
        if duration > threshold:
            silences.append(SilencePeriod(
                start=previous.end,
                end=current.start,
                duration=duration,
            ))

    logger.info(f"Detected {len(silences)} silence periods")
    return silences


def detect_volume_peaks(transcription: Transcription) -> list[VolumePeak]:
    """
    Approximate loud moments from emphasised words.

    A word is emphasised when it is all caps or contains '!' or '?'. Volume is
    0.8, plus 0.1 for all caps, plus 0.1 for an exclamation mark.
    """
    peaks: list[VolumePeak] = []

    for word in transcription.words:
        shouting = word.word.isupper()
        exclaiming = "!" in word.word
        if not (shouting or exclaiming or "?" in word.word):
            continue

        volume = 0.8
        if shouting:
            volume += 0.1
        if exclaiming:
            volume += 0.1
        peaks.append(VolumePeak(timestamp=word.start, volume=round(volume, 2)))

    logger.info(f"Detected {len(peaks)} volume peaks")
    return peaks


def parse_analysis_content(content: str) -> AIAnalysis:
    """
    Parse the JSON body returned by the model.

    Missing fields fall back to defaults (virality 0.5, empty lists and strings).
    The derived fields are always empty here and are filled by ``analyze_video``.
    """
    parsed = json.loads(content)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")

    return AIAnalysis(
        virality_score=parsed.get("virality_score") or 0.5,
        emotion_peaks=parsed.get("emotion_peaks") or [],
        keywords=parsed.get("keywords") or [],
        topics=parsed.get("topics") or [],
        suggested_title=parsed.get("suggested_title") or "",
        suggested_description=parsed.get("suggested_description") or "",
        suggested_hashtags=parsed.get("suggested_hashtags") or [],
        suggested_ctas=parsed.get("suggested_ctas") or [],
    )


# ============================================================================
# Service
# ============================================================================


class AIAnalyzerService:
    """
    Service wrapping the speech-to-text and language model APIs.

    Both clients are created lazily. Missing keys are reported at construction
    and turned into AnalysisError when the corresponding call is made.
    """

    def __init__(self):
        self.settings = get_settings()
        self._groq_client: Optional[Groq] = None
        self._http_client: Optional[httpx.AsyncClient] = None

        if self.settings.groq_api_key:
            self._groq_client = Groq(api_key=self.settings.groq_api_key)
            logger.info("Groq client initialized for transcription")
        else:
            logger.warning("GROQ_API_KEY not set, transcription will fail")

        if not self.settings.llm_api_key:
            logger.warning("LLM_API_KEY not set, virality analysis will fail")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.settings.llm_base_url,
                timeout=httpx.Timeout(120.0, connect=30.0),
                headers={"Authorization": f"Bearer {self.settings.llm_api_key}"},
            )
        return self._http_client

    async def transcribe_audio(self, audio_bytes: bytes, filename: str = "audio.mp3") -> Transcription:
        """
        Transcribe audio with word-level timestamps.

        Raises:
            AnalysisError: If the API is not configured or the request fails
        """
        if not self._groq_client:
            raise AnalysisError("Transcription API not configured")

        logger.info(f"Starting transcription of {len(audio_bytes)} bytes with {self.settings.transcription_model}")

        # Groq client is sync
        loop = asyncio.get_event_loop()

        def _sync_transcribe():
            return self._groq_client.audio.transcriptions.create(
                file=(filename, audio_bytes),
                model=self.settings.transcription_model,
                response_format="verbose_json",
                timestamp_granularities=["word", "segment"],
            )

        try:
            response = await loop.run_in_executor(None, _sync_transcribe)
            transcription = self._parse_whisper_response(response)
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise AnalysisError(f"Transcription failed: {e}") from e

        logger.info(
            f"Transcription completed: {len(transcription.words)} words, "
            f"language={transcription.language}, duration={transcription.duration:.1f}s"
        )
        return transcription

    def _get_value(self, obj, key: str, default=None):
        """Get value from object (handles both dict and object attributes)."""
        if isinstance(obj, dict):
            return obj.get(key, default)
        return getattr(obj, key, default)

    def _parse_whisper_response(self, response) -> Transcription:
        words = [
            TranscriptionWord(
                word=str(self._get_value(w, "word", "")).strip(),
                start=float(self._get_value(w, "start", 0)),
                end=float(self._get_value(w, "end", 0)),
                confidence=self._get_value(w, "confidence"),
            )
            for w in (self._get_value(response, "words") or [])
        ]

        return Transcription(
            text=str(self._get_value(response, "text", "")).strip(),
            words=words,
            language=self._get_value(response, "language") or "unknown",
            duration=float(self._get_value(response, "duration") or 0),
        )

    async def analyze_virality(self, transcription: Transcription) -> AIAnalysis:
        """
        Ask the language model to score the transcript for viral potential.

        Raises:
            AnalysisError: If the API is not configured or the request fails
        """
        if not self.settings.llm_api_key:
            raise AnalysisError("Virality analysis API not configured")

        logger.info(f"Calling {self.settings.llm_model} for virality analysis...")

        messages = [
            {"role": "system", "content": VIRALITY_SYSTEM_PROMPT},
            {"role": "user", "content": f"Analyze this video transcription:\n\n{transcription.text}"},
        ]

        try:
            response = await self._call_chat_completion(
                messages,
                temperature=self.settings.llm_temperature,
                response_format={"type": "json_object"},
            )
            content = response["choices"][0]["message"]["content"]
            if not content:
                raise AnalysisError(f"Empty response from {self.settings.llm_model}")
            analysis = parse_analysis_content(content)
        except Exception as e:
            logger.error(f"Virality analysis failed: {e}")
            raise AnalysisError(f"Virality analysis failed: {e}") from e

        logger.info(f"Virality analysis completed, score: {analysis.virality_score}")
        return analysis

    async def _call_chat_completion(
        self,
        messages: list[dict],
        temperature: float = 0.7,
        response_format: Optional[dict] = None,
    ) -> dict:
        """Call the chat completion endpoint."""
        client = await self._get_client()

        payload = {
            "model": self.settings.llm_model,
            "messages": messages,
            "temperature": temperature,
        }

        if response_format:
            payload["response_format"] = response_format

        response = await client.post("/chat/completions", json=payload)

        if response.status_code != 200:
            error_text = response.text[:500]
            raise AnalysisError(f"LLM API error ({response.status_code}): {error_text}")

        return response.json()

    async def analyze_video(self, audio_bytes: bytes, video_id: str = "") -> VideoAnalysisResult:
        """
        Complete analysis: transcribe, score, derive timing features, caption.
        """
        logger.info(f"Starting complete video analysis for {video_id or 'unsaved video'}")

        transcription = await self.transcribe_audio(audio_bytes)
        virality = await self.analyze_virality(transcription)

        analysis = virality.model_copy(update={
            "scene_changes": detect_scenes(transcription, self.settings.scene_gap_threshold_seconds),
            "silence_periods": detect_silences(transcription, self.settings.silence_threshold_seconds),
            "volume_peaks": detect_volume_peaks(transcription),
        })

        viral_keywords = [k.word.lower() for k in analysis.keywords]
        captions = generate_captions(
            transcription,
            viral_keywords,
            video_id=video_id,
            words_per_caption=self.settings.words_per_caption,
        )

        logger.info("Complete video analysis finished")
        return VideoAnalysisResult(transcription=transcription, analysis=analysis, captions=captions)

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


# ============================================================================
# Canned results for running without API keys
# ============================================================================


def mock_transcription() -> Transcription:
    return Transcription(
        text=(
            "This is an incredible video about how to create viral content. "
            "You won't believe what happens next!"
        ),
        words=[
            TranscriptionWord(word="This", start=0.0, end=0.5, confidence=0.99),
            TranscriptionWord(word="is", start=0.5, end=0.7, confidence=0.99),
            TranscriptionWord(word="an", start=0.7, end=0.9, confidence=0.99),
            TranscriptionWord(word="incredible", start=0.9, end=1.5, confidence=0.99),
            TranscriptionWord(word="video", start=1.5, end=1.9, confidence=0.99),
        ],
        language="en",
        duration=10.0,
    )


def mock_analysis() -> AIAnalysis:
    return AIAnalysis.model_validate({
        "virality_score": 0.85,
        "emotion_peaks": [
            {"timestamp": 5.2, "emotion": "surprise", "intensity": 0.9},
            {"timestamp": 8.7, "emotion": "joy", "intensity": 0.8},
        ],
        "keywords": [
            {"word": "incredible", "frequency": 3, "relevance": 0.9, "timestamps": [0.9, 5.2, 8.1]},
            {"word": "viral", "frequency": 2, "relevance": 0.85, "timestamps": [2.1, 7.3]},
        ],
        "topics": ["digital marketing", "social media", "viral content"],
        "suggested_title": "How to Create VIRAL Content (Proven Method)",
        "suggested_description": (
            "The exact method behind videos that reached millions of views. "
            "Complete step by step!"
        ),
        "suggested_hashtags": ["#viral", "#digitalmarketing", "#socialmedia", "#content", "#tips"],
        "suggested_ctas": ["Leave a like!", "Share with your friends!", "Subscribe to the channel!"],
        "scene_changes": [{"timestamp": 5.0, "type": "fade", "confidence": 0.8}],
        "silence_periods": [{"start": 4.5, "end": 5.5, "duration": 1.0}],
        "volume_peaks": [
            {"timestamp": 1.3, "volume": 0.9},
            {"timestamp": 8.7, "volume": 0.95},
        ],
    })


class AnalysisError(Exception):
    """Exception raised when transcription or virality analysis fails."""
    pass
