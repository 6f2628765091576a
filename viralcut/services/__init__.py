"""
Services for the ViralCut API.

Includes:
- AI analysis (Groq Whisper transcription, chat-completion virality scoring)
- FFmpeg command builders
- In-memory job queue and video store
- Simulated processing pipeline
- Supabase storage and database client
"""

from viralcut.services.ai_analyzer import AIAnalyzerService
from viralcut.services.job_queue import InMemoryJobQueue, QueueJob, QueueName
from viralcut.services.supabase_client import SupabaseClient
from viralcut.services.video_processor import VideoProcessorService
from viralcut.services.video_store import InMemoryVideoStore

__all__ = [
    "AIAnalyzerService",
    "InMemoryJobQueue",
    "QueueJob",
    "QueueName",
    "InMemoryVideoStore",
    "VideoProcessorService",
    "SupabaseClient",
]
