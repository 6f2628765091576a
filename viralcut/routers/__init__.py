"""
FastAPI routers for the ViralCut API.
"""

from viralcut.routers import health, videos

__all__ = ["health", "videos"]
