"""
ViralCut - upload a raw video, analyze it for viral potential and build the
ffmpeg commands that caption and edit it.
"""

__version__ = "1.0.0"
