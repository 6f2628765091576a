#!/usr/bin/env python3
"""
Command-line client for the ViralCut API.

Uploads a video, polls its status until it completes or fails, then prints
the analysis summary and, optionally, the generated ffmpeg commands.

Usage:
    python upload_video.py clip.mp4
    python upload_video.py clip.mov --style energetic --pace fast
    python upload_video.py clip.mp4 --accent "#00FF88" --show-commands
    python upload_video.py --status video_1718000000000_k3j9x0a2b

Reads VIRALCUT_BASE_URL and VIRALCUT_API_KEY from the environment or .env.
"""

import argparse
import json
import mimetypes
import os
import sys
import time
from pathlib import Path

import requests
from dotenv import load_dotenv

# Load .env file
load_dotenv()

BASE_URL = os.getenv("VIRALCUT_BASE_URL", "http://localhost:8000")
API_KEY = os.getenv("VIRALCUT_API_KEY")

MIME_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
}


def upload(path: Path, style: str, pace: str, colors: dict) -> str | None:
    """Upload a video and return its id."""
    content_type = MIME_TYPES.get(path.suffix.lower()) or mimetypes.guess_type(path.name)[0]
    headers = {"X-ViralCut-API-Key": API_KEY} if API_KEY else {}

    print(f"\nUploading {path.name} ({path.stat().st_size / 1024 / 1024:.1f} MB)")
    print(f"   Style: {style}, pace: {pace}")
    print(f"   Colors: {colors}")

    with open(path, "rb") as video_file:
        response = requests.post(
            f"{BASE_URL}/api/upload",
            headers=headers,
            files={"video": (path.name, video_file, content_type)},
            data={"style": style, "pace": pace, "colors": json.dumps(colors)},
        )

    body = response.json()
    if response.status_code != 200 or not body.get("success"):
        print(f"Upload failed ({response.status_code}): {body.get('error') or body.get('detail')}")
        return None

    video_id = body["video"]["id"]
    print(f"Uploaded: {video_id} ({body['video']['status']})")
    return video_id


def poll_status(video_id: str, poll_interval: float = 2.0) -> dict | None:
    """Poll until the video completes. Returns the video record or None on failure."""
    print(f"\nWaiting for {video_id}...")

    start_time = time.time()
    last_step = ""

    while True:
        response = requests.get(f"{BASE_URL}/api/status/{video_id}")
        status = response.json()

        if response.status_code != 200:
            print(f"Status check failed ({response.status_code}): {status.get('error')}")
            return None

        current_step = status.get("currentStep", "")
        if current_step != last_step:
            elapsed = time.time() - start_time
            remaining = status.get("timeRemaining")
            eta = f" (~{remaining}s left)" if remaining else ""
            print(f"   [{status.get('progress', 0):3d}%] [{elapsed:6.1f}s] {current_step}{eta}")
            last_step = current_step

        if status["status"] == "completed":
            print(f"\nCompleted in {time.time() - start_time:.1f}s")
            return status["video"]
        if status["status"] == "error":
            print(f"\nProcessing failed: {status.get('error')}")
            return None

        time.sleep(poll_interval)


def print_summary(video: dict) -> None:
    analysis = video.get("ai_analysis") or {}

    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"   Title: {analysis.get('suggested_title') or video.get('title')}")
    print(f"   Virality: {analysis.get('virality_score', 0) * 100:.0f}%")
    print(f"   Hashtags: {' '.join(analysis.get('suggested_hashtags', []))}")
    print(f"   Processed: {video.get('processed_url')}")
    print(f"   Thumbnail: {video.get('thumbnail_url')}")


def print_commands(video_id: str) -> None:
    response = requests.get(f"{BASE_URL}/api/videos/{video_id}/commands")
    if response.status_code != 200:
        print(f"\nNo commands available ({response.status_code})")
        return

    print("\nFFMPEG COMMANDS")
    for index, command in enumerate(response.json()["commands"], start=1):
        print(f"\n[{index}] {command}")


def main():
    parser = argparse.ArgumentParser(
        description="Upload a video to ViralCut and follow its processing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("video", nargs="?", type=Path, help="Video file (MP4, MOV or AVI)")
    parser.add_argument("--style", default="modern", choices=["modern", "minimal", "energetic"])
    parser.add_argument("--pace", default="medium", choices=["fast", "medium", "intense"])
    parser.add_argument("--primary", default="#FF6B6B", help="Primary color (#RRGGBB)")
    parser.add_argument("--secondary", default="#4ECDC4", help="Secondary color (#RRGGBB)")
    parser.add_argument("--accent", default="#FFE66D", help="Accent color used for highlighted captions")
    parser.add_argument("--poll-interval", type=float, default=2.0, help="Seconds between status polls")
    parser.add_argument("--show-commands", action="store_true", help="Print the generated ffmpeg commands")
    parser.add_argument("--status", metavar="VIDEO_ID", help="Only follow an existing video")

    args = parser.parse_args()

    if args.status:
        video_id = args.status
    else:
        if args.video is None or not args.video.is_file():
            parser.error("a readable video file is required")
        colors = {"primary": args.primary, "secondary": args.secondary, "accent": args.accent}
        video_id = upload(args.video, args.style, args.pace, colors)
        if not video_id:
            sys.exit(1)

    video = poll_status(video_id, args.poll_interval)
    if not video:
        sys.exit(1)

    print_summary(video)
    if args.show_commands:
        print_commands(video_id)


if __name__ == "__main__":
    main()
