"""
FFmpeg Commands - Builders for ffmpeg/ffprobe command lines.

Every function here is pure: it formats a command or filter string and returns
it. Nothing is executed. Paths and filter graphs are double-quoted for the
shell, and text shown through drawtext is escaped for the filter parser.
"""

import logging
import os
from typing import Literal, Optional

from viralcut.config import get_settings
from viralcut.schemas.video import Caption, StyleConfig, VisualEffect

logger = logging.getLogger(__name__)


ASPECT_RATIO_SIZES = {
    "9:16": (1080, 1920),
    "16:9": (1920, 1080),
    "1:1": (1080, 1080),
}

COMPRESSION_CRF = {
    "low": 28,
    "medium": 23,
    "high": 18,
}

# Characters with meaning inside a drawtext option value
DRAWTEXT_ESCAPES = [
    ("\\", "\\\\"),  # must run first
    ("'", "\\'"),
    (":", "\\:"),
    ("[", "\\["),
    ("]", "\\]"),
    ("%", "\\%"),
]

# Characters the shell still interprets inside a double-quoted argument
SHELL_DOUBLE_QUOTE_ESCAPES = [
    ("\\", "\\\\"),  # must run first
    ('"', '\\"'),
    ("$", "\\$"),
    ("`", "\\`"),
]


# ============ HELPERS ============


def _fmt(value: float) -> str:
    """Format a number for a command line: 1.0 -> '1', 0.25 -> '0.25'."""
    rounded = round(float(value), 3)
    if rounded.is_integer():
        return str(int(rounded))
    return str(rounded)


def shell_quote(value: str) -> str:
    """
    Wrap a single command-line argument in double quotes.

    Filter graphs go through here as well as paths, so drawtext text that was
    already escaped for ffmpeg reaches it unchanged after the shell unquotes it.
    """
    escaped = value
    for char, replacement in SHELL_DOUBLE_QUOTE_ESCAPES:
        escaped = escaped.replace(char, replacement)
    return f'"{escaped}"'


def quote_path(path: str) -> str:
    """Double-quote a path for the shell."""
    return shell_quote(path)


def escape_drawtext_text(text: str) -> str:
    """
    Escape text for use inside a drawtext ``text='...'`` value.

    Handles backslashes, single quotes, colons, square brackets and percent
    signs (drawtext expands ``%{...}`` sequences).
    """
    escaped = text
    for char, replacement in DRAWTEXT_ESCAPES:
        escaped = escaped.replace(char, replacement)
    return escaped


def _with_suffix(path: str, suffix: str) -> str:
    """Replace the extension of path: /a/video.mp4 + _audio.wav -> /a/video_audio.wav"""
    root, _ = os.path.splitext(path)
    return f"{root}{suffix}"


def _hex_alpha(opacity: float) -> str:
    """Convert 0-1 opacity to a two digit hex alpha channel."""
    alpha = max(0, min(255, round(opacity * 255)))
    return f"{alpha:02x}"


# ============ BASIC OPERATIONS ============


def extract_audio(input_path: str, output_path: str) -> str:
    """Extract the audio track as 16-bit PCM stereo at 44.1 kHz."""
    return (
        f"ffmpeg -i {quote_path(input_path)} -vn -acodec pcm_s16le -ar 44100 -ac 2 "
        f"{quote_path(output_path)}"
    )


def get_video_metadata(input_path: str) -> str:
    return (
        f"ffprobe -v quiet -print_format json -show_format -show_streams "
        f"{quote_path(input_path)}"
    )


def get_video_duration(input_path: str) -> str:
    return (
        f"ffprobe -v error -show_entries format=duration "
        f"-of default=noprint_wrappers=1:nokey=1 {quote_path(input_path)}"
    )


# ============ CAPTIONS ============


def generate_caption_filter(
    caption: Caption,
    style: StyleConfig,
    video_width: int = 1080,
    video_height: int = 1920,
    font_file: Optional[str] = None,
) -> str:
    """
    Build a drawtext filter that shows one caption between its start and end time.

    Highlighted captions use the accent color of the style palette.
    """
    caption_style = caption.style
    font_file = font_file or get_settings().caption_font_file

    font_color = style.colors.accent if caption.is_highlighted else caption_style.font_color
    box_color = f"{caption_style.background_color}{_hex_alpha(caption_style.opacity)}"

    if caption_style.position == "top":
        y_position = "200"
    elif caption_style.position == "center":
        y_position = "(h-text_h)/2"
    else:
        y_position = str(video_height - 200)

    return (
        f"drawtext=fontfile={font_file}"
        f":text='{escape_drawtext_text(caption.text)}'"
        f":fontcolor={font_color}"
        f":fontsize={caption_style.font_size}"
        f":box=1:boxcolor={box_color}:boxborderw=10"
        f":x=(w-text_w)/2:y={y_position}"
        f":enable='between(t,{_fmt(caption.start_time)},{_fmt(caption.end_time)})'"
    )


def apply_captions(
    input_path: str,
    output_path: str,
    captions: list[Caption],
    style: StyleConfig,
    video_width: int = 1080,
    video_height: int = 1920,
) -> str:
    """Burn all captions into the video in a single pass."""
    if not captions:
        return f"ffmpeg -i {quote_path(input_path)} -c copy {quote_path(output_path)}"

    filter_chain = ",".join(
        generate_caption_filter(caption, style, video_width, video_height)
        for caption in captions
    )
    return (
        f"ffmpeg -i {quote_path(input_path)} -vf {shell_quote(filter_chain)} -c:a copy "
        f"{quote_path(output_path)}"
    )


# ============ VISUAL EFFECTS ============


def apply_zoom_effect(
    start_time: float,
    end_time: float,
    scale: float = 1.2,
    center_x: float = 0.5,
    center_y: float = 0.5,
    output_width: int = 1080,
    output_height: int = 1920,
) -> str:
    return (
        f"zoompan=z='if(between(t,{_fmt(start_time)},{_fmt(end_time)}),{_fmt(scale)},1)'"
        f":d=1:x='iw*{_fmt(center_x)}':y='ih*{_fmt(center_y)}'"
        f":s={output_width}x{output_height}"
    )


def apply_color_grade(
    brightness: float = 0.06,
    contrast: float = 1.1,
    saturation: float = 1.2,
) -> str:
    return f"eq=brightness={_fmt(brightness)}:contrast={_fmt(contrast)}:saturation={_fmt(saturation)}"


def apply_transition(
    start_time: float,
    duration: float = 0.5,
    transition_type: Literal["fade", "dissolve"] = "fade",
) -> str:
    base = f"fade=t=in:st={_fmt(start_time)}:d={_fmt(duration)}"
    if transition_type == "dissolve":
        return f"{base}:alpha=1"
    return base


def apply_blur(strength: int = 5) -> str:
    return f"boxblur={strength}:1"


def apply_shake(start_time: float, end_time: float, intensity: int = 10) -> str:
    """Simulated camera shake: a crop window oscillating over the frame."""
    return (
        f"crop=in_w-{intensity}:in_h-{intensity}"
        f":{intensity}*sin(2*PI*t):{intensity}*cos(2*PI*t)"
        f":enable='between(t,{_fmt(start_time)},{_fmt(end_time)})'"
    )


# ============ AUDIO ============


def reduce_noise(input_path: str, output_path: str) -> str:
    return (
        f'ffmpeg -i {quote_path(input_path)} -af "highpass=f=200,lowpass=f=3000,afftdn=nf=-25" '
        f"{quote_path(output_path)}"
    )


def normalize_audio(input_path: str, output_path: str) -> str:
    return (
        f'ffmpeg -i {quote_path(input_path)} -af "loudnorm=I=-16:TP=-1.5:LRA=11" '
        f"{quote_path(output_path)}"
    )


def add_background_music(
    video_path: str,
    music_path: str,
    output_path: str,
    music_volume: float = 0.3,
) -> str:
    return (
        f"ffmpeg -i {quote_path(video_path)} -i {quote_path(music_path)} "
        f'-filter_complex "[1:a]volume={_fmt(music_volume)}[music];'
        f'[0:a][music]amix=inputs=2:duration=first" '
        f"-c:v copy {quote_path(output_path)}"
    )


# ============ CUTTING ============


def cut_video(input_path: str, output_path: str, start_time: float, end_time: float) -> str:
    duration = end_time - start_time
    if duration <= 0:
        raise ValueError(f"end_time ({end_time}) must be greater than start_time ({start_time})")
    return (
        f"ffmpeg -i {quote_path(input_path)} -ss {_fmt(start_time)} -t {_fmt(duration)} "
        f"-c copy {quote_path(output_path)}"
    )


def remove_silences(
    input_path: str,
    output_path: str,
    silence_threshold_db: float = -30,
    silence_duration: float = 0.5,
) -> str:
    """Trim leading and trailing silence (the reverse trick handles the tail)."""
    trim = (
        f"silenceremove=start_periods=1:start_duration={_fmt(silence_duration)}"
        f":start_threshold={_fmt(silence_threshold_db)}dB:detection=peak"
    )
    audio_filter = f"{trim},aformat=dblp,areverse,{trim},aformat=dblp,areverse"
    return (
        f'ffmpeg -i {quote_path(input_path)} -af "{audio_filter}" -c:v copy '
        f"{quote_path(output_path)}"
    )


# ============ THUMBNAILS ============


def generate_thumbnail(
    input_path: str,
    output_path: str,
    timestamp: float,
    width: int = 1280,
    height: int = 720,
) -> str:
    return (
        f"ffmpeg -i {quote_path(input_path)} -ss {_fmt(timestamp)} -vframes 1 "
        f'-vf "scale={width}:{height}" {quote_path(output_path)}'
    )


def generate_viral_thumbnail(
    input_path: str,
    output_path: str,
    timestamp: float,
    title: str,
    width: int = 1280,
    height: int = 720,
) -> str:
    """Thumbnail with boosted colors and the title drawn across the bottom."""
    font_file = get_settings().caption_font_file
    video_filter = (
        f"scale={width}:{height},"
        f"eq=brightness=0.1:contrast=1.2:saturation=1.3,"
        f"drawtext=fontfile={font_file}:text='{escape_drawtext_text(title)}'"
        f":fontcolor=white:fontsize=80:box=1:boxcolor=black@0.7:boxborderw=20"
        f":x=(w-text_w)/2:y=h-150"
    )
    return (
        f"ffmpeg -i {quote_path(input_path)} -ss {_fmt(timestamp)} -vframes 1 "
        f"-vf {shell_quote(video_filter)} {quote_path(output_path)}"
    )


# ============ COMPLETE PIPELINE ============


def _effect_filter(effect: VisualEffect) -> Optional[str]:
    params = effect.parameters
    if effect.effect_type == "zoom":
        return apply_zoom_effect(
            effect.start_time,
            effect.end_time,
            params.get("scale", 1.2),
            params.get("center_x", 0.5),
            params.get("center_y", 0.5),
        )
    if effect.effect_type == "transition":
        return apply_transition(
            effect.start_time,
            params.get("duration", 0.5),
            params.get("type", "fade"),
        )
    if effect.effect_type == "color_grade":
        return apply_color_grade(
            params.get("brightness", 0.06),
            params.get("contrast", 1.1),
            params.get("saturation", 1.2),
        )
    if effect.effect_type == "blur":
        return apply_blur(params.get("strength", 5))
    if effect.effect_type == "shake":
        return apply_shake(effect.start_time, effect.end_time, params.get("intensity", 10))

    logger.debug(f"No filter builder for effect type '{effect.effect_type}', skipping")
    return None


def generate_complete_editing_pipeline(
    input_path: str,
    output_path: str,
    captions: list[Caption],
    effects: list[VisualEffect],
    style: StyleConfig,
    remove_noise: bool = True,
    normalize: bool = True,
    color_grade: bool = True,
    video_width: int = 1080,
    video_height: int = 1920,
) -> list[str]:
    """
    Build the ordered list of commands for a full edit.

    Steps: extract audio, denoise, normalize, one video pass with color grade,
    effects and captions (muxed with the processed audio), then move to output.
    """
    commands: list[str] = []
    processed_audio: Optional[str] = None

    if remove_noise or normalize:
        audio_path = _with_suffix(input_path, "_audio.wav")
        commands.append(extract_audio(input_path, audio_path))
        processed_audio = audio_path

        if remove_noise:
            denoised_path = _with_suffix(input_path, "_denoised.wav")
            commands.append(reduce_noise(processed_audio, denoised_path))
            processed_audio = denoised_path

        if normalize:
            normalized_path = _with_suffix(input_path, "_normalized.wav")
            commands.append(normalize_audio(processed_audio, normalized_path))
            processed_audio = normalized_path

    filters: list[str] = []
    if color_grade:
        filters.append(apply_color_grade())

    for effect in sorted(effects, key=lambda e: -e.priority):
        effect_filter = _effect_filter(effect)
        if effect_filter:
            filters.append(effect_filter)

    for caption in captions:
        filters.append(generate_caption_filter(caption, style, video_width, video_height))

    filter_graph = ",".join(filters)
    effects_path = _with_suffix(input_path, "_effects.mp4")
    encode = "-c:v libx264 -preset medium -crf 23"

    if processed_audio and filters:
        commands.append(
            f"ffmpeg -i {quote_path(input_path)} -i {quote_path(processed_audio)} "
            f'-filter_complex {shell_quote(f"[0:v]{filter_graph}[v]")} -map "[v]" -map 1:a '
            f"{encode} -c:a aac -b:a 192k {quote_path(effects_path)}"
        )
    elif processed_audio:
        commands.append(
            f"ffmpeg -i {quote_path(input_path)} -i {quote_path(processed_audio)} "
            f"-map 0:v -map 1:a -c:v copy -c:a aac -b:a 192k {quote_path(effects_path)}"
        )
    elif filters:
        commands.append(
            f"ffmpeg -i {quote_path(input_path)} -vf {shell_quote(filter_graph)} "
            f"{encode} -c:a copy {quote_path(effects_path)}"
        )
    else:
        commands.append(f"ffmpeg -i {quote_path(input_path)} -c copy {quote_path(effects_path)}")

    commands.append(f"mv {quote_path(effects_path)} {quote_path(output_path)}")
    return commands


# ============ ASPECT RATIO / OUTPUT ============


def convert_aspect_ratio(
    input_path: str,
    output_path: str,
    target_ratio: Literal["9:16", "16:9", "1:1"],
) -> str:
    """Scale to fit the target frame and pad the rest with black."""
    if target_ratio not in ASPECT_RATIO_SIZES:
        raise ValueError(
            f"Unknown aspect ratio: {target_ratio}. Valid ratios: {list(ASPECT_RATIO_SIZES)}"
        )
    width, height = ASPECT_RATIO_SIZES[target_ratio]
    return (
        f'ffmpeg -i {quote_path(input_path)} -vf "scale={width}:{height}:force_original_aspect_ratio=decrease,'
        f'pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:black" -c:a copy {quote_path(output_path)}'
    )


def optimize_for_web(input_path: str, output_path: str) -> str:
    return (
        f"ffmpeg -i {quote_path(input_path)} -c:v libx264 -preset slow -crf 22 "
        f"-c:a aac -b:a 128k -movflags +faststart {quote_path(output_path)}"
    )


def compress_video(
    input_path: str,
    output_path: str,
    quality: Literal["low", "medium", "high"] = "medium",
) -> str:
    if quality not in COMPRESSION_CRF:
        raise ValueError(f"Unknown quality: {quality}. Valid qualities: {list(COMPRESSION_CRF)}")
    return (
        f"ffmpeg -i {quote_path(input_path)} -c:v libx264 -preset medium -crf {COMPRESSION_CRF[quality]} "
        f"-c:a aac -b:a 128k {quote_path(output_path)}"
    )
