"""Configuration constants, story file naming, and .env loading.

WHY: Centralizes every tunable value (where stories live, how many
segments a story has, where ffmpeg and gptscript are, how long external
processes may run) so operators can change them without touching logic.
File naming conventions are plain data too, so the renderer, the asset
locator, and the catalog all agree on one layout.

HOW: python-dotenv loads the .env file on import. Raw values are read
from the environment into module-level constants. load_settings() turns
them into a frozen Settings dataclass that is passed explicitly to the
pipeline, the ffmpeg runner, and the generation client.

RULES:
- Every default can be overridden via environment variables
- Components never read os.environ directly; they receive Settings
- Story ids match STORY_ID_PATTERN (lowercase alphanumeric, 6+ chars)
- Segment indexes are 1-based; rendered clip names are 0-based
- Invalid numeric values raise ValueError naming the variable
"""

from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# Load .env from the project root (where the service is started from)
load_dotenv()

__all__ = [
    "FFmpegSettings",
    "Settings",
    "STORY_ID_PATTERN",
    "load_settings",
]

# ---------------------------------------------------------------------------
# Story layout
# ---------------------------------------------------------------------------

STORY_ID_PATTERN = re.compile(r"^[a-z0-9]{6,}$")
"""Story identifiers: lowercase alphanumeric, at least six characters."""

FINAL_VIDEO_NAME = "final.mp4"

# Raw names written by the generation tool, keyed by 1-based segment index.
RAW_IMAGE_TEMPLATE = "b-roll-{index}.png"
RAW_AUDIO_TEMPLATE = "voiceover-{index}.mp3"
RAW_TRANSCRIPT_TEMPLATE = "voiceover-{index}.txt"

# Canonical names consumed by the renderer.
IMAGE_TEMPLATE = "{index}.png"
AUDIO_TEMPLATE = "{index}.mp3"
TRANSCRIPT_TEMPLATE = "transcription-{index}.json"

# Rendered clips are numbered from zero.
CLIP_TEMPLATE = "output_{position}.mp4"

# ---------------------------------------------------------------------------
# Environment defaults
# ---------------------------------------------------------------------------

STORIES_DIR = os.getenv("STORIES_DIR", "./stories")
SEGMENT_COUNT = os.getenv("SEGMENT_COUNT", "3")
FFMPEG_PATH = os.getenv("FFMPEG_PATH", "")
FFMPEG_TIMEOUT_SECONDS = os.getenv("FFMPEG_TIMEOUT_SECONDS", "600")
FFMPEG_VIDEO_CODEC = os.getenv("FFMPEG_VIDEO_CODEC", "libx264")
FFMPEG_PIXEL_FORMAT = os.getenv("FFMPEG_PIXEL_FORMAT", "yuv420p")
GPTSCRIPT_PATH = os.getenv("GPTSCRIPT_PATH", "gptscript")
GENERATION_SCRIPT = os.getenv("GENERATION_SCRIPT", "./story.gpt")
GENERATION_TIMEOUT_SECONDS = os.getenv("GENERATION_TIMEOUT_SECONDS", "120")
CAPTION_FONT_FILE = os.getenv("CAPTION_FONT_FILE", "")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "8080")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def find_ffmpeg() -> str:
    """Locate the ffmpeg executable.

    Falls back to the bare name so a later exec reports a clear
    "not found" error instead of failing here.
    """
    if FFMPEG_PATH:
        return FFMPEG_PATH
    return shutil.which("ffmpeg") or "ffmpeg"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FFmpegSettings:
    """How to invoke ffmpeg.

    WHY: ffmpeg location and encoding choices used to be process-wide
    state. Passing them explicitly lets tests and callers run renderers
    with different binaries or timeouts side by side.

    RULES:
    - binary: executable path or name resolved via PATH
    - timeout_s: upper bound for a single ffmpeg invocation; None disables it
    - video_codec / pixel_format: applied to every rendered clip
    - global_args: prepended to every command (e.g. ["-hide_banner"])
    """

    binary: str = "ffmpeg"
    timeout_s: Optional[float] = 600.0
    video_codec: str = "libx264"
    pixel_format: str = "yuv420p"
    global_args: Tuple[str, ...] = ("-hide_banner", "-loglevel", "error")


@dataclass(frozen=True)
class Settings:
    """Resolved service configuration.

    RULES:
    - stories_dir: root directory containing one subdirectory per story
    - segment_count: positive number of segments every story has
    - font_file: optional TTF/OTF path passed to drawtext
    """

    stories_dir: Path = Path("./stories")
    segment_count: int = 3
    ffmpeg: FFmpegSettings = field(default_factory=FFmpegSettings)
    gptscript_path: str = "gptscript"
    generation_script: str = "./story.gpt"
    generation_timeout_s: float = 120.0
    font_file: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8080


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError("{} must be an integer, got {!r}".format(name, raw))
    if value <= 0:
        raise ValueError("{} must be positive, got {}".format(name, value))
    return value


def _parse_timeout(name: str, raw: str) -> Optional[float]:
    """Parse a timeout in seconds; "0" or "none" disables the bound."""
    if raw.strip().lower() in ("", "0", "none"):
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError("{} must be a number of seconds, got {!r}".format(name, raw))
    if value < 0:
        raise ValueError("{} must not be negative, got {}".format(name, value))
    return value


def load_settings() -> Settings:
    """Build a Settings object from the environment-derived constants.

    WHY: Components take configuration as an argument. This is the one
    place that converts raw environment strings into typed values.

    RULES:
    - Raises ValueError on malformed numeric values
    - GENERATION_TIMEOUT_SECONDS must resolve to a bound (never None)
    """
    generation_timeout = _parse_timeout("GENERATION_TIMEOUT_SECONDS", GENERATION_TIMEOUT_SECONDS)
    if generation_timeout is None:
        raise ValueError("GENERATION_TIMEOUT_SECONDS must be greater than zero")

    return Settings(
        stories_dir=Path(STORIES_DIR),
        segment_count=_parse_positive_int("SEGMENT_COUNT", SEGMENT_COUNT),
        ffmpeg=FFmpegSettings(
            binary=find_ffmpeg(),
            timeout_s=_parse_timeout("FFMPEG_TIMEOUT_SECONDS", FFMPEG_TIMEOUT_SECONDS),
            video_codec=FFMPEG_VIDEO_CODEC,
            pixel_format=FFMPEG_PIXEL_FORMAT,
        ),
        gptscript_path=GPTSCRIPT_PATH,
        generation_script=GENERATION_SCRIPT,
        generation_timeout_s=generation_timeout,
        font_file=CAPTION_FONT_FILE or None,
        host=HOST,
        port=_parse_positive_int("PORT", PORT),
    )
