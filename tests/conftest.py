"""Shared test fixtures for the storyreel test suite.

WHY: Most tests need a story directory laid out the way the generation
tool leaves it (raw names) or the way the renderer expects it
(canonical names). Centralizing the layout here keeps tests short and
makes the naming convention visible in one place.

HOW: make_story() writes placeholder image/audio bytes and real
transcript JSON into tmp_path/<id>. It can write raw or canonical
names and can leave out chosen files per segment.

RULES:
- Image and audio files are placeholders (never decoded in unit tests)
- Transcripts are valid JSON matching the transcript schema
- settings() builds Settings rooted at tmp_path with a fake ffmpeg
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

from storyreel.config import FFmpegSettings, Settings
from storyreel.errors import ConcatenationError, RenderError

STORY_ID = "abc123def456"

SAMPLE_TRANSCRIPT: Dict[str, Any] = {
    "duration": 3.0,
    "words": [
        {"word": "Once", "start": 0.0, "end": 0.4},
        {"word": "upon", "start": 0.45, "end": 0.8},
        {"word": "a", "start": 0.85, "end": 0.9},
        {"word": "time,", "start": 0.95, "end": 1.5},
    ],
}


def write_transcript(path: Path, data: Any) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _raw_names(index: int) -> Dict[str, str]:
    return {
        "image": "b-roll-{}.png".format(index),
        "audio": "voiceover-{}.mp3".format(index),
        "transcript": "voiceover-{}.txt".format(index),
    }


def _canonical_names(index: int) -> Dict[str, str]:
    return {
        "image": "{}.png".format(index),
        "audio": "{}.mp3".format(index),
        "transcript": "transcription-{}.json".format(index),
    }


def make_story(
    root: Path,
    story_id: str = STORY_ID,
    segment_count: int = 3,
    raw: bool = True,
    omit: Iterable[Tuple[int, str]] = (),
    transcript: Optional[Dict[str, Any]] = None,
) -> Path:
    """Create a story directory with segment files.

    Args:
        root: Stories root.
        story_id: Directory name.
        segment_count: Number of segments to populate.
        raw: Write generation-tool names (True) or canonical names (False).
        omit: (segment_index, kind) pairs to leave out; kind is
              "image", "audio", or "transcript".
        transcript: Transcript document written for every segment.
    """
    story_dir = root / story_id
    story_dir.mkdir(parents=True, exist_ok=True)
    skipped = set(omit)
    data = transcript if transcript is not None else SAMPLE_TRANSCRIPT

    for index in range(1, segment_count + 1):
        names = _raw_names(index) if raw else _canonical_names(index)
        if (index, "image") not in skipped:
            (story_dir / names["image"]).write_bytes(b"\x89PNG fake image %d" % index)
        if (index, "audio") not in skipped:
            (story_dir / names["audio"]).write_bytes(b"ID3 fake audio %d" % index)
        if (index, "transcript") not in skipped:
            write_transcript(story_dir / names["transcript"], data)

    return story_dir


def make_settings(root: Path, segment_count: int = 3, **ffmpeg: Any) -> Settings:
    return Settings(
        stories_dir=root,
        segment_count=segment_count,
        ffmpeg=FFmpegSettings(binary="ffmpeg-test", **ffmpeg),
    )


@pytest.fixture
def stories_root(tmp_path: Path) -> Path:
    root = tmp_path / "stories"
    root.mkdir()
    return root


@pytest.fixture
def settings(stories_root: Path) -> Settings:
    return make_settings(stories_root)


@pytest.fixture
def sample_transcript_data() -> Dict[str, Any]:
    return json.loads(json.dumps(SAMPLE_TRANSCRIPT))


class FakeRunner:
    """Stand-in for FFmpegRunner that records calls and writes empty outputs.

    RULES:
    - render_segment writes the output file and records the call
    - fail_segments: segment indexes whose render raises RenderError
    - concat_clips writes the output and records the clip order
    """

    def __init__(self, fail_segments: Iterable[int] = (), fail_concat: bool = False) -> None:
        self.settings = FFmpegSettings(binary="fake")
        self.fail_segments = set(fail_segments)
        self.fail_concat = fail_concat
        self.render_calls: List[Dict[str, Any]] = []
        self.concat_calls: List[Tuple[List[Path], Path]] = []

    async def render_segment(self, image, audio, caption_filter, duration, output, segment_index=None):
        self.render_calls.append({
            "image": Path(image),
            "audio": Path(audio),
            "caption_filter": caption_filter,
            "duration": duration,
            "output": Path(output),
            "segment_index": segment_index,
        })
        if segment_index in self.fail_segments:
            raise RenderError("boom in segment {}".format(segment_index), segment_index=segment_index)
        Path(output).write_bytes(b"clip")
        return Path(output)

    async def concat_clips(self, clips, output):
        self.concat_calls.append(([Path(c) for c in clips], Path(output)))
        if self.fail_concat:
            raise ConcatenationError("concat exploded")
        Path(output).write_bytes(b"final")
        return Path(output)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def server_module():
    """The server module, with its settings and static mount restored afterwards."""
    from storyreel.server import app as module

    original = module.settings
    yield module
    module.configure(original)


def stories_mount_directory(module) -> Path:
    mount = next(r for r in module.app.routes if getattr(r, "name", None) == "stories")
    return Path(mount.app.directory)
