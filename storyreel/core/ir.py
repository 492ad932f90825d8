"""Dataclasses describing stories, segments, and timing transcripts.

WHY: The asset locator, caption builder, renderer, and orchestrator all
talk about the same handful of things: a story directory, its numbered
segments, and the per-word timing transcript of each segment's
voiceover. Typed dataclasses keep the file naming convention and the
timing model in one place instead of scattered string formatting.

HOW: Four dataclasses:
  WordTiming: one caption word with start/end seconds
  Transcript: total duration plus ordered WordTiming list
  Segment: 1-based index plus canonical/raw file paths
  Story: id, directory, and its ordered Segment list

RULES:
- All times are float seconds
- Segment.index is 1-based; clip file names are 0-based (output_0.mp4)
- A segment is render-ready iff its image, audio, and transcript exist
- Story never touches the filesystem except through is_ready / exists checks
- WordTiming order is preserved but never assumed sorted or disjoint
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from storyreel.config import (
    AUDIO_TEMPLATE,
    CLIP_TEMPLATE,
    FINAL_VIDEO_NAME,
    IMAGE_TEMPLATE,
    RAW_AUDIO_TEMPLATE,
    RAW_IMAGE_TEMPLATE,
    RAW_TRANSCRIPT_TEMPLATE,
    TRANSCRIPT_TEMPLATE,
)


@dataclass
class WordTiming:
    """A single caption word and the window during which it is shown.

    RULES:
    - word: free text, may contain punctuation and quotes
    - start / end: seconds; not validated here (see transcript loader)
    """

    word: str
    start: float
    end: float

    @property
    def is_well_formed(self) -> bool:
        """True when 0 <= start <= end."""
        return 0.0 <= self.start <= self.end


@dataclass
class Transcript:
    """Timing transcript for one segment's voiceover.

    RULES:
    - duration: positive seconds, the length of the rendered clip
    - words: in file order; overlapping windows render simultaneously
    """

    duration: float
    words: list[WordTiming] = field(default_factory=list)

    @property
    def duration_arg(self) -> str:
        """Duration rounded to two decimals, as passed to ffmpeg."""
        return format_seconds(self.duration)


def format_seconds(value: float) -> str:
    """Format seconds with exactly two decimals ("3.00")."""
    return "{:.2f}".format(value)


@dataclass
class Segment:
    """One narrated beat of a story: an image, a voiceover, and its timings."""

    index: int
    directory: Path

    @property
    def image_path(self) -> Path:
        return self.directory / IMAGE_TEMPLATE.format(index=self.index)

    @property
    def audio_path(self) -> Path:
        return self.directory / AUDIO_TEMPLATE.format(index=self.index)

    @property
    def transcript_path(self) -> Path:
        return self.directory / TRANSCRIPT_TEMPLATE.format(index=self.index)

    @property
    def clip_path(self) -> Path:
        return self.directory / CLIP_TEMPLATE.format(position=self.index - 1)

    def raw_renames(self) -> list[tuple[Path, Path]]:
        """(raw, canonical) path pairs written by the generation tool."""
        return [
            (self.directory / RAW_IMAGE_TEMPLATE.format(index=self.index), self.image_path),
            (self.directory / RAW_AUDIO_TEMPLATE.format(index=self.index), self.audio_path),
            (self.directory / RAW_TRANSCRIPT_TEMPLATE.format(index=self.index), self.transcript_path),
        ]

    def missing_files(self) -> list[Path]:
        """Canonical input files that do not exist yet."""
        return [
            p for p in (self.image_path, self.audio_path, self.transcript_path)
            if not p.exists()
        ]

    @property
    def is_ready(self) -> bool:
        return not self.missing_files()


@dataclass
class Story:
    """A story directory and its fixed, ordered list of segments.

    HOW: Built with Story.from_directory(), which derives the id from
    the directory name and creates ``segment_count`` Segment entries.
    """

    id: str
    directory: Path
    segments: list[Segment] = field(default_factory=list)

    @classmethod
    def from_directory(cls, directory: Path, segment_count: int) -> Story:
        if segment_count <= 0:
            raise ValueError("segment_count must be positive, got {}".format(segment_count))
        directory = Path(directory)
        segments = [Segment(index=i, directory=directory) for i in range(1, segment_count + 1)]
        return cls(id=directory.name, directory=directory, segments=segments)

    @property
    def final_path(self) -> Path:
        return self.directory / FINAL_VIDEO_NAME

    @property
    def final_relative_path(self) -> str:
        """Path of the final video relative to the stories root."""
        return "{}/{}".format(self.id, FINAL_VIDEO_NAME)
