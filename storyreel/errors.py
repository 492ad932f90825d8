"""Exception hierarchy for story creation and video assembly.

WHY: The HTTP layer and the CLI need to tell client mistakes (bad or
unknown story id) apart from processing failures, and must never leak
internal paths or ffmpeg output to callers. A typed hierarchy lets each
failure carry its own status class and a safe public message while the
full detail stays in the exception text for server-side logs.

HOW: StoryReelError is the root. InputError is the client-error branch.
PipelineError groups everything that can go wrong while assembling a
video. GenerationError covers the external story generation step.

RULES:
- status_code is 400/404 for input errors, 500 for everything else
- public_message is the only text ever sent to clients
- str(exc) holds the detailed message for logs
"""

from __future__ import annotations

from typing import Optional


class StoryReelError(Exception):
    """Base class for all errors raised by this package."""

    status_code = 500
    public_message = "Internal error"

    def __init__(self, message: str, public_message: Optional[str] = None) -> None:
        super().__init__(message)
        if public_message is not None:
            self.public_message = public_message


class InputError(StoryReelError):
    """Missing or malformed story identifier or URL."""

    status_code = 400
    public_message = "Invalid request"


class StoryNotFoundError(InputError):
    """The story id is well-formed but has no directory."""

    status_code = 404
    public_message = "Story not found"


class GenerationError(StoryReelError):
    """The external generation tool failed, timed out, or is missing."""

    public_message = "Failed to create the story"


class PipelineError(StoryReelError):
    """Any failure while assembling a story video."""

    public_message = "Video processing failed"


class NormalizationError(PipelineError):
    """A filesystem error while renaming raw generation output."""

    public_message = "File renaming failed"


class TranscriptParseError(PipelineError):
    """A segment transcript is missing, not JSON, or fails the schema."""


class RenderError(PipelineError):
    """ffmpeg failed or timed out while rendering one segment clip.

    RULES:
    - segment_index is the 1-based segment, or None outside a segment
    - stderr_tail holds the last lines of ffmpeg output for logs
    """

    def __init__(
        self,
        message: str,
        segment_index: Optional[int] = None,
        stderr_tail: str = "",
    ) -> None:
        super().__init__(message)
        self.segment_index = segment_index
        self.stderr_tail = stderr_tail


class ConcatenationError(PipelineError):
    """ffmpeg failed or timed out while merging clips into the final video."""

    def __init__(self, message: str, stderr_tail: str = "") -> None:
        super().__init__(message)
        self.stderr_tail = stderr_tail


class IncompleteStoryError(PipelineError):
    """One or more segments were not render-ready, so no final video is built.

    RULES:
    - missing_segments lists the 1-based indexes that were skipped
    """

    def __init__(self, message: str, missing_segments: list) -> None:
        super().__init__(message)
        self.missing_segments = list(missing_segments)
