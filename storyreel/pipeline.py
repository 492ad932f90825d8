"""Story video assembly: normalize → render segments in parallel → concatenate.

WHY: Building a story video is a multi-step process with external
processes and partial failures. One orchestrator owns the sequencing,
the concurrency, and the rule that a final video is only produced when
every segment rendered successfully.

HOW: StoryPipeline.build() validates the story id, normalizes raw
generation output, locates render-ready segments, and renders each
ready segment as its own asyncio task (parse transcript → build caption
filter → ffmpeg). All render tasks are joined before any decision is
made. If every segment was ready and rendered, the clips are
concatenated into final.mp4.

RULES:
- States: idle → normalizing → rendering → concatenating → done;
  failed is reachable from every non-terminal state
- A final.mp4 left by an earlier build is removed before rendering, so
  a story is listed as complete only while its latest build succeeded
- Segments with missing files are skipped for rendering, but the run
  then fails with IncompleteStoryError (no final.mp4 is written)
- All render tasks reach a terminal state before the join completes;
  the first failure in segment order is re-raised
- Transcript errors inside a task surface as TranscriptParseError
- Any non-pipeline exception is wrapped in PipelineError
- Returns the final video path relative to the stories root
- on_state hook is observability only; its exceptions are logged
"""

from __future__ import annotations

import asyncio
import enum
import logging
from pathlib import Path
from typing import Callable, List, Optional

from storyreel.config import STORY_ID_PATTERN, Settings
from storyreel.core.assets import locate_segments, normalize_story_assets
from storyreel.core.captions import CaptionStyle, build_caption_filter, split_filter_chain
from storyreel.core.ir import Segment, Story
from storyreel.core.transcript import load_transcript
from storyreel.errors import (
    IncompleteStoryError,
    InputError,
    PipelineError,
    StoryNotFoundError,
)
from storyreel.render.ffmpeg import FFmpegRunner

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    """Stages of one story build.

    HOW: Inherits from str so values log and serialize cleanly.
    """

    IDLE = "idle"
    NORMALIZING = "normalizing"
    RENDERING = "rendering"
    CONCATENATING = "concatenating"
    DONE = "done"
    FAILED = "failed"


StateHook = Callable[[str, PipelineState], None]


def resolve_story(stories_dir: Path, story_id: Optional[str], segment_count: int) -> Story:
    """Validate ``story_id`` and build the Story for its directory.

    Raises:
        InputError: Missing or malformed id.
        StoryNotFoundError: No directory for the id.
    """
    if not story_id:
        raise InputError("Missing story id", public_message="error. missing id")
    if not STORY_ID_PATTERN.fullmatch(story_id):
        raise InputError("Malformed story id: {!r}".format(story_id), public_message="error. invalid id")

    directory = Path(stories_dir) / story_id
    if not directory.is_dir():
        raise StoryNotFoundError("Story directory not found: {}".format(directory))

    return Story.from_directory(directory, segment_count)


class StoryPipeline:
    """Builds the final captioned video for a story.

    WHY: Callers (HTTP API, CLI) only need "build this id, give me the
    video path". Everything else is internal.

    RULES:
    - settings: resolved Settings (stories_dir, segment_count, ffmpeg)
    - runner: optional FFmpegRunner; defaults to one built from settings
    - caption_style: defaults to CaptionStyle with settings.font_file
    - on_state: optional hook called with (story_id, PipelineState)
    """

    def __init__(
        self,
        settings: Settings,
        runner: Optional[FFmpegRunner] = None,
        caption_style: Optional[CaptionStyle] = None,
        on_state: Optional[StateHook] = None,
    ) -> None:
        self.settings = settings
        self.runner = runner or FFmpegRunner(settings.ffmpeg)
        self.caption_style = caption_style or CaptionStyle(fontfile=settings.font_file)
        self._on_state = on_state

    def _set_state(self, story_id: str, state: PipelineState) -> None:
        logger.debug("Story %s: %s", story_id, state.value)
        if self._on_state is None:
            return
        try:
            self._on_state(story_id, state)
        except Exception:
            logger.exception("State hook failed for story %s (%s)", story_id, state.value)

    def _discard_previous_video(self, story: Story) -> None:
        """Remove final.mp4 from an earlier build so a failed rebuild leaves none."""
        try:
            story.final_path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise PipelineError(
                "Story {}: cannot remove previous video {}: {}".format(story.id, story.final_path, exc)
            ) from exc
        logger.info("Story %s: removed previous %s", story.id, story.final_path.name)

    async def _render_segment(self, segment: Segment) -> Path:
        """Parse, build captions, and render one ready segment."""
        transcript = load_transcript(segment.transcript_path)
        caption_filter = build_caption_filter(transcript, self.caption_style)
        logger.debug(
            "Segment %d: %d caption clause(s), duration %s",
            segment.index, len(split_filter_chain(caption_filter)), transcript.duration_arg,
        )
        return await self.runner.render_segment(
            image=segment.image_path,
            audio=segment.audio_path,
            caption_filter=caption_filter,
            duration=transcript.duration_arg,
            output=segment.clip_path,
            segment_index=segment.index,
        )

    async def render_all(self, segments: List[Segment]) -> List[Path]:
        """Render segments concurrently and wait for every one to finish.

        Raises:
            The first exception in segment order, after all tasks ended.
        """
        results = await asyncio.gather(
            *(self._render_segment(s) for s in segments),
            return_exceptions=True,
        )
        clips: List[Path] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            clips.append(result)
        return clips

    async def build(self, story_id: Optional[str]) -> str:
        """Assemble the final video for ``story_id``.

        Returns:
            "<id>/final.mp4", relative to the stories root.

        Raises:
            InputError: Invalid or unknown id (no side effects).
            PipelineError: Any processing failure (subclass says which).
        """
        story = resolve_story(self.settings.stories_dir, story_id, self.settings.segment_count)
        self._set_state(story.id, PipelineState.IDLE)

        try:
            self._set_state(story.id, PipelineState.NORMALIZING)
            self._discard_previous_video(story)
            normalize_story_assets(story)
            ready, missing = locate_segments(story)

            self._set_state(story.id, PipelineState.RENDERING)
            clips = await self.render_all(ready)

            if missing:
                indexes = [s.index for s in missing]
                raise IncompleteStoryError(
                    "Story {}: segment(s) {} missing files; not building final video".format(
                        story.id, ", ".join(str(i) for i in indexes)
                    ),
                    missing_segments=indexes,
                )

            self._set_state(story.id, PipelineState.CONCATENATING)
            await self.runner.concat_clips(clips, story.final_path)
        except PipelineError:
            self._set_state(story.id, PipelineState.FAILED)
            raise
        except Exception as exc:
            self._set_state(story.id, PipelineState.FAILED)
            raise PipelineError("Story {}: unexpected failure: {}".format(story.id, exc)) from exc

        self._set_state(story.id, PipelineState.DONE)
        logger.info("Story %s: done", story.id)
        return story.final_relative_path
