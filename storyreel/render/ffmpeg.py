"""ffmpeg-driven segment rendering and clip concatenation.

WHY: Turning a still image, a voiceover, and a caption filter into a
video clip, and joining clips into the final story video, is exactly
what ffmpeg is for. Running it as an async subprocess lets the
orchestrator render all segments at once without threads.

HOW: FFmpegRunner wraps asyncio.create_subprocess_exec with the binary,
timeout, and encoding options from an injected FFmpegSettings. Command
construction (build_render_command / build_concat_command) is separate
from execution so it can be tested without ffmpeg installed.

RULES:
- Never goes through a shell; arguments are passed as a list
- Audio is stream-copied when rendering a segment (-c:a copy)
- The still image is looped and output is cut to exactly ``duration``
- An empty caption filter means no -vf option at all
- Concatenation uses the concat filter in input order (frame accurate)
- Every invocation is bounded by settings.timeout_s; on timeout the
  process is killed
- Failures raise RenderError / ConcatenationError with a stderr tail;
  partial outputs are left on disk
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from storyreel.config import FFmpegSettings
from storyreel.core.ir import format_seconds
from storyreel.errors import ConcatenationError, RenderError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_STDERR_TAIL_LINES = 20


@dataclass
class ProcessResult:
    """Outcome of one ffmpeg invocation."""

    returncode: Optional[int]
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0

    def stderr_tail(self, lines: int = _STDERR_TAIL_LINES) -> str:
        return "\n".join(self.stderr.strip().splitlines()[-lines:])


class FFmpegRunner:
    """Runs ffmpeg commands for one configuration.

    WHY: The ffmpeg path and limits used to be global state set once at
    startup. Holding them on an instance lets each pipeline (and each
    test) decide which binary and timeout to use.

    RULES:
    - settings defaults to FFmpegSettings() (``ffmpeg`` from PATH)
    - run() never raises on a non-zero exit; it returns ProcessResult
    - run() raises OSError if the binary cannot be executed
    """

    def __init__(self, settings: Optional[FFmpegSettings] = None) -> None:
        self.settings = settings or FFmpegSettings()

    # ------------------------------------------------------------------
    # Command construction
    # ------------------------------------------------------------------

    def _base_command(self) -> List[str]:
        return [self.settings.binary, *self.settings.global_args, "-y"]

    def build_render_command(
        self,
        image: PathLike,
        audio: PathLike,
        caption_filter: str,
        duration: Union[str, float],
        output: PathLike,
    ) -> List[str]:
        """Command that loops ``image`` under ``audio`` with captions burned in."""
        if not isinstance(duration, str):
            duration = format_seconds(duration)

        cmd = self._base_command()
        cmd.extend(["-loop", "1", "-i", str(image)])
        cmd.extend(["-i", str(audio)])
        cmd.extend(["-c:a", "copy"])
        if caption_filter:
            cmd.extend(["-vf", caption_filter])
        cmd.extend([
            "-c:v", self.settings.video_codec,
            "-pix_fmt", self.settings.pixel_format,
            "-t", duration,
            str(output),
        ])
        return cmd

    def build_concat_command(self, clips: Sequence[PathLike], output: PathLike) -> List[str]:
        """Command that joins ``clips`` (video + audio) in the given order."""
        cmd = self._base_command()
        for clip in clips:
            cmd.extend(["-i", str(clip)])

        streams = "".join("[{0}:v][{0}:a]".format(i) for i in range(len(clips)))
        graph = "{}concat=n={}:v=1:a=1[v][a]".format(streams, len(clips))
        cmd.extend([
            "-filter_complex", graph,
            "-map", "[v]",
            "-map", "[a]",
            "-c:v", self.settings.video_codec,
            "-pix_fmt", self.settings.pixel_format,
            str(output),
        ])
        return cmd

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, cmd: Sequence[str]) -> ProcessResult:
        """Execute one ffmpeg command, bounded by the configured timeout."""
        logger.debug("Running: %s", " ".join(cmd))
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.settings.timeout_s
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return ProcessResult(returncode=process.returncode, stderr="", timed_out=True)

        return ProcessResult(
            returncode=process.returncode,
            stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
        )

    async def render_segment(
        self,
        image: PathLike,
        audio: PathLike,
        caption_filter: str,
        duration: Union[str, float],
        output: PathLike,
        segment_index: Optional[int] = None,
    ) -> Path:
        """Render one captioned clip.

        WHY: Each story segment becomes its own clip so segments can be
        rendered in parallel and joined afterwards.

        Args:
            image: Still image shown for the whole clip.
            audio: Voiceover track, copied without re-encoding.
            caption_filter: drawtext chain from build_caption_filter().
            duration: Clip length in seconds ("3.00" or 3.0).
            output: Clip path; overwritten if it exists.
            segment_index: 1-based index, used in logs and errors.

        Raises:
            RenderError: ffmpeg missing, failed, or timed out.
        """
        label = "segment {}".format(segment_index) if segment_index is not None else str(output)
        cmd = self.build_render_command(image, audio, caption_filter, duration, output)
        logger.info("Processing %s: %s and %s", label, image, audio)

        try:
            result = await self.run(cmd)
        except OSError as exc:
            raise RenderError(
                "Cannot start ffmpeg ({}) for {}: {}".format(self.settings.binary, label, exc),
                segment_index=segment_index,
            ) from exc

        if result.timed_out:
            raise RenderError(
                "ffmpeg timed out after {}s rendering {}".format(self.settings.timeout_s, label),
                segment_index=segment_index,
            )
        if not result.ok:
            tail = result.stderr_tail()
            raise RenderError(
                "ffmpeg exited with {} rendering {}: {}".format(result.returncode, label, tail),
                segment_index=segment_index,
                stderr_tail=tail,
            )

        logger.info("%s is complete", output)
        return Path(output)

    async def concat_clips(self, clips: Sequence[PathLike], output: PathLike) -> Path:
        """Join rendered clips, in order, into ``output``.

        Raises:
            ConcatenationError: No clips, a clip is missing, or ffmpeg
                failed or timed out.
        """
        if not clips:
            raise ConcatenationError("No clips to concatenate")
        absent = [str(c) for c in clips if not Path(c).exists()]
        if absent:
            raise ConcatenationError("Clips not found: {}".format(", ".join(absent)))

        cmd = self.build_concat_command(clips, output)
        logger.info("Merging %d clips into %s", len(clips), output)

        try:
            result = await self.run(cmd)
        except OSError as exc:
            raise ConcatenationError(
                "Cannot start ffmpeg ({}): {}".format(self.settings.binary, exc)
            ) from exc

        if result.timed_out:
            raise ConcatenationError(
                "ffmpeg timed out after {}s merging into {}".format(self.settings.timeout_s, output)
            )
        if not result.ok:
            tail = result.stderr_tail()
            raise ConcatenationError(
                "ffmpeg exited with {} merging into {}: {}".format(result.returncode, output, tail),
                stderr_tail=tail,
            )

        return Path(output)
