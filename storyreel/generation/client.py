"""Async client for the GPTScript story generation tool.

WHY: Story content (b-roll images, voiceovers, and word timing
transcripts) comes from a GPTScript program that reads a source URL and
writes files into a story directory. The service only needs to start
it, wait for it with a bound, and optionally surface its progress.

HOW: GenerationClient runs ``gptscript --disable-cache <script> --url
<url> --dir <dir>`` with asyncio.create_subprocess_exec. stdout and
stderr are merged and read line by line; each non-empty line is passed
to the optional on_event callback. The whole run is wrapped in
asyncio.wait_for with the configured timeout.

RULES:
- Non-zero exit, missing binary, or timeout → GenerationError
- On timeout the process is killed before raising
- on_event is fire-and-forget: exceptions from it are logged and ignored
- The output directory must already exist (created by the caller)
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import List, Optional, Union

from storyreel.config import Settings
from storyreel.errors import GenerationError

logger = logging.getLogger(__name__)

EventHook = Callable[[str], None]

_OUTPUT_TAIL_LINES = 20


class GenerationClient:
    """Runs the story generation script for one URL at a time.

    RULES:
    - gptscript_path / script / timeout_s default to the Settings values
    """

    def __init__(
        self,
        settings: Settings,
        gptscript_path: Optional[str] = None,
        script: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self._gptscript = gptscript_path or settings.gptscript_path
        self._script = script or settings.generation_script
        self._timeout_s = timeout_s if timeout_s is not None else settings.generation_timeout_s

    def build_command(self, url: str, output_dir: Union[str, Path]) -> List[str]:
        return [
            self._gptscript,
            "--disable-cache",
            self._script,
            "--url", url,
            "--dir", str(output_dir),
        ]

    async def _pump_output(
        self,
        stream: asyncio.StreamReader,
        tail: deque,
        on_event: Optional[EventHook],
    ) -> None:
        """Read process output line by line, keeping a tail for errors."""
        while True:
            raw = await stream.readline()
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            tail.append(line)
            logger.debug("gptscript: %s", line)
            if on_event is not None:
                try:
                    on_event(line)
                except Exception:
                    logger.exception("Generation event hook failed")

    async def generate(
        self,
        url: str,
        output_dir: Union[str, Path],
        on_event: Optional[EventHook] = None,
    ) -> None:
        """Generate a story for ``url`` into ``output_dir``.

        WHY: The pipeline only starts once the generation tool has
        written its raw files, so this call blocks until the tool exits.

        Args:
            url: Source article or page URL.
            output_dir: Existing story directory to write into.
            on_event: Optional callback receiving each output line.

        Raises:
            GenerationError: Tool missing, failed, or timed out.
        """
        cmd = self.build_command(url, output_dir)
        logger.info("Generating story for %s into %s", url, output_dir)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise GenerationError(
                "Cannot start {}: {}".format(self._gptscript, exc)
            ) from exc

        tail: deque = deque(maxlen=_OUTPUT_TAIL_LINES)

        async def _drain_and_wait() -> int:
            await self._pump_output(process.stdout, tail, on_event)
            return await process.wait()

        try:
            returncode = await asyncio.wait_for(_drain_and_wait(), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise GenerationError(
                "Story generation for {} timed out after {}s".format(url, self._timeout_s)
            )

        if returncode != 0:
            raise GenerationError(
                "Story generation for {} exited with {}: {}".format(
                    url, returncode, "\n".join(tail)
                )
            )

        logger.info("Generated story into %s", output_dir)
