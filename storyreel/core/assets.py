"""Normalize generation output names and check segment readiness.

WHY: The generation tool writes files under its own naming convention
(b-roll-1.png, voiceover-1.mp3, voiceover-1.txt). The renderer consumes
canonical names (1.png, 1.mp3, transcription-1.json). Normalizing once
up front keeps the rest of the pipeline ignorant of the tool's quirks.

HOW: normalize_story_assets() walks every segment and renames each raw
file that exists onto its canonical path. locate_segments() then splits
segments into render-ready and missing ones by checking the canonical
paths.

RULES:
- Each rename is attempted independently; a missing raw file is skipped,
  never fatal, and logged unless its canonical file already exists
- An OSError during a rename aborts normalization with NormalizationError
- Renames replace an existing canonical file (os.replace)
- Re-running after a successful pass is a no-op (raw files are gone)
- Missing segments are logged, not raised; the orchestrator decides
"""

from __future__ import annotations

import logging
import os
from typing import List, Tuple

from storyreel.core.ir import Segment, Story
from storyreel.errors import NormalizationError

logger = logging.getLogger(__name__)


def normalize_story_assets(story: Story) -> int:
    """Rename raw generation output files to canonical segment names.

    Returns:
        Number of files renamed.

    Raises:
        NormalizationError: If the filesystem rejects a rename.
    """
    renamed = 0
    for segment in story.segments:
        for raw_path, canonical_path in segment.raw_renames():
            if not raw_path.exists():
                if not canonical_path.exists():
                    logger.warning("Story %s: file not found: %s", story.id, raw_path)
                continue
            try:
                os.replace(raw_path, canonical_path)
            except OSError as exc:
                raise NormalizationError(
                    "Story {}: cannot rename {} to {}: {}".format(
                        story.id, raw_path, canonical_path, exc
                    )
                ) from exc
            logger.debug("Story %s: renamed %s -> %s", story.id, raw_path.name, canonical_path.name)
            renamed += 1

    if renamed:
        logger.info("Story %s: normalized %d file(s)", story.id, renamed)
    return renamed


def locate_segments(story: Story) -> Tuple[List[Segment], List[Segment]]:
    """Split a story's segments into (ready, missing), both in index order."""
    ready: List[Segment] = []
    missing: List[Segment] = []
    for segment in story.segments:
        absent = segment.missing_files()
        if absent:
            logger.error(
                "Story %s: missing files for video segment %d: %s",
                story.id, segment.index, ", ".join(p.name for p in absent),
            )
            missing.append(segment)
        else:
            ready.append(segment)
    return ready, missing
