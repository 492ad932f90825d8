"""Story identifiers, directory bootstrap, and the completed-story catalog.

WHY: Every story lives in its own directory under the stories root,
named by an opaque id. Creating ids, creating the directory, and
listing which stories have a finished video are small filesystem
helpers shared by the API and the CLI.

RULES:
- Ids are lowercase hex, 12 characters, and match STORY_ID_PATTERN
- A story is complete iff its directory contains final.mp4
- list_completed_stories() is read-only and returns sorted ids
- A missing stories root lists as empty
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import List, Union

from storyreel.config import FINAL_VIDEO_NAME, STORY_ID_PATTERN

logger = logging.getLogger(__name__)

_ID_LENGTH = 12


def new_story_id() -> str:
    return uuid.uuid4().hex[:_ID_LENGTH]


def is_valid_story_id(value: str) -> bool:
    return bool(value) and STORY_ID_PATTERN.fullmatch(value) is not None


def create_story_dir(stories_dir: Union[str, Path], story_id: str) -> Path:
    """Create (if needed) and return the directory for ``story_id``."""
    if not is_valid_story_id(story_id):
        raise ValueError("Invalid story id: {!r}".format(story_id))
    path = Path(stories_dir) / story_id
    path.mkdir(parents=True, exist_ok=True)
    logger.info("Created story directory %s", path)
    return path


def list_completed_stories(stories_dir: Union[str, Path]) -> List[str]:
    """Return ids of stories whose final video exists."""
    root = Path(stories_dir)
    if not root.is_dir():
        return []
    return sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_dir()
        and is_valid_story_id(entry.name)
        and (entry / FINAL_VIDEO_NAME).exists()
    )
