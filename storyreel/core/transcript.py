"""Load and validate per-segment word timing transcripts.

WHY: Each segment's caption overlay is driven by a JSON transcript the
generation tool writes next to the voiceover. A malformed file must
fail loudly with a typed error instead of crashing inside a concurrent
render task.

HOW: The file is read as UTF-8 JSON and validated against
TRANSCRIPT_SCHEMA with jsonschema. Numeric fields may be numbers or
numeric strings (the generation tool is not consistent); they are
coerced to float after validation.

RULES:
- Missing file, invalid JSON, or schema failure → TranscriptParseError
- duration must coerce to a positive float
- Word timing ranges are not rejected: start > end or negative values
  are kept as-is and logged as warnings (such clauses simply never show)
- Word order is preserved exactly as in the file
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Union

import jsonschema

from storyreel.core.ir import Transcript, WordTiming
from storyreel.errors import TranscriptParseError

logger = logging.getLogger(__name__)

_NUMERIC = {
    "anyOf": [
        {"type": "number"},
        {"type": "string", "pattern": r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?\s*$"},
    ]
}

TRANSCRIPT_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["duration", "words"],
    "properties": {
        "duration": _NUMERIC,
        "words": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["word", "start", "end"],
                "properties": {
                    "word": {"type": "string"},
                    "start": _NUMERIC,
                    "end": _NUMERIC,
                },
            },
        },
    },
}


def parse_transcript(data: Any, source: Union[str, Path] = "<memory>") -> Transcript:
    """Validate a decoded transcript document and build a Transcript.

    Args:
        data: The decoded JSON value.
        source: Name used in error and log messages.

    Raises:
        TranscriptParseError: On schema violations or a non-positive duration.
    """
    try:
        jsonschema.validate(instance=data, schema=TRANSCRIPT_SCHEMA)
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise TranscriptParseError(
            "Invalid transcript {} at {}: {}".format(source, location, exc.message)
        ) from exc

    duration = float(data["duration"])
    if not (duration > 0 and math.isfinite(duration)):
        raise TranscriptParseError(
            "Invalid transcript {}: duration must be positive, got {}".format(source, duration)
        )

    words = []
    for position, item in enumerate(data["words"]):
        timing = WordTiming(
            word=item["word"],
            start=float(item["start"]),
            end=float(item["end"]),
        )
        if not timing.is_well_formed:
            logger.warning(
                "Transcript %s word #%d %r has malformed range [%s, %s]; rendering as-is",
                source, position, timing.word, timing.start, timing.end,
            )
        words.append(timing)

    return Transcript(duration=duration, words=words)


def load_transcript(path: Union[str, Path]) -> Transcript:
    """Read a transcript JSON file from disk.

    WHY: Transcripts are read inside concurrent render tasks; every way
    the file can be wrong must surface as TranscriptParseError so the
    orchestrator reports one pipeline failure.

    RULES:
    - OSError or UnicodeDecodeError (missing/unreadable) → TranscriptParseError
    - json.JSONDecodeError → TranscriptParseError
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TranscriptParseError("Cannot read transcript {}: {}".format(path, exc)) from exc

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise TranscriptParseError("Transcript {} is not valid JSON: {}".format(path, exc)) from exc

    return parse_transcript(data, source=path)
