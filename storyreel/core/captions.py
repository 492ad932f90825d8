"""Build ffmpeg drawtext filter chains for word-synced captions.

WHY: Each segment clip shows its voiceover one word at a time, centred
in the lower quarter of the frame. ffmpeg can do this in a single pass
with one drawtext filter per word, each enabled only during that
word's timing window.

HOW: build_caption_filter() turns a Transcript into a comma-joined
chain of drawtext clauses, one per word, in transcript order. Clause
visibility uses ffmpeg's between(t,start,end) expression, which is
inclusive at both ends. CaptionStyle holds the visual parameters.

Free-text values (the word, the font path) pass through two ffmpeg
parsers. The filter option parser splits on ":" and honours "\\" and
"'" quoting; the filtergraph parser, which runs first, splits on ","
and also honours quoting, but takes everything between single quotes
literally. escape_option_value() handles the first level and
quote_filter_value() the second, closing and reopening the quote
around each apostrophe ('\\'').

RULES:
- Pure and deterministic: no I/O, same input → same string
- Exactly one clause per word; clauses joined with "," (no trailing comma)
- Zero words → "" (the renderer then omits -vf)
- Any word, including ones with ' " : , % or \\, renders literally
  (expansion=none turns off drawtext's %{...} sequences)
- start/end are written with two decimals
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from storyreel.core.ir import Transcript, WordTiming, format_seconds


@dataclass(frozen=True)
class CaptionStyle:
    """Visual parameters shared by every caption clause.

    Defaults: white 96px text with a 4px black outline, horizontally
    centred, baseline at three quarters of the frame height.
    """

    fontcolor: str = "white"
    fontsize: int = 96
    borderw: int = 4
    bordercolor: str = "black"
    x: str = "(w-text_w)/2"
    y: str = "(h*3/4)-text_h"
    fontfile: Optional[str] = None


def escape_option_value(value: str) -> str:
    """Backslash-escape the characters the filter option parser treats specially."""
    return value.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")


def quote_filter_value(value: str) -> str:
    """Quote an option value so it survives both ffmpeg parsing levels."""
    return "'" + escape_option_value(value).replace("'", "'\\''") + "'"


def escape_caption_text(text: str) -> str:
    return quote_filter_value(text)


def build_caption_clause(timing: WordTiming, style: CaptionStyle = CaptionStyle()) -> str:
    """Build the drawtext clause for a single word."""
    options = [
        "text={}".format(escape_caption_text(timing.word)),
        "expansion=none",
    ]
    if style.fontfile:
        options.append("fontfile={}".format(quote_filter_value(style.fontfile)))
    options.extend([
        "fontcolor={}".format(style.fontcolor),
        "fontsize={}".format(style.fontsize),
        "borderw={}".format(style.borderw),
        "bordercolor={}".format(style.bordercolor),
        "x={}".format(style.x),
        "y={}".format(style.y),
        "enable='between(t\\,{}\\,{})'".format(
            format_seconds(timing.start), format_seconds(timing.end)
        ),
    ])
    return "drawtext=" + ":".join(options)


def build_caption_filter(transcript: Transcript, style: CaptionStyle = CaptionStyle()) -> str:
    """Convert a transcript into one ffmpeg video filter expression.

    Args:
        transcript: Segment transcript; only ``words`` is used.
        style: Visual parameters applied to every word.

    Returns:
        The filter chain, or "" when the transcript has no words.
    """
    return ",".join(build_caption_clause(w, style) for w in transcript.words)


def split_filter_chain(expr: str) -> List[str]:
    """Split a filter chain into its top-level clauses.

    WHY: Commas separate filters, but commas also appear inside quoted
    text and as escaped argument separators (``\\,``). Debug logging and
    tests need the clause count ffmpeg itself would see.

    HOW: Scans characters the way the filtergraph parser does: outside
    quotes a backslash escapes the next character; inside single quotes
    every character is literal up to the closing quote.
    """
    if not expr:
        return []

    clauses: List[str] = []
    current: List[str] = []
    quoted = False
    i = 0
    while i < len(expr):
        ch = expr[i]
        if ch == "\\" and not quoted and i + 1 < len(expr):
            current.append(expr[i:i + 2])
            i += 2
            continue
        if ch == "'":
            quoted = not quoted
        elif ch == "," and not quoted:
            clauses.append("".join(current))
            current = []
            i += 1
            continue
        current.append(ch)
        i += 1
    clauses.append("".join(current))
    return clauses
