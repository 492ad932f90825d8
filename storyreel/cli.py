"""Command-line interface for Story Reel.

WHY: Operators need to generate and assemble stories without running
the HTTP server: for batch jobs, for debugging a single story
directory, or to rebuild a video after fixing its assets by hand.

HOW: argparse subcommands map 1:1 to the service operations:
  create URL: make a story directory and run the generation tool
  build ID: assemble final.mp4 for an existing story
  list: print ids of stories that have a final video
  serve: start the HTTP API with uvicorn
Async work runs through asyncio.run(). Logging is configured from
LOG_LEVEL (or --log-level) and goes to stderr; results go to stdout.

RULES:
- stdout carries only results (ids, paths) so the CLI can be piped
- Exit code 0 on success, 2 on input errors, 1 on processing errors
- --stories-dir overrides STORIES_DIR for this invocation
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from storyreel import __version__
from storyreel.catalog import create_story_dir, list_completed_stories, new_story_id
from storyreel.config import LOG_LEVEL, Settings, load_settings
from storyreel.errors import InputError, StoryReelError
from storyreel.generation import GenerationClient
from storyreel.pipeline import PipelineState, StoryPipeline

logger = logging.getLogger("storyreel")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INPUT_ERROR = 2


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _print_state(story_id: str, state: PipelineState) -> None:
    _status("[{}] {}".format(story_id, state.value))


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = load_settings()
    if getattr(args, "stories_dir", None):
        settings = dataclasses.replace(settings, stories_dir=Path(args.stories_dir))
    return settings


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


async def _create(args: argparse.Namespace, settings: Settings) -> int:
    story_id = new_story_id()
    story_dir = create_story_dir(settings.stories_dir, story_id)
    _status("Generating story {} from {}".format(story_id, args.url))
    await GenerationClient(settings).generate(args.url, story_dir, on_event=_status)
    print(story_id)
    return EXIT_OK


async def _build(args: argparse.Namespace, settings: Settings) -> int:
    pipeline = StoryPipeline(settings, on_state=_print_state)
    video = await pipeline.build(args.story_id)
    print(video)
    return EXIT_OK


def _list(args: argparse.Namespace, settings: Settings) -> int:
    for story_id in list_completed_stories(settings.stories_dir):
        print(story_id)
    return EXIT_OK


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from storyreel.server import app as app_module

    app_module.configure(settings)
    uvicorn.run(app_module.app, host=args.host or settings.host, port=args.port or settings.port)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable. Tests can inspect the parser without running anything.
    """
    parser = argparse.ArgumentParser(
        prog="storyreel",
        description="Generate narrated stories from URLs and assemble them into captioned videos.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    parser.add_argument(
        "--stories-dir",
        default=None,
        help="Root directory for story folders (default: STORIES_DIR or ./stories).",
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        help="Logging level (default: %(default)s).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Generate a new story from a URL.")
    create.add_argument("url", help="Source URL for the story.")

    build = sub.add_parser("build", help="Assemble the final video for a story.")
    build.add_argument("story_id", help="Story identifier.")

    sub.add_parser("list", help="List stories that have a final video.")

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0).")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 8080).")

    return parser


def run(args: argparse.Namespace) -> int:
    """Dispatch a parsed command and map errors to exit codes."""
    try:
        settings = _settings_from_args(args)
        if args.command == "create":
            return asyncio.run(_create(args, settings))
        if args.command == "build":
            return asyncio.run(_build(args, settings))
        if args.command == "list":
            return _list(args, settings)
        return _serve(args, settings)
    except InputError as exc:
        _status("Error: {}".format(exc))
        return EXIT_INPUT_ERROR
    except ValueError as exc:
        # Configuration errors (bad SEGMENT_COUNT, PORT, ...)
        _status("Error: {}".format(exc))
        return EXIT_INPUT_ERROR
    except (StoryReelError, OSError) as exc:
        logger.debug("Command failed", exc_info=True)
        _status("Error: {}".format(exc))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        return 130


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m storyreel`` and the storyreel script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
