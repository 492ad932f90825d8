"""FastAPI application: create stories, build videos, list finished stories.

WHY: The front end needs three operations over HTTP (turn a URL into a
new story, assemble a story's video, and list stories that already have
one) plus direct download of the produced files. FastAPI gives request
validation and OpenAPI docs for free.

HOW: A module-level app exposes GET endpoints mirroring the front end's
calls (/create-story, /build-video, /samples). Story generation and
video assembly are awaited in the request, so the response carries the
final result. The stories directory is mounted at "/" so the returned
"<id>/final.mp4" path downloads directly. CORS is open to all origins.

RULES:
- Errors use ErrorResponse; only StoryReelError.public_message is sent
- Full error detail is logged server-side with logger.exception
- Missing/invalid id → 400, unknown id → 404, processing failure → 500
- settings is read at call time; configure() swaps it and remounts the
  static stories directory
- The stories root is created on startup if it does not exist
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from storyreel import __version__
from storyreel.catalog import create_story_dir, list_completed_stories, new_story_id
from storyreel.config import Settings, load_settings
from storyreel.errors import GenerationError, InputError, StoryReelError
from storyreel.generation import GenerationClient
from storyreel.pipeline import StoryPipeline
from storyreel.server.models import (
    ErrorResponse,
    HealthResponse,
    StoryCreatedResponse,
    StoryListResponse,
    VideoBuiltResponse,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and settings setup
# ---------------------------------------------------------------------------

settings: Settings = load_settings()

_STORIES_MOUNT = "stories"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Make sure the stories root exists before serving requests."""
    settings.stories_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Serving stories from %s", settings.stories_dir.resolve())
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Story Reel API",
    description=(
        "Generate short narrated stories from a URL and assemble them into "
        "captioned videos. Create a story, build its video, then download "
        "the returned path."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_pipeline() -> StoryPipeline:
    return StoryPipeline(settings)


def _make_generator() -> GenerationClient:
    return GenerationClient(settings)


def _log_generation_event(line: str) -> None:
    logger.info("generation: %s", line)


def _to_http_error(exc: StoryReelError) -> HTTPException:
    """Translate a domain error into an HTTPException with a safe message."""
    return HTTPException(status_code=exc.status_code, detail=exc.public_message)


# ---------------------------------------------------------------------------
# Endpoints: Stories
# ---------------------------------------------------------------------------


@app.get(
    "/create-story",
    response_model=StoryCreatedResponse,
    tags=["stories"],
    summary="Generate a new story from a URL",
    description=(
        "Creates a story directory and runs the generation tool on the "
        "given URL. Returns the new story id once generation finishes."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Missing url"},
        500: {"model": ErrorResponse, "description": "Generation failed"},
    },
)
async def create_story(
    url: Optional[str] = Query(default=None, description="Source URL for the story."),
) -> StoryCreatedResponse:
    if not url or not url.strip():
        raise HTTPException(status_code=400, detail="error. missing url")

    story_id = new_story_id()
    try:
        story_dir = create_story_dir(settings.stories_dir, story_id)
    except OSError:
        logger.exception("Cannot create directory for story %s", story_id)
        raise HTTPException(status_code=500, detail=GenerationError.public_message)

    logger.info("Creating story %s from %s", story_id, url)
    try:
        await _make_generator().generate(url.strip(), story_dir, on_event=_log_generation_event)
    except StoryReelError as exc:
        logger.exception("Story generation failed for %s", story_id)
        raise _to_http_error(exc)

    return StoryCreatedResponse(id=story_id)


@app.get(
    "/build-video",
    response_model=VideoBuiltResponse,
    tags=["stories"],
    summary="Assemble the captioned video for a story",
    description=(
        "Renders every segment of the story into a captioned clip and "
        "concatenates them into final.mp4. Re-running overwrites the "
        "previous video."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid id"},
        404: {"model": ErrorResponse, "description": "Story not found"},
        500: {"model": ErrorResponse, "description": "Video processing failed"},
    },
)
async def build_video(
    story_id: Optional[str] = Query(default=None, alias="id", description="Story identifier."),
) -> VideoBuiltResponse:
    try:
        video = await _make_pipeline().build(story_id)
    except InputError as exc:
        logger.warning("Rejected build request: %s", exc)
        raise _to_http_error(exc)
    except StoryReelError as exc:
        logger.exception("Video processing failed for story %s", story_id)
        raise _to_http_error(exc)

    return VideoBuiltResponse(id=story_id, video=video)


@app.get(
    "/samples",
    response_model=StoryListResponse,
    tags=["stories"],
    summary="List stories with a finished video",
)
async def list_samples() -> StoryListResponse:
    return StoryListResponse(stories=list_completed_stories(settings.stories_dir))


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check for load balancers and orchestrators.",
)
@app.get("/test", response_model=HealthResponse, include_in_schema=False)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def _mount_stories() -> None:
    """Serve the stories root at "/"; mounted last so API routes take precedence."""
    app.mount("/", StaticFiles(directory=str(settings.stories_dir), check_dir=False), name=_STORIES_MOUNT)


def configure(new_settings: Settings) -> None:
    """Point the app at ``new_settings`` (used by ``storyreel serve``).

    RULES:
    - Replaces the module settings read by every endpoint
    - Remounts the static stories directory from the new stories_dir
    """
    global settings
    settings = new_settings
    app.router.routes[:] = [
        route for route in app.router.routes
        if getattr(route, "name", None) != _STORIES_MOUNT
    ]
    _mount_stories()


_mount_stories()


def run_api() -> None:
    """Entry point for the storyreel-api console script."""
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
