"""Pydantic response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for response
serialization and automatic OpenAPI documentation. Keeping them in one
module makes the public contract of the service easy to review.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Response models never expose filesystem paths outside the stories root
- Error bodies always use ErrorResponse (a single ``detail`` string)
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class StoryCreatedResponse(BaseModel):
    """Returned after the generation tool has written a new story."""

    id: str = Field(description="New story identifier (lowercase alphanumeric).")

    model_config = {"json_schema_extra": {"examples": [{"id": "3f9c2a7b1d4e"}]}}


class VideoBuiltResponse(BaseModel):
    """Returned after the final video has been assembled.

    RULES:
    - video is relative to the stories root, which is served at "/"
    """

    id: str = Field(description="Story identifier.")
    video: str = Field(description="Final video path relative to the server root.")

    model_config = {"json_schema_extra": {
        "examples": [{"id": "3f9c2a7b1d4e", "video": "3f9c2a7b1d4e/final.mp4"}]
    }}


class StoryListResponse(BaseModel):
    """Identifiers of stories with a finished video."""

    stories: List[str] = Field(description="Completed story identifiers, sorted.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
