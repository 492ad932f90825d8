"""HTTP API package: FastAPI app exposing story creation and video builds.

RULES:
- Thin layer: all work is delegated to GenerationClient and StoryPipeline
- Domain errors are translated to HTTP status codes here and nowhere else
"""
