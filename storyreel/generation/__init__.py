"""Story generation package: runs the external GPTScript story writer.

WHY: Story content (images, voiceovers, timing transcripts) is produced
by an external tool. This package keeps process handling for that tool
out of the HTTP and pipeline code.

RULES:
- All generation calls go through GenerationClient
- The tool writes raw files; normalization happens in the pipeline
"""

from storyreel.generation.client import GenerationClient

__all__ = ["GenerationClient"]
