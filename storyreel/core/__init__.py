"""Core story model, asset normalization, transcripts, and caption filters.

WHY: The core package holds everything about a story that does not
involve running external processes: the file layout, the timing
transcript model, and caption filter construction.

HOW: ir.py defines the data structures, assets.py maps raw generation
output onto canonical names, transcript.py loads timing files, and
captions.py turns transcripts into ffmpeg drawtext chains.

RULES:
- Nothing in core starts a subprocess
- captions.py is pure (no I/O)
"""
