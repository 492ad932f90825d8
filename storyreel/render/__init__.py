"""Rendering package: ffmpeg invocation for clips and the final video.

RULES:
- All ffmpeg processes are started by FFmpegRunner
- Command construction is pure and testable without ffmpeg installed
"""

from storyreel.render.ffmpeg import FFmpegRunner, ProcessResult

__all__ = ["FFmpegRunner", "ProcessResult"]
