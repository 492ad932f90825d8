"""Story Reel: narrated story videos with word-synced captions.

WHY: A generation tool turns a URL into a short story made of a few
segments, each with an image, a voiceover, and per-word timings. Those
pieces are useless until they are assembled into one watchable video.
This package runs the generation tool and assembles its output.

HOW: Three stages: generate (external GPTScript tool), normalize and
render (one ffmpeg clip per segment, in parallel), and concatenate
(one final.mp4 per story). The HTTP API and CLI are thin shells over
StoryPipeline and GenerationClient.

RULES:
- A story directory is the only unit of state
- final.mp4 exists only when every segment rendered successfully
- External processes are always bounded by a timeout
"""

__version__ = "0.1.0"
