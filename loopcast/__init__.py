"""loopcast: fetch, validate and loop-stream test videos through a local media server."""

__version__ = "1.0.0"
