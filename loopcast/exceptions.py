"""
Exception hierarchy for loopcast.

Fatal setup errors (manifest, cache, scan, dependencies, media server)
propagate to the CLI, which prints the cause and exits non-zero.
Per-item errors (one download, one stream) are reported where they happen.
"""

from typing import List, Optional


class LoopcastError(Exception):
    """Base class for all loopcast errors."""
    pass


class ManifestError(LoopcastError):
    """Raised when the asset manifest cannot be read or is malformed."""
    pass


class CacheError(LoopcastError):
    """Raised when the validity cache file cannot be read or parsed."""
    pass


class CacheWriteError(CacheError):
    """
    Raised when the validity cache cannot be persisted.

    The scan that produced the cache still succeeded, so the valid file
    list is attached for callers that want to keep going this run.
    """

    def __init__(self, message: str, valid_files: Optional[List[str]] = None):
        super().__init__(message)
        self.valid_files = list(valid_files or [])


class ProbeError(LoopcastError):
    """The validator tool failed for a reason other than a corrupted file."""
    pass


class ScanError(LoopcastError):
    """Raised when a directory scan aborts on a file it cannot classify."""

    def __init__(self, message: str, filename: str = ""):
        super().__init__(message)
        self.filename = filename


class DownloadError(LoopcastError):
    """A single asset download failed."""

    def __init__(self, message: str, asset_name: str = ""):
        super().__init__(message)
        self.asset_name = asset_name


class DependencyError(LoopcastError):
    """A required external binary (ffmpeg, ffprobe) is missing."""
    pass


class ServerNotReadyError(LoopcastError):
    """The media server exited or timed out before signalling readiness."""
    pass
