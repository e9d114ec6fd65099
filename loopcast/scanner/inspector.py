from typing import Optional, Protocol


class Validator(Protocol):
    """
    Protocol for corruption checks.
    MediaProbe implements it on top of ffprobe; tests substitute fakes.
    """

    def is_corrupted(self, filepath: str, timeout: Optional[float] = None) -> bool:
        """
        Return True if the file looks corrupted, False if it looks playable
        or the check ran out of time. Raise ProbeError if the check itself
        failed.
        """
        ...
