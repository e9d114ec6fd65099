import subprocess
from typing import Optional, Sequence

from ..exceptions import DependencyError, ProbeError

DEFAULT_PROBE_TIMEOUT = 5.0

# Substrings of ffprobe diagnostics that mark a file as unplayable.
# Plain text matching; false positives and negatives are accepted.
CORRUPTION_MARKERS = ("error", "Invalid data found when processing input")


def _probe_command(ffprobe_bin: str, filepath: str) -> list:
    return [
        ffprobe_bin,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=codec_type",
        "-of", "default=noprint_wrappers=1:nokey=1",
        filepath,
    ]


def looks_corrupted(output: str) -> bool:
    return any(marker in output for marker in CORRUPTION_MARKERS)


class MediaProbe:
    """
    Corruption check backed by ffprobe.

    A probe that does not finish within the timeout counts as playable:
    slow-to-open files are usually large, not broken.
    """
    def __init__(self, ffprobe_bin: str = "ffprobe", timeout: float = DEFAULT_PROBE_TIMEOUT):
        self.ffprobe_bin = ffprobe_bin
        self.timeout = timeout

    def is_corrupted(self, filepath: str, timeout: Optional[float] = None) -> bool:
        cmd = _probe_command(self.ffprobe_bin, filepath)
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=timeout if timeout is not None else self.timeout,
            )
        except subprocess.TimeoutExpired:
            return False
        except OSError as e:
            raise ProbeError(f"could not run {self.ffprobe_bin}: {e}") from e

        output = result.stdout or ""
        if looks_corrupted(output):
            print(f"🚨 Video is corrupted: {filepath} {output.strip()}")
            return True

        if result.returncode != 0:
            raise ProbeError(f"{output.strip()}: {self.ffprobe_bin} exited with status {result.returncode}")

        return False


def ensure_tool_available(command: Sequence[str]) -> None:
    """Runs e.g. `ffmpeg -version`, raising DependencyError if it does not succeed."""
    try:
        subprocess.run(
            list(command),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise DependencyError(f"{command[0]} not found. Please install {command[0]}.") from e
