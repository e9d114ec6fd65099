import os
from typing import List, Optional

from ..exceptions import ProbeError, ScanError
from ..models.remote_asset import PARTIAL_SUFFIX
from ..scanner.inspector import Validator


def is_safe_to_delete(path: str, expected_parent: str) -> bool:
    """Strict check to ensure the file is a direct child of the directory we manage."""
    abs_path = os.path.abspath(path)
    abs_parent = os.path.abspath(expected_parent)
    return os.path.dirname(abs_path) == abs_parent and os.path.isfile(abs_path)


def purge_corrupted_videos(video_dir: str, validator: Validator, timeout: Optional[float] = None) -> List[str]:
    """
    Probes every file in video_dir (bypassing the validity cache) and deletes
    the corrupted ones. Returns the removed file names.
    Stops at the first file that cannot be probed or removed.
    """
    print(f"🧹 Removing corrupted videos in {video_dir}...")
    try:
        entries = list(os.scandir(video_dir))
    except OSError as e:
        raise ScanError(f"failed to read '{video_dir}' directory: {e}") from e

    removed = []
    for entry in entries:
        if entry.is_dir() or entry.name.endswith(PARTIAL_SUFFIX):
            continue
        try:
            corrupted = validator.is_corrupted(entry.path, timeout)
        except ProbeError as e:
            raise ScanError(f"failed to check if video '{entry.name}' is corrupted: {e}", entry.name) from e
        if not corrupted:
            continue
        if not is_safe_to_delete(entry.path, video_dir):
            print(f"  ⚠️ [Safety] Skipping unexpected file: {entry.name}")
            continue
        try:
            os.remove(entry.path)
        except OSError as e:
            raise ScanError(f"failed to remove corrupted video '{entry.name}': {e}", entry.name) from e
        print(f"Removed corrupted video: {entry.name}")
        removed.append(entry.name)

    print(f"✅ Cleanup complete. Removed {len(removed)} corrupted files.")
    return removed
