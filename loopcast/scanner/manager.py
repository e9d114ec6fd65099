import os
import time
from typing import Dict, List, Optional

from ..core.hasher import hash_file
from ..database.json_store import ValidityCache
from ..exceptions import CacheWriteError, ProbeError, ScanError
from ..models.remote_asset import PARTIAL_SUFFIX
from ..models.validity_entry import ValidityCacheEntry
from .inspector import Validator


class ValidityScanner:
    """
    Classifies every file of the video directory as valid or corrupted:
    1. Cache Load (ValidityCache)
    2. Content Hash per file (fresh on every scan)
    3. Validation for unseen hashes only (Validator)
    4. Persistence (always, once, at the end)

    Runs single-threaded; the cache mapping is never shared.
    """
    def __init__(self, cache: ValidityCache, validator: Validator, probe_timeout: Optional[float] = None):
        self.cache = cache
        self.validator = validator
        self.probe_timeout = probe_timeout
        self.validations = 0
        self.cache_hits = 0

    def scan_directory(self, video_dir: str) -> List[str]:
        """
        Returns names of the non-corrupted files in video_dir, in directory
        iteration order. Sub-directories and unfinished
        downloads (*.part) are ignored.

        Any file that cannot be hashed or validated aborts the scan with
        ScanError. If only the final cache write fails, CacheWriteError is
        raised carrying the valid file list.
        """
        start_time = time.time()
        self.validations = 0
        self.cache_hits = 0

        cache: Dict[str, ValidityCacheEntry] = self.cache.load()

        try:
            entries = list(os.scandir(video_dir))
        except OSError as e:
            raise ScanError(f"failed to read '{video_dir}' directory: {e}") from e

        valid_videos: List[str] = []
        for entry in entries:
            if entry.is_dir() or entry.name.endswith(PARTIAL_SUFFIX):
                continue

            try:
                file_hash = hash_file(entry.path)
            except OSError as e:
                raise ScanError(f"failed to hash video '{entry.name}': {e}", entry.name) from e

            cached = cache.get(file_hash)
            if cached is not None:
                self.cache_hits += 1
                if not cached.is_corrupted:
                    valid_videos.append(entry.name)
                continue

            try:
                corrupted = self.validator.is_corrupted(entry.path, self.probe_timeout)
            except ProbeError as e:
                raise ScanError(f"failed to check if video '{entry.name}' is corrupted: {e}", entry.name) from e
            self.validations += 1

            cache[file_hash] = ValidityCacheEntry(content_hash=file_hash, is_corrupted=corrupted)
            if not corrupted:
                valid_videos.append(entry.name)

        try:
            self.cache.save(cache)
        except CacheWriteError as e:
            raise CacheWriteError(str(e), valid_files=valid_videos) from e

        duration = time.time() - start_time
        print(f"✅ Scan completed in {duration:.2f}s. {len(valid_videos)} valid, "
              f"{self.validations} probed, {self.cache_hits} from cache.")
        return valid_videos
