import json
import os
import shutil
import tempfile
from typing import Dict, Mapping

from ..exceptions import CacheError, CacheWriteError
from ..models.validity_entry import ValidityCacheEntry


class ValidityCache:
    """
    Persists validity verdicts to a JSON file, keyed by content hash.

    load() and save() are each called once per scan; the mapping itself is
    owned and mutated by the caller in between.
    """
    def __init__(self, cache_file: str):
        self.cache_file = cache_file

    def load(self) -> Dict[str, ValidityCacheEntry]:
        """Reads the cache. A missing file is an empty cache, not an error."""
        if not os.path.exists(self.cache_file):
            return {}

        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheError(f"failed to read cache {self.cache_file}: {e}") from e

        if not isinstance(raw_data, dict):
            raise CacheError(f"failed to read cache {self.cache_file}: expected a JSON object")

        cache: Dict[str, ValidityCacheEntry] = {}
        for content_hash, entry_dict in raw_data.items():
            if not isinstance(entry_dict, dict):
                print(f"⚠️ Skipping corrupted cache entry for {content_hash}")
                continue
            # The key is authoritative for the hash
            entry_dict = {**entry_dict, "hash": content_hash}
            try:
                cache[content_hash] = ValidityCacheEntry(**entry_dict)
            except ValueError as e:
                print(f"⚠️ Skipping corrupted cache entry for {content_hash}: {e}")
        return cache

    def save(self, cache: Mapping[str, ValidityCacheEntry]) -> None:
        """
        Persists the mapping using an atomic write pattern: temp file in the
        same directory, then rename over the old cache.
        """
        dump_data = {
            content_hash: entry.model_dump(by_alias=True)
            for content_hash, entry in cache.items()
        }

        cache_dir = os.path.dirname(os.path.abspath(self.cache_file))
        temp_path = None
        try:
            os.makedirs(cache_dir, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=cache_dir,
                prefix=".cache_tmp_",
                suffix=".json"
            )
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(dump_data, f, indent=4)

            # Atomic on POSIX (same filesystem)
            shutil.move(temp_path, self.cache_file)
            temp_path = None
        except OSError as e:
            raise CacheWriteError(f"failed to write cache {self.cache_file}: {e}") from e
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass
