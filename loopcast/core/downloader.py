"""
Download Coordinator
====================
Fetches the videos listed in the manifest into the video directory.

At most `max_concurrent` downloads hold the admission gate at any time.
A failing asset is reported and recorded in its DownloadResult; it never
aborts its siblings or the fetch_all() call itself.
"""

import asyncio
import json
import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Mapping, Optional, Union

import requests

from ..exceptions import DownloadError, ManifestError, ProbeError
from ..models.remote_asset import PARTIAL_SUFFIX, DownloadResult, DownloadStatus, RemoteAsset
from ..scanner.inspector import Validator
from ..security import validate_filename

DEFAULT_MAX_CONCURRENT = 8
DOWNLOAD_CHUNK_SIZE = 131072
PROGRESS_INTERVAL = 5.0
CONNECTION_TIMEOUT = 15
USER_AGENT = "loopcast/1.0"

AssetSource = Union[Mapping[str, str], Iterable[RemoteAsset]]


def load_manifest(manifest_file: str) -> List[RemoteAsset]:
    """
    Reads the {name: url} manifest. Order follows the JSON object; it has no
    meaning beyond deciding which assets a download limit picks.
    """
    try:
        with open(manifest_file, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ManifestError(f"failed to open {manifest_file}: {e}") from e
    except ValueError as e:
        raise ManifestError(f"failed to decode {manifest_file}: {e}") from e

    if not isinstance(raw, dict):
        raise ManifestError(f"failed to decode {manifest_file}: expected a JSON object")

    assets = []
    for name, url in raw.items():
        if not isinstance(url, str) or not url:
            raise ManifestError(f"invalid URL for '{name}' in {manifest_file}")
        if not name or not validate_filename(name):
            raise ManifestError(f"invalid file name '{name}' in {manifest_file}")
        assets.append(RemoteAsset(name=name, url=url))
    return assets


def _as_assets(assets: AssetSource) -> List[RemoteAsset]:
    if isinstance(assets, Mapping):
        return [RemoteAsset(name=name, url=url) for name, url in assets.items()]
    return list(assets)


def select_assets(assets: AssetSource, limit: int = -1) -> List[RemoteAsset]:
    """-1 selects everything, otherwise the first `limit` assets."""
    items = _as_assets(assets)
    if limit == -1:
        return items
    if limit < 0:
        raise ValueError(f"limit must be -1 or non-negative, got {limit}")
    return items[:limit]


class ProgressReporter:
    """
    Prints '<name>... NN%' at most once per interval while bytes arrive.
    An unknown or zero content length reports the byte count instead.
    """
    def __init__(self, filename: str, total: int, interval: float = PROGRESS_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self.filename = filename
        self.total = total
        self.current = 0
        self.interval = interval
        self._clock = clock
        self._last_report = clock()

    @property
    def percent(self) -> Optional[int]:
        if self.total <= 0:
            return None
        return self.current * 100 // self.total

    def update(self, n: int) -> None:
        self.current += n
        now = self._clock()
        if now - self._last_report < self.interval:
            return
        self._last_report = now
        pct = self.percent
        if pct is None:
            print(f"📥 Downloading {self.filename}... {self.current / (1024 * 1024):.1f} MB")
        else:
            print(f"📥 Downloading {self.filename}... {pct}%")


def _content_length(response) -> int:
    try:
        return int(response.headers.get("Content-Length") or 0)
    except (TypeError, ValueError):
        return 0


class DownloadCoordinator:
    """
    Fetches assets concurrently into video_dir.

    Existing files are re-checked with the validator first and deleted when
    corrupted. Bodies are streamed to '<name>.part' and renamed into place
    once complete.
    """
    def __init__(self, video_dir: str, validator: Validator,
                 session: Optional[requests.Session] = None,
                 max_concurrent: int = DEFAULT_MAX_CONCURRENT,
                 chunk_size: int = DOWNLOAD_CHUNK_SIZE,
                 progress_interval: float = PROGRESS_INTERVAL,
                 connect_timeout: float = CONNECTION_TIMEOUT,
                 read_timeout: Optional[float] = None,
                 probe_timeout: Optional[float] = None):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.video_dir = video_dir
        self.validator = validator
        self.max_concurrent = max_concurrent
        self.chunk_size = chunk_size
        self.progress_interval = progress_interval
        self.timeout = (connect_timeout, read_timeout)
        self.probe_timeout = probe_timeout

        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": USER_AGENT})
        self.session = session

    async def fetch_all(self, assets: AssetSource, limit: int = -1) -> List[DownloadResult]:
        """
        Downloads the selected assets and returns one result per attempted
        asset, after every task has finished. Never raises for per-asset
        failures.
        """
        selected = select_assets(assets, limit)
        if not selected:
            return []

        os.makedirs(self.video_dir, exist_ok=True)
        gate = asyncio.Semaphore(self.max_concurrent)
        loop = asyncio.get_running_loop()

        with ThreadPoolExecutor(max_workers=self.max_concurrent, thread_name_prefix="download") as executor:
            async def _process(asset: RemoteAsset) -> DownloadResult:
                async with gate:
                    return await loop.run_in_executor(executor, self.download_asset, asset)

            results = await asyncio.gather(*(_process(a) for a in selected))

        done = sum(1 for r in results if r.ok)
        print(f"✅ Downloads finished: {done}/{len(results)} succeeded.")
        return list(results)

    def download_asset(self, asset: RemoteAsset) -> DownloadResult:
        """Blocking download of one asset. Errors become a FAILED result."""
        try:
            removed, written = self._download(asset)
        except (DownloadError, ProbeError) as e:
            print(f"❌ {e}")
            return DownloadResult(name=asset.name, status=DownloadStatus.FAILED, error=str(e))

        print(f"✅ Download of {asset.name} finished")
        return DownloadResult(
            name=asset.name,
            status=DownloadStatus.DONE,
            bytes_written=written,
            removed_corrupted=removed,
        )

    def _download(self, asset: RemoteAsset):
        path = os.path.join(self.video_dir, asset.name)
        part_path = path + PARTIAL_SUFFIX

        removed = False
        if os.path.exists(path):
            try:
                corrupted = self.validator.is_corrupted(path, self.probe_timeout)
            except ProbeError as e:
                raise ProbeError(
                    f"failed to check if video '{asset.name}' from url '{asset.url}' is corrupted: {e}"
                ) from e
            if corrupted:
                try:
                    os.remove(path)
                except OSError as e:
                    raise DownloadError(f"failed to remove corrupted video {path}: {e}", asset.name) from e
                print(f"🧹 Removed corrupted copy of {asset.name} before re-download")
                removed = True

        written = 0
        try:
            with self.session.get(asset.url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                reporter = ProgressReporter(asset.name, _content_length(response), self.progress_interval)
                with open(part_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            f.write(chunk)
                            written += len(chunk)
                            reporter.update(len(chunk))
            os.replace(part_path, path)
        except requests.RequestException as e:
            self._discard(part_path)
            raise DownloadError(f"failed to get url {asset.url}: {e}", asset.name) from e
        except (OSError, ValueError) as e:
            self._discard(part_path)
            raise DownloadError(f"failed to write {path}: {e}", asset.name) from e

        return removed, written

    @staticmethod
    def _discard(part_path: str) -> None:
        if os.path.exists(part_path):
            try:
                os.remove(part_path)
            except OSError as e:
                print(f"⚠️ Could not remove partial download {part_path}: {e}")


def run_fetch_all(coordinator: DownloadCoordinator, assets: AssetSource, limit: int = -1) -> List[DownloadResult]:
    """Synchronous entry point for the CLI."""
    return asyncio.run(coordinator.fetch_all(assets, limit))
