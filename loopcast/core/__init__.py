# loopcast core package

from .hasher import hash_file
from .downloader import DownloadCoordinator, ProgressReporter, load_manifest, run_fetch_all
from .maintenance import purge_corrupted_videos
