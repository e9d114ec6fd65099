import os
import json
from typing import List, Dict, Any, Optional
from pydantic import Field
from pydantic_settings import BaseSettings

# ==============================================================================
# CONSTANTS & PATHS
# ==============================================================================

DEFAULT_PORT = 8080

# Everything is resolved relative to the working directory unless overridden,
# so a checkout with ./Video, ./dataset.json and ./mediamtx works out of the box.
_DATA_DIR_OVERRIDE = os.getenv("LOOPCAST_DATA_DIR")
DATA_DIR = _DATA_DIR_OVERRIDE or os.getcwd()

# Logged by mediamtx once the SRT listener is bound; the last listener it opens.
READINESS_MARKER = "[SRT] listener opened on :8890 (UDP)"


def parse_port(value: Any) -> int:
    """Returns value as a TCP port number, raising ValueError if it is not one."""
    port = int(str(value).strip())
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range: {value}")
    return port


# Default Settings (with documentation keys)
DEFAULT_SETTINGS_JSON = {
    "_comment_video_dir": "Directory holding downloaded videos. Scanned non-recursively.",
    "video_dir": "Video",
    "_comment_manifest_file": "JSON object mapping video file name to download URL.",
    "manifest_file": "dataset.json",
    "_comment_cache_file": "Validity cache, keyed by SHA-256 of the file contents.",
    "cache_file": "cache.json",
    "_comment_port": "Port of the HTTP endpoint listing the active streams.",
    "port": DEFAULT_PORT,
    "_comment_downloads": "Maximum number of downloads in flight at once.",
    "max_concurrent_downloads": 8,
    "_comment_media_server": "Command starting the RTSP/SRT media server.",
    "media_server_command": ["./mediamtx/mediamtx"],
    "_comment_rtsp": "Base URL streams are published to.",
    "rtsp_base_url": "rtsp://localhost:8554",
}

# ==============================================================================
# SETTINGS MODEL
# ==============================================================================

class AppSettings(BaseSettings):
    """
    Pydantic model for runtime settings.
    Loads from env vars (LOOPCAST_*) or defaults.
    File loading is handled manually to preserve JSON comments.
    """
    video_dir: str = Field("Video")
    manifest_file: str = Field("dataset.json")
    cache_file: str = Field("cache.json")
    port: int = Field(DEFAULT_PORT)

    # Downloads
    max_concurrent_downloads: int = Field(8)
    progress_interval_sec: float = Field(5.0)
    connect_timeout_sec: float = Field(15.0)
    read_timeout_sec: Optional[float] = Field(300.0)
    chunk_size: int = Field(128 * 1024)

    # Validation
    probe_timeout_sec: float = Field(5.0)
    ffprobe_bin: str = Field("ffprobe")
    ffmpeg_bin: str = Field("ffmpeg")

    # Streaming
    rtsp_base_url: str = Field("rtsp://localhost:8554")
    media_server_command: List[str] = Field(default_factory=lambda: ["./mediamtx/mediamtx"])
    readiness_marker: str = Field(READINESS_MARKER)
    readiness_timeout_sec: Optional[float] = Field(60.0)
    single_stream_name: str = Field("mystream")

    class Config:
        env_prefix = "LOOPCAST_"
        extra = "ignore"

# ==============================================================================
# CONFIG MANAGER
# ==============================================================================

class ConfigManager:
    """
    Resolves settings.json + environment into an AppSettings instance and
    exposes absolute paths. Components receive the values they need from
    here instead of reading module-level constants.
    """

    def __init__(self, data_dir: Optional[str] = None, **overrides: Any):
        self.data_dir = os.path.abspath(data_dir or DATA_DIR)
        self.settings_file = os.path.join(self.data_dir, "settings.json")
        self.settings = self._load_settings(overrides)

    def _load_settings(self, overrides: Dict[str, Any]) -> AppSettings:
        # Load from JSON if exists
        file_data: Dict[str, Any] = {}
        if os.path.exists(self.settings_file):
            try:
                with open(self.settings_file, "r", encoding="utf-8") as f:
                    file_data = json.load(f)

                # Check for missing defaults and update file if needed
                dirty = False
                for k, v in DEFAULT_SETTINGS_JSON.items():
                    if k not in file_data:
                        file_data[k] = v
                        dirty = True

                if dirty:
                    self._save_json_raw(file_data)

            except (OSError, ValueError) as e:
                print(f"⚠️ Warning: Could not read settings.json: {e}")
                file_data = {}

        data = {k: v for k, v in file_data.items() if not k.startswith("_comment")}
        data.update({k: v for k, v in overrides.items() if v is not None})
        return AppSettings(**data)

    def _save_json_raw(self, data: Dict[str, Any]):
        try:
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            print(f"❌ Error saving settings: {e}")

    def _resolve(self, path: str) -> str:
        if os.path.isabs(path):
            return path
        return os.path.join(self.data_dir, path)

    def ensure_directories(self):
        os.makedirs(self.video_dir, exist_ok=True)

    @property
    def video_dir(self) -> str:
        return self._resolve(self.settings.video_dir)

    @property
    def manifest_file(self) -> str:
        return self._resolve(self.settings.manifest_file)

    @property
    def cache_file(self) -> str:
        return self._resolve(self.settings.cache_file)

    @property
    def port(self) -> int:
        return self.settings.port
