from enum import Enum
from typing import Dict, Iterable, List
from pydantic import BaseModel, Field


class ProcessState(str, Enum):
    """Lifecycle of a supervised server process. No automatic restart."""
    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    EXITED_WITHOUT_READY = "exited_without_ready"
    TERMINATED = "terminated"


class StreamStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SKIPPED_CORRUPTED = "skipped_corrupted"
    FAILED = "failed"
    EXITED = "exited"
    TERMINATED = "terminated"


class StreamAssignment(BaseModel):
    """Maps a published stream name to the video file it loops."""
    stream_name: str = Field(..., description="Path component under the RTSP base URL")
    source_file: str = Field(..., description="File name inside the video directory")

    class Config:
        frozen = True


def stream_name_for(filename: str) -> str:
    """'Clip.One.MP4' -> 'clip'. Everything from the first dot is dropped."""
    return filename.split(".")[0].lower()


def assign_streams(valid_files: Iterable[str], single_name: str = "") -> List[StreamAssignment]:
    """
    Derives one assignment per valid file. With single_name set only the
    first file is used and published under that fixed name.
    Colliding derived names keep the last file seen.
    """
    files = list(valid_files)
    if single_name:
        if not files:
            return []
        return [StreamAssignment(stream_name=single_name, source_file=files[0])]

    by_name: Dict[str, StreamAssignment] = {}
    for filename in files:
        name = stream_name_for(filename)
        if name in by_name:
            print(f"⚠️ Stream name '{name}' reused: {by_name[name].source_file} replaced by {filename}")
        by_name[name] = StreamAssignment(stream_name=name, source_file=filename)
    return list(by_name.values())


def stream_listing(assignments: Iterable[StreamAssignment]) -> Dict[str, str]:
    """The JSON body served on / : {stream_name: source_file}."""
    return {a.stream_name: a.source_file for a in assignments}
