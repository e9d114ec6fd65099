from .remote_asset import PARTIAL_SUFFIX, RemoteAsset, DownloadResult, DownloadStatus
from .validity_entry import ValidityCacheEntry
from .stream import (
    ProcessState,
    StreamAssignment,
    StreamStatus,
    assign_streams,
    stream_listing,
    stream_name_for,
)
