from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

# In-progress downloads; renamed to the final name once complete.
PARTIAL_SUFFIX = ".part"


class RemoteAsset(BaseModel):
    """A video listed in the manifest. The name doubles as the local filename."""
    name: str = Field(..., description="Local file name and manifest key")
    url: str = Field(..., description="Source URL")

    class Config:
        frozen = True


class DownloadStatus(str, Enum):
    DONE = "done"
    FAILED = "failed"


class DownloadResult(BaseModel):
    """Outcome of one download task. Failures are data, never raised to the caller."""
    name: str
    status: DownloadStatus
    bytes_written: int = 0
    removed_corrupted: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == DownloadStatus.DONE
