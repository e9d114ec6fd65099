"""Shared pytest fixtures: fake validator, fake HTTP session, video directory."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest
import requests

from loopcast.exceptions import ProbeError


class FakeValidator:
    """Validator double: verdicts by file name, records every call."""

    def __init__(self, corrupted: Iterable[str] = (), errors: Iterable[str] = ()) -> None:
        self.corrupted = set(corrupted)
        self.errors = set(errors)
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def is_corrupted(self, filepath: str, timeout: Optional[float] = None) -> bool:
        name = os.path.basename(filepath)
        with self._lock:
            self.calls.append(name)
        if name in self.errors:
            raise ProbeError(f"probe failed for {name}")
        return name in self.corrupted


class FakeResponse:
    def __init__(self, body: bytes, status_code: int = 200, content_length: Optional[int] = None) -> None:
        self.body = body
        self.status_code = status_code
        length = len(body) if content_length is None else content_length
        self.headers = {"Content-Length": str(length)} if length else {}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=None)

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


class FakeSession:
    """requests.Session double keyed by URL. Unknown URLs fail to connect."""

    def __init__(self, responses: Dict[str, FakeResponse]) -> None:
        self.responses = responses
        self.requested: List[str] = []
        self._lock = threading.Lock()

    def get(self, url: str, stream: bool = False, timeout=None) -> FakeResponse:
        with self._lock:
            self.requested.append(url)
        if url not in self.responses:
            raise requests.ConnectionError(f"cannot reach {url}")
        return self.responses[url]


@pytest.fixture
def video_dir(tmp_path: Path) -> Path:
    """Empty managed video directory."""
    path = tmp_path / "Video"
    path.mkdir()
    return path


@pytest.fixture
def fake_validator() -> type[FakeValidator]:
    return FakeValidator


@pytest.fixture
def fake_session() -> type[FakeSession]:
    return FakeSession


@pytest.fixture
def fake_response() -> type[FakeResponse]:
    return FakeResponse
