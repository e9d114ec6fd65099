"""Tests for manifest loading and the concurrent download coordinator."""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path

import pytest

from loopcast.core import downloader
from loopcast.core.downloader import (
    DownloadCoordinator,
    ProgressReporter,
    load_manifest,
    run_fetch_all,
    select_assets,
)
from loopcast.exceptions import ManifestError
from loopcast.models import DownloadResult, DownloadStatus, RemoteAsset


def _manifest(count: int) -> dict:
    return {f"clip{i}.mp4": f"http://videos.test/clip{i}.mp4" for i in range(count)}


def _responses(manifest: dict, fake_response) -> dict:
    return {url: fake_response(f"data for {name}".encode() * 100) for name, url in manifest.items()}


def _coordinator(video_dir: Path, validator, session, **kwargs) -> DownloadCoordinator:
    return DownloadCoordinator(str(video_dir), validator, session=session, chunk_size=64, **kwargs)


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

def test_load_manifest_keeps_order(tmp_path: Path) -> None:
    path = tmp_path / "dataset.json"
    path.write_text(json.dumps({"b.mp4": "http://x/b", "a.mp4": "http://x/a"}), encoding="utf-8")

    assets = load_manifest(str(path))

    assert assets == [RemoteAsset(name="b.mp4", url="http://x/b"), RemoteAsset(name="a.mp4", url="http://x/a")]


@pytest.mark.parametrize(
    "content",
    [
        pytest.param("{broken", id="invalid-json"),
        pytest.param("[]", id="not-an-object"),
        pytest.param('{"a.mp4": 5}', id="non-string-url"),
        pytest.param('{"../escape.mp4": "http://x"}', id="path-traversal"),
        pytest.param('{"dir/a.mp4": "http://x"}', id="path-separator"),
        pytest.param('{"bad\\u0000.mp4": "http://x"}', id="nul-byte"),
    ],
)
def test_load_manifest_rejects_bad_content(tmp_path: Path, content: str) -> None:
    path = tmp_path / "dataset.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ManifestError):
        load_manifest(str(path))


def test_load_manifest_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ManifestError):
        load_manifest(str(tmp_path / "absent.json"))


def test_select_assets_limits() -> None:
    manifest = _manifest(5)

    assert len(select_assets(manifest, -1)) == 5
    assert len(select_assets(manifest, 2)) == 2
    assert select_assets(manifest, 0) == []
    assert len(select_assets(manifest, 10)) == 5
    with pytest.raises(ValueError):
        select_assets(manifest, -2)


# ---------------------------------------------------------------------------
# fetch_all
# ---------------------------------------------------------------------------

def test_fetch_all_downloads_every_asset(video_dir: Path, fake_validator, fake_session, fake_response) -> None:
    manifest = _manifest(3)
    session = fake_session(_responses(manifest, fake_response))

    results = run_fetch_all(_coordinator(video_dir, fake_validator(), session), manifest)

    assert all(r.ok for r in results)
    for name in manifest:
        assert (video_dir / name).read_bytes() == f"data for {name}".encode() * 100
    assert not list(video_dir.glob("*.part"))


@pytest.mark.parametrize(("limit", "expected"), [(2, 2), (-1, 5), (0, 0)])
def test_fetch_all_limit_attempts_exactly_n(video_dir: Path, fake_validator, fake_session, fake_response,
                                            limit: int, expected: int) -> None:
    manifest = _manifest(5)
    session = fake_session(_responses(manifest, fake_response))

    results = run_fetch_all(_coordinator(video_dir, fake_validator(), session), manifest, limit=limit)

    assert len(results) == expected
    assert len(session.requested) == expected


def test_one_unreachable_url_does_not_block_others(video_dir: Path, fake_validator, fake_session,
                                                   fake_response) -> None:
    manifest = _manifest(5)
    responses = _responses(manifest, fake_response)
    del responses["http://videos.test/clip3.mp4"]
    session = fake_session(responses)

    results = run_fetch_all(_coordinator(video_dir, fake_validator(), session), manifest)

    by_name = {r.name: r for r in results}
    assert by_name["clip3.mp4"].status == DownloadStatus.FAILED
    assert "clip3" in by_name["clip3.mp4"].error
    assert sum(1 for r in results if r.ok) == 4
    assert not (video_dir / "clip3.mp4").exists()
    assert not (video_dir / "clip3.mp4.part").exists()


def test_http_error_status_fails_asset(video_dir: Path, fake_validator, fake_session, fake_response) -> None:
    session = fake_session({"http://x/gone.mp4": fake_response(b"not found", status_code=404)})

    results = run_fetch_all(_coordinator(video_dir, fake_validator(), session), {"gone.mp4": "http://x/gone.mp4"})

    assert results[0].status == DownloadStatus.FAILED
    assert not (video_dir / "gone.mp4").exists()


def test_unrepresentable_name_fails_only_that_asset(video_dir: Path, fake_validator, fake_session,
                                                    fake_response) -> None:
    manifest = {"ok.mp4": "http://x/ok.mp4", "bad\x00.mp4": "http://x/bad.mp4"}
    session = fake_session({url: fake_response(b"video") for url in manifest.values()})

    results = run_fetch_all(_coordinator(video_dir, fake_validator(), session), manifest)

    by_name = {r.name: r for r in results}
    assert len(results) == 2
    assert by_name["ok.mp4"].ok
    assert by_name["bad\x00.mp4"].status == DownloadStatus.FAILED
    assert sorted(p.name for p in video_dir.iterdir()) == ["ok.mp4"]


def test_admission_gate_bounds_concurrency(video_dir: Path, fake_validator, fake_session,
                                           monkeypatch: pytest.MonkeyPatch) -> None:
    held = 0
    peak = 0
    gates = []

    class CountingSemaphore(asyncio.Semaphore):
        def __init__(self, value: int = 1) -> None:
            super().__init__(value)
            gates.append(value)

        async def acquire(self) -> bool:
            nonlocal held, peak
            await super().acquire()
            held += 1
            peak = max(peak, held)
            return True

        def release(self) -> None:
            nonlocal held
            held -= 1
            super().release()

    monkeypatch.setattr(downloader.asyncio, "Semaphore", CountingSemaphore)
    coordinator = _coordinator(video_dir, fake_validator(), fake_session({}), max_concurrent=8)
    attempted = []

    def slow_download(asset: RemoteAsset) -> DownloadResult:
        attempted.append(asset.name)
        time.sleep(0.01)
        if asset.name.endswith("7.mp4"):
            return DownloadResult(name=asset.name, status=DownloadStatus.FAILED, error="boom")
        return DownloadResult(name=asset.name, status=DownloadStatus.DONE)

    coordinator.download_asset = slow_download

    results = run_fetch_all(coordinator, _manifest(50))

    assert gates == [8]
    assert len(results) == 50
    assert len(attempted) == 50
    assert peak == 8
    assert held == 0


def test_corrupted_existing_file_is_replaced(video_dir: Path, fake_validator, fake_session, fake_response) -> None:
    (video_dir / "clip.mp4").write_bytes(b"stale broken bytes")
    validator = fake_validator(corrupted={"clip.mp4"})
    session = fake_session({"http://x/clip.mp4": fake_response(b"fresh")})

    results = run_fetch_all(_coordinator(video_dir, validator, session), {"clip.mp4": "http://x/clip.mp4"})

    assert results[0].ok
    assert results[0].removed_corrupted is True
    assert (video_dir / "clip.mp4").read_bytes() == b"fresh"
    assert validator.calls == ["clip.mp4"]


def test_valid_existing_file_is_checked_and_refreshed(video_dir: Path, fake_validator, fake_session,
                                                      fake_response) -> None:
    (video_dir / "clip.mp4").write_bytes(b"old but fine")
    validator = fake_validator()
    session = fake_session({"http://x/clip.mp4": fake_response(b"new")})

    results = run_fetch_all(_coordinator(video_dir, validator, session), {"clip.mp4": "http://x/clip.mp4"})

    assert results[0].removed_corrupted is False
    assert validator.calls == ["clip.mp4"]
    assert (video_dir / "clip.mp4").read_bytes() == b"new"


def test_validator_error_on_existing_file_fails_only_that_asset(video_dir: Path, fake_validator, fake_session,
                                                                 fake_response) -> None:
    (video_dir / "odd.mp4").write_bytes(b"??")
    validator = fake_validator(errors={"odd.mp4"})
    session = fake_session({
        "http://x/odd.mp4": fake_response(b"new"),
        "http://x/fine.mp4": fake_response(b"fine"),
    })

    results = run_fetch_all(
        _coordinator(video_dir, validator, session),
        {"odd.mp4": "http://x/odd.mp4", "fine.mp4": "http://x/fine.mp4"},
    )

    by_name = {r.name: r for r in results}
    assert by_name["odd.mp4"].status == DownloadStatus.FAILED
    assert by_name["fine.mp4"].ok
    assert session.requested == ["http://x/fine.mp4"]
    assert (video_dir / "odd.mp4").read_bytes() == b"??"


def test_unknown_content_length_downloads(video_dir: Path, fake_validator, fake_session, fake_response) -> None:
    session = fake_session({"http://x/a.mp4": fake_response(b"abc" * 50, content_length=0)})

    results = run_fetch_all(
        _coordinator(video_dir, fake_validator(), session, progress_interval=0),
        {"a.mp4": "http://x/a.mp4"},
    )

    assert results[0].ok
    assert results[0].bytes_written == 150


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_progress_reports_at_most_once_per_interval(capsys: pytest.CaptureFixture[str]) -> None:
    clock = _Clock()
    reporter = ProgressReporter("clip.mp4", total=100, interval=5, clock=clock)

    reporter.update(10)
    clock.now = 4.9
    reporter.update(10)
    clock.now = 5.0
    reporter.update(30)
    clock.now = 6.0
    reporter.update(10)

    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    assert "clip.mp4" in lines[0]
    assert "50%" in lines[0]


def test_progress_with_unknown_total(capsys: pytest.CaptureFixture[str]) -> None:
    clock = _Clock()
    reporter = ProgressReporter("clip.mp4", total=0, interval=1, clock=clock)

    clock.now = 2
    reporter.update(2 * 1024 * 1024)

    assert reporter.percent is None
    assert "2.0 MB" in capsys.readouterr().out
