"""Tests for stream name derivation and assignment."""

from __future__ import annotations

import pytest

from loopcast.models import StreamAssignment, assign_streams, stream_listing, stream_name_for


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("VIRAT_S_000001.mp4", "virat_s_000001"),
        ("Clip.One.MKV", "clip"),
        ("noext", "noext"),
    ],
)
def test_stream_name_for(filename: str, expected: str) -> None:
    assert stream_name_for(filename) == expected


def test_assign_streams_one_per_file() -> None:
    assignments = assign_streams(["A.mp4", "b.mkv"])

    assert stream_listing(assignments) == {"a": "A.mp4", "b": "b.mkv"}


def test_assign_streams_collision_is_last_write_wins() -> None:
    assignments = assign_streams(["clip.mp4", "CLIP.mkv"])

    assert assignments == [StreamAssignment(stream_name="clip", source_file="CLIP.mkv")]


def test_single_mode_uses_fixed_name_and_first_file() -> None:
    assignments = assign_streams(["first.mp4", "second.mp4"], single_name="mystream")

    assert stream_listing(assignments) == {"mystream": "first.mp4"}


def test_single_mode_without_files() -> None:
    assert assign_streams([], single_name="mystream") == []
