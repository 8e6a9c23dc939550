"""
Tests for YouTube caption fetching.
"""

import re
from pathlib import Path

import pytest

from shadowing import youtube
from shadowing.youtube import CaptionFetchError, build_fetch_command, fetch_captions, is_valid_video_id

VTT = """WEBVTT

00:00:01.000 --> 00:00:03.000
Stay hungry.

00:00:03.000 --> 00:00:03.010
Stay hungry.

00:00:03.500 --> 00:00:05.000
Stay foolish.
"""


def _fake_run(files: dict[str, str]):
    def run(cmd, **kwargs):
        template = cmd[cmd.index("--output") + 1]
        base = template.replace(".%(ext)s", "")
        for suffix, content in files.items():
            Path(base + suffix).write_text(content, encoding="utf-8")
        return ""

    return run


def test_video_id_validation():
    """Only 11-character YouTube ids are accepted."""
    assert is_valid_video_id("UF8uR6Z6KLc")
    assert not is_valid_video_id("short")
    assert not is_valid_video_id("UF8uR6Z6KLc; rm -rf /")
    with pytest.raises(CaptionFetchError):
        fetch_captions("bad id")


def test_build_fetch_command():
    """The yt-dlp command downloads subtitles only."""
    cmd = build_fetch_command("UF8uR6Z6KLc", "/tmp/x", lang="de")

    assert cmd[0] == "yt-dlp"
    assert "--skip-download" in cmd
    assert cmd[cmd.index("--sub-lang") + 1] == "de"
    assert cmd[-1] == "https://www.youtube.com/watch?v=UF8uR6Z6KLc"


def test_fetch_captions_parses_downloaded_vtt(monkeypatch):
    """Downloaded VTT is parsed into segments without echo cues."""
    monkeypatch.setattr(youtube, "run", _fake_run({".en.vtt": VTT}))
    segments = fetch_captions("UF8uR6Z6KLc")

    assert [s.text for s in segments] == ["Stay hungry.", "Stay foolish."]
    assert segments[1].start == 3.5


def test_fetch_captions_falls_back_to_any_subtitle_file(monkeypatch):
    """A differently named subtitle file is still used."""
    monkeypatch.setattr(youtube, "run", _fake_run({".en-orig.vtt": VTT}))
    segments = fetch_captions("UF8uR6Z6KLc")

    assert len(segments) == 2


def test_fetch_captions_without_files(monkeypatch):
    """No subtitle output is reported as an error."""
    monkeypatch.setattr(youtube, "run", _fake_run({}))
    with pytest.raises(CaptionFetchError, match="No subtitles"):
        fetch_captions("UF8uR6Z6KLc")


def test_fetch_errors_are_classified(monkeypatch):
    """Missing binaries and network failures get helpful messages."""

    def missing(cmd, **kwargs):
        raise FileNotFoundError("yt-dlp")

    monkeypatch.setattr(youtube, "run", missing)
    with pytest.raises(CaptionFetchError, match="not installed"):
        fetch_captions("UF8uR6Z6KLc")

    def network(cmd, **kwargs):
        raise RuntimeError("Command failed with code 1: SSL: UNEXPECTED_EOF")

    monkeypatch.setattr(youtube, "run", network)
    with pytest.raises(CaptionFetchError, match=re.escape("Network error")):
        fetch_captions("UF8uR6Z6KLc")
