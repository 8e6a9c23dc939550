"""
Fetching YouTube captions with yt-dlp.
"""

import logging
import re
import subprocess
import tempfile
from pathlib import Path

from .captions import CaptionPolicy, DEFAULT_POLICY, parse_vtt
from .io_utils import run
from .models import Segment

logger = logging.getLogger("shadowing")

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
FETCH_TIMEOUT = 120.0


class CaptionFetchError(RuntimeError):
    """Captions could not be downloaded for a video."""


def is_valid_video_id(video_id: str) -> bool:
    return bool(_VIDEO_ID_RE.fullmatch(video_id or ""))


def build_fetch_command(video_id: str, output_template: str, lang: str = "en") -> list[str]:
    return [
        "yt-dlp",
        "--write-auto-sub",
        "--write-sub",
        "--sub-lang",
        lang,
        "--skip-download",
        "--retries",
        "3",
        "--socket-timeout",
        "30",
        "--output",
        f"{output_template}.%(ext)s",
        f"https://www.youtube.com/watch?v={video_id}",
    ]


def fetch_caption_text(video_id: str, lang: str = "en") -> str:
    """Download the raw caption file (VTT or SRT) for a video."""
    if not is_valid_video_id(video_id):
        raise CaptionFetchError(f"Invalid video ID format: {video_id!r}")

    with tempfile.TemporaryDirectory(prefix="shadowing_") as tmp:
        template = str(Path(tmp) / f"yt_transcript_{video_id}")
        logger.info(f"Fetching captions for video {video_id} ({lang}) …")
        try:
            run(build_fetch_command(video_id, template, lang), timeout=FETCH_TIMEOUT)
        except FileNotFoundError as e:
            raise CaptionFetchError(
                "yt-dlp is not installed. Install it with: pip install yt-dlp"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise CaptionFetchError("Network error while fetching transcript. Please try again.") from e
        except RuntimeError as e:
            msg = str(e)
            if any(k in msg for k in ("SSL", "EOF", "timed out", "timeout")):
                raise CaptionFetchError(
                    "Network error while fetching transcript. Please try again."
                ) from e
            raise CaptionFetchError(f"Failed to fetch transcript: {msg}") from e

        candidates = sorted(
            p for p in Path(tmp).iterdir() if p.suffix in (".vtt", ".srt")
        )
        preferred = [p for p in candidates if p.name.endswith(f".{lang}.vtt")]
        chosen = (preferred or candidates or [None])[0]
        if chosen is None:
            raise CaptionFetchError("No subtitles available for this video")
        return chosen.read_text(encoding="utf-8")


def fetch_captions(
    video_id: str, lang: str = "en", policy: CaptionPolicy = DEFAULT_POLICY
) -> list[Segment]:
    """Fetch and normalize the captions of a YouTube video."""
    segments = parse_vtt(fetch_caption_text(video_id, lang), policy)
    if not segments:
        raise CaptionFetchError("No transcript segments found")
    logger.info(f"Fetched {len(segments)} caption segment(s) for {video_id}")
    return segments
