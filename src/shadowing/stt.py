"""
Speech-to-text transcription of decoded audio into practice segments.
"""

import logging

from openai import OpenAI

from .audio import CANONICAL_CHANNELS, CANONICAL_SAMPLE_RATE, encode_container, resample
from .models import AudioBuffer, Segment

logger = logging.getLogger("shadowing")


def _field(obj, name: str, default=None):
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def segments_from_response(resp) -> list[Segment]:
    """Map a verbose_json transcription response to segments."""
    segs = _field(resp, "segments") or []
    out: list[Segment] = []
    for seg in segs:
        text = str(_field(seg, "text", "") or "").strip()
        start = float(_field(seg, "start", 0.0) or 0.0)
        end = float(_field(seg, "end", start) or start)
        if not text or end <= start:
            continue
        out.append(Segment(id=f"auto-{len(out)}", text=text, start=start, duration=end - start))
    if not out:
        full_text = str(_field(resp, "text", "") or "").strip()
        duration = float(_field(resp, "duration", 0.0) or 0.0)
        if full_text and duration > 0:
            out.append(Segment(id="auto-0", text=full_text, start=0.0, duration=duration))
    return out


def transcribe_buffer(
    client: OpenAI,
    buffer: AudioBuffer,
    model: str = "whisper-1",
    language: str | None = None,
) -> list[Segment]:
    """Transcribe an AudioBuffer; returns [] when no transcript is available."""
    if client is None:
        logger.error("OpenAI client is not initialized (missing OPENAI_API_KEY)")
        return []

    canonical = resample(buffer, CANONICAL_SAMPLE_RATE, CANONICAL_CHANNELS)
    wav = encode_container(canonical)
    logger.info(
        f"Transcribing {canonical.duration:.1f}s of audio with {model} (language: {language or 'auto'}) …"
    )
    kwargs = {
        "model": model,
        "file": ("audio.wav", wav, "audio/wav"),
        "response_format": "verbose_json",
    }
    if language:
        kwargs["language"] = language
    try:
        resp = client.audio.transcriptions.create(**kwargs)
    except Exception as e:
        logger.error(f"Transcription failed: {e}")
        return []

    segments = segments_from_response(resp)
    logger.info(f"Transcription produced {len(segments)} segment(s)")
    return segments
