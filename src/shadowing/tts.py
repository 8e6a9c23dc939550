"""
Reference ("native") speech synthesis with OpenAI TTS.
"""

import logging

from openai import OpenAI

from .audio import decode, raw_pcm_to_container
from .models import AudioBuffer

logger = logging.getLogger("shadowing")

# OpenAI returns "pcm" as headerless 24 kHz 16-bit signed little-endian mono.
OPENAI_PCM_SAMPLE_RATE = 24000


def synthesize_reference(
    client: OpenAI,
    text: str,
    model: str = "gpt-4o-mini-tts",
    voice: str = "alloy",
    instructions: str | None = None,
) -> AudioBuffer:
    """Synthesize ``text`` and decode it into an AudioBuffer."""
    if client is None:
        raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")

    logger.info(f"Synthesizing reference audio with {model}/{voice}: {text[:50]!r}")
    kwargs = {
        "model": model,
        "voice": voice,
        "input": text,
        "response_format": "pcm",
    }
    if instructions:
        kwargs["instructions"] = instructions
    resp = client.audio.speech.create(**kwargs)
    return decode(raw_pcm_to_container(resp.content, OPENAI_PCM_SAMPLE_RATE))
