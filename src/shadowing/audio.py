"""
Audio decoding, resampling, slicing and WAV container encoding.
"""

import io
import logging

import numpy as np
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from .models import AudioBuffer

logger = logging.getLogger("shadowing")

CANONICAL_SAMPLE_RATE = 16000
CANONICAL_CHANNELS = 1
WAV_HEADER_SIZE = 44

# Decoded values are n/32768 or n/32767; re-scaling them can land a hair
# below the original integer, which truncation would turn into n-1.
_QUANT_EPS = 1e-6


class AudioDecodeError(RuntimeError):
    """Raised when input bytes cannot be decoded into audio."""


def _is_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def decode(data: bytes) -> AudioBuffer:
    """Decode file bytes into a float AudioBuffer.

    WAV input is read directly by pydub; other containers go through pydub's
    ffmpeg converter. pydub indexes the media-info stream list without
    checking it, so input ffmpeg reads as non-audio surfaces as IndexError
    or KeyError.
    """
    if not data:
        raise AudioDecodeError("No audio data to decode")
    fmt = "wav" if _is_wav(data) else None
    try:
        seg = AudioSegment.from_file(io.BytesIO(data), format=fmt)
    except (CouldntDecodeError, OSError, IndexError, KeyError) as e:
        logger.error(f"Audio decode failed: {e}")
        raise AudioDecodeError(f"Could not decode audio: {e}") from e
    return from_audio_segment(seg)


def from_audio_segment(seg: AudioSegment) -> AudioBuffer:
    """Convert a pydub AudioSegment into an AudioBuffer."""
    if seg.sample_width != 2:
        seg = seg.set_sample_width(2)
    ints = np.array(seg.get_array_of_samples(), dtype=np.int16).astype(np.float64)
    channels = seg.channels
    frames = ints.reshape(-1, channels).T
    samples = np.where(frames < 0, frames / 32768.0, frames / 32767.0)
    return AudioBuffer(samples=samples, sample_rate=seg.frame_rate)


def to_audio_segment(buffer: AudioBuffer) -> AudioSegment:
    """Wrap an AudioBuffer as a pydub AudioSegment (16-bit PCM)."""
    return AudioSegment(
        data=_quantize(buffer).tobytes(),
        sample_width=2,
        frame_rate=buffer.sample_rate,
        channels=buffer.num_channels,
    )


def resample(
    buffer: AudioBuffer,
    target_rate: int = CANONICAL_SAMPLE_RATE,
    target_channels: int = CANONICAL_CHANNELS,
) -> AudioBuffer:
    """Linear-interpolation resample with channel mixdown/upmix."""
    if target_rate <= 0 or target_channels <= 0:
        raise ValueError("target_rate and target_channels must be positive")

    if target_channels == buffer.num_channels:
        source = buffer.samples
    elif target_channels == 1:
        source = buffer.mono().reshape(1, -1)
    else:
        source = np.tile(buffer.mono(), (target_channels, 1))

    if target_rate == buffer.sample_rate:
        return AudioBuffer(samples=source, sample_rate=target_rate)

    target_len = int(buffer.length * target_rate / buffer.sample_rate)
    if target_len <= 0 or buffer.length == 0:
        return AudioBuffer(samples=np.zeros((target_channels, 0)), sample_rate=target_rate)

    positions = np.arange(target_len) * (buffer.sample_rate / target_rate)
    src_idx = np.arange(buffer.length)
    out = np.vstack([np.interp(positions, src_idx, ch) for ch in source])
    logger.debug(
        "Resampled %d frames @ %d Hz -> %d frames @ %d Hz",
        buffer.length, buffer.sample_rate, target_len, target_rate,
    )
    return AudioBuffer(samples=out, sample_rate=target_rate)


def slice_buffer(buffer: AudioBuffer, start: float, duration: float) -> AudioBuffer | None:
    """Copy the frames in [start, start + duration) seconds.

    Returns None when the range starts at/after the end of the buffer or
    covers no frames.
    """
    start_frame = int(start * buffer.sample_rate)
    if start_frame >= buffer.length:
        return None
    start_frame = max(0, start_frame)
    end_frame = min(int((start + duration) * buffer.sample_rate), buffer.length)
    length = end_frame - start_frame
    if length <= 0:
        return None
    return AudioBuffer(
        samples=buffer.samples[:, start_frame:end_frame].copy(),
        sample_rate=buffer.sample_rate,
    )


def _quantize(buffer: AudioBuffer) -> np.ndarray:
    """Interleaved little-endian int16 samples."""
    clamped = np.clip(buffer.samples, -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * 32768.0, clamped * 32767.0)
    ints = np.trunc(scaled + np.sign(scaled) * _QUANT_EPS)
    ints = np.clip(ints, -32768, 32767).astype("<i2")
    return ints.T.reshape(-1)


def encode_container(buffer: AudioBuffer) -> bytes:
    """Encode an AudioBuffer as a 16-bit PCM WAV file."""
    return _export_wav(to_audio_segment(buffer))


def raw_pcm_to_container(pcm: bytes, sample_rate: int) -> bytes:
    """Wrap headerless 16-bit mono PCM so it can go through ``decode``."""
    if len(pcm) % 2:
        pcm = pcm[:-1]
    return _export_wav(AudioSegment(data=pcm, sample_width=2, frame_rate=sample_rate, channels=1))


def _export_wav(seg: AudioSegment) -> bytes:
    # pydub writes plain WAV itself (no ffmpeg), always with the 44-byte header
    return seg.export(io.BytesIO(), format="wav").getvalue()


def load_file(path: str) -> AudioBuffer:
    """Read and decode an audio file from disk."""
    with open(path, "rb") as f:
        return decode(f.read())
