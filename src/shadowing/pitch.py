"""
Autocorrelation pitch tracking and contour normalization.
"""

import logging

import numpy as np

from .models import AudioBuffer

logger = logging.getLogger("shadowing")

WINDOW_SIZE = 1024
HOP_SIZE = 512
NOISE_GATE = 0.01  # RMS below this is treated as silence
TRIM_THRESHOLD = 0.2
MIN_PITCH_HZ = 50.0
MAX_PITCH_HZ = 1000.0

# Lowest normalized value of a voiced frame; 0 stays reserved for silence.
VOICED_FLOOR = 0.01

NO_PITCH = -1.0


def autocorrelate(
    window: np.ndarray,
    sample_rate: int,
    *,
    noise_gate: float = NOISE_GATE,
    trim_threshold: float = TRIM_THRESHOLD,
) -> float:
    """Estimate the fundamental frequency of one window, or NO_PITCH."""
    window = np.asarray(window, dtype=np.float64)
    size = len(window)
    if size < 3:
        return NO_PITCH

    rms = float(np.sqrt(np.mean(window * window)))
    if rms < noise_gate:
        return NO_PITCH

    # Trim both ends to the first quiet sample so the correlation is taken
    # over the stable body of the waveform.
    half = size // 2
    quiet = np.abs(window) < trim_threshold
    r1 = 0
    head = np.flatnonzero(quiet[:half])
    if head.size:
        r1 = int(head[0])
    r2 = size - 1
    tail = np.flatnonzero(quiet[size - 1 : size - half : -1])
    if tail.size:
        r2 = size - 1 - int(tail[0])
    part = window[r1:r2]
    n = len(part)
    if n < 3:
        return NO_PITCH

    corr = np.correlate(part, part, mode="full")[n - 1 :]

    # Walk down from the zero-lag peak to the first local minimum.
    d = 0
    while d < n - 1 and corr[d] > corr[d + 1]:
        d += 1
    peak = d + int(np.argmax(corr[d:]))
    if peak <= 0 or peak >= n - 1:
        return NO_PITCH

    x1, x2, x3 = corr[peak - 1], corr[peak], corr[peak + 1]
    a = (x1 + x3 - 2 * x2) / 2
    b = (x3 - x1) / 2
    period = float(peak)
    if a:
        period -= b / (2 * a)
    if period <= 0:
        return NO_PITCH
    return sample_rate / period


def track(
    buffer: AudioBuffer,
    *,
    window_size: int = WINDOW_SIZE,
    hop_size: int = HOP_SIZE,
    min_hz: float = MIN_PITCH_HZ,
    max_hz: float = MAX_PITCH_HZ,
    noise_gate: float = NOISE_GATE,
    trim_threshold: float = TRIM_THRESHOLD,
) -> list[float]:
    """Pitch contour in Hz, one value per hop; 0 marks unvoiced/silent frames."""
    data = buffer.mono()
    contour: list[float] = []
    for i in range(0, len(data) - window_size, hop_size):
        freq = autocorrelate(
            data[i : i + window_size],
            buffer.sample_rate,
            noise_gate=noise_gate,
            trim_threshold=trim_threshold,
        )
        if freq == NO_PITCH or not np.isfinite(freq) or freq < min_hz or freq > max_hz:
            contour.append(0.0)
        else:
            contour.append(float(freq))
    voiced = sum(1 for f in contour if f > 0)
    logger.debug("Pitch track: %d frames, %d voiced", len(contour), voiced)
    return contour


def frame_times(contour: list[float], sample_rate: int, hop_size: int = HOP_SIZE) -> list[float]:
    """Start time in seconds of each contour frame."""
    return [i * hop_size / float(sample_rate) for i in range(len(contour))]


def normalize(contour: list[float]) -> list[float]:
    """Min-max scale voiced frames into [VOICED_FLOOR, 1], keeping 0 as silence.

    Voiced frames never map to 0, so normalizing twice gives the same result.
    A contour with a single distinct voiced value maps every voiced frame to 1.
    """
    voiced = [v for v in contour if v > 0]
    if not voiced:
        return list(contour)
    lo, hi = min(voiced), max(voiced)
    span = hi - lo
    out: list[float] = []
    for v in contour:
        if v <= 0:
            out.append(0.0)
        elif span == 0:
            out.append(1.0)
        else:
            out.append(VOICED_FLOOR + (1.0 - VOICED_FLOOR) * (v - lo) / span)
    return out
