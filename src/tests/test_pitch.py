"""
Tests for pitch tracking and contour normalization.
"""

import numpy as np
import pytest

from shadowing.models import AudioBuffer
from shadowing.pitch import NO_PITCH, autocorrelate, frame_times, normalize, track


def _sine(freq: float, seconds: float = 1.0, rate: int = 16000, amp: float = 0.5) -> AudioBuffer:
    t = np.arange(int(seconds * rate)) / float(rate)
    return AudioBuffer(samples=amp * np.sin(2 * np.pi * freq * t), sample_rate=rate)


@pytest.mark.parametrize("freq,rate", [(220.0, 16000), (440.0, 44100), (130.0, 16000)])
def test_track_sine_frequency(freq, rate):
    """A pure tone is reported within 2% on every frame."""
    contour = track(_sine(freq, rate=rate))

    assert len(contour) > 0
    for value in contour:
        assert value > 0
        assert abs(value - freq) / freq < 0.02


def test_contour_length_is_one_per_hop():
    """Frames are taken every 512 samples while a full window fits."""
    buffer = _sine(220.0, seconds=1.0)
    contour = track(buffer)

    assert len(contour) == len(range(0, 16000 - 1024, 512))
    times = frame_times(contour, buffer.sample_rate)
    assert times[1] == pytest.approx(512 / 16000)


def test_silence_is_unvoiced():
    """Quiet input falls under the noise gate."""
    buffer = AudioBuffer(samples=np.full(8000, 0.001), sample_rate=16000)
    contour = track(buffer)

    assert contour
    assert all(v == 0 for v in contour)


def test_out_of_range_pitch_is_rejected():
    """Tones outside 50..1000 Hz come back as silence."""
    assert all(v == 0 for v in track(_sine(2000.0)))
    assert any(v > 0 for v in track(_sine(2000.0), max_hz=3000.0))


def test_short_buffer_has_no_frames():
    """A buffer shorter than one window yields an empty contour."""
    assert track(_sine(220.0, seconds=0.05)) == []


def test_autocorrelate_gate():
    """Windows below the RMS gate return the no-pitch marker."""
    assert autocorrelate(np.zeros(1024), 16000) == NO_PITCH


def test_mixed_voiced_and_silent_frames():
    """Silence between tones is reported as zeros."""
    tone = _sine(200.0, seconds=0.5).channel(0)
    samples = np.concatenate([tone, np.zeros(8000), tone])
    contour = track(AudioBuffer(samples=samples, sample_rate=16000))

    assert any(v == 0 for v in contour)
    voiced = [v for v in contour if v > 0]
    assert voiced
    assert all(abs(v - 200.0) / 200.0 < 0.05 for v in voiced)


def test_normalize_range_and_silence():
    """Voiced values land in (0, 1] and zeros stay zero."""
    out = normalize([0, 100.0, 200.0, 0, 300.0])

    assert out[0] == 0 and out[3] == 0
    assert 0 < out[1] < out[2] < out[4]
    assert out[4] == pytest.approx(1.0)


def test_normalize_is_idempotent():
    """Normalizing a normalized contour changes nothing."""
    once = normalize([0, 120.0, 180.0, 150.0, 0, 240.0])
    twice = normalize(once)

    assert twice == pytest.approx(once)


def test_normalize_all_zero_and_empty():
    """Contours without voiced frames are returned unchanged."""
    assert normalize([0, 0, 0]) == [0, 0, 0]
    assert normalize([]) == []


def test_normalize_flat_contour():
    """A single voiced pitch maps to 1."""
    assert normalize([0, 150.0, 150.0]) == [0.0, 1.0, 1.0]
    assert normalize(normalize([0, 150.0, 150.0])) == [0.0, 1.0, 1.0]
