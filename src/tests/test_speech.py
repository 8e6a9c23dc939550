"""
Tests for transcription and reference synthesis with fake OpenAI clients.
"""

from types import SimpleNamespace

import numpy as np
import pytest

from shadowing.audio import WAV_HEADER_SIZE
from shadowing.models import AudioBuffer
from shadowing.pitch import track
from shadowing.stt import segments_from_response, transcribe_buffer
from shadowing.tts import OPENAI_PCM_SAMPLE_RATE, synthesize_reference


class FakeTranscriptions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return self.response


class FakeSpeech:
    def __init__(self, pcm: bytes):
        self.pcm = pcm
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(content=self.pcm)


def _client(transcriptions=None, speech=None):
    return SimpleNamespace(audio=SimpleNamespace(transcriptions=transcriptions, speech=speech))


def test_segments_from_response():
    """Provider segments become ids, start and duration; empty ones drop out."""
    resp = {
        "text": "Hello there. Bye.",
        "segments": [
            {"start": 0.0, "end": 1.5, "text": " Hello there. "},
            {"start": 1.5, "end": 1.5, "text": "zero"},
            {"start": 2.0, "end": 3.0, "text": "  "},
            {"start": 3.0, "end": 4.0, "text": "Bye."},
        ],
    }
    segments = segments_from_response(resp)

    assert [(s.id, s.text, s.start, s.duration) for s in segments] == [
        ("auto-0", "Hello there.", 0.0, 1.5),
        ("auto-1", "Bye.", 3.0, 1.0),
    ]


def test_segments_from_text_only_response():
    """A response with only text becomes one segment spanning the audio."""
    resp = SimpleNamespace(text="Just text.", duration=2.5, segments=None)
    segments = segments_from_response(resp)

    assert len(segments) == 1
    assert segments[0].duration == 2.5


def test_transcribe_sends_canonical_wav():
    """Audio is resampled to 16 kHz mono WAV before upload."""
    fake = FakeTranscriptions(
        response={"segments": [{"start": 0.0, "end": 0.5, "text": "Hi."}]}
    )
    buffer = AudioBuffer(samples=np.zeros((2, 44100)), sample_rate=44100)
    segments = transcribe_buffer(_client(transcriptions=fake), buffer, language="en")

    assert [s.text for s in segments] == ["Hi."]
    name, wav, mime = fake.kwargs["file"]
    assert wav[:4] == b"RIFF"
    assert len(wav) == WAV_HEADER_SIZE + 16000 * 2
    assert fake.kwargs["language"] == "en"
    assert fake.kwargs["response_format"] == "verbose_json"


def test_transcribe_failure_returns_empty():
    """Upstream errors mean no transcript, not an exception."""
    fake = FakeTranscriptions(error=RuntimeError("boom"))
    buffer = AudioBuffer(samples=np.zeros(1600), sample_rate=16000)

    assert transcribe_buffer(_client(transcriptions=fake), buffer) == []
    assert transcribe_buffer(None, buffer) == []


def test_synthesize_reference_wraps_raw_pcm():
    """Headerless PCM from TTS decodes into a buffer that can be tracked."""
    t = np.arange(OPENAI_PCM_SAMPLE_RATE) / OPENAI_PCM_SAMPLE_RATE
    pcm = (0.5 * np.sin(2 * np.pi * 180.0 * t) * 32767).astype("<i2").tobytes()
    fake = FakeSpeech(pcm)

    buffer = synthesize_reference(_client(speech=fake), "Hello", voice="nova")

    assert fake.kwargs["response_format"] == "pcm"
    assert fake.kwargs["voice"] == "nova"
    assert "instructions" not in fake.kwargs
    assert buffer.sample_rate == OPENAI_PCM_SAMPLE_RATE
    assert buffer.length == OPENAI_PCM_SAMPLE_RATE
    contour = track(buffer)
    assert all(abs(v - 180.0) / 180.0 < 0.02 for v in contour)


def test_synthesize_requires_client():
    """A missing client fails fast."""
    with pytest.raises(RuntimeError):
        synthesize_reference(None, "Hello")
