"""
Data models for the shadowing practice core.
"""

from dataclasses import dataclass, field

import numpy as np


@dataclass
class Segment:
    """A single timed unit of transcript text."""

    id: str
    text: str
    start: float  # seconds
    duration: float  # seconds
    translation: str | None = None

    @property
    def end(self) -> float:
        return self.start + self.duration

    def to_dict(self) -> dict:
        data = {"id": self.id, "text": self.text, "start": self.start, "duration": self.duration}
        if self.translation is not None:
            data["translation"] = self.translation
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Segment":
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            start=float(data["start"]),
            duration=float(data["duration"]),
            translation=data.get("translation"),
        )


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """Float samples in [-1, 1], shaped (channels, frames), plus a sample rate.

    The sample array is made read-only on construction; slices and resamples
    always produce new buffers.
    """

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        arr = np.array(self.samples, dtype=np.float64, copy=True)
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        if arr.ndim != 2:
            raise ValueError(f"Expected (channels, frames) samples, got shape {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, "samples", arr)

    @property
    def num_channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def length(self) -> int:
        """Number of frames (samples per channel)."""
        return int(self.samples.shape[1])

    @property
    def duration(self) -> float:
        return self.length / float(self.sample_rate) if self.sample_rate else 0.0

    def channel(self, index: int) -> np.ndarray:
        return self.samples[index]

    def mono(self) -> np.ndarray:
        """Channel average, the same mixdown used when resampling."""
        if self.num_channels == 1:
            return self.samples[0]
        return self.samples.mean(axis=0)


@dataclass
class TranslationProgress:
    """Snapshot emitted after each top-level translation batch."""

    completed: int
    total: int
    failed: int
    segments: list[Segment] = field(default_factory=list)
