from typing import List, Sequence, Tuple, Union

import numpy as np
import soundfile as sf

from ..logger import get_logger
from .interfaces import IAudioSink, IAudioSource

logger = get_logger(__name__)


def _to_mono(data: np.ndarray) -> np.ndarray:
    """Average the channels of a (frames, channels) block."""
    if data.ndim == 1:
        return data
    if data.shape[1] == 1:
        return data[:, 0]
    return data.mean(axis=1)


class BufferAudioSource(IAudioSource):
    """Serves samples from memory. Used for tests and offline analysis."""

    def __init__(self, samples: Union[Sequence[float], np.ndarray], sample_rate: int) -> None:
        self._samples = np.asarray(samples, dtype=np.float64).ravel()
        self._sample_rate = int(sample_rate)
        self._position = 0

    @classmethod
    def sine(
        cls, frequency: float, duration_secs: float, sample_rate: int, amplitude: float = 1.0
    ) -> "BufferAudioSource":
        """A pure sine wave."""
        num_samples = int(sample_rate * duration_secs)
        t = np.arange(num_samples) / sample_rate
        return cls(amplitude * np.sin(2.0 * np.pi * frequency * t), sample_rate)

    @classmethod
    def sine_with_harmonics(
        cls,
        fundamental: float,
        harmonics: List[Tuple[float, float]],
        duration_secs: float,
        sample_rate: int,
    ) -> "BufferAudioSource":
        """A fundamental plus (harmonic number, amplitude) partials, peak-normalized."""
        num_samples = int(sample_rate * duration_secs)
        t = np.arange(num_samples) / sample_rate
        samples = np.sin(2.0 * np.pi * fundamental * t)
        for harmonic, amplitude in harmonics:
            samples += amplitude * np.sin(2.0 * np.pi * fundamental * harmonic * t)

        peak = np.max(np.abs(samples)) if samples.size else 0.0
        if peak > 0:
            samples /= peak
        return cls(samples, sample_rate)

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    def reset(self) -> None:
        """Rewind to the first sample."""
        self._position = 0

    def read_samples(self, buffer: np.ndarray) -> int:
        remaining = self._samples.size - self._position
        to_read = min(len(buffer), remaining)
        buffer[:to_read] = self._samples[self._position : self._position + to_read]
        self._position += to_read
        return to_read

    @property
    def sample_rate(self) -> int:
        return self._sample_rate


class WavFileAudioSource(IAudioSource):
    """Reads audio from a WAV file.

    Integer PCM is scaled to [-1.0, 1.0] by soundfile; float files are clipped
    to that range. Multi-channel files are mixed down to mono.
    """

    def __init__(self, file_path: str, gain: float = 1.0) -> None:
        self._file_path = file_path
        self._gain = gain
        self._file = sf.SoundFile(file_path)
        self._sample_rate = self._file.samplerate
        logger.info(
            f"Opened {file_path}: {self._file.samplerate} Hz, "
            f"{self._file.channels} channel(s), {self._file.subtype}"
        )

    def read_samples(self, buffer: np.ndarray) -> int:
        if self._file.closed:
            return 0
        data = self._file.read(len(buffer), dtype="float64", always_2d=True)
        if len(data) == 0:
            return 0

        mono = _to_mono(data)
        if self._gain != 1.0:
            mono = mono * self._gain
        count = len(mono)
        buffer[:count] = np.clip(mono, -1.0, 1.0)
        return count

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._file.channels

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


class BufferAudioSink(IAudioSink):
    """Collects written samples in memory."""

    def __init__(self, sample_rate: int) -> None:
        self._sample_rate = int(sample_rate)
        self._chunks: List[np.ndarray] = []

    def write_samples(self, buffer: np.ndarray) -> None:
        self._chunks.append(np.array(buffer, dtype=np.float64))

    @property
    def samples(self) -> np.ndarray:
        if not self._chunks:
            return np.zeros(0)
        return np.concatenate(self._chunks)

    def clear(self) -> None:
        self._chunks.clear()

    @property
    def sample_rate(self) -> int:
        return self._sample_rate
