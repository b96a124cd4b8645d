from abc import ABC, abstractmethod

import numpy as np


class IAudioSource(ABC):
    """A pull-based source of mono float samples."""

    @abstractmethod
    def read_samples(self, buffer: np.ndarray) -> int:
        """Fill ``buffer`` from the start and return how many samples were written.

        Returns 0 once the source is exhausted.
        """
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the audio stream."""
        pass

    def close(self) -> None:
        """Release any underlying device or file."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class IAudioSink(ABC):
    """A push-based consumer of mono float samples (reference tone playback)."""

    @abstractmethod
    def write_samples(self, buffer: np.ndarray) -> None:
        """Queue samples for output."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the audio stream."""
        pass

    def close(self) -> None:
        """Release any underlying device."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
