"""Reference tone generation for playing the target pitch."""

import numpy as np

from ..logger import get_logger
from .interfaces import IAudioSink

logger = get_logger(__name__)


class ReferenceTone:
    """Sine generator with continuous phase across blocks.

    The first block fades in and ``fade_out`` produces a closing block that
    fades to silence, so starting and stopping playback does not click.
    """

    FADE_SECS = 0.01

    def __init__(self, frequency: float, sample_rate: int, amplitude: float = 0.3) -> None:
        self._frequency = float(frequency)
        self._sample_rate = int(sample_rate)
        self._amplitude = float(amplitude)
        self._phase = 0.0
        self._started = False

    @property
    def frequency(self) -> float:
        return self._frequency

    @frequency.setter
    def frequency(self, value: float) -> None:
        # Phase is kept so retuning mid-playback stays continuous
        self._frequency = float(value)

    def _sine(self, frames: int) -> np.ndarray:
        step = 2.0 * np.pi * self._frequency / self._sample_rate
        phases = self._phase + step * np.arange(frames)
        self._phase = float((self._phase + step * frames) % (2.0 * np.pi))
        return self._amplitude * np.sin(phases)

    def _ramp(self, frames: int) -> np.ndarray:
        fade = min(frames, max(int(self.FADE_SECS * self._sample_rate), 1))
        ramp = np.ones(frames)
        ramp[:fade] = np.linspace(0.0, 1.0, fade)
        return ramp

    def next_block(self, frames: int) -> np.ndarray:
        """The next ``frames`` samples of the tone."""
        block = self._sine(frames)
        if not self._started:
            block *= self._ramp(frames)
            self._started = True
        return block

    def fade_out(self, frames: int) -> np.ndarray:
        """A final block that fades to silence; the next block fades in again."""
        block = self._sine(frames) * self._ramp(frames)[::-1]
        self._started = False
        return block

    def play(self, sink: IAudioSink, duration_secs: float, block_size: int = 1024) -> None:
        """Write ``duration_secs`` of the tone to a sink, ending with a fade."""
        total = int(duration_secs * sink.sample_rate)
        if sink.sample_rate != self._sample_rate:
            logger.warning(
                f"Sink rate {sink.sample_rate} Hz differs from tone rate {self._sample_rate} Hz"
            )
        written = 0
        while written < total - block_size:
            sink.write_samples(self.next_block(block_size))
            written += block_size
        sink.write_samples(self.fade_out(max(total - written, 1)))
