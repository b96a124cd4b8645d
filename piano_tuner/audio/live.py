"""Live audio devices using sounddevice."""

from typing import Any, Dict, List, Optional

import numpy as np
import sounddevice as sd

from ..logger import get_logger
from .interfaces import IAudioSink, IAudioSource
from .providers import _to_mono

logger = get_logger(__name__)


class LiveAudioSource(IAudioSource):
    """Captures audio from an input device using sounddevice."""

    def __init__(
        self,
        device_id: Optional[int] = None,
        sample_rate: int = 44100,
        channels: int = 1,
        block_size: int = 4096,
    ) -> None:
        self._device_id = device_id
        self._sample_rate = int(sample_rate)
        self._channels = int(channels)
        self._block_size = int(block_size)
        self._stream: Optional[sd.InputStream] = None

    def start(self) -> None:
        if self._stream is not None:
            return
        self._stream = sd.InputStream(
            device=self._device_id,
            channels=self._channels,
            samplerate=self._sample_rate,
            blocksize=self._block_size,
            dtype="float32",
        )
        self._stream.start()
        logger.info(
            f"Audio input started: device={self._device_id}, "
            f"rate={self._sample_rate}Hz, channels={self._channels}"
        )

    def read_samples(self, buffer: np.ndarray) -> int:
        """Block until ``len(buffer)`` frames have been captured."""
        if self._stream is None:
            self.start()
        data, overflowed = self._stream.read(len(buffer))
        if overflowed:
            logger.warning("Audio input overflow; samples were dropped")
        mono = _to_mono(np.asarray(data, dtype=np.float64))
        buffer[: len(mono)] = mono
        return len(mono)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def close(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
                logger.info("Audio input stopped")
            finally:
                self._stream = None


class LiveAudioSink(IAudioSink):
    """Plays samples on an output device using sounddevice."""

    def __init__(self, device_id: Optional[int] = None, sample_rate: int = 44100) -> None:
        self._device_id = device_id
        self._sample_rate = int(sample_rate)
        self._stream: Optional[sd.OutputStream] = None

    def write_samples(self, buffer: np.ndarray) -> None:
        if self._stream is None:
            self._stream = sd.OutputStream(
                device=self._device_id,
                channels=1,
                samplerate=self._sample_rate,
                dtype="float32",
            )
            self._stream.start()
        self._stream.write(np.asarray(buffer, dtype=np.float32).reshape(-1, 1))

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def close(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            finally:
                self._stream = None


def list_input_devices() -> List[Dict[str, Any]]:
    """Input-capable devices as dicts with id, name, channels and default rate."""
    devices = []
    for device_id, device in enumerate(sd.query_devices()):
        if device["max_input_channels"] > 0:
            devices.append(
                {
                    "id": device_id,
                    "name": device["name"],
                    "channels": device["max_input_channels"],
                    "default_samplerate": device["default_samplerate"],
                }
            )
    return devices


def check_input_rate(device_id: Optional[int], sample_rate: int) -> bool:
    """Whether a device accepts mono capture at ``sample_rate``."""
    try:
        sd.check_input_settings(device=device_id, samplerate=sample_rate, channels=1)
        return True
    except (sd.PortAudioError, ValueError) as e:
        logger.warning(f"Sample rate {sample_rate} Hz not supported on device {device_id}: {e}")
        return False
