"""A4 calibration: estimate the piano's actual pitch center."""

from typing import List, Optional, Tuple

from ..logger import get_logger

logger = get_logger(__name__)


class Calibrator:
    """Accumulates A4 readings and averages them into a reference pitch.

    Readings outside the plausible A4 band are dropped silently.
    """

    DEFAULT_TARGET_SAMPLES = 10
    DEFAULT_BAND: Tuple[float, float] = (400.0, 480.0)

    def __init__(
        self,
        target_samples: int = DEFAULT_TARGET_SAMPLES,
        band: Tuple[float, float] = DEFAULT_BAND,
    ) -> None:
        low, high = float(band[0]), float(band[1])
        if target_samples < 1:
            raise ValueError(f"target_samples must be at least 1, got {target_samples}")
        if low >= high:
            raise ValueError(f"Invalid calibration band: {low}-{high} Hz")

        self._target_samples = int(target_samples)
        self._band = (low, high)
        self._samples: List[float] = []
        self._current_freq: Optional[float] = None

    def update(self, frequency: float) -> bool:
        """Offer a detected frequency.

        Returns:
            True if the reading was accepted, False if it fell outside the band
            or calibration has already collected enough samples
        """
        low, high = self._band
        if not low <= frequency <= high:
            logger.debug(f"Calibration sample {frequency:.2f} Hz outside {low}-{high} Hz")
            return False
        if self.is_complete:
            return False

        self._current_freq = frequency
        self._samples.append(frequency)
        logger.debug(
            f"Calibration sample {len(self._samples)}/{self._target_samples}: "
            f"{frequency:.2f} Hz"
        )
        if self.is_complete:
            logger.info(f"Calibration complete: A4 = {self.result():.2f} Hz")
        return True

    def clear(self) -> None:
        """Forget the live reading (no pitch currently detected)."""
        self._current_freq = None

    def reset(self) -> None:
        """Discard all samples and start over."""
        self._samples.clear()
        self._current_freq = None

    @property
    def is_complete(self) -> bool:
        return len(self._samples) >= self._target_samples

    def result(self) -> Optional[float]:
        """Mean of the accepted samples, or None before the first one."""
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)

    @property
    def progress(self) -> float:
        """Fraction of the target sample count collected (0.0 to 1.0)."""
        return min(len(self._samples) / self._target_samples, 1.0)

    @property
    def current_frequency(self) -> Optional[float]:
        return self._current_freq

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def target_samples(self) -> int:
        return self._target_samples

    @property
    def band(self) -> Tuple[float, float]:
        return self._band
