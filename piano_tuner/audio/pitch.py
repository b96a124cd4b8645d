"""YIN pitch detection.

Implementation based on:
de Cheveigné, A., & Kawahara, H. (2002). "YIN, a fundamental frequency
estimator for speech and music."
"""

from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, Optional, Sequence, Union

import numpy as np

from ..logger import get_logger

logger = get_logger(__name__)

Samples = Union[Sequence[float], np.ndarray]


@dataclass(frozen=True)
class PitchResult:
    """Pitch of one analysis window."""

    frequency: float  # Detected frequency in Hz
    confidence: float  # 0.0 to 1.0, higher is better

    def __repr__(self):
        return f"PitchResult(freq={self.frequency:.2f}, conf={self.confidence:.2f})"


@dataclass(frozen=True)
class PitchDetector:
    """YIN-based fundamental frequency estimator.

    The detector is immutable. ``with_threshold`` and ``with_frequency_range``
    return reconfigured copies, so one instance can be shared freely.
    """

    DEFAULT_THRESHOLD: ClassVar[float] = 0.1
    MIN_FREQUENCY: ClassVar[float] = 27.5  # A0
    MAX_FREQUENCY: ClassVar[float] = 4186.0  # C8

    # A dip is followed while values keep falling or rise by at most this much
    DIP_RISE_TOLERANCE: ClassVar[float] = 0.01
    # Best fallback CMND value accepted when nothing crosses the threshold
    FALLBACK_MAX_CMND: ClassVar[float] = 0.5

    sample_rate: int
    threshold: float = DEFAULT_THRESHOLD
    min_frequency: float = MIN_FREQUENCY
    max_frequency: float = MAX_FREQUENCY

    @classmethod
    def from_config(cls, sample_rate: int, config: Dict[str, Any]) -> "PitchDetector":
        """Build a detector from a ``pitch_detector`` configuration section."""
        return cls(
            sample_rate=int(sample_rate),
            threshold=float(config.get("threshold", cls.DEFAULT_THRESHOLD)),
            min_frequency=float(config.get("min_frequency", cls.MIN_FREQUENCY)),
            max_frequency=float(config.get("max_frequency", cls.MAX_FREQUENCY)),
        )

    def with_threshold(self, threshold: float) -> "PitchDetector":
        return replace(self, threshold=float(threshold))

    def with_frequency_range(self, min_frequency: float, max_frequency: float) -> "PitchDetector":
        return replace(
            self, min_frequency=float(min_frequency), max_frequency=float(max_frequency)
        )

    def with_sample_rate(self, sample_rate: int) -> "PitchDetector":
        return replace(self, sample_rate=int(sample_rate))

    def min_window_size(self) -> int:
        """Smallest window for which the full frequency range can be searched."""
        return 2 * int(self.sample_rate / self.min_frequency) + 2

    def detect(
        self, samples: Samples, sample_rate: Optional[int] = None
    ) -> Optional[PitchResult]:
        """Detect the pitch of one window of mono samples.

        Args:
            samples: Audio samples, nominally in [-1.0, 1.0]
            sample_rate: Overrides the detector's sample rate for this call

        Returns:
            The detected pitch, or None if no pitch could be found
        """
        x = np.asarray(samples, dtype=np.float64).ravel()
        n = x.size
        if n < 2:
            return None

        rate = float(sample_rate if sample_rate is not None else self.sample_rate)
        if rate <= 0 or self.min_frequency <= 0 or self.max_frequency <= 0:
            return None

        # Lag search range from the frequency range
        tau_min = int(rate / self.max_frequency)
        tau_max = int(min(rate / self.min_frequency, n // 2))
        if tau_max <= tau_min or tau_max >= n // 2:
            logger.debug(
                "Search range collapsed: tau %d-%d for %d samples", tau_min, tau_max, n
            )
            return None

        # Steps 1 & 2: difference function
        diff = self._difference_function(x, tau_max)

        # Step 3: cumulative mean normalized difference
        cmnd = self._cumulative_mean_normalized_difference(diff)

        # Step 4: absolute threshold
        tau = self._find_threshold_crossing(cmnd, tau_min, tau_max)
        if tau is None:
            return None

        # Step 5: parabolic interpolation for sub-sample accuracy
        refined_tau = self._parabolic_interpolation(cmnd, tau)

        frequency = rate / refined_tau
        confidence = 1.0 - min(float(cmnd[tau]), 1.0)
        logger.debug("Pitch: %.2f Hz (tau %.2f), confidence: %.3f", frequency, refined_tau, confidence)
        return PitchResult(frequency=frequency, confidence=confidence)

    @staticmethod
    def _difference_function(x: np.ndarray, tau_max: int) -> np.ndarray:
        """d(tau) = sum_{j<W} (x[j] - x[j+tau])^2 with W = n - tau_max.

        Expanded as the two window energies minus twice the cross-correlation,
        which is computed with an FFT.
        """
        n = x.size
        w = n - tau_max
        head = x[:w]

        energy_head = float(np.dot(head, head))
        squares = np.concatenate(([0.0], np.cumsum(x * x)))
        taus = np.arange(tau_max + 1)
        energy_shifted = squares[taus + w] - squares[taus]

        size = 1 << int(np.ceil(np.log2(n + w)))
        spectrum = np.fft.rfft(x, size) * np.conj(np.fft.rfft(head, size))
        correlation = np.fft.irfft(spectrum, size)[: tau_max + 1]

        diff = energy_head + energy_shifted - 2.0 * correlation
        # Rounding can leave tiny negative values where the signal repeats exactly
        np.maximum(diff, 0.0, out=diff)
        diff[0] = 0.0
        return diff

    @staticmethod
    def _cumulative_mean_normalized_difference(diff: np.ndarray) -> np.ndarray:
        """d'(0) = 1; d'(tau) = d(tau) * tau / sum(d(1..tau)), or 1 where the sum is 0."""
        cmnd = np.ones_like(diff)
        if diff.size < 2:
            return cmnd

        running_sum = np.cumsum(diff[1:])
        taus = np.arange(1, diff.size)
        positive = running_sum > 0.0
        cmnd[1:][positive] = diff[1:][positive] * taus[positive] / running_sum[positive]
        return cmnd

    def _find_threshold_crossing(
        self, cmnd: np.ndarray, tau_min: int, tau_max: int
    ) -> Optional[int]:
        """First dip below the threshold, else the global minimum if it is low enough."""
        window = cmnd[tau_min:tau_max]
        below = np.flatnonzero(window < self.threshold)

        if below.size > 0:
            # Follow the dip down to its bottom
            min_tau = tau_min + int(below[0])
            min_val = cmnd[min_tau]
            for t in range(min_tau + 1, tau_max):
                if cmnd[t] < min_val:
                    min_val = cmnd[t]
                    min_tau = t
                elif cmnd[t] > min_val + self.DIP_RISE_TOLERANCE:
                    break
            return min_tau

        # No threshold crossing: fall back to the absolute minimum
        min_tau = tau_min + int(np.argmin(window))
        min_val = float(cmnd[min_tau])
        if min_val < self.FALLBACK_MAX_CMND:
            logger.debug("No threshold crossing, using global minimum %.3f", min_val)
            return min_tau
        return None

    @staticmethod
    def _parabolic_interpolation(cmnd: np.ndarray, tau: int) -> float:
        """Vertex of the parabola through tau and its neighbours, within ±1 sample."""
        if tau == 0 or tau >= cmnd.size - 1:
            return float(tau)

        s0, s1, s2 = float(cmnd[tau - 1]), float(cmnd[tau]), float(cmnd[tau + 1])
        denominator = 2.0 * (s0 - 2.0 * s1 + s2)
        if abs(denominator) < 1e-10:
            return float(tau)

        delta = (s0 - s2) / denominator
        return tau + max(-1.0, min(1.0, delta))
