"""Equal temperament calculations."""

from dataclasses import dataclass, replace
from typing import ClassVar, Optional, Tuple

import numpy as np

from ..logger import get_logger
from .notes import Note

logger = get_logger(__name__)


@dataclass(frozen=True)
class Temperament:
    """Equal temperament frequency model around a single A4 reference.

    Instances are immutable; use ``with_a4`` to get a model for a new reference
    (e.g. after calibration).
    """

    A4_MIDI: ClassVar[int] = 69
    STANDARD_A4: ClassVar[float] = 440.0

    a4: float = STANDARD_A4  # Reference frequency for A4 in Hz

    def with_a4(self, a4: float) -> "Temperament":
        return replace(self, a4=float(a4))

    def frequency(self, midi_note: float) -> float:
        """Frequency for a MIDI note number: f = A4 * 2^((n - 69) / 12)."""
        return self.a4 * 2.0 ** ((midi_note - self.A4_MIDI) / 12.0)

    def frequency_for_note(self, note: Note) -> float:
        return self.frequency(note.midi)

    @staticmethod
    def cents_from_target(frequency: float, target: float) -> float:
        """Deviation of ``frequency`` from ``target`` in cents.

        Positive = sharp, negative = flat. Non-positive inputs give NaN or
        infinities rather than raising.
        """
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(1200.0 * np.log2(np.float64(frequency) / target))

    def frequency_to_cents(self, frequency: float, midi_note: int) -> float:
        """Deviation of ``frequency`` from the tempered pitch of ``midi_note``."""
        return self.cents_from_target(frequency, self.frequency(midi_note))

    @classmethod
    def cents_to_frequency(cls, target: float, cents: float) -> float:
        """The frequency lying ``cents`` away from ``target``."""
        return target * cls.cents_to_ratio(cents)

    @staticmethod
    def cents_to_ratio(cents: float) -> float:
        return 2.0 ** (cents / 1200.0)

    def nearest_note(self, frequency: float) -> Optional[Tuple[int, float]]:
        """Find the nearest MIDI note for a frequency.

        Returns:
            (midi_note, cents_deviation), or None if the frequency is not a
            positive finite number
        """
        if not np.isfinite(frequency) or frequency <= 0:
            logger.debug(f"No nearest note for frequency {frequency}")
            return None

        midi_float = self.A4_MIDI + 12.0 * float(np.log2(frequency / self.a4))
        midi_note = int(round(midi_float))
        cents = self.cents_from_target(frequency, self.frequency(midi_note))
        return midi_note, cents


# Known frequencies for all 88 piano notes at A4 = 440 Hz
REFERENCE_FREQUENCIES: Tuple[Tuple[int, float], ...] = (
    (21, 27.5),  # A0
    (22, 29.135),
    (23, 30.868),
    (24, 32.703),  # C1
    (25, 34.648),
    (26, 36.708),
    (27, 38.891),
    (28, 41.203),
    (29, 43.654),
    (30, 46.249),
    (31, 48.999),
    (32, 51.913),
    (33, 55.0),  # A1
    (34, 58.270),
    (35, 61.735),
    (36, 65.406),  # C2
    (37, 69.296),
    (38, 73.416),
    (39, 77.782),
    (40, 82.407),
    (41, 87.307),
    (42, 92.499),
    (43, 97.999),
    (44, 103.826),
    (45, 110.0),  # A2
    (46, 116.541),
    (47, 123.471),
    (48, 130.813),  # C3
    (49, 138.591),
    (50, 146.832),
    (51, 155.563),
    (52, 164.814),
    (53, 174.614),
    (54, 184.997),
    (55, 195.998),
    (56, 207.652),
    (57, 220.0),  # A3
    (58, 233.082),
    (59, 246.942),
    (60, 261.626),  # C4 (middle C)
    (61, 277.183),
    (62, 293.665),
    (63, 311.127),
    (64, 329.628),
    (65, 349.228),
    (66, 369.994),
    (67, 391.995),
    (68, 415.305),
    (69, 440.0),  # A4 (concert pitch)
    (70, 466.164),
    (71, 493.883),
    (72, 523.251),  # C5
    (73, 554.365),
    (74, 587.330),
    (75, 622.254),
    (76, 659.255),
    (77, 698.456),
    (78, 739.989),
    (79, 783.991),
    (80, 830.609),
    (81, 880.0),  # A5
    (82, 932.328),
    (83, 987.767),
    (84, 1046.502),  # C6
    (85, 1108.731),
    (86, 1174.659),
    (87, 1244.508),
    (88, 1318.510),
    (89, 1396.913),
    (90, 1479.978),
    (91, 1567.982),
    (92, 1661.219),
    (93, 1760.0),  # A6
    (94, 1864.655),
    (95, 1975.533),
    (96, 2093.005),  # C7
    (97, 2217.461),
    (98, 2349.318),
    (99, 2489.016),
    (100, 2637.020),
    (101, 2793.826),
    (102, 2959.955),
    (103, 3135.963),
    (104, 3322.438),
    (105, 3520.0),  # A7
    (106, 3729.310),
    (107, 3951.066),
    (108, 4186.009),  # C8
)
