"""Stretch tuning (Railsback curve) for piano inharmonicity compensation.

Piano strings are inharmonic: their overtones run slightly sharp of exact
integer multiples of the fundamental. Tuners compensate by stretching the
octaves, tuning the bass a little flat and the treble a little sharp of equal
temperament.
"""

from typing import ClassVar, Optional

import numpy as np

from .notes import HIGHEST_MIDI, LOWEST_MIDI, NOTE_COUNT
from .temperament import Temperament


class StretchCurve:
    """Per-key offsets in cents, computed once.

    Index 0 is A0 (MIDI 21) and index 87 is C8 (MIDI 108). The curve is a cubic
    in the normalized key position, so it is flat through the middle of the
    keyboard and steepens towards both ends:

    - A0: about -16 cents
    - C4: 0 cents
    - C8: about +24 cents
    """

    CENTER_MIDI: ClassVar[float] = 60.0  # Middle C
    HALF_RANGE: ClassVar[float] = 44.0  # Half the keyboard in semitones
    MAX_STRETCH_CENTS: ClassVar[float] = 20.0

    def __init__(self, offsets: Optional[np.ndarray] = None) -> None:
        if offsets is None:
            offsets = self._generate_railsback_curve()
        offsets = np.array(offsets, dtype=np.float64)
        if offsets.shape != (NOTE_COUNT,):
            raise ValueError(
                f"Stretch curve needs {NOTE_COUNT} offsets, got {offsets.shape}"
            )
        offsets.setflags(write=False)
        self._offsets = offsets

    @classmethod
    def flat(cls) -> "StretchCurve":
        """A curve with no stretch at all (plain equal temperament)."""
        return cls(np.zeros(NOTE_COUNT))

    @classmethod
    def calculate_stretch(cls, midi: int) -> float:
        """Stretch in cents for a single key: 20 * x^2 * sign(x)."""
        x = (midi - cls.CENTER_MIDI) / cls.HALF_RANGE
        return cls.MAX_STRETCH_CENTS * x * x * float(np.sign(x))

    @classmethod
    def _generate_railsback_curve(cls) -> np.ndarray:
        midis = np.arange(LOWEST_MIDI, HIGHEST_MIDI + 1)
        return np.array([cls.calculate_stretch(int(m)) for m in midis])

    @property
    def offsets(self) -> np.ndarray:
        """Read-only view of all 88 offsets."""
        return self._offsets

    def offset_cents(self, midi_note: int) -> float:
        """Stretch offset in cents for a MIDI note; 0 outside the piano range.

        Positive values = tune sharp, negative = tune flat.
        """
        if not LOWEST_MIDI <= midi_note <= HIGHEST_MIDI:
            return 0.0
        return float(self._offsets[midi_note - LOWEST_MIDI])

    def offset_cents_by_index(self, index: int) -> float:
        if not 0 <= index < NOTE_COUNT:
            return 0.0
        return float(self._offsets[index])

    def apply(self, base_frequency: float, midi_note: int) -> float:
        """Shift a base frequency by this key's stretch offset."""
        return base_frequency * 2.0 ** (self.offset_cents(midi_note) / 1200.0)

    def target_frequency(self, temperament: Temperament, midi_note: int) -> float:
        """The stretched tuning target for a key under ``temperament``."""
        return self.apply(temperament.frequency(midi_note), midi_note)
