"""Unison tuning steps for notes with more than one string."""

from enum import Enum
from typing import Optional

from .notes import Note

DEFAULT_TOLERANCE_CENTS = 5.0


class UnisonStep(Enum):
    """Steps for a trichord: tune the center string, then bring the outer
    strings into unison with it."""

    MUTE_OUTER = 1
    TUNE_CENTER = 2
    TUNE_LEFT = 3
    TUNE_RIGHT = 4

    @property
    def number(self) -> int:
        """Step number (1-4)."""
        return self.value

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def instruction(self) -> str:
        return _INSTRUCTIONS[self]

    def next(self) -> Optional["UnisonStep"]:
        """The following step, or None after TUNE_RIGHT."""
        if self is UnisonStep.TUNE_RIGHT:
            return None
        return UnisonStep(self.value + 1)


_TITLES = {
    UnisonStep.MUTE_OUTER: "Mute outer strings",
    UnisonStep.TUNE_CENTER: "Tune center string",
    UnisonStep.TUNE_LEFT: "Tune left string",
    UnisonStep.TUNE_RIGHT: "Tune right string",
}

_INSTRUCTIONS = {
    UnisonStep.MUTE_OUTER: (
        "Use a felt strip or rubber mutes on the outer strings. "
        "Only the center string should sound."
    ),
    UnisonStep.TUNE_CENTER: "Tune the center string to the target pitch.",
    UnisonStep.TUNE_LEFT: (
        "Unmute the left string. Tune it to the center string until the beats stop."
    ),
    UnisonStep.TUNE_RIGHT: (
        "Unmute the right string. Tune it to the center string until the beats stop."
    ),
}


def is_note_complete(
    step: Optional[UnisonStep],
    cents: float,
    detected: bool,
    tolerance: float = DEFAULT_TOLERANCE_CENTS,
) -> bool:
    """Whether a note may be recorded as done.

    Args:
        step: Current unison step, or None for notes without unison steps
        cents: Live deviation from the target
        detected: Whether a pitch is currently detected
        tolerance: Allowed deviation in cents either side of the target
    """
    on_last_step = step is None or step.next() is None
    return on_last_step and detected and abs(cents) <= tolerance


def direction_hint(cents: float, tolerance: float = DEFAULT_TOLERANCE_CENTS) -> Optional[str]:
    """Which way to turn the tuning pin, or None when within tolerance."""
    if abs(cents) <= tolerance:
        return None
    if cents < 0:
        return "Turn tuning pin CLOCKWISE (tighten) slightly"
    return "Turn tuning pin COUNTER-CLOCKWISE (loosen) slightly"


class UnisonProtocol:
    """Unison progress for the note currently being tuned.

    Trichords go through the four ``UnisonStep`` values. Monochords and
    bichords have a single implicit step (``step`` is None).
    """

    def __init__(self, strings: int) -> None:
        self._strings = strings
        self._step: Optional[UnisonStep] = (
            UnisonStep.MUTE_OUTER if strings == 3 else None
        )

    @classmethod
    def for_note(cls, note: Note) -> "UnisonProtocol":
        return cls(note.strings)

    @property
    def step(self) -> Optional[UnisonStep]:
        return self._step

    @property
    def strings(self) -> int:
        return self._strings

    @property
    def total_steps(self) -> int:
        return len(UnisonStep) if self._strings == 3 else 1

    @property
    def step_number(self) -> int:
        return self._step.number if self._step else 1

    @property
    def is_final_step(self) -> bool:
        return self._step is None or self._step.next() is None

    def advance(self) -> bool:
        """Move to the next step.

        Returns:
            True if there was a next step, False if already on the final one
        """
        if self._step is None:
            return False
        following = self._step.next()
        if following is None:
            return False
        self._step = following
        return True

    def is_complete(
        self, cents: float, detected: bool, tolerance: float = DEFAULT_TOLERANCE_CENTS
    ) -> bool:
        return is_note_complete(self._step, cents, detected, tolerance)

    @property
    def phase_name(self) -> str:
        return {1: "Single", 2: "Bichord", 3: "Trichord"}.get(self._strings, "Single")
