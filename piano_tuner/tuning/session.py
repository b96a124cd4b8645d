"""Tuning session records and the session state machine."""

import math
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple

from ..logger import get_logger
from .notes import NOTE_COUNT
from .temperament import Temperament

logger = get_logger(__name__)

IN_TUNE_CENTS = 5.0
WARNING_CENTS = 15.0


class TuningMode(Enum):
    """How the A4 reference is chosen."""

    QUICK = "quick"  # Calibrate to the piano's current pitch center
    CONCERT = "concert"  # Tune to A4 = 440 Hz


class SessionState(Enum):
    AWAITING_MODE = auto()
    CALIBRATING = auto()
    TUNING = auto()
    COMPLETE = auto()


class SessionEvent(Enum):
    CHOOSE_QUICK = auto()
    CHOOSE_CONCERT = auto()
    CALIBRATION_DONE = auto()
    CALIBRATION_SKIPPED = auto()
    NOTES_EXHAUSTED = auto()
    RESUME = auto()
    RESET = auto()


_TRANSITIONS: Dict[Tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.AWAITING_MODE, SessionEvent.CHOOSE_QUICK): SessionState.CALIBRATING,
    (SessionState.AWAITING_MODE, SessionEvent.CHOOSE_CONCERT): SessionState.TUNING,
    (SessionState.AWAITING_MODE, SessionEvent.RESUME): SessionState.TUNING,
    (SessionState.CALIBRATING, SessionEvent.CALIBRATION_DONE): SessionState.TUNING,
    (SessionState.CALIBRATING, SessionEvent.CALIBRATION_SKIPPED): SessionState.TUNING,
    (SessionState.TUNING, SessionEvent.NOTES_EXHAUSTED): SessionState.COMPLETE,
}


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    """Next session state for an event.

    RESET returns to AWAITING_MODE from anywhere.

    Raises:
        ValueError: If the event is not allowed in ``state``
    """
    if event is SessionEvent.RESET:
        return SessionState.AWAITING_MODE
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"Event {event.name} not allowed in state {state.name}") from None


@dataclass(frozen=True)
class CompletedNote:
    """A note that was confirmed or skipped."""

    note_name: str  # Display name, e.g. 'A4'
    final_cents: float  # Deviation when confirmed; 0.0 when skipped

    def to_dict(self) -> Dict[str, Any]:
        return {"note_name": self.note_name, "final_cents": self.final_cents}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletedNote":
        cents = float(data["final_cents"])
        if not math.isfinite(cents):
            raise ValueError(f"Invalid deviation {cents}")
        return cls(str(data["note_name"]), cents)


@dataclass
class Session:
    """Progress through one tuning run; what gets saved between restarts."""

    mode: TuningMode = TuningMode.QUICK
    a4_reference: float = Temperament.STANDARD_A4
    current_note_index: int = 0
    completed_notes: List[CompletedNote] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)

    def complete_note(self, note_name: str, cents: float) -> CompletedNote:
        record = CompletedNote(note_name, float(cents))
        self.completed_notes.append(record)
        logger.info(f"Completed {note_name} at {cents:+.1f} cents")
        return record

    @property
    def is_finished(self) -> bool:
        return self.current_note_index >= NOTE_COUNT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "a4_reference": self.a4_reference,
            "current_note_index": self.current_note_index,
            "completed_notes": [n.to_dict() for n in self.completed_notes],
            "started_at": self.started_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Build a session from a saved snapshot.

        Raises:
            ValueError, KeyError, TypeError: If the snapshot is malformed
        """
        index = int(data["current_note_index"])
        if not 0 <= index <= NOTE_COUNT:
            raise ValueError(f"Note index {index} out of range")
        a4 = float(data["a4_reference"])
        if not math.isfinite(a4) or a4 <= 0:
            raise ValueError(f"Invalid A4 reference {a4}")
        return cls(
            mode=TuningMode(data["mode"]),
            a4_reference=a4,
            current_note_index=index,
            completed_notes=[CompletedNote.from_dict(n) for n in data["completed_notes"]],
            started_at=float(data.get("started_at", time.time())),
        )


@dataclass(frozen=True)
class SessionSummary:
    """End-of-session report."""

    completed_notes: Tuple[CompletedNote, ...]
    duration_secs: float = 0.0

    @classmethod
    def from_session(cls, session: Session, finished_at: Optional[float] = None) -> "SessionSummary":
        finished_at = time.time() if finished_at is None else finished_at
        return cls(
            completed_notes=tuple(session.completed_notes),
            duration_secs=max(finished_at - session.started_at, 0.0),
        )

    @property
    def note_count(self) -> int:
        return len(self.completed_notes)

    @property
    def avg_deviation(self) -> float:
        """Mean absolute deviation in cents."""
        if not self.completed_notes:
            return 0.0
        return sum(abs(n.final_cents) for n in self.completed_notes) / self.note_count

    @property
    def notes_in_tune(self) -> int:
        return sum(1 for n in self.completed_notes if abs(n.final_cents) <= IN_TUNE_CENTS)

    @property
    def notes_warning(self) -> int:
        return sum(
            1
            for n in self.completed_notes
            if IN_TUNE_CENTS < abs(n.final_cents) <= WARNING_CENTS
        )

    @property
    def notes_out_of_tune(self) -> int:
        return sum(1 for n in self.completed_notes if abs(n.final_cents) > WARNING_CENTS)

    @property
    def quality(self) -> str:
        avg = self.avg_deviation
        if avg <= 3.0:
            return "Excellent tuning!"
        if avg <= 8.0:
            return "Good tuning!"
        if avg <= 15.0:
            return "Acceptable tuning"
        return "Tuning needs improvement"
