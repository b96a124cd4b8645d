"""Tuning maths, note sequencing and session management."""

from .calibrator import Calibrator
from .notes import NOTE_COUNT, NOTES, Note, note_at
from .order import ORDER_STRATEGIES, TuningOrder
from .session import (
    CompletedNote,
    Session,
    SessionEvent,
    SessionState,
    SessionSummary,
    TuningMode,
    transition,
)
from .store import SessionStore
from .stretch import StretchCurve
from .temperament import Temperament
from .unison import UnisonProtocol, UnisonStep, is_note_complete

__all__ = [
    "Calibrator",
    "CompletedNote",
    "NOTE_COUNT",
    "NOTES",
    "Note",
    "ORDER_STRATEGIES",
    "Session",
    "SessionEvent",
    "SessionState",
    "SessionStore",
    "SessionSummary",
    "StretchCurve",
    "Temperament",
    "TuningMode",
    "TuningOrder",
    "UnisonProtocol",
    "UnisonStep",
    "is_note_complete",
    "note_at",
    "transition",
]
