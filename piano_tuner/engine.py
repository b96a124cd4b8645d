"""The tuning workflow: turns pitch detections into tuning decisions."""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .audio.interfaces import IAudioSource
from .audio.pitch import PitchDetector, PitchResult, Samples
from .core.config import ConfigManager
from .core.events import EventEmitter, TuningEventType
from .logger import get_logger
from .tuning.calibrator import Calibrator
from .tuning.notes import Note
from .tuning.order import TuningOrder
from .tuning.session import (
    Session,
    SessionEvent,
    SessionState,
    SessionSummary,
    TuningMode,
    transition,
)
from .tuning.store import SessionStore
from .tuning.stretch import StretchCurve
from .tuning.temperament import Temperament
from .tuning.unison import DEFAULT_TOLERANCE_CENTS, UnisonProtocol, direction_hint

logger = get_logger(__name__)


@dataclass(frozen=True)
class NoteReading:
    """Latest accepted detection for the note being tuned."""

    frequency: float
    cents: float  # Deviation from the stretched target
    confidence: float


class TuningEngine:
    """Session state machine driven by pitch detections and user actions.

    The engine is owned by a single control loop: it is fed one detection at a
    time (``update_pitch``/``clear_pitch`` or ``process_window``) and user
    actions (``choose_mode``, ``confirm``, ``skip``...) in between.
    """

    DEFAULT_CALIBRATION_GATE = 0.8
    DEFAULT_TUNING_GATE = 0.6

    def __init__(
        self,
        detector: Optional[PitchDetector] = None,
        store: Optional[SessionStore] = None,
        order: Optional[TuningOrder] = None,
        stretch: Optional[StretchCurve] = None,
        calibrator: Optional[Calibrator] = None,
        tolerance_cents: float = DEFAULT_TOLERANCE_CENTS,
        calibration_gate: float = DEFAULT_CALIBRATION_GATE,
        tuning_gate: float = DEFAULT_TUNING_GATE,
    ) -> None:
        """Initialize the engine.

        Args:
            detector: Pitch detector used by ``process_window``
            store: Where progress is saved after each note, or None to not persist
            order: Key visiting order (default chromatic)
            stretch: Stretch curve applied to targets (default Railsback curve)
            calibrator: A4 calibrator used in quick mode
            tolerance_cents: Allowed deviation for a note to count as tuned
            calibration_gate: Minimum confidence for calibration readings
            tuning_gate: Minimum confidence for tuning readings
        """
        self.detector = detector or PitchDetector(sample_rate=44100)
        self.store = store
        self.order = order or TuningOrder()
        self.stretch = stretch or StretchCurve()
        self.calibrator = calibrator or Calibrator()
        self.tolerance_cents = float(tolerance_cents)
        self.calibration_gate = float(calibration_gate)
        self.tuning_gate = float(tuning_gate)
        self.events = EventEmitter()

        self._state = SessionState.AWAITING_MODE
        self._mode: Optional[TuningMode] = None
        self._temperament = Temperament()
        self._session: Optional[Session] = None
        self._unison: Optional[UnisonProtocol] = None
        self._reading: Optional[NoteReading] = None
        self._summary: Optional[SessionSummary] = None

    @classmethod
    def from_config(
        cls,
        config_manager: ConfigManager,
        store: Optional[SessionStore] = None,
        sample_rate: Optional[int] = None,
    ) -> "TuningEngine":
        """Build an engine from the ``pitch_detector``, ``audio_input`` and
        ``tuning`` configuration sections."""
        audio = config_manager.get_config("audio_input")
        tuning = config_manager.get_config("tuning")
        rate = int(sample_rate or audio.get("sample_rate", 44100))
        band = tuning.get("calibration_band", list(Calibrator.DEFAULT_BAND))

        return cls(
            detector=PitchDetector.from_config(rate, config_manager.get_config("pitch_detector")),
            store=store,
            order=TuningOrder(tuning.get("order", "chromatic")),
            stretch=StretchCurve() if tuning.get("stretch", True) else StretchCurve.flat(),
            calibrator=Calibrator(
                target_samples=int(tuning.get("calibration_samples", Calibrator.DEFAULT_TARGET_SAMPLES)),
                band=(float(band[0]), float(band[1])),
            ),
            tolerance_cents=float(tuning.get("tolerance_cents", DEFAULT_TOLERANCE_CENTS)),
            calibration_gate=float(tuning.get("calibration_gate", cls.DEFAULT_CALIBRATION_GATE)),
            tuning_gate=float(tuning.get("tuning_gate", cls.DEFAULT_TUNING_GATE)),
        )

    # ----------------------------------------------------------------- state

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> Optional[TuningMode]:
        return self._mode

    @property
    def temperament(self) -> Temperament:
        return self._temperament

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def unison(self) -> Optional[UnisonProtocol]:
        return self._unison

    @property
    def reading(self) -> Optional[NoteReading]:
        return self._reading

    @property
    def summary(self) -> Optional[SessionSummary]:
        return self._summary

    @property
    def position(self) -> int:
        """Index into the tuning order of the note being tuned."""
        return self._session.current_note_index if self._session else 0

    @property
    def current_note(self) -> Optional[Note]:
        if self._state is not SessionState.TUNING:
            return None
        return self.order.note_at(self.position)

    @property
    def target_frequency(self) -> Optional[float]:
        """Stretched target for the current note."""
        note = self.current_note
        if note is None:
            return None
        return self.stretch.target_frequency(self._temperament, note.midi)

    @property
    def hint(self) -> Optional[str]:
        """Tuning pin direction for the live reading, if out of tolerance."""
        if self._reading is None:
            return None
        return direction_hint(self._reading.cents, self.tolerance_cents)

    def is_current_note_complete(self) -> bool:
        if self._unison is None:
            return False
        detected = self._reading is not None
        cents = self._reading.cents if detected else 0.0
        return self._unison.is_complete(cents, detected, self.tolerance_cents)

    def _apply(self, event: SessionEvent) -> None:
        old_state = self._state
        self._state = transition(old_state, event)
        logger.info(f"Session state: {old_state.name} -> {self._state.name} ({event.name})")
        self.events.emit(TuningEventType.STATE_CHANGED, old_state, self._state)

    # --------------------------------------------------------- user actions

    def choose_mode(self, mode: TuningMode) -> None:
        """Start a new session.

        Concert mode tunes to A4 = 440 Hz straight away; quick mode first
        calibrates A4 to the piano.

        Raises:
            ValueError: If a session is already running
        """
        event = SessionEvent.CHOOSE_QUICK if mode is TuningMode.QUICK else SessionEvent.CHOOSE_CONCERT
        self._apply(event)
        self._mode = mode

        if mode is TuningMode.QUICK:
            self.calibrator.reset()
        else:
            self._temperament = Temperament()
            self._start_tuning()

    def skip_calibration(self) -> None:
        """Abandon calibration and tune to A4 = 440 Hz."""
        self._apply(SessionEvent.CALIBRATION_SKIPPED)
        self.calibrator.reset()
        self._temperament = Temperament()
        self._start_tuning()

    def resume(self, session: Session) -> None:
        """Continue a saved session where it left off."""
        self._apply(SessionEvent.RESUME)
        self._mode = session.mode
        self._session = session
        self._temperament = Temperament(session.a4_reference)
        logger.info(
            f"Resuming {session.mode.value} session at note {session.current_note_index} "
            f"(A4 = {session.a4_reference:.2f} Hz)"
        )
        if session.is_finished:
            self._finish()
        else:
            self._setup_current_note()

    def confirm(self) -> bool:
        """Confirm the current unison step, or the note itself on its last step.

        Returns:
            True if the engine moved on (to the next step or the next note),
            False if the note is not yet in tune or no note is being tuned
        """
        if self._state is not SessionState.TUNING or self._unison is None:
            return False

        note = self.current_note
        if self._unison.advance():
            logger.info(f"{note}: step {self._unison.step_number} - {self._unison.step.title}")
            self.events.emit(TuningEventType.STEP_ADVANCED, note, self._unison.step)
            return True

        if not self.is_current_note_complete():
            if self._reading is None:
                logger.info(f"{note}: no pitch detected, not confirming")
            else:
                logger.info(
                    f"{note}: {self._reading.cents:+.1f} cents is outside "
                    f"±{self.tolerance_cents:g}, not confirming"
                )
            return False

        record = self._session.complete_note(note.display_name, self._reading.cents)
        self.events.emit(TuningEventType.NOTE_COMPLETED, record)
        self._advance()
        return True

    def skip(self) -> bool:
        """Record the current note with 0 cents and move on, whatever its progress."""
        if self._state is not SessionState.TUNING:
            return False

        note = self.current_note
        record = self._session.complete_note(note.display_name, 0.0)
        logger.info(f"Skipped {note}")
        self.events.emit(TuningEventType.NOTE_COMPLETED, record)
        self._advance()
        return True

    def reset(self) -> None:
        """Drop the current session and go back to mode selection."""
        self._apply(SessionEvent.RESET)
        self._mode = None
        self._session = None
        self._unison = None
        self._reading = None
        self._summary = None
        self._temperament = Temperament()
        self.calibrator.reset()

    # ------------------------------------------------------------ detection

    def update_pitch(self, frequency: float, confidence: float) -> None:
        """Feed one detection. Readings below the state's confidence gate
        count as no detection."""
        if self._state is SessionState.CALIBRATING:
            if confidence < self.calibration_gate:
                self.calibrator.clear()
                return
            if self.calibrator.update(frequency):
                self.events.emit(TuningEventType.CALIBRATION_SAMPLE, frequency, self.calibrator)
            if self.calibrator.is_complete:
                self._temperament = self._temperament.with_a4(self.calibrator.result())
                self._apply(SessionEvent.CALIBRATION_DONE)
                self._start_tuning()

        elif self._state is SessionState.TUNING:
            if confidence < self.tuning_gate:
                self._reading = None
                return
            cents = Temperament.cents_from_target(frequency, self.target_frequency)
            self._reading = NoteReading(frequency, cents, confidence)

    def clear_pitch(self) -> None:
        """No pitch in the latest window."""
        if self._state is SessionState.CALIBRATING:
            self.calibrator.clear()
        elif self._state is SessionState.TUNING:
            self._reading = None

    def process_window(self, samples: Samples) -> Optional[PitchResult]:
        """Run pitch detection on one analysis window and feed the result."""
        result = self.detector.detect(samples)
        if result is None:
            self.clear_pitch()
        else:
            self.update_pitch(result.frequency, result.confidence)
        return result

    # ------------------------------------------------------------- internal

    def _start_tuning(self) -> None:
        self._session = Session(mode=self._mode, a4_reference=self._temperament.a4)
        logger.info(f"Tuning started: {self._mode.value} mode, A4 = {self._temperament.a4:.2f} Hz")
        self._setup_current_note()
        self._save()

    def _setup_current_note(self) -> None:
        note = self.current_note
        self._unison = UnisonProtocol.for_note(note)
        self._reading = None
        logger.info(
            f"Note {self.position + 1}/{len(self.order)}: {note} "
            f"({self._unison.phase_name}), target {self.target_frequency:.2f} Hz"
        )
        self.events.emit(TuningEventType.NOTE_CHANGED, note, self.position)

    def _advance(self) -> None:
        self._session.current_note_index += 1
        self._reading = None
        self._unison = None
        if self._session.is_finished:
            self._finish()
        else:
            self._setup_current_note()
        self._save()

    def _finish(self) -> None:
        self._apply(SessionEvent.NOTES_EXHAUSTED)
        self._unison = None
        self._summary = SessionSummary.from_session(self._session)
        logger.info(
            f"Session complete: {self._summary.note_count} notes, "
            f"average deviation {self._summary.avg_deviation:.1f} cents"
        )
        self.events.emit(TuningEventType.SESSION_COMPLETE, self._summary)

    def _save(self) -> None:
        if self.store is not None and self._session is not None:
            self.store.save(self._session)


def run_loop(
    engine: TuningEngine,
    source: IAudioSource,
    window_size: int = 4096,
    should_stop: Optional[Callable[[], bool]] = None,
    on_tick: Optional[Callable[[TuningEngine, Optional[PitchResult]], None]] = None,
) -> int:
    """Pull windows from ``source`` and feed them to ``engine`` until the source
    runs dry or ``should_stop`` returns True.

    ``on_tick`` runs after every window; it is where a front end polls user
    input and redraws.

    Returns:
        Number of windows processed
    """
    if source.sample_rate != engine.detector.sample_rate:
        engine.detector = engine.detector.with_sample_rate(source.sample_rate)

    buffer = np.zeros(window_size, dtype=np.float64)
    windows = 0
    while should_stop is None or not should_stop():
        count = source.read_samples(buffer)
        if count == 0:
            break
        result = engine.process_window(buffer[:count])
        windows += 1
        if on_tick is not None:
            on_tick(engine, result)
        if count < window_size:
            break
    logger.debug(f"Control loop processed {windows} windows")
    return windows
