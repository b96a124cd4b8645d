"""Event system for the tuning engine."""

from enum import Enum, auto
from typing import Any, Callable, Dict, List

from ..logger import get_logger

logger = get_logger(__name__)


class TuningEventType(Enum):
    """Events published by the tuning engine."""

    STATE_CHANGED = auto()  # (old_state, new_state)
    CALIBRATION_SAMPLE = auto()  # (frequency, calibrator)
    NOTE_CHANGED = auto()  # (note, position)
    STEP_ADVANCED = auto()  # (note, step)
    NOTE_COMPLETED = auto()  # (completed_note)
    SESSION_COMPLETE = auto()  # (summary)


class EventEmitter:
    """Minimal synchronous publish/subscribe hub."""

    def __init__(self):
        self._listeners: Dict[Any, List[Callable]] = {}

    def on(self, event_type: Any, callback: Callable) -> None:
        """Register a callback for an event type.

        Args:
            event_type: Event type to listen for
            callback: Function to call when the event occurs
        """
        listeners = self._listeners.setdefault(event_type, [])
        if callback not in listeners:
            listeners.append(callback)
            logger.debug(f"Added listener for event {event_type}")

    def off(self, event_type: Any, callback: Callable) -> None:
        """Remove a previously registered callback, if present."""
        listeners = self._listeners.get(event_type, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event_type: Any, *args, **kwargs) -> None:
        """Emit an event.

        Listener errors are logged and do not stop other listeners or the
        caller.

        Args:
            event_type: Event type to emit
            *args: Positional arguments to pass to listeners
            **kwargs: Keyword arguments to pass to listeners
        """
        for callback in list(self._listeners.get(event_type, [])):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_type}: {e}", exc_info=True)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners = {}
        logger.debug("Cleared all event listeners")
