"""Piano tuning engine: pitch detection, stretched equal temperament and a
guided 88-key tuning workflow."""

from .engine import NoteReading, TuningEngine, run_loop

__version__ = "0.1.0"

__all__ = ["NoteReading", "TuningEngine", "run_loop", "__version__"]
