"""Configuration and events shared by the piano tuner components."""

from .config import ConfigManager
from .events import EventEmitter, TuningEventType

__all__ = ["ConfigManager", "EventEmitter", "TuningEventType"]
