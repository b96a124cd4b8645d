"""Pitch detection, audio sources and sinks, and reference tones.

Live device classes live in ``piano_tuner.audio.live`` and are not imported
here, since sounddevice needs the PortAudio library at import time.
"""

from .interfaces import IAudioSink, IAudioSource
from .pitch import PitchDetector, PitchResult
from .providers import BufferAudioSink, BufferAudioSource, WavFileAudioSource
from .reference import ReferenceTone

__all__ = [
    "BufferAudioSink",
    "BufferAudioSource",
    "IAudioSink",
    "IAudioSource",
    "PitchDetector",
    "PitchResult",
    "ReferenceTone",
    "WavFileAudioSource",
]
