"""The 88 keys of a standard piano, from A0 (MIDI 21) to C8 (MIDI 108)."""

from dataclasses import dataclass
from typing import Optional, Tuple

# Chromatic order starting at A, matching the lowest key of the piano
NOTE_NAMES: Tuple[str, ...] = (
    "A",
    "A#",
    "B",
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
)

LOWEST_MIDI = 21  # A0
HIGHEST_MIDI = 108  # C8

# Total number of notes on a standard piano
NOTE_COUNT = HIGHEST_MIDI - LOWEST_MIDI + 1

# Last MIDI number of each stringing zone
MONOCHORD_MAX_MIDI = 34  # A#1
BICHORD_MAX_MIDI = 56  # G#3


@dataclass(frozen=True)
class Note:
    """A piano key and its physical properties."""

    midi: int  # MIDI note number (21 = A0, 108 = C8)
    name: str  # Note name (e.g., 'A', 'C#')
    octave: int  # Octave in scientific pitch notation (changes at C)
    strings: int  # Number of strings struck by the hammer (1, 2 or 3)

    @property
    def display_name(self) -> str:
        """Note name with octave (e.g., 'A4', 'C#5')."""
        return f"{self.name}{self.octave}"

    @property
    def index(self) -> int:
        """Position on the keyboard (0 = A0, 87 = C8)."""
        return self.midi - LOWEST_MIDI

    @property
    def is_trichord(self) -> bool:
        return self.strings == 3

    @property
    def is_black_key(self) -> bool:
        return "#" in self.name

    def __str__(self):
        return self.display_name

    @staticmethod
    def from_midi(midi: int) -> Optional["Note"]:
        """Get a note by MIDI number, or None outside the piano range."""
        if not LOWEST_MIDI <= midi <= HIGHEST_MIDI:
            return None
        return NOTES[midi - LOWEST_MIDI]

    @staticmethod
    def from_name(name: str) -> Optional["Note"]:
        """Get a note by display name (e.g., 'A4', 'C#5')."""
        name = name.strip() if name else ""
        for note in NOTES:
            if note.display_name == name:
                return note
        return None


def string_count(midi: int) -> int:
    """Number of strings for a key: monochord, bichord or trichord."""
    if midi <= MONOCHORD_MAX_MIDI:
        return 1
    if midi <= BICHORD_MAX_MIDI:
        return 2
    return 3


def _build_notes() -> Tuple[Note, ...]:
    notes = []
    for i in range(NOTE_COUNT):
        midi = LOWEST_MIDI + i
        # A0, A#0 and B0 sit below the first C
        octave = 0 if i < 3 else (i - 3) // 12 + 1
        notes.append(Note(midi, NOTE_NAMES[i % 12], octave, string_count(midi)))
    return tuple(notes)


# All 88 piano notes from A0 to C8, built once at import time
NOTES: Tuple[Note, ...] = _build_notes()


def note_at(index: int) -> Optional[Note]:
    """Get a note by keyboard index (0 = A0, 87 = C8)."""
    if 0 <= index < NOTE_COUNT:
        return NOTES[index]
    return None
