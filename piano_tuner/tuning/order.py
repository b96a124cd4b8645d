"""The order in which the 88 keys are visited during a session."""

from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from ..logger import get_logger
from .notes import LOWEST_MIDI, NOTE_COUNT, Note, note_at

logger = get_logger(__name__)

# A strategy returns the keyboard indices (0 = A0) in visiting order
OrderStrategy = Callable[[], Sequence[int]]

# A3 to A4: the octave the temperament is set in before fanning out
TEMPERAMENT_OCTAVE: Tuple[int, int] = (57, 69)
FIFTH = 7
FOURTH = 5


def chromatic_order() -> List[int]:
    """Bottom to top, A0 to C8."""
    return list(range(NOTE_COUNT))


def temperament_octave_order() -> List[int]:
    """Set the temperament octave by fifths and fourths, then fan out by octaves.

    Starting on A4, each step goes up a fifth when that stays inside the
    temperament octave, otherwise down a fourth. This walks all twelve pitch
    classes; A3 closes the octave. The rest of the keyboard is then tuned
    outward, alternating the next key above and the next key below the tuned
    block so that each new note has its lower or upper octave already in tune.
    """
    low, high = TEMPERAMENT_OCTAVE
    midis: List[int] = []
    visited = set()

    current = high
    while current is not None:
        midis.append(current)
        visited.add(current)
        current = next(
            (
                candidate
                for candidate in (current + FIFTH, current - FOURTH)
                if low <= candidate <= high and candidate not in visited
            ),
            None,
        )
    # Anything the circle missed inside the block (A3 at least)
    midis.extend(m for m in range(low, high + 1) if m not in visited)

    above = list(range(high + 1, LOWEST_MIDI + NOTE_COUNT))
    below = list(range(low - 1, LOWEST_MIDI - 1, -1))
    while above or below:
        if above:
            midis.append(above.pop(0))
        if below:
            midis.append(below.pop(0))

    return [m - LOWEST_MIDI for m in midis]


ORDER_STRATEGIES: Dict[str, OrderStrategy] = {
    "chromatic": chromatic_order,
    "temperament": temperament_octave_order,
}


class TuningOrder:
    """A fixed visiting order over all 88 keys.

    Every key appears exactly once; a strategy that breaks this is rejected at
    construction time.
    """

    def __init__(self, strategy: str = "chromatic") -> None:
        if strategy not in ORDER_STRATEGIES:
            raise ValueError(
                f"Unknown tuning order '{strategy}'. "
                f"Choose from: {', '.join(sorted(ORDER_STRATEGIES))}"
            )
        indices = tuple(ORDER_STRATEGIES[strategy]())
        if len(indices) != NOTE_COUNT or set(indices) != set(range(NOTE_COUNT)):
            raise ValueError(
                f"Tuning order '{strategy}' must visit each of the "
                f"{NOTE_COUNT} keys exactly once"
            )

        self._strategy = strategy
        self._indices = indices
        self._positions = {key: pos for pos, key in enumerate(indices)}
        logger.debug(f"Tuning order '{strategy}' starts at {self.note_at(0)}")

    @property
    def strategy(self) -> str:
        return self._strategy

    def note_at(self, position: int) -> Optional[Note]:
        """The note visited at ``position`` (0-87), or None past the end."""
        if not 0 <= position < NOTE_COUNT:
            return None
        return note_at(self._indices[position])

    def index_of(self, midi: int) -> Optional[int]:
        """Position of a key in this order, by MIDI number."""
        return self._positions.get(midi - LOWEST_MIDI)

    def __len__(self) -> int:
        return len(self._indices)

    def __iter__(self) -> Iterator[Note]:
        for index in self._indices:
            yield note_at(index)
