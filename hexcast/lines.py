"""
lines.py — Line values and the two ways of producing them.

A line is drawn either at random (uniform over 6/7/8/9) or typed in by hand.
Both paths share the same roll table, so a manual 9 is exactly a drawn 9.
"""

from __future__ import annotations
import logging
import random
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

LINES_PER_HEXAGRAM = 6


class LineValue(IntEnum):
    """Roll values for a single line."""
    OLD_YIN = 6      # broken, changing to solid
    YOUNG_YANG = 7   # solid, stable
    YOUNG_YIN = 8    # broken, stable
    OLD_YANG = 9     # solid, changing to broken


# roll -> (value, moving)
ROLL_TABLE = {
    LineValue.OLD_YIN: (0, True),
    LineValue.YOUNG_YANG: (1, False),
    LineValue.YOUNG_YIN: (0, False),
    LineValue.OLD_YANG: (1, True),
}

MANUAL_DIGITS = ("6", "7", "8", "9")


@dataclass(frozen=True)
class Line:
    """One hexagram line. `roll` is diagnostic and ignored for equality."""
    value: int
    moving: bool
    roll: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        if self.value not in (0, 1):
            raise ValueError(f"line value must be 0 or 1, got {self.value!r}")

    @property
    def is_yang(self) -> bool:
        return self.value == 1

    def to_dict(self) -> dict:
        return {"v": self.value, "moving": self.moving}


LineSet = Tuple[Line, ...]


def line_from_roll(roll: int) -> Optional[Line]:
    """Map a 6-9 roll to its line, or None for anything else."""
    try:
        key = LineValue(roll)
    except ValueError:
        return None
    value, moving = ROLL_TABLE[key]
    return Line(value=value, moving=moving, roll=int(key))


def uniform_roll(rng: Optional[random.Random] = None) -> int:
    """Each of 6, 7, 8, 9 with probability 1/4."""
    rng = rng or random
    return rng.randint(6, 9)


def three_coin_roll(rng: Optional[random.Random] = None) -> int:
    """
    Classic coin method: three coins worth 2 (tails) or 3 (heads).
    Gives 6/7/8/9 with probabilities 1/8, 3/8, 3/8, 1/8.
    """
    rng = rng or random
    return sum(rng.randint(2, 3) for _ in range(3))


ROLL_METHODS = {
    "uniform": uniform_roll,
    "coins": three_coin_roll,
}


def random_line(rng: Optional[random.Random] = None, method: str = "uniform") -> Line:
    """Draw one line using the named roll method."""
    try:
        roller = ROLL_METHODS[method]
    except KeyError:
        raise ValueError(f"unknown roll method {method!r}; choose from {sorted(ROLL_METHODS)}")
    line = line_from_roll(roller(rng))
    logger.debug("Drew line %s (roll %s)", line.to_dict(), line.roll)
    return line


def line_from_manual(text: object) -> Optional[Line]:
    """
    Parse a manually entered numeral.
    Only the exact strings "6", "7", "8" and "9" are accepted; everything else
    (empty, padded, multi-character, out of range, non-string) leaves the slot
    unfilled and returns None.
    """
    if not isinstance(text, str) or text not in MANUAL_DIGITS:
        return None
    return line_from_roll(int(text))


def parse_manual_entries(entries: Sequence[object]) -> List[Optional[Line]]:
    return [line_from_manual(entry) for entry in entries]


class ManualCastForm:
    """Six entry slots for manual casting, bottom line first."""

    def __init__(self):
        self.slots: List[str] = [""] * LINES_PER_HEXAGRAM

    def enter(self, index: int, text: str) -> str:
        """
        Store keyboard input for a slot and return what was kept.
        Non-digits are dropped, only the last typed digit survives, and a
        digit outside 6-9 blanks the slot.
        """
        if not 0 <= index < LINES_PER_HEXAGRAM:
            raise IndexError(f"slot index must be 0-{LINES_PER_HEXAGRAM - 1}, got {index}")
        digits = "".join(ch for ch in (text or "") if ch.isdigit() and ch.isascii())
        value = digits[-1:] if digits else ""
        if value not in MANUAL_DIGITS:
            value = ""
        self.slots[index] = value
        return value

    def lines(self) -> List[Optional[Line]]:
        return parse_manual_entries(self.slots)

    def is_complete(self) -> bool:
        return all(line is not None for line in self.lines())

    def clear(self):
        self.slots = [""] * LINES_PER_HEXAGRAM
