"""
reading.py — Assembling a complete reading from six lines.

Two ways in:

  * `CastingSession` — one line per call, the interactive ritual.
  * `manual_reading` — all six numerals at once.

Both end in `assemble_reading`, so the same six (value, moving) pairs always
produce the same Reading.
"""

from __future__ import annotations
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .catalog import HexagramRecord, find_by_signature
from .lines import LINES_PER_HEXAGRAM, Line, LineSet, parse_manual_entries, random_line
from .narrator import ChangingLine, narrate_changing_lines
from .resolver import derive_resulting_lines, moving_positions, signature_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reading:
    """A finished cast. Journal notes and AI summaries are kept elsewhere."""
    question: Optional[str]
    primary_lines: LineSet
    resulting_lines: LineSet
    primary_hexagram: Optional[HexagramRecord] = None
    resulting_hexagram: Optional[HexagramRecord] = None
    changing_lines: Tuple[ChangingLine, ...] = ()

    @property
    def primary_key(self) -> str:
        return signature_key(self.primary_lines)

    @property
    def resulting_key(self) -> str:
        return signature_key(self.resulting_lines)

    @property
    def moving_positions(self) -> List[int]:
        return moving_positions(self.primary_lines)

    @property
    def has_moving_lines(self) -> bool:
        return any(line.moving for line in self.primary_lines)

    @property
    def resolved(self) -> bool:
        return self.primary_hexagram is not None and self.resulting_hexagram is not None

    def resolve(self, catalog: Optional[Sequence[HexagramRecord]]) -> "Reading":
        """Match the same lines against a (newer) catalog without re-casting."""
        return assemble_reading(self.primary_lines, catalog, question=self.question)

    def to_summary(self) -> Dict[str, Any]:
        """Payload handed to the journal: hexagram number/name and both line sets."""
        return {
            "primary": self.primary_hexagram.summary() if self.primary_hexagram else None,
            "resulting": self.resulting_hexagram.summary() if self.resulting_hexagram else None,
            "primaryLines": [line.to_dict() for line in self.primary_lines],
            "resultingLines": [line.to_dict() for line in self.resulting_lines],
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {"question": self.question}
        data.update(self.to_summary())
        data["primaryKey"] = self.primary_key
        data["resultingKey"] = self.resulting_key
        data["changingLines"] = [entry.to_dict() for entry in self.changing_lines]
        return data


def assemble_reading(
    primary_lines: Sequence[Line],
    catalog: Optional[Sequence[HexagramRecord]],
    question: Optional[str] = None,
) -> Reading:
    """Resolve six lines into a Reading. Missing catalog data leaves hexagrams as None."""
    primary = tuple(primary_lines)
    resulting = derive_resulting_lines(primary)
    primary_hex = find_by_signature(primary, catalog)
    resulting_hex = find_by_signature(resulting, catalog)
    if primary_hex is None or resulting_hex is None:
        logger.info(
            "Unmatched signature(s): primary %s -> %s, resulting %s -> %s",
            signature_key(primary), primary_hex is not None,
            signature_key(resulting), resulting_hex is not None,
        )
    return Reading(
        question=question,
        primary_lines=primary,
        resulting_lines=resulting,
        primary_hexagram=primary_hex,
        resulting_hexagram=resulting_hex,
        # only the primary hexagram's lines move
        changing_lines=tuple(narrate_changing_lines(primary_hex, primary)),
    )


def manual_reading(
    entries: Sequence[object],
    catalog: Optional[Sequence[HexagramRecord]],
    question: Optional[str] = None,
) -> Optional[Reading]:
    """
    Build a reading from six manual numerals, bottom line first.
    Returns None while any slot is missing or invalid.
    """
    if entries is None or len(entries) != LINES_PER_HEXAGRAM:
        return None
    lines = parse_manual_entries(entries)
    if any(line is None for line in lines):
        logger.debug("Manual cast incomplete: %s", list(entries))
        return None
    return assemble_reading(lines, catalog, question=question)


class CastState(Enum):
    EMPTY = "empty"
    CASTING = "casting"
    COMPLETE = "complete"


class CastingSession:
    """Line-by-line casting. Owned by one interactive flow; discard to cancel."""

    def __init__(
        self,
        catalog: Optional[Sequence[HexagramRecord]] = None,
        question: Optional[str] = None,
        rng: Optional[random.Random] = None,
        method: str = "uniform",
    ):
        self.catalog = catalog
        self.question = question
        self.rng = rng or random.Random()
        self.method = method
        self._lines: List[Line] = []
        self._reading: Optional[Reading] = None

    @property
    def lines(self) -> LineSet:
        return tuple(self._lines)

    @property
    def state(self) -> CastState:
        if self._reading is not None:
            return CastState.COMPLETE
        return CastState.CASTING if self._lines else CastState.EMPTY

    @property
    def reading(self) -> Optional[Reading]:
        return self._reading

    def cast_line(self) -> Optional[Line]:
        """Draw and append the next line; no-op once complete."""
        if self.state is CastState.COMPLETE:
            return None
        return self.add_line(random_line(self.rng, self.method))

    def add_line(self, line: Optional[Line]) -> Optional[Line]:
        """Append a line from any source. Unfilled (None) lines are ignored."""
        if line is None or self.state is CastState.COMPLETE:
            return None
        self._lines.append(line)
        if len(self._lines) == LINES_PER_HEXAGRAM:
            self._reading = assemble_reading(self._lines, self.catalog, question=self.question)
        return line

    def cast_all(self) -> Reading:
        while self.state is not CastState.COMPLETE:
            self.cast_line()
        return self._reading

    def abandon(self):
        self._lines = []
        self._reading = None
