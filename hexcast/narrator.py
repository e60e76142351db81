"""
narrator.py — Changing-line commentary for a hexagram.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .catalog import HexagramRecord
from .lines import Line


@dataclass(frozen=True)
class ChangingLine:
    line_number: int  # 1 = bottom
    text: str

    def to_dict(self) -> dict:
        return {"number": self.line_number, "text": self.text}


def _commentary(hexagram: HexagramRecord, index: int) -> str:
    texts = getattr(hexagram, "changing_lines", None) or ()
    if index >= len(texts):
        return ""
    return str(texts[index] or "").strip()


def narrate_changing_lines(hexagram: Optional[HexagramRecord], lines: Sequence[Line]) -> List[ChangingLine]:
    """
    Commentary for each moving line that has authored text, bottom to top.
    Still lines and blank commentary are skipped.
    """
    if hexagram is None or not lines:
        return []
    summaries = []
    for index, line in enumerate(lines):
        if not getattr(line, "moving", False):
            continue
        text = _commentary(hexagram, index)
        if text:
            summaries.append(ChangingLine(line_number=index + 1, text=text))
    return summaries


def narrate_all_lines(hexagram: Optional[HexagramRecord]) -> List[ChangingLine]:
    """All non-empty line commentary, for browsing a hexagram outside a cast."""
    if hexagram is None:
        return []
    summaries = []
    for index in range(len(hexagram.changing_lines or ())):
        text = _commentary(hexagram, index)
        if text:
            summaries.append(ChangingLine(line_number=index + 1, text=text))
    return summaries
