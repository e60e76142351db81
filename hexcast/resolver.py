"""
resolver.py — Moving lines, resulting lines and the binary signature key.
"""

from __future__ import annotations
from typing import Sequence

from .lines import LINES_PER_HEXAGRAM, Line, LineSet


def _require_six(lines: Sequence[Line]) -> None:
    if lines is None or len(lines) != LINES_PER_HEXAGRAM:
        count = "None" if lines is None else len(lines)
        raise ValueError(f"a hexagram needs exactly {LINES_PER_HEXAGRAM} lines, got {count}")


def flip_bit(bit: int) -> int:
    return 1 - bit


def derive_resulting_lines(primary: Sequence[Line]) -> LineSet:
    """
    Build the resulting hexagram's lines.
    Moving lines invert their value; every resulting line is still.
    """
    _require_six(primary)
    return tuple(
        Line(value=flip_bit(line.value) if line.moving else line.value, moving=False)
        for line in primary
    )


def signature_key(lines: Sequence[Line]) -> str:
    """Six '0'/'1' characters, bottom line first."""
    _require_six(lines)
    return "".join("1" if line.value else "0" for line in lines)


def moving_positions(lines: Sequence[Line]) -> list:
    """1-based positions of moving lines, bottom to top."""
    return [index for index, line in enumerate(lines, start=1) if line.moving]
