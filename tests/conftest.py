"""
Shared fixtures for hexcast tests.
"""

import pytest

from hexcast.catalog import parse_catalog
from hexcast.lines import Line, line_from_roll


class FixedRolls:
    """Stands in for random.Random; hands out predetermined randint results."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = []

    def randint(self, a, b):
        self.calls.append((a, b))
        return self.values.pop(0)


def lines_from_rolls(rolls):
    return tuple(line_from_roll(r) for r in rolls)


def lines_from_pairs(pairs):
    return tuple(Line(value=v, moving=m) for v, m in pairs)


@pytest.fixture
def catalog_rows():
    """Raw feed rows with drifting column names, as the spreadsheet serves them."""
    return [
        {
            "Hexagram": "47",
            "Name": "Kun / Oppression",
            "Nature": "Lake over Water",
            "Judgement": "Oppression. Success. Perseverance.",
            "Image: Text": "There is no water in the lake.",
            "Lines": "⚋⚊⚋⚊⚊⚋",
            "CL1": "One sits oppressed under a bare tree.",
            "CL2": "",
            "CL3": "A man permits himself to be oppressed by stone.",
            "CL4": "   ",
            "CL5": "His nose and feet are cut off.",
            "CL6": "He is oppressed by creeping vines.",
        },
        {
            "Number": "1",
            "Name": "Qian / The Creative",
            "Nature": "Heaven over Heaven",
            "Essence": "The Creative works sublime success.",
            "Description": "The movement of heaven is full of power.",
            "Image URL": "https://example.org/hex/1.png",
            "Lines": "⚊⚊⚊⚊⚊⚊",
            "Changing Line 1": "Hidden dragon. Do not act.",
            "Changing Line 2": "Dragon appearing in the field.",
            "Changing Line 3": "All day long the superior man is creatively active.",
            "Changing Line 4": "Wavering flight over the depths.",
            "Changing Line 5": "Flying dragon in the heavens.",
            "Changing Line 6": "Arrogant dragon will have cause to repent.",
        },
        {
            "No.": "60",
            "Title": "Jie / Limitation",
            "Meaning": "Limitation. Success.",
            "Lines": "⚊ ⚊ ⚋ ⚋ ⚊ ⚋",
            "cl_1": "Not going out of the door and the courtyard.",
        },
        {
            "No": "2",
            "Name": "Kun / The Receptive",
            "Lines": "⚋⚋⚋⚋⚋⚋",
        },
        {
            "Number": "",
            "Name": "Unnumbered draft row",
            "Lines": "",
        },
        {
            "Number": "3",
            "Name": "",
            "Lines": "⚊⚋⚋⚋⚊⚋",
        },
    ]


@pytest.fixture
def catalog(catalog_rows):
    return parse_catalog(catalog_rows)
