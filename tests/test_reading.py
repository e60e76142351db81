"""
Tests for the reading assembler: interactive and manual casting.
"""

import random

from hexcast.lines import Line, line_from_manual
from hexcast.narrator import ChangingLine
from hexcast.reading import CastingSession, CastState, assemble_reading, manual_reading

from conftest import FixedRolls, lines_from_pairs, lines_from_rolls


class TestCastingSession:
    def test_states(self, catalog):
        session = CastingSession(catalog, rng=FixedRolls([7, 8, 7, 8, 7, 8]))
        assert session.state is CastState.EMPTY
        assert session.reading is None
        session.cast_line()
        assert session.state is CastState.CASTING
        for _ in range(4):
            session.cast_line()
        assert session.state is CastState.CASTING
        assert session.reading is None
        session.cast_line()
        assert session.state is CastState.COMPLETE
        assert session.reading is not None

    def test_no_mutation_after_complete(self, catalog):
        session = CastingSession(catalog, rng=FixedRolls([7] * 6))
        reading = session.cast_all()
        assert session.cast_line() is None
        assert session.add_line(Line(0, True)) is None
        assert len(session.lines) == 6
        assert session.reading is reading

    def test_unfilled_line_ignored(self, catalog):
        session = CastingSession(catalog)
        assert session.add_line(line_from_manual("5")) is None
        assert session.state is CastState.EMPTY

    def test_abandon(self, catalog):
        session = CastingSession(catalog, rng=random.Random(3))
        session.cast_line()
        session.cast_line()
        session.abandon()
        assert session.state is CastState.EMPTY
        assert session.lines == ()

    def test_scenario_a_no_moving_lines(self, catalog):
        session = CastingSession(catalog, question="Should I begin?", rng=FixedRolls([7] * 6))
        reading = session.cast_all()
        assert reading.primary_lines == lines_from_pairs([(1, False)] * 6)
        assert reading.primary_key == "111111"
        assert reading.resulting_lines == reading.primary_lines
        assert reading.changing_lines == ()
        assert reading.primary_hexagram.number == 1
        assert reading.resulting_hexagram.number == 1
        assert reading.question == "Should I begin?"
        assert not reading.has_moving_lines


class TestManualReading:
    def test_scenario_b(self, catalog):
        reading = manual_reading(["6", "7", "8", "9", "7", "8"], catalog)
        assert reading.primary_lines == lines_from_pairs(
            [(0, True), (1, False), (0, False), (1, True), (1, False), (0, False)]
        )
        assert reading.primary_key == "010110"
        assert reading.resulting_lines == lines_from_pairs(
            [(1, False), (1, False), (0, False), (0, False), (1, False), (0, False)]
        )
        assert reading.resulting_key == "110010"
        assert reading.moving_positions == [1, 4]
        assert reading.primary_hexagram.number == 47
        assert reading.resulting_hexagram.number == 60
        # line 4 moves but its commentary is blank
        assert reading.changing_lines == (ChangingLine(1, "One sits oppressed under a bare tree."),)

    def test_scenario_c_invalid_slot_blocks_completion(self, catalog):
        assert manual_reading(["6", "7", "5", "9", "7", "8"], catalog) is None

    def test_wrong_number_of_entries(self, catalog):
        assert manual_reading(["6", "7", "8"], catalog) is None
        assert manual_reading(None, catalog) is None

    def test_matches_interactive_cast(self, catalog):
        manual = manual_reading(["6", "7", "8", "9", "7", "8"], catalog, question="q")
        session = CastingSession(catalog, question="q", rng=FixedRolls([6, 7, 8, 9, 7, 8]))
        assert session.cast_all() == manual
        assert session.reading.to_dict() == manual.to_dict()


class TestAssembleReading:
    def test_changing_lines_come_from_primary_only(self, catalog):
        # primary 111111 (Qian) with line 1 moving -> resulting 011111 (not in catalog)
        reading = assemble_reading(lines_from_rolls([9, 7, 7, 7, 7, 7]), catalog)
        assert reading.primary_hexagram.number == 1
        assert reading.resulting_hexagram is None
        assert reading.changing_lines == (ChangingLine(1, "Hidden dragon. Do not act."),)

    def test_catalog_not_loaded_keeps_lines(self):
        reading = assemble_reading(lines_from_rolls([6, 7, 8, 9, 7, 8]), [])
        assert reading.primary_hexagram is None
        assert reading.resulting_hexagram is None
        assert reading.changing_lines == ()
        assert reading.primary_key == "010110"
        assert reading.resulting_key == "110010"
        assert not reading.resolved

    def test_resolve_later_without_recasting(self, catalog):
        unresolved = assemble_reading(lines_from_rolls([6, 7, 8, 9, 7, 8]), None, question="later")
        resolved = unresolved.resolve(catalog)
        assert resolved.primary_lines == unresolved.primary_lines
        assert resolved.primary_hexagram.number == 47
        assert resolved.resulting_hexagram.number == 60
        assert resolved.question == "later"
        assert resolved.resolve(catalog) == resolved

    def test_summary_payload(self, catalog):
        reading = manual_reading(["6", "7", "8", "9", "7", "8"], catalog)
        summary = reading.to_summary()
        assert summary["primary"] == {"number": 47, "name": "Kun / Oppression"}
        assert summary["resulting"] == {"number": 60, "name": "Jie / Limitation"}
        assert summary["primaryLines"][0] == {"v": 0, "moving": True}
        assert all(line["moving"] is False for line in summary["resultingLines"])

    def test_summary_payload_unmatched(self):
        reading = assemble_reading(lines_from_rolls([7] * 6), [])
        assert reading.to_summary()["primary"] is None
