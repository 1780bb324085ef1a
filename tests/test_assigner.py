from collections import Counter
from datetime import date, time

from slotplanner.engine.assigner import assign, order_by_constraint
from slotplanner.models.entities import UnassignedReason

S1 = "2026-02-02_09:00_09:15"
S2 = "2026-02-02_09:15_09:30"

D1_1400 = "2026-02-02_14:00_14:15"
D1_1415 = "2026-02-02_14:15_14:30"
D1_1430 = "2026-02-02_14:30_14:45"
D2_0800 = "2026-02-03_08:00_08:15"
D2_0815 = "2026-02-03_08:15_08:30"
D2_0830 = "2026-02-03_08:30_08:45"


def placed(result):
    return {a.participant_id: a.slot_id for a in result.assignments}


def reasons(result):
    return {u.participant_id: u.reason for u in result.unassigned}


class TestAssignmentScenarios:
    """Concrete scenarios for the greedy engine."""

    def test_shorter_list_served_first(self, two_slot_project, make_participant):
        """X (one slot) beats Y (two slots) to the shared slot even when listed second."""
        y = make_participant("y", [S1, S2])
        x = make_participant("x", [S1])
        result = assign(two_slot_project, [y, x])

        assert placed(result) == {"x": S1, "y": S2}
        assert result.unassigned == []

    def test_constrained_participant_keeps_shared_slot(self, two_day_project, make_participant):
        """A has one option shared with B; B falls back to one of its other two."""
        b = make_participant("b", [D1_1400, D1_1415, D2_0800])
        a = make_participant("a", [D1_1400])
        result = assign(two_day_project, [b, a])

        assert placed(result)["a"] == D1_1400
        assert placed(result)["b"] in {D1_1415, D2_0800}

    def test_first_free_slot_in_given_order(self, two_day_project, make_participant):
        """Within one list, the participant's own order decides."""
        p = make_participant("p", [D2_0830, D1_1400, D2_0800])
        result = assign(two_day_project, [p])
        assert placed(result) == {"p": D2_0830}

    def test_equal_lengths_keep_input_order(self, two_slot_project, make_participant):
        """Ties are broken by input order only."""
        p1 = make_participant("p1", [S1, S2])
        p2 = make_participant("p2", [S1, S2])

        assert placed(assign(two_slot_project, [p1, p2])) == {"p1": S1, "p2": S2}
        assert placed(assign(two_slot_project, [p2, p1])) == {"p2": S1, "p1": S2}

    def test_everyone_wants_one_slot(self, two_slot_project, make_participant):
        people = [make_participant(f"p{i}", [S1]) for i in range(4)]
        result = assign(two_slot_project, people)

        assert placed(result) == {"p0": S1}
        assert reasons(result) == {
            "p1": UnassignedReason.ALL_SLOTS_TAKEN,
            "p2": UnassignedReason.ALL_SLOTS_TAKEN,
            "p3": UnassignedReason.ALL_SLOTS_TAKEN,
        }

    def test_greedy_is_not_a_maximum_matching(self, two_day_project, make_participant):
        """No backtracking: P3 stays unassigned though a full matching exists."""
        p1 = make_participant("p1", [D1_1400, D1_1415])
        p2 = make_participant("p2", [D1_1415, D1_1430])
        p3 = make_participant("p3", [D1_1400, D1_1415])
        result = assign(two_day_project, [p1, p2, p3])

        assert placed(result) == {"p1": D1_1400, "p2": D1_1415}
        assert reasons(result) == {"p3": UnassignedReason.ALL_SLOTS_TAKEN}


class TestUnassignedReasons:
    """Every participant left out carries one of the two literal reasons."""

    def test_reason_literals(self):
        assert UnassignedReason.NO_SLOTS_SELECTED == "no slots selected"
        assert UnassignedReason.ALL_SLOTS_TAKEN == "all selected slots already taken"

    def test_no_slots_selected(self, two_slot_project, make_participant):
        blank = make_participant("blank", [])
        result = assign(two_slot_project, [blank])

        assert result.assignments == []
        assert len(result.unassigned) == 1
        assert result.unassigned[0].reason == "no slots selected"
        assert result.unassigned[0].form_number == blank.form_number

    def test_blank_forms_listed_after_contested_ones(self, two_slot_project, make_participant):
        blank = make_participant("blank", [])
        first = make_participant("first", [S1])
        loser = make_participant("loser", [S1])
        result = assign(two_slot_project, [blank, first, loser])

        assert [u.participant_id for u in result.unassigned] == ["loser", "blank"]

    def test_project_without_slots(self, empty_project, make_participant):
        """A non-empty list against an empty catalog finds nothing free."""
        p = make_participant("p", [S1, S2])
        result = assign(empty_project, [p])

        assert result.assignments == []
        assert [(u.participant_id, u.reason) for u in result.unassigned] == [
            ("p", UnassignedReason.ALL_SLOTS_TAKEN)
        ]

    def test_no_participants(self, two_slot_project):
        result = assign(two_slot_project, [])
        assert result.assignments == []
        assert result.unassigned == []
        assert result.project_id == two_slot_project.id


class TestDanglingReferences:
    """Slot ids that are not in the project are unavailable, never errors."""

    def test_removed_slot_is_skipped(self, two_slot_project, make_participant):
        p = make_participant("p", ["2026-03-01_10:00_10:15", S2])
        result = assign(two_slot_project, [p])
        assert placed(result) == {"p": S2}

    def test_only_unknown_slots(self, two_slot_project, make_participant):
        p = make_participant("p", ["2026-03-01_10:00_10:15", "not-a-slot"])
        result = assign(two_slot_project, [p])

        assert result.assignments == []
        assert reasons(result) == {"p": UnassignedReason.ALL_SLOTS_TAKEN}

    def test_unknown_slot_does_not_block_others(self, two_slot_project, make_participant):
        ghost = "2026-02-02_08:00_08:15"
        a = make_participant("a", [ghost])
        b = make_participant("b", [ghost, S1])
        result = assign(two_slot_project, [a, b])

        assert placed(result) == {"b": S1}
        assert reasons(result) == {"a": UnassignedReason.ALL_SLOTS_TAKEN}


class TestResultProperties:
    """Invariants that hold for every result."""

    def _crowd(self, make_participant):
        slots = [D1_1400, D1_1415, D1_1430, D2_0800, D2_0815, D2_0830]
        return [
            make_participant("p0", [D2_0830, D1_1400]),
            make_participant("p1", [D1_1400]),
            make_participant("p2", []),
            make_participant("p3", slots),
            make_participant("p4", [D1_1400, D1_1415, "bogus"]),
            make_participant("p5", [D2_0830]),
            make_participant("p6", [D2_0830]),
            make_participant("p7", slots[::-1]),
            make_participant("p8", [D1_1415, D1_1430]),
        ]

    def test_no_double_booking(self, two_day_project, make_participant):
        result = assign(two_day_project, self._crowd(make_participant))
        counts = Counter(a.slot_id for a in result.assignments)
        assert all(c == 1 for c in counts.values())

    def test_every_participant_exactly_once(self, two_day_project, make_participant):
        crowd = self._crowd(make_participant)
        result = assign(two_day_project, crowd)

        ids = [a.participant_id for a in result.assignments] + [u.participant_id for u in result.unassigned]
        assert sorted(ids) == sorted(p.id for p in crowd)
        assert len(result.assignments) + len(result.unassigned) == len(crowd)

    def test_assignments_respect_preferences(self, two_day_project, make_participant):
        crowd = {p.id: p for p in self._crowd(make_participant)}
        result = assign(two_day_project, list(crowd.values()))
        for a in result.assignments:
            assert a.slot_id in crowd[a.participant_id].selected_slots

    def test_assignments_sorted_chronologically(self, two_day_project, make_participant):
        """Processing order (p1 first) differs from presentation order."""
        p1 = make_participant("p1", [D2_0800])
        p2 = make_participant("p2", [D1_1415, D1_1400])
        result = assign(two_day_project, [p2, p1])

        assert [a.participant_id for a in result.assignments] == ["p2", "p1"]
        keys = [(a.date, a.start) for a in assign(two_day_project, self._crowd(make_participant)).assignments]
        assert keys == sorted(keys)

    def test_slot_details_denormalized(self, two_slot_project, make_participant):
        result = assign(two_slot_project, [make_participant("p", [S2])])
        a = result.assignments[0]
        assert (a.date, a.start, a.end) == (date(2026, 2, 2), time(9, 15), time(9, 30))

    def test_deterministic(self, two_day_project, make_participant):
        first = assign(two_day_project, self._crowd(make_participant))
        second = assign(two_day_project, self._crowd(make_participant))

        assert first.assignments == second.assignments
        assert first.unassigned == second.unassigned
        assert first.id != second.id

    def test_input_not_mutated(self, two_slot_project, make_participant):
        p = make_participant("p", [S2, S1])
        assign(two_slot_project, [p])
        assert p.selected_slots == [S2, S1]
        assert p.assigned_slot is None

    def test_order_by_constraint_drops_blank_forms(self, make_participant):
        people = [
            make_participant("a", [S1, S2]),
            make_participant("b", []),
            make_participant("c", [S2]),
        ]
        assert [p.id for p in order_by_constraint(people)] == ["c", "a"]
