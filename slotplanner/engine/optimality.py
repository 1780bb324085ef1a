from typing import Dict, List, Optional, Sequence

from ortools.sat.python import cp_model

from slotplanner.engine.catalog import build_slot_catalog
from slotplanner.models.entities import Participant, Project


def max_matching_size(
    project: Project,
    participants: Sequence[Participant],
    time_limit_seconds: int = 10,
) -> Optional[int]:
    """
    Upper bound for the greedy engine: the largest number of participants
    that could be placed at once, computed with OR-Tools CP-SAT.
    Only used for auditing; assignments always come from the greedy engine.
    """
    catalog = build_slot_catalog(project)
    model = cp_model.CpModel()

    # Variables: one boolean per (participant, known preferred slot)
    by_participant: Dict[str, List[cp_model.IntVar]] = {}
    by_slot: Dict[str, List[cp_model.IntVar]] = {}
    for p_index, participant in enumerate(participants):
        for slot_id in dict.fromkeys(participant.selected_slots):
            if slot_id not in catalog:
                continue
            var = model.NewBoolVar(f"p{p_index}_{slot_id}")
            by_participant.setdefault(participant.id, []).append(var)
            by_slot.setdefault(slot_id, []).append(var)

    if not by_slot:
        return 0

    # Hard constraints: at most one slot per participant, one participant per slot
    for variables in by_participant.values():
        model.AddAtMostOne(variables)
    for variables in by_slot.values():
        model.AddAtMostOne(variables)

    model.Maximize(sum(v for variables in by_slot.values() for v in variables))

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = time_limit_seconds
    solver.parameters.log_search_progress = False

    status = solver.Solve(model)

    if status not in [cp_model.OPTIMAL, cp_model.FEASIBLE]:
        return None

    return int(round(solver.ObjectiveValue()))
