"""
Greedy Slot Assignment Engine

Matches sign-up forms (participants) to meeting slots, one slot per
participant and one participant per slot, using a single greedy pass with
most-constrained-first ordering.

Time Complexity: O(P log P + P * L) where:
    P = number of participants
    L = average preference-list length (bounded by the slot count)

Key Techniques:
- Minimum Remaining Values ordering: participants with the shortest
  preference lists are served first, so a participant with one acceptable
  slot is not starved by one who could have gone elsewhere
- Stable tie-break: equal-length lists keep their input order
- First-fit value ordering: each participant takes the first unclaimed slot
  in their own list

Trade-off: there is no backtracking or augmenting-path repair, so the result
is not guaranteed to be a maximum matching. Example: with P1 = [a, b],
P2 = [b, c], P3 = [a, b] (all length 2) the pass gives P1 -> a, P2 -> b and
leaves P3 unassigned, although P1 -> a, P2 -> c, P3 -> b exists. The
behaviour is kept on purpose because it is simple, deterministic and easy
to explain to the organizer; slotplanner.engine.optimality measures the gap
without changing any assignment.
"""

import logging
import uuid
from datetime import datetime
from typing import Dict, List, Sequence, Set

from slotplanner.engine.catalog import build_slot_catalog
from slotplanner.models.entities import (
    Assignment,
    AssignmentResult,
    Participant,
    Project,
    SlotKey,
    UnassignedParticipant,
    UnassignedReason,
)

logger = logging.getLogger(__name__)


def order_by_constraint(participants: Sequence[Participant]) -> List[Participant]:
    """
    Order participants with a non-empty preference list, fewest options first.

    Python's sort is stable, so participants with equally long lists stay
    in input order and repeated runs produce identical results.
    """
    with_choices = [p for p in participants if p.selected_slots]
    return sorted(with_choices, key=lambda p: len(p.selected_slots))


def claim_first_free(preferences: Sequence[str], catalog: Dict[str, SlotKey], claimed: Set[str]):
    """
    Return the first preferred slot id that is unclaimed and still exists.

    A reference to a slot that is no longer in the catalog is skipped
    exactly like a slot taken by someone else.
    """
    for slot_id in preferences:
        if slot_id in claimed or slot_id not in catalog:
            continue
        return slot_id
    return None


def assign(project: Project, participants: Sequence[Participant]) -> AssignmentResult:
    """
    Compute one assignment snapshot for a project.

    Algorithm:
    1. Flatten the project's slots into a catalog (slot_id -> date/start/end)
    2. Order participants with choices by list length (stable)
    3. Each participant claims the first free slot in their own list,
       otherwise is reported as "all selected slots already taken"
    4. Participants without choices are reported as "no slots selected"
    5. Assignments are sorted chronologically for presentation

    Args:
        project: Project defining which slots exist
        participants: Forms to place; preference lists must not be None

    Returns:
        AssignmentResult where every participant appears exactly once,
        either as an Assignment or as an UnassignedParticipant

    Never raises for well-typed input and performs no I/O.
    """
    catalog = build_slot_catalog(project)
    claimed: Set[str] = set()
    assignments: List[Assignment] = []
    unassigned: List[UnassignedParticipant] = []

    for participant in order_by_constraint(participants):
        slot_id = claim_first_free(participant.selected_slots, catalog, claimed)
        if slot_id is None:
            unassigned.append(UnassignedParticipant(
                participant_id=participant.id,
                form_number=participant.form_number,
                reason=UnassignedReason.ALL_SLOTS_TAKEN,
            ))
            continue

        claimed.add(slot_id)
        key = catalog[slot_id]
        assignments.append(Assignment(
            participant_id=participant.id,
            form_number=participant.form_number,
            slot_id=slot_id,
            date=key.date,
            start=key.start,
            end=key.end,
        ))

    for participant in participants:
        if not participant.selected_slots:
            unassigned.append(UnassignedParticipant(
                participant_id=participant.id,
                form_number=participant.form_number,
                reason=UnassignedReason.NO_SLOTS_SELECTED,
            ))

    assignments.sort(key=lambda a: (a.date, a.start))

    logger.debug(
        f"Project {project.id}: {len(assignments)} assigned, {len(unassigned)} unassigned "
        f"out of {len(participants)} participants and {len(catalog)} slots"
    )

    return AssignmentResult(
        id=str(uuid.uuid4()),
        project_id=project.id,
        assignments=assignments,
        unassigned=unassigned,
        created_at=datetime.utcnow(),
    )
