from dataclasses import dataclass
from typing import Dict

from slotplanner.engine.catalog import count_slots
from slotplanner.models.entities import AssignmentResult, Project


@dataclass(frozen=True)
class ScheduleStats:
    total_slots: int
    used_slots: int
    total_participants: int
    assigned_count: int
    unassigned_count: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalSlots": self.total_slots,
            "usedSlots": self.used_slots,
            "totalParticipants": self.total_participants,
            "assignedCount": self.assigned_count,
            "unassignedCount": self.unassigned_count,
        }


def compute_stats(project: Project, result: AssignmentResult) -> ScheduleStats:
    assigned = len(result.assignments)
    unassigned = len(result.unassigned)
    return ScheduleStats(
        total_slots=count_slots(project),
        used_slots=assigned,
        total_participants=assigned + unassigned,
        assigned_count=assigned,
        unassigned_count=unassigned,
    )
