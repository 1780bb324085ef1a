from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import List, NamedTuple, Optional


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class UnassignedReason(str, Enum):
    NO_SLOTS_SELECTED = "no slots selected"
    ALL_SLOTS_TAKEN = "all selected slots already taken"


class SlotKey(NamedTuple):
    date: date
    start: time
    end: time


@dataclass(frozen=True)
class TimeSlot:
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"time slot must start before it ends ({self.start} >= {self.end})")

    def overlaps(self, other: "TimeSlot") -> bool:
        return max(self.start, other.start) < min(self.end, other.end)


@dataclass(frozen=True)
class DaySlots:
    date: date
    times: List[TimeSlot] = field(default_factory=list)


@dataclass(frozen=True)
class Project:
    id: str
    title: str
    time_slots: List[DaySlots] = field(default_factory=list)  # sorted by date
    deadline: Optional[date] = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Participant:
    id: str
    project_id: str
    form_number: str
    selected_slots: List[str] = field(default_factory=list)  # slot ids, scan order
    assigned_slot: Optional[str] = None
    scan_data: Optional[str] = None  # data:image/... URL of the paper form
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class Assignment:
    participant_id: str
    form_number: str
    slot_id: str
    date: date
    start: time
    end: time


@dataclass(frozen=True)
class UnassignedParticipant:
    participant_id: str
    form_number: str
    reason: UnassignedReason


@dataclass(frozen=True)
class AssignmentResult:
    id: str
    project_id: str
    assignments: List[Assignment]
    unassigned: List[UnassignedParticipant]
    created_at: datetime
