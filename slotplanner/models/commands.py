"""
Typed participant and project updates.

Each command names the single field it writes, so a stored record can never
pick up fields it does not declare.
"""

from dataclasses import dataclass
from typing import List, Optional, Union

from slotplanner.models.entities import ProjectStatus


@dataclass(frozen=True)
class SelectSlots:
    """Replace the preference list (checkbox entry or scan transcription)."""
    participant_id: str
    slot_ids: List[str]

    def normalized(self) -> List[str]:
        seen = set()
        ordered = []
        for slot_id in self.slot_ids:
            if slot_id not in seen:
                seen.add(slot_id)
                ordered.append(slot_id)
        return ordered


@dataclass(frozen=True)
class AssignSlot:
    """Write back the engine's decision; None clears a stale assignment."""
    participant_id: str
    slot_id: Optional[str]


@dataclass(frozen=True)
class AttachScan:
    """
    Store the photo of the paper form on the form itself.

    One image per form, replaced on every upload. Scans are not kept as
    separate records, and the transcribed selection is sent on its own
    through SelectSlots.
    """
    participant_id: str
    scan_data: Optional[str]


@dataclass(frozen=True)
class SetProjectStatus:
    """Change a project's lifecycle status; the slot grid stays as created."""
    project_id: str
    status: ProjectStatus


ParticipantCommand = Union[SelectSlots, AssignSlot, AttachScan]
