import logging
import random
import uuid
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from slotplanner.config.settings import get_settings
from slotplanner.engine.assigner import assign
from slotplanner.engine.catalog import normalize_day_slots, validate_day_slots
from slotplanner.engine.stats import ScheduleStats, compute_stats
from slotplanner.models.commands import AssignSlot, AttachScan, SelectSlots, SetProjectStatus
from slotplanner.models.entities import AssignmentResult, DaySlots, Participant, Project, ProjectStatus
from slotplanner.storage.repositories import (
    AssignmentResultRepository,
    ParticipantRepository,
    ProjectRepository,
)
from slotplanner.utils.benchmarking import BenchmarkResult, benchmark_assignment

logger = logging.getLogger(__name__)


class PlannerService:
    """
    Organizer-side workflow for one database session.

    Holds the session and repositories explicitly; nothing is kept in module
    state between requests.
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.settings = get_settings()
        self.projects = ProjectRepository(db)
        self.participants = ParticipantRepository(db)
        self.results = AssignmentResultRepository(db)
        self.rng = rng or random.SystemRandom()

    def create_project(self, title: str, time_slots: List[DaySlots], deadline: Optional[date] = None) -> Project:
        if not title.strip():
            raise ValueError("title must not be empty")
        validate_day_slots(time_slots)
        project = Project(
            id=str(uuid.uuid4()),
            title=title.strip(),
            deadline=deadline,
            time_slots=normalize_day_slots(time_slots),
        )
        self.projects.save(project)
        logger.info(f"Created project {project.id} with {sum(len(d.times) for d in project.time_slots)} slots")
        return project

    def set_status(self, project_id: str, status: ProjectStatus) -> Optional[Project]:
        project = self.projects.apply(SetProjectStatus(project_id, status))
        if project is not None:
            logger.info(f"Project {project_id} is now {project.status.value}")
        return project

    def _new_form_number(self, taken: set) -> str:
        digits = self.settings.form_number_digits
        low, high = 10 ** (digits - 1), 10 ** digits - 1
        if len(taken) >= high - low + 1:
            raise ValueError("no free form numbers left")
        while True:
            number = str(self.rng.randint(low, high))
            if number not in taken:
                return number

    def add_participants(self, project_id: str, count: int) -> Optional[List[Participant]]:
        """Create ``count`` blank sign-up forms with unique random form numbers."""
        if self.projects.get_by_id(project_id) is None:
            return None
        limit = self.settings.max_forms_per_batch
        if count < 1 or count > limit:
            raise ValueError(f"count must be between 1 and {limit}")

        taken = self.participants.existing_form_numbers(project_id)
        created = []
        for _ in range(count):
            number = self._new_form_number(taken)
            taken.add(number)
            created.append(Participant(id=str(uuid.uuid4()), project_id=project_id, form_number=number))

        self.participants.save_all(created)
        logger.info(f"Added {count} forms to project {project_id}")
        return created

    def update_selection(self, participant_id: str, slot_ids: List[str]) -> Optional[Participant]:
        return self.participants.apply(SelectSlots(participant_id, slot_ids))

    def attach_scan(self, participant_id: str, scan_data: Optional[str]) -> Optional[Participant]:
        return self.participants.apply(AttachScan(participant_id, scan_data))

    def run_assignment(self, project_id: str) -> Optional[Tuple[AssignmentResult, ScheduleStats]]:
        """
        Recompute the project's assignment and store it as the only result.

        Reads, the engine run and all writes share one transaction: prior
        results are deleted, every participant's assigned slot is rewritten
        (cleared when the new run did not place them) and a single commit
        makes the new snapshot current.
        """
        project = self.projects.get_by_id(project_id)
        if project is None:
            return None

        participants = self.participants.list_by_project(project_id, lock=True)
        try:
            result = assign(project, participants)

            self.results.delete_by_project(project_id, commit=False)
            self.results.save(result, commit=False)

            placed = {a.participant_id: a.slot_id for a in result.assignments}
            for participant in participants:
                new_slot = placed.get(participant.id)
                if participant.assigned_slot != new_slot:
                    self.participants.apply(AssignSlot(participant.id, new_slot), commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        stats = compute_stats(project, result)
        logger.info(
            f"Assignment for project {project_id}: {stats.assigned_count}/{stats.total_participants} "
            f"forms placed, {stats.used_slots}/{stats.total_slots} slots used"
        )
        return result, stats

    def current_result(self, project_id: str) -> Optional[AssignmentResult]:
        return self.results.get_current(project_id)

    def stats(self, project_id: str) -> Optional[ScheduleStats]:
        project = self.projects.get_by_id(project_id)
        if project is None:
            return None
        result = self.results.get_current(project_id)
        if result is None:
            result = AssignmentResult(id="", project_id=project_id, assignments=[], unassigned=[], created_at=project.created_at)
        return compute_stats(project, result)

    def audit(self, project_id: str) -> Optional[BenchmarkResult]:
        project = self.projects.get_by_id(project_id)
        if project is None:
            return None
        participants = self.participants.list_by_project(project_id)
        return benchmark_assignment(project, participants, self.settings.audit_time_limit_seconds)
