from dataclasses import asdict
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field, field_validator

from slotplanner.config.settings import get_settings
from slotplanner.engine.catalog import add_time_slot, generate_time_slots, normalize_day_slots, remove_time_slot, validate_day_slots
from slotplanner.engine.slot_ids import format_date, format_slot_id, format_time, parse_date, parse_time
from slotplanner.engine.stats import ScheduleStats
from slotplanner.models.entities import AssignmentResult, DaySlots, Participant, Project, ProjectStatus, TimeSlot
from slotplanner.services.planner import PlannerService
from slotplanner.storage.cache import ResultCache, get_cache
from slotplanner.storage.database import get_db
from slotplanner.storage.repositories import ParticipantRepository, ProjectRepository, clear_all, export_all, result_to_dict
from sqlalchemy.orm import Session

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


def _check_time(v: str) -> str:
    try:
        parse_time(v)
    except ValueError:
        raise ValueError("times must be HH:MM")
    return v


class TimeSlotDTO(BaseModel):
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, v: str):
        return _check_time(v)

    def to_domain(self) -> TimeSlot:
        return TimeSlot(parse_time(self.start), parse_time(self.end))

    @classmethod
    def from_domain(cls, t: TimeSlot) -> "TimeSlotDTO":
        return cls(start=format_time(t.start), end=format_time(t.end))


class DaySlotsDTO(BaseModel):
    date: str
    times: List[TimeSlotDTO] = Field(..., min_length=1)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str):
        try:
            parse_date(v)
        except ValueError:
            raise ValueError("date must be YYYY-MM-DD")
        return v

    @field_validator("times")
    @classmethod
    def validate_windows(cls, v: List[TimeSlotDTO]):
        """Every slot must start before it ends."""
        for t in v:
            if parse_time(t.start) >= parse_time(t.end):
                raise ValueError("time slots must be [start, end] with start < end")
        return v

    def to_domain(self) -> DaySlots:
        return DaySlots(date=parse_date(self.date), times=[t.to_domain() for t in self.times])

    @classmethod
    def from_domain(cls, d: DaySlots) -> "DaySlotsDTO":
        return cls(date=format_date(d.date), times=[TimeSlotDTO.from_domain(t) for t in d.times])


class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=1)
    deadline: Optional[str] = None
    time_slots: List[DaySlotsDTO] = Field(..., min_length=1)

    @field_validator("deadline")
    @classmethod
    def validate_deadline(cls, v: Optional[str]):
        if v:
            try:
                parse_date(v)
            except ValueError:
                raise ValueError("deadline must be YYYY-MM-DD")
        return v or None

    @field_validator("time_slots")
    @classmethod
    def validate_grid(cls, v: List[DaySlotsDTO]):
        """No duplicate dates and no overlapping slots within a day."""
        validate_day_slots([d.to_domain() for d in v])
        return v


class ProjectDTO(BaseModel):
    id: str
    title: str
    deadline: Optional[str]
    status: str
    time_slots: List[DaySlotsDTO]
    slot_count: int
    created_at: str

    @classmethod
    def from_domain(cls, p: Project) -> "ProjectDTO":
        return cls(
            id=p.id,
            title=p.title,
            deadline=format_date(p.deadline) if p.deadline else None,
            status=p.status.value,
            time_slots=[DaySlotsDTO.from_domain(d) for d in p.time_slots],
            slot_count=sum(len(d.times) for d in p.time_slots),
            created_at=p.created_at.isoformat(),
        )


class GenerateSlotsRequest(BaseModel):
    date: str
    start: str
    end: str
    duration_minutes: int = Field(settings.default_slot_minutes, ge=1, le=1440)
    break_minutes: int = Field(0, ge=0, le=1440)

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, v: str):
        return _check_time(v)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str):
        try:
            parse_date(v)
        except ValueError:
            raise ValueError("date must be YYYY-MM-DD")
        return v


class SlotEditRequest(TimeSlotDTO):
    """One slot to add to or remove from a grid that is not stored yet."""
    date: str
    time_slots: List[DaySlotsDTO] = Field(default_factory=list)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str):
        try:
            parse_date(v)
        except ValueError:
            raise ValueError("date must be YYYY-MM-DD")
        return v


class StatusUpdate(BaseModel):
    status: ProjectStatus


class AddParticipantsRequest(BaseModel):
    count: int


class ParticipantDTO(BaseModel):
    id: str
    project_id: str
    form_number: str
    selected_slots: List[str]
    assigned_slot: Optional[str]
    assigned_label: Optional[str]
    has_scan: bool

    @classmethod
    def from_domain(cls, p: Participant) -> "ParticipantDTO":
        return cls(
            id=p.id,
            project_id=p.project_id,
            form_number=p.form_number,
            selected_slots=p.selected_slots,
            assigned_slot=p.assigned_slot,
            assigned_label=format_slot_id(p.assigned_slot) if p.assigned_slot else None,
            has_scan=bool(p.scan_data),
        )


class SelectionRequest(BaseModel):
    slot_ids: List[str]


class ScanRequest(BaseModel):
    scan_data: Optional[str] = None

    @field_validator("scan_data")
    @classmethod
    def validate_image(cls, v: Optional[str]):
        if v is not None and not v.startswith("data:image/"):
            raise ValueError("scan must be an image data URL")
        return v


class AssignmentDTO(BaseModel):
    participant_id: str
    form_number: str
    slot_id: str
    date: str
    start: str
    end: str


class UnassignedDTO(BaseModel):
    participant_id: str
    form_number: str
    reason: str


class AssignmentResultDTO(BaseModel):
    id: Optional[str] = None
    project_id: str
    assignments: List[AssignmentDTO]
    unassigned: List[UnassignedDTO]
    created_at: Optional[str] = None
    cached: bool = False


class StatsDTO(BaseModel):
    totalSlots: int
    usedSlots: int
    totalParticipants: int
    assignedCount: int
    unassignedCount: int

    @classmethod
    def from_domain(cls, s: ScheduleStats) -> "StatsDTO":
        return cls(**s.to_dict())


class AssignResponse(BaseModel):
    result: AssignmentResultDTO
    stats: StatsDTO


class AuditResponse(BaseModel):
    greedy_assigned: int
    optimal_assigned: Optional[int]
    gap: Optional[int]
    greedy_time_seconds: float
    optimal_time_seconds: float
    num_participants: int


def get_planner(db: Session = Depends(get_db)) -> PlannerService:
    return PlannerService(db)


def _project_or_404(planner: PlannerService, project_id: str) -> Project:
    project = planner.projects.get_by_id(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return project


def _participant_or_404(participant: Optional[Participant], participant_id: str) -> Participant:
    if participant is None:
        raise HTTPException(status_code=404, detail=f"Participant {participant_id} not found")
    return participant


def _result_dto(result: AssignmentResult) -> AssignmentResultDTO:
    return AssignmentResultDTO(**result_to_dict(result))


# --- Slots ---

@router.post("/slots/generate", response_model=DaySlotsDTO, summary="Generate a day of appointment slots")
def generate_slots(req: GenerateSlotsRequest):
    """
    Cut one day's time window into back-to-back appointments.

    The result can be posted as part of `time_slots` when creating a project.
    """
    times = generate_time_slots(parse_time(req.start), parse_time(req.end), req.duration_minutes, req.break_minutes)
    if not times:
        raise HTTPException(status_code=400, detail="Window is shorter than one appointment")
    return DaySlotsDTO.from_domain(DaySlots(parse_date(req.date), times))


def _edit_grid(req: SlotEditRequest, edit) -> List[DaySlotsDTO]:
    try:
        days = [d.to_domain() for d in req.time_slots]
        validate_day_slots(days)
        edited = edit(normalize_day_slots(days), parse_date(req.date), parse_time(req.start), parse_time(req.end))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return [DaySlotsDTO.from_domain(d) for d in edited]


@router.post("/slots/add", response_model=List[DaySlotsDTO], summary="Add one slot to a grid")
def add_slot(req: SlotEditRequest):
    """
    Return the grid with the slot inserted in date and time order.

    An exact duplicate is ignored; an overlap with another slot of that day
    is rejected with 400.
    """
    return _edit_grid(req, add_time_slot)


@router.post("/slots/remove", response_model=List[DaySlotsDTO], summary="Remove one slot from a grid")
def remove_slot(req: SlotEditRequest):
    return _edit_grid(req, remove_time_slot)


# --- Projects ---

@router.post("/projects", response_model=ProjectDTO, status_code=201, summary="Create a project")
def create_project(req: ProjectCreate, planner: PlannerService = Depends(get_planner)):
    logger.info(f"Create project request: {req.title!r}, {len(req.time_slots)} days")
    try:
        project = planner.create_project(
            title=req.title,
            time_slots=[d.to_domain() for d in req.time_slots],
            deadline=parse_date(req.deadline) if req.deadline else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return ProjectDTO.from_domain(project)


@router.get("/projects", response_model=List[ProjectDTO], summary="List projects, newest first")
def list_projects(db: Session = Depends(get_db)):
    return [ProjectDTO.from_domain(p) for p in ProjectRepository(db).list_all()]


@router.get("/projects/{project_id}", response_model=ProjectDTO)
def get_project(project_id: str, planner: PlannerService = Depends(get_planner)):
    return ProjectDTO.from_domain(_project_or_404(planner, project_id))


@router.delete("/projects/{project_id}")
def delete_project(
    project_id: str,
    planner: PlannerService = Depends(get_planner),
    cache: ResultCache = Depends(get_cache),
):
    """Delete a project with all of its forms and assignment results."""
    _project_or_404(planner, project_id)
    planner.projects.delete(project_id)
    cache.delete(project_id)
    logger.info(f"Deleted project {project_id}")
    return {"success": True}


@router.patch("/projects/{project_id}/status", response_model=ProjectDTO, summary="Change a project's status")
def set_project_status(project_id: str, req: StatusUpdate, planner: PlannerService = Depends(get_planner)):
    """Only the status changes; the slot grid of a project is fixed at creation."""
    project = planner.set_status(project_id, req.status)
    if project is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return ProjectDTO.from_domain(project)


# --- Participants (sign-up forms) ---

@router.post("/projects/{project_id}/participants", response_model=List[ParticipantDTO], status_code=201)
def add_participants(project_id: str, req: AddParticipantsRequest, planner: PlannerService = Depends(get_planner)):
    _project_or_404(planner, project_id)
    try:
        created = planner.add_participants(project_id, req.count)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return [ParticipantDTO.from_domain(p) for p in created]


@router.get("/projects/{project_id}/participants", response_model=List[ParticipantDTO])
def list_participants(project_id: str, planner: PlannerService = Depends(get_planner)):
    _project_or_404(planner, project_id)
    return [ParticipantDTO.from_domain(p) for p in planner.participants.list_by_project(project_id)]


@router.get("/participants/{participant_id}", response_model=ParticipantDTO)
def get_participant(participant_id: str, db: Session = Depends(get_db)):
    participant = ParticipantRepository(db).get_by_id(participant_id)
    return ParticipantDTO.from_domain(_participant_or_404(participant, participant_id))


@router.put("/participants/{participant_id}/selection", response_model=ParticipantDTO)
def update_selection(participant_id: str, req: SelectionRequest, planner: PlannerService = Depends(get_planner)):
    """
    Record the slots marked on a form.

    Unknown slot ids are stored as given; the assignment run treats them as
    unavailable.
    """
    participant = planner.update_selection(participant_id, req.slot_ids)
    return ParticipantDTO.from_domain(_participant_or_404(participant, participant_id))


@router.put("/participants/{participant_id}/scan", response_model=ParticipantDTO)
def attach_scan(participant_id: str, req: ScanRequest, planner: PlannerService = Depends(get_planner)):
    participant = planner.attach_scan(participant_id, req.scan_data)
    return ParticipantDTO.from_domain(_participant_or_404(participant, participant_id))


@router.delete("/participants/{participant_id}")
def delete_participant(participant_id: str, db: Session = Depends(get_db)):
    repo = ParticipantRepository(db)
    _participant_or_404(repo.get_by_id(participant_id), participant_id)
    repo.delete(participant_id)
    return {"success": True}


# --- Assignment ---

@router.post("/projects/{project_id}/assign", response_model=AssignResponse, summary="Assign forms to slots")
def run_assignment(
    project_id: str,
    planner: PlannerService = Depends(get_planner),
    cache: ResultCache = Depends(get_cache),
):
    """
    Run the greedy assignment and make it the project's current result.

    **Algorithm**: forms with fewer marked slots go first; each takes the
    first still-free slot it marked. Previous results are replaced and each
    form's assigned slot is rewritten.

    **Unassigned reasons** are exactly `"no slots selected"` or
    `"all selected slots already taken"`.
    """
    _project_or_404(planner, project_id)
    cache.delete(project_id)

    outcome = planner.run_assignment(project_id)
    if outcome is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    result, stats = outcome
    dto = _result_dto(result)
    cache.set(project_id, dto.model_dump())
    return {"result": dto, "stats": StatsDTO.from_domain(stats)}


@router.get("/projects/{project_id}/assignments", response_model=AssignmentResultDTO)
def get_assignments(
    project_id: str,
    planner: PlannerService = Depends(get_planner),
    cache: ResultCache = Depends(get_cache),
):
    _project_or_404(planner, project_id)

    cached = cache.get(project_id)
    if cached:
        logger.info("Cache hit")
        return {**cached, "cached": True}

    result = planner.current_result(project_id)
    if result is None:
        return AssignmentResultDTO(project_id=project_id, assignments=[], unassigned=[])

    dto = _result_dto(result)
    cache.set(project_id, dto.model_dump())
    return dto


@router.get("/projects/{project_id}/stats", response_model=StatsDTO)
def get_stats(project_id: str, planner: PlannerService = Depends(get_planner)):
    stats = planner.stats(project_id)
    if stats is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return StatsDTO.from_domain(stats)


@router.get("/projects/{project_id}/audit", response_model=AuditResponse, summary="Compare greedy result with the optimum")
def audit(project_id: str, planner: PlannerService = Depends(get_planner)):
    """
    Report how many forms a maximum matching could place versus the greedy
    pass. Read-only: nothing is reassigned.
    """
    report = planner.audit(project_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    logger.info(f"Audit for project {project_id}: greedy={report.greedy_assigned}, optimum={report.optimal_assigned}")
    return AuditResponse(**asdict(report))


# --- Data protection ---

@router.get("/export", summary="Export all stored data")
def export_data(db: Session = Depends(get_db)) -> Dict[str, List[Dict]]:
    return export_all(db)


@router.delete("/data", summary="Delete all stored data")
def delete_all_data(db: Session = Depends(get_db)):
    clear_all(db)
    logger.warning("All projects, forms and assignment results deleted")
    return {"success": True}
