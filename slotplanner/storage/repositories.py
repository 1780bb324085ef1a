from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from slotplanner.engine.slot_ids import format_date, format_time, parse_date, parse_time
from slotplanner.models.commands import AssignSlot, AttachScan, ParticipantCommand, SelectSlots, SetProjectStatus
from slotplanner.models.entities import (
    Assignment,
    AssignmentResult,
    DaySlots,
    Participant,
    Project,
    ProjectStatus,
    TimeSlot,
    UnassignedParticipant,
    UnassignedReason,
)
from slotplanner.storage.database import AssignmentResultModel, ParticipantModel, ProjectModel


def day_slots_to_json(days: List[DaySlots]) -> List[Dict]:
    return [
        {
            "date": format_date(day.date),
            "times": [{"start": format_time(t.start), "end": format_time(t.end)} for t in day.times],
        }
        for day in days
    ]


def day_slots_from_json(data: List[Dict]) -> List[DaySlots]:
    return [
        DaySlots(
            date=parse_date(day["date"]),
            times=[TimeSlot(parse_time(t["start"]), parse_time(t["end"])) for t in day["times"]],
        )
        for day in data
    ]


def result_to_dict(result: AssignmentResult) -> Dict:
    return {
        "id": result.id,
        "project_id": result.project_id,
        "assignments": [
            {
                "participant_id": a.participant_id,
                "form_number": a.form_number,
                "slot_id": a.slot_id,
                "date": format_date(a.date),
                "start": format_time(a.start),
                "end": format_time(a.end),
            }
            for a in result.assignments
        ],
        "unassigned": [
            {
                "participant_id": u.participant_id,
                "form_number": u.form_number,
                "reason": u.reason.value,
            }
            for u in result.unassigned
        ],
        "created_at": result.created_at.isoformat(),
    }


def _assignments_from_json(rows: List[Dict]) -> List[Assignment]:
    return [
        Assignment(
            participant_id=row["participant_id"],
            form_number=row["form_number"],
            slot_id=row["slot_id"],
            date=parse_date(row["date"]),
            start=parse_time(row["start"]),
            end=parse_time(row["end"]),
        )
        for row in rows
    ]


def _unassigned_from_json(rows: List[Dict]) -> List[UnassignedParticipant]:
    return [
        UnassignedParticipant(
            participant_id=row["participant_id"],
            form_number=row["form_number"],
            reason=UnassignedReason(row["reason"]),
        )
        for row in rows
    ]


class ProjectRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, project_id: str) -> Optional[Project]:
        model = self.db.query(ProjectModel).filter(ProjectModel.id == project_id).first()
        if not model:
            return None
        return self._model_to_project(model)

    def list_all(self) -> List[Project]:
        models = self.db.query(ProjectModel).order_by(ProjectModel.created_at.desc()).all()
        return [self._model_to_project(m) for m in models]

    def save(self, project: Project) -> None:
        existing = self.db.query(ProjectModel).filter(ProjectModel.id == project.id).first()
        if existing:
            existing.title = project.title
            existing.deadline = format_date(project.deadline) if project.deadline else None
            existing.time_slots = day_slots_to_json(project.time_slots)
            existing.status = project.status.value
        else:
            model = ProjectModel(
                id=project.id,
                title=project.title,
                deadline=format_date(project.deadline) if project.deadline else None,
                time_slots=day_slots_to_json(project.time_slots),
                status=project.status.value,
                created_at=project.created_at,
            )
            self.db.add(model)
        self.db.commit()

    def apply(self, command: SetProjectStatus) -> Optional[Project]:
        model = self.db.query(ProjectModel).filter(ProjectModel.id == command.project_id).first()
        if not model:
            return None
        model.status = ProjectStatus(command.status).value
        self.db.commit()
        return self._model_to_project(model)

    def delete(self, project_id: str) -> None:
        """Delete a project together with its participants and assignment results."""
        self.db.query(ParticipantModel).filter(ParticipantModel.project_id == project_id).delete()
        self.db.query(AssignmentResultModel).filter(AssignmentResultModel.project_id == project_id).delete()
        self.db.query(ProjectModel).filter(ProjectModel.id == project_id).delete()
        self.db.commit()

    @staticmethod
    def _model_to_project(model: ProjectModel) -> Project:
        return Project(
            id=model.id,
            title=model.title,
            deadline=parse_date(model.deadline) if model.deadline else None,
            time_slots=day_slots_from_json(model.time_slots),
            status=ProjectStatus(model.status),
            created_at=model.created_at,
        )


class ParticipantRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, participant_id: str) -> Optional[Participant]:
        model = self._get_model(participant_id)
        if not model:
            return None
        return self._model_to_participant(model)

    def list_by_project(self, project_id: str, lock: bool = False) -> List[Participant]:
        query = (
            self.db.query(ParticipantModel)
            .filter(ParticipantModel.project_id == project_id)
            .order_by(ParticipantModel.created_at, ParticipantModel.form_number)
        )
        if lock:
            # No-op on SQLite; row locks on PostgreSQL
            query = query.with_for_update()
        return [self._model_to_participant(m) for m in query.all()]

    def existing_form_numbers(self, project_id: str) -> Set[str]:
        rows = self.db.query(ParticipantModel.form_number).filter(ParticipantModel.project_id == project_id).all()
        return {row[0] for row in rows}

    def save(self, participant: Participant, commit: bool = True) -> None:
        existing = self._get_model(participant.id)
        if existing:
            existing.form_number = participant.form_number
            existing.selected_slots = list(participant.selected_slots)
            existing.assigned_slot = participant.assigned_slot
            existing.scan_data = participant.scan_data
        else:
            model = ParticipantModel(
                id=participant.id,
                project_id=participant.project_id,
                form_number=participant.form_number,
                selected_slots=list(participant.selected_slots),
                assigned_slot=participant.assigned_slot,
                scan_data=participant.scan_data,
                created_at=participant.created_at,
            )
            self.db.add(model)
        if commit:
            self.db.commit()

    def save_all(self, participants: List[Participant]) -> None:
        for participant in participants:
            self.save(participant, commit=False)
        self.db.commit()

    def apply(self, command: ParticipantCommand, commit: bool = True) -> Optional[Participant]:
        """Write exactly the field named by the command; None if the participant is gone."""
        model = self._get_model(command.participant_id)
        if not model:
            return None

        if isinstance(command, SelectSlots):
            model.selected_slots = command.normalized()
        elif isinstance(command, AssignSlot):
            model.assigned_slot = command.slot_id
        elif isinstance(command, AttachScan):
            model.scan_data = command.scan_data
        else:
            raise TypeError(f"unsupported participant command: {type(command).__name__}")

        if commit:
            self.db.commit()
        return self._model_to_participant(model)

    def delete(self, participant_id: str) -> None:
        self.db.query(ParticipantModel).filter(ParticipantModel.id == participant_id).delete()
        self.db.commit()

    def _get_model(self, participant_id: str) -> Optional[ParticipantModel]:
        return self.db.query(ParticipantModel).filter(ParticipantModel.id == participant_id).first()

    @staticmethod
    def _model_to_participant(model: ParticipantModel) -> Participant:
        return Participant(
            id=model.id,
            project_id=model.project_id,
            form_number=model.form_number,
            selected_slots=list(model.selected_slots or []),
            assigned_slot=model.assigned_slot,
            scan_data=model.scan_data,
            created_at=model.created_at,
        )


class AssignmentResultRepository:
    def __init__(self, db: Session):
        self.db = db

    def save(self, result: AssignmentResult, commit: bool = True) -> None:
        data = result_to_dict(result)
        model = AssignmentResultModel(
            id=result.id,
            project_id=result.project_id,
            assignments=data["assignments"],
            unassigned=data["unassigned"],
            created_at=result.created_at,
        )
        self.db.add(model)
        if commit:
            self.db.commit()

    def list_by_project(self, project_id: str) -> List[AssignmentResult]:
        models = (
            self.db.query(AssignmentResultModel)
            .filter(AssignmentResultModel.project_id == project_id)
            .order_by(AssignmentResultModel.created_at.desc())
            .all()
        )
        return [self._model_to_result(m) for m in models]

    def get_current(self, project_id: str) -> Optional[AssignmentResult]:
        """Most recently created result for the project."""
        model = (
            self.db.query(AssignmentResultModel)
            .filter(AssignmentResultModel.project_id == project_id)
            .order_by(AssignmentResultModel.created_at.desc())
            .first()
        )
        if not model:
            return None
        return self._model_to_result(model)

    def delete_by_project(self, project_id: str, commit: bool = True) -> None:
        self.db.query(AssignmentResultModel).filter(AssignmentResultModel.project_id == project_id).delete()
        if commit:
            self.db.commit()

    @staticmethod
    def _model_to_result(model: AssignmentResultModel) -> AssignmentResult:
        return AssignmentResult(
            id=model.id,
            project_id=model.project_id,
            assignments=_assignments_from_json(model.assignments),
            unassigned=_unassigned_from_json(model.unassigned),
            created_at=model.created_at,
        )


def export_all(db: Session) -> Dict[str, List[Dict]]:
    """Backup of every stored record as plain JSON-ready dicts."""
    projects = ProjectRepository(db).list_all()
    participants = db.query(ParticipantModel).all()
    results = AssignmentResultRepository(db)
    return {
        "projects": [
            {
                "id": p.id,
                "title": p.title,
                "deadline": format_date(p.deadline) if p.deadline else None,
                "time_slots": day_slots_to_json(p.time_slots),
                "status": p.status.value,
                "created_at": p.created_at.isoformat() if p.created_at else None,
            }
            for p in projects
        ],
        "participants": [
            {
                "id": m.id,
                "project_id": m.project_id,
                "form_number": m.form_number,
                "selected_slots": m.selected_slots,
                "assigned_slot": m.assigned_slot,
                "scan_data": m.scan_data,
            }
            for m in participants
        ],
        "assignment_results": [
            result_to_dict(r) for p in projects for r in results.list_by_project(p.id)
        ],
    }


def clear_all(db: Session) -> None:
    """Irrevocably delete every project, participant and result."""
    db.query(AssignmentResultModel).delete()
    db.query(ParticipantModel).delete()
    db.query(ProjectModel).delete()
    db.commit()
