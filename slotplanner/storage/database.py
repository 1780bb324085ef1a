from sqlalchemy import create_engine, Column, String, JSON, DateTime, Text
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime
from slotplanner.config.settings import get_settings

settings = get_settings()

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, pool_pre_ping=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class ProjectModel(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    deadline = Column(String, nullable=True)  # YYYY-MM-DD
    time_slots = Column(JSON, nullable=False)  # [{"date": ..., "times": [{"start": ..., "end": ...}]}]
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, default=datetime.utcnow)


class ParticipantModel(Base):
    __tablename__ = "participants"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    form_number = Column(String, nullable=False)
    selected_slots = Column(JSON, nullable=False)  # List[str] of slot ids
    assigned_slot = Column(String, nullable=True)
    scan_data = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AssignmentResultModel(Base):
    __tablename__ = "assignment_results"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    assignments = Column(JSON, nullable=False)  # List[dict]
    unassigned = Column(JSON, nullable=False)  # List[dict]
    created_at = Column(DateTime, default=datetime.utcnow)


def init_db():
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
