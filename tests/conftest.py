import os

# Must be set before slotplanner.storage.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotplanner.main import app
from slotplanner.models.entities import DaySlots, Participant, Project, TimeSlot
from slotplanner.storage.cache import get_cache
from slotplanner.storage.database import Base, get_db


def _participant(pid, slots, form_number=None, project_id="project-1"):
    return Participant(
        id=pid,
        project_id=project_id,
        form_number=form_number or f"1000{pid[-1]}",
        selected_slots=list(slots),
    )


@pytest.fixture
def two_slot_project():
    """2026-02-02 with 09:00-09:15 and 09:15-09:30."""
    return Project(
        id="project-1",
        title="Elternsprechtag",
        time_slots=[
            DaySlots(date(2026, 2, 2), [TimeSlot(time(9, 0), time(9, 15)), TimeSlot(time(9, 15), time(9, 30))]),
        ],
    )


@pytest.fixture
def two_day_project():
    """Two days, three slots each, listed in chronological order."""
    return Project(
        id="project-2",
        title="Spring conferences",
        deadline=date(2026, 1, 30),
        time_slots=[
            DaySlots(date(2026, 2, 2), [
                TimeSlot(time(14, 0), time(14, 15)),
                TimeSlot(time(14, 15), time(14, 30)),
                TimeSlot(time(14, 30), time(14, 45)),
            ]),
            DaySlots(date(2026, 2, 3), [
                TimeSlot(time(8, 0), time(8, 15)),
                TimeSlot(time(8, 15), time(8, 30)),
                TimeSlot(time(8, 30), time(8, 45)),
            ]),
        ],
    )


@pytest.fixture
def empty_project():
    """Project without any slots."""
    return Project(id="project-empty", title="Nothing planned yet")


class FakeCache:
    """In-memory stand-in for ResultCache."""

    def __init__(self):
        self.store = {}

    def get(self, project_id):
        return self.store.get(project_id)

    def set(self, project_id, result):
        self.store[project_id] = result

    def delete(self, project_id):
        self.store.pop(project_id, None)

    def health_check(self):
        return True


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def client(db_session, fake_cache):
    """API client wired to the in-memory database and cache."""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_cache] = lambda: fake_cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_participant():
    """Factory: make_participant("p1", [slot_ids...])."""
    return _participant
