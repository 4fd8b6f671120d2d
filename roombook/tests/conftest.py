import os
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app off any local database file and give it a stable signing key.
os.environ.setdefault("ROOMBOOK_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ROOMBOOK_JWT_SECRET_KEY", "test-secret-key-for-roombook-suite-0123456789")
os.environ["ROOMBOOK_ENV"] = "test"

from roombook.auth.auth import create_access_token
from roombook.database import Base, get_db
from roombook.main import app
from roombook.models.meeting import Meeting, MeetingStatus
from roombook.models.room import Room
from roombook.models.user import User, UserRole
from roombook.utils.identifiers import generate_meeting_id, generate_room_id, generate_user_id
from roombook.utils.timeutils import utcnow

TEST_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session")
def create_test_tables():
    """Create all database tables once per session before tests run."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function")
def db_session(create_test_tables):
    """
    Session bound to a connection inside an outer transaction.
    Manager commits stay inside it and everything is rolled back after the test.
    """
    connection = engine.connect()
    transaction = connection.begin()
    db = TestingSessionLocal(bind=connection)

    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db

    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def client(db_session: Session):
    with TestClient(app) as c:
        yield c


def make_user(
    db: Session,
    first_name: str,
    last_name: str,
    role: UserRole = UserRole.EMPLOYEE,
    is_active: bool = True,
) -> User:
    user = User(
        user_id=generate_user_id(db, first_name, last_name),
        provider_user_id=f"idp-{first_name.lower()}-{last_name.lower()}",
        email=f"{first_name.lower()}.{last_name.lower()}@example.com",
        first_name=first_name,
        last_name=last_name,
        role=role.value,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_room(db: Session, name: str, capacity: int = 8, is_active: bool = True) -> Room:
    room = Room(
        room_id=generate_room_id(db, name),
        name=name,
        capacity=capacity,
        location="Floor 2",
        is_active=is_active,
    )
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


def make_meeting(
    db: Session,
    organizer: User,
    room: Room,
    start: datetime,
    end: datetime,
    status: MeetingStatus = MeetingStatus.SCHEDULED,
    title: str = "Sync",
    attendees=None,
) -> Meeting:
    """Insert a meeting row directly, bypassing scheduling checks (past or terminal rows)."""
    meeting = Meeting(
        meeting_id=generate_meeting_id(db, start),
        title=title,
        start_time=start,
        end_time=end,
        status=status.value,
        organizer_id=organizer.user_id,
        room_id=room.room_id,
    )
    meeting.attendees = list(attendees or [])
    db.add(meeting)
    db.commit()
    db.refresh(meeting)
    return meeting


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def future_slot(days: int = 2, hour: int = 9, minute: int = 0) -> datetime:
    """A naive UTC datetime ``days`` ahead at the given wall-clock time."""
    return (utcnow() + timedelta(days=days)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )


@pytest.fixture
def admin_user(db_session: Session) -> User:
    return make_user(db_session, "Ada", "Admin", UserRole.ADMIN)


@pytest.fixture
def manager_user(db_session: Session) -> User:
    return make_user(db_session, "Mona", "Manager", UserRole.MANAGER)


@pytest.fixture
def employee_user(db_session: Session) -> User:
    return make_user(db_session, "Eli", "Employee", UserRole.EMPLOYEE)


@pytest.fixture
def other_employee(db_session: Session) -> User:
    return make_user(db_session, "Olga", "Other", UserRole.EMPLOYEE)


@pytest.fixture
def room(db_session: Session) -> Room:
    return make_room(db_session, "Orion", capacity=8)
