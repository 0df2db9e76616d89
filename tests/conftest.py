from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session as DbSession, sessionmaker
from sqlalchemy.pool import StaticPool

import examprep.models.db  # noqa: F401
from examprep.database import Base
from examprep.models import content
from examprep.models.db.user import User, UserRole
from examprep.services import content_service
from examprep.services.attempt_service import AttemptOrchestrator, Caller


class FakeClock:
    """Settable clock injected wherever the code asks for "now"."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[int, str, str, str]] = []

    def notify(self, user_id: int, title: str, message: str, kind: str = "info") -> None:
        self.sent.append((user_id, title, message, kind))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Iterator[DbSession]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def past_clock() -> FakeClock:
    """Clock set well before real time, for code that compares against utc_now()."""
    return FakeClock(datetime.now(timezone.utc) - timedelta(days=200))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def orchestrator(db: DbSession, notifier: RecordingNotifier, clock: FakeClock) -> AttemptOrchestrator:
    return AttemptOrchestrator(db, notifier=notifier, clock=clock)


@pytest.fixture
def make_user(db: DbSession) -> Callable[..., User]:
    def _make(username: str = "student", role: UserRole = UserRole.USER) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            hashed_password="not-a-real-hash",
            role=role.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def student(make_user) -> User:
    return make_user("student")


@pytest.fixture
def caller(student: User) -> Caller:
    return Caller(user_id=student.id, role=student.role)


@pytest.fixture
def make_test(db: DbSession) -> Callable[..., content.TestDefinition]:
    """Import a single-section test built from question dicts."""

    def _make(*questions: dict[str, Any], **test_fields: Any) -> content.TestDefinition:
        fields = {"name": "Practice test", "duration_minutes": 30}
        fields.update(test_fields)
        payload = content.TestCreate(
            sections=[{"name": "Section 1", "questions": list(questions)}],
            **fields,
        )
        return content_service.import_test(db, payload)

    return _make


def fill_in(answer: str = "5", points: str = "5") -> dict[str, Any]:
    return {"type": "fill_in", "text": "2 + 3 = ?", "correct_answer": answer, "points": points}


def true_false(answer: str = "true", points: str = "1") -> dict[str, Any]:
    return {"type": "true_false", "text": "The sky is blue.", "correct_answer": answer, "points": points}


def multiple_choice(correct_index: int = 1, points: str = "2") -> dict[str, Any]:
    options = [
        {"text": "A", "is_correct": correct_index == 0},
        {"text": "B", "is_correct": correct_index == 1},
        {"text": "C", "is_correct": correct_index == 2},
    ]
    return {"type": "mcq", "text": "Pick B.", "points": points, "options": options}


@pytest.fixture
def questions() -> SimpleNamespace:
    """Question dict builders for make_test."""
    return SimpleNamespace(
        fill_in=fill_in,
        true_false=true_false,
        multiple_choice=multiple_choice,
    )
