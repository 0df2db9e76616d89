"""
Attempt and AttemptAnswer database models for test attempts.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from examprep.database import Base

if TYPE_CHECKING:
    from examprep.models.db.user import User


class AttemptStatus(str, enum.Enum):
    """Status of a test attempt."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


TERMINAL_STATUSES = frozenset(
    {AttemptStatus.COMPLETED.value, AttemptStatus.ABANDONED.value}
)

_ACTIVE_ONLY = sa.text("status = 'in_progress'")


class Attempt(Base):
    """
    Test attempt record.
    One user's timed pass at one test. Never deleted once completed.
    """

    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, index=True, default=lambda: uuid.uuid4().hex
    )

    # References
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id"), index=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), index=True, nullable=False
    )

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    duration_minutes: Mapped[int] = mapped_column(nullable=False)
    last_answered_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Status and results
    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, nullable=False
    )
    score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    points_awarded: Mapped[Decimal | None] = mapped_column(Numeric(9, 2), nullable=True)
    max_points: Mapped[Decimal | None] = mapped_column(Numeric(9, 2), nullable=True)

    # Grading basis captured at start (TestDefinition JSON)
    snapshot_json: Mapped[str] = mapped_column(Text, nullable=False)

    # At most one in-progress attempt per (user, test)
    __table_args__ = (
        Index(
            "uq_attempts_active_user_test",
            "user_id",
            "test_id",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
    )

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    answers: Mapped[list["AttemptAnswer"]] = relationship(
        "AttemptAnswer", back_populates="attempt", cascade="all, delete-orphan"
    )

    @property
    def is_completed(self) -> bool:
        """Check if attempt is completed."""
        return self.status == AttemptStatus.COMPLETED.value

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS.value


class AttemptAnswer(Base):
    """
    Submitted answer for one question within an attempt.
    Correctness and points stay unset until the attempt is finalized.
    """

    __tablename__ = "attempt_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(nullable=False)

    # Answer data
    submitted_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_correct: Mapped[bool | None] = mapped_column(nullable=True)
    points_awarded: Mapped[Decimal] = mapped_column(
        Numeric(7, 2), default=Decimal("0.00"), nullable=False
    )
    answered_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),
    )

    # Relationships
    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="answers")
