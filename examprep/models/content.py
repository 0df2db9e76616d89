"""Test content Pydantic models.

``TestDefinition`` and its children are the read-only view of a test that the
attempt core works with. The same model is serialized into every attempt at
start so grading never depends on later edits. ``TestCreate`` and its children
describe the nested payload accepted when a test is imported.
"""
from collections.abc import Iterator
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from examprep.models.db.content import QuestionType

TRUE_FALSE_TOKENS = ("true", "false")


class OptionDefinition(BaseModel):
    """Answer option of a multiple-choice question."""

    id: int
    text: str
    is_correct: bool = False


class QuestionDefinition(BaseModel):
    """Question with everything needed to grade it."""

    id: int
    type: str
    text: str
    points: Decimal
    correct_answer: str | None = None
    solution_text: str | None = None
    options: list[OptionDefinition] = []

    def correct_option_ids(self) -> list[str]:
        """Identifiers (as strings) of the options flagged correct."""
        return [str(option.id) for option in self.options if option.is_correct]


class SectionDefinition(BaseModel):
    """Ordered group of questions."""

    id: int
    name: str
    description: str | None = None
    questions: list[QuestionDefinition] = []


class TestDefinition(BaseModel):
    """Complete test definition as read from the content store."""

    id: str
    name: str
    description: str | None = None
    instructions: str | None = None
    duration_minutes: int
    is_active: bool = True
    publish_date: datetime | None = None
    sections: list[SectionDefinition] = []

    def iter_questions(self) -> Iterator[tuple[SectionDefinition, QuestionDefinition]]:
        """Yield every question in section order."""
        for section in self.sections:
            for question in section.questions:
                yield section, question

    def find_question(self, question_id: int) -> QuestionDefinition | None:
        for _, question in self.iter_questions():
            if question.id == question_id:
                return question
        return None

    @property
    def question_count(self) -> int:
        return sum(len(section.questions) for section in self.sections)

    @property
    def max_points(self) -> Decimal:
        return sum(
            (question.points for _, question in self.iter_questions()), Decimal("0")
        )

    def is_published(self, now: datetime) -> bool:
        """Active and past its publish date (if any)."""
        if not self.is_active:
            return False
        if self.publish_date is None:
            return True
        publish_date = self.publish_date
        if publish_date.tzinfo is None:
            publish_date = publish_date.replace(tzinfo=timezone.utc)
        return publish_date <= now


class OptionCreate(BaseModel):
    """Option in an imported test."""

    text: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    """Question in an imported test."""

    type: QuestionType
    text: str = Field(..., min_length=1)
    points: Decimal = Field(default=Decimal("1.00"), gt=0, max_digits=7, decimal_places=2)
    correct_answer: str | None = Field(None, max_length=255)
    solution_text: str | None = None
    options: list[OptionCreate] = []

    @model_validator(mode="after")
    def check_answer_key(self) -> "QuestionCreate":
        if self.type == QuestionType.MULTIPLE_CHOICE:
            if len(self.options) < 2:
                raise ValueError("multiple-choice questions need at least two options")
            correct = [option for option in self.options if option.is_correct]
            if len(correct) != 1:
                raise ValueError("multiple-choice questions need exactly one correct option")
        elif self.type == QuestionType.TRUE_FALSE:
            if self.correct_answer not in TRUE_FALSE_TOKENS:
                raise ValueError("true/false correct answer must be 'true' or 'false'")
        elif not self.correct_answer:
            raise ValueError("fill-in-blank questions need a correct answer")
        return self


class SectionCreate(BaseModel):
    """Section in an imported test."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    questions: list[QuestionCreate] = []


class TestCreate(BaseModel):
    """Nested payload for importing a whole test."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    instructions: str | None = None
    duration_minutes: int = Field(..., gt=0)
    is_active: bool = True
    publish_date: datetime | None = None
    sections: list[SectionCreate] = []


class TestSummary(BaseModel):
    """Catalogue entry for a test."""

    id: str
    name: str
    description: str | None
    duration_minutes: int
    is_active: bool
    publish_date: datetime | None
    question_count: int
