"""Read access to test content, plus nested import of whole tests."""
import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session as DbSession, selectinload

from examprep.errors import NotFoundError
from examprep.models.content import (
    OptionDefinition,
    QuestionDefinition,
    SectionDefinition,
    TestCreate,
    TestDefinition,
    TestSummary,
)
from examprep.models.db.content import Option, Question, Section, Test

logger = logging.getLogger(__name__)


def _question_definition(question: Question) -> QuestionDefinition:
    return QuestionDefinition(
        id=question.id,
        type=question.question_type,
        text=question.text,
        points=question.points,
        correct_answer=question.correct_answer,
        solution_text=question.solution_text,
        options=[
            OptionDefinition(id=option.id, text=option.text, is_correct=option.is_correct)
            for option in question.options
        ],
    )


def _test_definition(test: Test) -> TestDefinition:
    return TestDefinition(
        id=test.id,
        name=test.name,
        description=test.description,
        instructions=test.instructions,
        duration_minutes=test.duration_minutes,
        is_active=test.is_active,
        publish_date=test.publish_date,
        sections=[
            SectionDefinition(
                id=section.id,
                name=section.name,
                description=section.description,
                questions=[_question_definition(q) for q in section.questions],
            )
            for section in test.sections
        ],
    )


def get_test(db: DbSession, test_id: str) -> TestDefinition:
    """Load a test with its sections, questions and options in order."""
    test = db.execute(
        select(Test)
        .options(
            selectinload(Test.sections)
            .selectinload(Section.questions)
            .selectinload(Question.options)
        )
        .where(Test.id == test_id)
    ).scalar_one_or_none()
    if test is None:
        raise NotFoundError("Test not found")
    return _test_definition(test)


def get_question(db: DbSession, question_id: int) -> QuestionDefinition:
    """Load a single question with its options."""
    question = db.execute(
        select(Question)
        .options(selectinload(Question.options))
        .where(Question.id == question_id)
    ).scalar_one_or_none()
    if question is None:
        raise NotFoundError("Question not found")
    return _question_definition(question)


def list_tests(
    db: DbSession, now: datetime, include_unpublished: bool = False
) -> list[TestSummary]:
    """List tests for the catalogue, published ones only unless asked."""
    question_counts = (
        select(Section.test_id, func.count(Question.id).label("question_count"))
        .join(Question, Question.section_id == Section.id)
        .group_by(Section.test_id)
        .subquery()
    )
    rows = db.execute(
        select(Test, func.coalesce(question_counts.c.question_count, 0))
        .outerjoin(question_counts, question_counts.c.test_id == Test.id)
        .order_by(Test.created_at.desc())
    ).all()

    summaries = []
    for test, question_count in rows:
        summary = TestSummary(
            id=test.id,
            name=test.name,
            description=test.description,
            duration_minutes=test.duration_minutes,
            is_active=test.is_active,
            publish_date=test.publish_date,
            question_count=question_count,
        )
        if not include_unpublished:
            definition = TestDefinition(
                id=test.id,
                name=test.name,
                duration_minutes=test.duration_minutes,
                is_active=test.is_active,
                publish_date=test.publish_date,
            )
            if not definition.is_published(now):
                continue
        summaries.append(summary)
    return summaries


def import_test(
    db: DbSession, payload: TestCreate, created_by: int | None = None
) -> TestDefinition:
    """Create a test with all its sections, questions and options."""
    test = Test(
        name=payload.name.strip(),
        description=payload.description,
        instructions=payload.instructions,
        duration_minutes=payload.duration_minutes,
        is_active=payload.is_active,
        publish_date=payload.publish_date,
        created_by=created_by,
    )
    for section_index, section_data in enumerate(payload.sections):
        section = Section(
            name=section_data.name,
            description=section_data.description,
            position=section_index,
        )
        for question_index, question_data in enumerate(section_data.questions):
            question = Question(
                question_type=question_data.type.value,
                text=question_data.text,
                solution_text=question_data.solution_text,
                correct_answer=question_data.correct_answer,
                points=question_data.points,
                position=question_index,
            )
            question.options = [
                Option(text=option.text, is_correct=option.is_correct, position=index)
                for index, option in enumerate(question_data.options)
            ]
            section.questions.append(question)
        test.sections.append(section)

    db.add(test)
    db.commit()
    logger.info("Imported test %s (%s)", test.id, test.name)
    return get_test(db, test.id)
