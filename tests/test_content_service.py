from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from examprep.errors import NotFoundError
from examprep.models import content
from examprep.services import content_service
from examprep.utils.time_utils import utc_now


def test_import_test_keeps_order(make_test, questions) -> None:
    test = make_test(
        questions.multiple_choice(correct_index=2),
        questions.fill_in(answer="Paris", points="2.5"),
        name="Geography",
        duration_minutes=45,
    )

    assert test.name == "Geography"
    assert test.duration_minutes == 45
    assert test.question_count == 2
    assert test.max_points == Decimal("4.50")
    mcq, fill_in = test.sections[0].questions
    assert [option.text for option in mcq.options] == ["A", "B", "C"]
    assert mcq.correct_option_ids() == [str(mcq.options[2].id)]
    assert fill_in.correct_answer == "Paris"
    assert fill_in.points == Decimal("2.50")


def test_get_test_round_trips(db, make_test, questions) -> None:
    test = make_test(questions.true_false())
    assert content_service.get_test(db, test.id) == test


def test_get_test_missing(db) -> None:
    with pytest.raises(NotFoundError):
        content_service.get_test(db, "missing")


def test_get_question(db, make_test, questions) -> None:
    test = make_test(questions.fill_in())
    question = test.sections[0].questions[0]

    assert content_service.get_question(db, question.id) == question
    with pytest.raises(NotFoundError):
        content_service.get_question(db, question.id + 100)


def test_list_tests_hides_unpublished(db, make_test, questions) -> None:
    now = utc_now()
    published = make_test(questions.fill_in(), questions.true_false(), name="Published")
    make_test(questions.fill_in(), name="Inactive", is_active=False)
    make_test(questions.fill_in(), name="Scheduled", publish_date=now + timedelta(days=3))

    visible = content_service.list_tests(db, now)
    assert [(summary.id, summary.question_count) for summary in visible] == [(published.id, 2)]

    everything = content_service.list_tests(db, now, include_unpublished=True)
    assert {summary.name for summary in everything} == {"Published", "Inactive", "Scheduled"}


def test_list_tests_counts_empty_test(db, make_test) -> None:
    make_test(name="Empty")
    [summary] = content_service.list_tests(db, utc_now())
    assert summary.question_count == 0


@pytest.mark.parametrize(
    "question",
    [
        {"type": "mcq", "text": "?", "options": [{"text": "only", "is_correct": True}]},
        {
            "type": "mcq",
            "text": "?",
            "options": [{"text": "a", "is_correct": True}, {"text": "b", "is_correct": True}],
        },
        {"type": "mcq", "text": "?", "options": [{"text": "a"}, {"text": "b"}]},
        {"type": "true_false", "text": "?", "correct_answer": "yes"},
        {"type": "fill_in", "text": "?"},
        {"type": "fill_in", "text": "?", "correct_answer": "x", "points": 0},
        {"type": "essay", "text": "?", "correct_answer": "x"},
    ],
)
def test_import_rejects_invalid_questions(question) -> None:
    with pytest.raises(ValidationError):
        content.QuestionCreate.model_validate(question)


def test_import_rejects_non_positive_duration() -> None:
    with pytest.raises(ValidationError):
        content.TestCreate(name="Broken", duration_minutes=0)


def test_is_published(clock) -> None:
    definition = content.TestDefinition(id="t", name="T", duration_minutes=10)
    assert definition.is_published(clock.now)

    scheduled = definition.model_copy(update={"publish_date": clock.now + timedelta(seconds=1)})
    assert not scheduled.is_published(clock.now)
    assert scheduled.is_published(clock.now + timedelta(seconds=1))

    naive = definition.model_copy(update={"publish_date": clock.now.replace(tzinfo=None)})
    assert naive.is_published(clock.now)

    assert not definition.model_copy(update={"is_active": False}).is_published(clock.now)
