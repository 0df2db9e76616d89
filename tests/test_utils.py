from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from examprep.utils import time_utils, validation


def test_utc_now_is_aware() -> None:
    now = time_utils.utc_now()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)


def test_as_utc_handles_naive_and_offset_values() -> None:
    naive = datetime(2026, 1, 1, 12, 0)
    assert time_utils.as_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    shifted = datetime(2026, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    converted = time_utils.as_utc(shifted)
    assert converted.hour == 12
    assert converted.tzinfo == timezone.utc


def test_validate_id_strips_whitespace() -> None:
    assert validation.validate_id("attemptId", "  abc123 ") == "abc123"


@pytest.mark.parametrize("value", ["", "   ", "../etc", "a/b", "a\\b", "x" * 65, None])
def test_validate_id_rejects_bad_values(value) -> None:
    with pytest.raises(HTTPException) as exc_info:
        validation.validate_id("attemptId", value)
    assert exc_info.value.status_code == 400
