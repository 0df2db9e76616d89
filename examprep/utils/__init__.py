"""Utility modules."""
from examprep.utils.time_utils import as_utc, utc_now
from examprep.utils.validation import validate_id

__all__ = [
    "as_utc",
    "utc_now",
    "validate_id",
]
