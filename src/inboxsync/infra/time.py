"""Time utilities for consistent timestamp handling."""

import math
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def from_epoch_seconds(value: Any) -> datetime | None:
    """Parse provider epoch seconds (int, float or numeric string).

    Returns None when the value is missing, non-numeric, non-finite or
    outside the range datetime can represent. Never raises.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds):
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
