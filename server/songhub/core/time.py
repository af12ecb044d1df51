"""UTC datetime utilities.

Naive UTC datetimes (no tzinfo) keep comparisons compatible with SQLAlchemy
``DateTime`` columns on both SQLite and PostgreSQL without ``timezone=True``.
"""

import time
from datetime import UTC, datetime, timedelta


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def expires_in(seconds: float) -> datetime:
    """Absolute naive-UTC expiry ``seconds`` from now."""
    return utcnow() + timedelta(seconds=seconds)


def format_elapsed(started: float) -> str:
    """Human readable duration since a ``time.perf_counter()`` reading."""
    elapsed = time.perf_counter() - started
    if elapsed < 1:
        return f"{elapsed * 1000:.1f}ms"
    return f"{elapsed:.2f}s"
