"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from timber_ledger.utils.datetime_utils import utc_now

    timestamp = utc_now()

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime = None) -> int:
    """Return milliseconds since the Unix epoch for ``moment`` (default: now)."""
    moment = moment or utc_now()
    return int(moment.timestamp() * 1000)
