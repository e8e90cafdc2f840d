"""SLA deadline arithmetic and breach detection."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from .models import TicketStatus

DEFAULT_SLA_HOURS = 24


def compute_deadline(created_at: datetime, sla_hours: int) -> datetime:
    """Return ``created_at`` plus ``sla_hours`` whole hours.

    The arithmetic is done in UTC, which has no DST shifts, so elapsed time and
    wall-clock hours agree and the result is a pure function of its inputs.
    """

    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(timezone.utc) + timedelta(hours=sla_hours)


def is_breached(deadline: datetime, status: TicketStatus | str, now: datetime) -> bool:
    """Closed tickets are never breached, regardless of their deadline."""

    if TicketStatus(status) is TicketStatus.CLOSED:
        return False
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    return now > deadline


def is_positive_hours(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def normalize_sla_hours(value: Any, default: int = DEFAULT_SLA_HOURS) -> int:
    """Fall back to ``default`` unless ``value`` is a positive integer."""

    if is_positive_hours(value):
        return int(value)
    return default
