from datetime import datetime, timedelta, timezone

import pytest

from helpdesk.tickets.models import TicketStatus
from helpdesk.tickets.sla import compute_deadline, is_breached, normalize_sla_hours


def test_compute_deadline_adds_whole_hours():
    created = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    assert compute_deadline(created, 4) == datetime(2024, 3, 1, 13, 30, tzinfo=timezone.utc)
    assert compute_deadline(created, 48) == created + timedelta(days=2)


def test_compute_deadline_is_stable_across_dst_change():
    # US DST starts on 2024-03-10; UTC arithmetic is unaffected.
    created = datetime(2024, 3, 9, 12, 0, tzinfo=timezone.utc)
    assert compute_deadline(created, 24) == datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_compute_deadline_normalizes_offsets_and_naive_values():
    offset = timezone(timedelta(hours=2))
    created = datetime(2024, 3, 1, 11, 0, tzinfo=offset)
    assert compute_deadline(created, 1) == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert compute_deadline(datetime(2024, 3, 1, 9, 0), 1) == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def test_breach_requires_past_deadline_and_open_ticket():
    deadline = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    later = deadline + timedelta(minutes=1)

    assert is_breached(deadline, TicketStatus.OPEN, later)
    assert is_breached(deadline, TicketStatus.IN_PROGRESS, later)
    assert not is_breached(deadline, TicketStatus.CLOSED, later)
    assert not is_breached(deadline, TicketStatus.OPEN, deadline)
    assert not is_breached(deadline, "open", deadline - timedelta(hours=1))


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, 24), (0, 24), (-3, 24), ("8", 24), (2.5, 24), (True, 24), (8, 8), (72, 72)],
)
def test_normalize_sla_hours(value, expected):
    assert normalize_sla_hours(value) == expected


def test_normalize_sla_hours_uses_configured_default():
    assert normalize_sla_hours(None, default=8) == 8
