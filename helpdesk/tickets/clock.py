from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock returning timezone aware UTC timestamps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate an opaque identifier for tickets, comments and timeline entries."""

    return str(uuid.uuid4())
