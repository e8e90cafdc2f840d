"""Structured payloads for the append-only ticket timeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from .models import TimelineAction, TimelineEntry


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(slots=True, frozen=True)
class CreateTicketData:
    action: ClassVar[TimelineAction] = TimelineAction.CREATE_TICKET

    title: str

    def to_payload(self) -> dict[str, Any]:
        return {"title": self.title}


@dataclass(slots=True, frozen=True)
class UpdateTicketData:
    """Exactly the fields an update applied, including a recomputed deadline."""

    action: ClassVar[TimelineAction] = TimelineAction.UPDATE_TICKET

    changes: Mapping[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return {key: _jsonable(value) for key, value in self.changes.items()}


@dataclass(slots=True, frozen=True)
class CommentData:
    """References the stored comment; a parent that could not be attached is kept
    as ``requested_parent_id``."""

    action: ClassVar[TimelineAction] = TimelineAction.COMMENT

    comment_id: str
    parent_id: str | None
    requested_parent_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"comment_id": self.comment_id, "parent_id": self.parent_id}
        if self.requested_parent_id is not None and self.requested_parent_id != self.parent_id:
            payload["requested_parent_id"] = self.requested_parent_id
        return payload


TimelineData = Union[CreateTicketData, UpdateTicketData, CommentData]


def new_entry(
    *,
    entry_id: str,
    ticket_id: str,
    actor_id: str,
    data: TimelineData,
    created_at: datetime,
) -> TimelineEntry:
    return TimelineEntry(
        id=entry_id,
        ticket_id=ticket_id,
        actor_id=actor_id,
        action=data.action,
        data=data.to_payload(),
        created_at=created_at,
    )
