from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


class TimelineAction(str, Enum):
    """Kinds of actions recorded on a ticket's timeline."""

    CREATE_TICKET = "create_ticket"
    UPDATE_TICKET = "update_ticket"
    COMMENT = "comment"


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

    id: str
    title: str
    description: str | None
    creator_id: str
    assign_to: str | None
    status: TicketStatus
    sla_hours: int
    sla_deadline: datetime
    created_at: datetime
    updated_at: datetime
    version: int = 1


@dataclass(slots=True)
class Comment:
    """Reply posted on a ticket, optionally threaded under another comment."""

    id: str
    ticket_id: str
    parent_id: str | None
    author_id: str
    body: str
    created_at: datetime


@dataclass(slots=True)
class TimelineEntry:
    """History entry describing an action taken against a ticket."""

    id: str
    ticket_id: str
    actor_id: str
    action: TimelineAction
    data: Mapping[str, Any]
    created_at: datetime


@dataclass(slots=True)
class CommentNode:
    """A comment together with its direct replies, in creation order."""

    comment: Comment
    children: list[CommentNode] = field(default_factory=list)


@dataclass(slots=True)
class TicketFilters:
    """Optional listing predicates, combined with logical AND."""

    status: TicketStatus | None = None
    assign_to: str | None = None
    breached: bool | None = None
    search: str | None = None


@dataclass(slots=True)
class Pagination:
    """Page window; an unset limit means the configured default page size."""

    limit: int | None = None
    offset: int = 0


@dataclass(slots=True)
class TicketView:
    """Ticket annotated with its breach state at read time."""

    ticket: Ticket
    breached: bool


@dataclass(slots=True)
class TicketPage:
    items: Sequence[TicketView]
    limit: int
    offset: int


@dataclass(slots=True)
class TicketDetail:
    """Read model bundling a ticket with its comment forest and timeline."""

    ticket: Ticket
    breached: bool
    comments: Sequence[CommentNode]
    timeline: Sequence[TimelineEntry]
