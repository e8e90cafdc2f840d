from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from .clock import Clock, SystemClock, new_id
from .comments import build_comment_forest
from .errors import TicketConflictError, TicketNotFoundError, TicketValidationError
from .models import (
    Comment,
    Pagination,
    Ticket,
    TicketDetail,
    TicketFilters,
    TicketPage,
    TicketStatus,
    TicketView,
)
from .permissions import EDITABLE_FIELDS, Actor, assert_can_edit
from .repository import TicketRepository
from .sla import DEFAULT_SLA_HOURS, compute_deadline, is_breached, is_positive_hours, normalize_sla_hours
from .timeline import CommentData, CreateTicketData, UpdateTicketData, new_entry

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


class TicketService:
    """High level orchestration for ticket creation, concurrency-checked updates,
    threaded comments and read models."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        clock: Clock | None = None,
        id_factory: Callable[[], str] = new_id,
        default_sla_hours: int = DEFAULT_SLA_HOURS,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ) -> None:
        self._repository = repository
        self._clock = clock or SystemClock()
        self._new_id = id_factory
        self._default_sla_hours = default_sla_hours
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    async def ensure_schema(self) -> None:
        await self._repository.ensure_schema()

    async def ping(self) -> bool:
        return await self._repository.ping()

    async def create_ticket(
        self,
        *,
        title: str | None,
        actor: Actor,
        description: str | None = None,
        sla_hours: Any = None,
    ) -> Ticket:
        if _is_blank(title):
            raise TicketValidationError("title is required")
        if description is not None and not isinstance(description, str):
            raise TicketValidationError("description must be a string")

        now = self._clock.now()
        hours = normalize_sla_hours(sla_hours, self._default_sla_hours)
        ticket = Ticket(
            id=self._new_id(),
            title=title,
            description=description,
            creator_id=actor.id,
            assign_to=None,
            status=TicketStatus.OPEN,
            sla_hours=hours,
            sla_deadline=compute_deadline(now, hours),
            created_at=now,
            updated_at=now,
            version=1,
        )
        entry = new_entry(
            entry_id=self._new_id(),
            ticket_id=ticket.id,
            actor_id=actor.id,
            data=CreateTicketData(title=ticket.title),
            created_at=now,
        )
        created = await self._repository.create_ticket(ticket, entry)
        logger.info("Ticket %s created by %s (sla %sh)", created.id, actor.id, hours)
        return created

    async def update_ticket(
        self,
        ticket_id: str,
        *,
        version: Any,
        patch: Mapping[str, Any],
        actor: Actor,
    ) -> Ticket:
        """Apply a partial update guarded by the ticket's version token.

        Nothing is written unless every requested field passes role gating and
        validation, and the stored version still matches ``version`` at commit.
        """

        if version is None:
            raise TicketValidationError("version is required")
        if isinstance(version, bool) or not isinstance(version, int):
            raise TicketValidationError("version must be an integer")

        current = await self._repository.get_ticket(ticket_id)
        if current is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        if current.version != version:
            logger.info(
                "Rejected update of ticket %s by %s: version %s is stale (current %s)",
                ticket_id,
                actor.id,
                version,
                current.version,
            )
            raise TicketConflictError(
                f"Stale version {version} for ticket {ticket_id}; current version is {current.version}"
            )

        requested = {name: patch[name] for name in EDITABLE_FIELDS if name in patch}
        assert_can_edit(actor, requested)
        changes = self._validate_changes(requested)
        if not changes:
            raise TicketValidationError("No updatable fields provided")
        if "sla_hours" in changes:
            changes["sla_deadline"] = compute_deadline(current.created_at, changes["sla_hours"])

        now = self._clock.now()
        entry = new_entry(
            entry_id=self._new_id(),
            ticket_id=ticket_id,
            actor_id=actor.id,
            data=UpdateTicketData(changes=dict(changes)),
            created_at=now,
        )
        updated = await self._repository.update_ticket(
            ticket_id,
            expected_version=version,
            changes=changes,
            updated_at=now,
            entry=entry,
        )
        if updated is None:
            logger.info("Ticket %s was modified concurrently; update by %s rejected", ticket_id, actor.id)
            raise TicketConflictError(f"Stale version {version} for ticket {ticket_id}")
        logger.info(
            "Ticket %s updated by %s to version %s (%s)",
            ticket_id,
            actor.id,
            updated.version,
            ", ".join(sorted(changes)),
        )
        return updated

    @staticmethod
    def _validate_changes(requested: Mapping[str, Any]) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for name, value in requested.items():
            if name == "title":
                if _is_blank(value):
                    raise TicketValidationError("title must not be empty")
                changes[name] = value
            elif name in ("description", "assign_to"):
                if value is not None and not isinstance(value, str):
                    raise TicketValidationError(f"{name} must be a string or null")
                changes[name] = value
            elif name == "status":
                try:
                    changes[name] = TicketStatus(value)
                except ValueError as exc:
                    raise TicketValidationError(f"Unknown status: {value!r}") from exc
            elif name == "sla_hours":
                if not is_positive_hours(value):
                    raise TicketValidationError("sla_hours must be a positive integer")
                changes[name] = int(value)
        return changes

    async def add_comment(
        self,
        ticket_id: str,
        *,
        body: str | None,
        actor: Actor,
        parent_id: str | None = None,
    ) -> Comment:
        if _is_blank(body):
            raise TicketValidationError("body is required")
        if parent_id is not None and not isinstance(parent_id, str):
            raise TicketValidationError("parent_id must be a string or null")

        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")

        requested_parent_id = parent_id
        if parent_id is not None:
            parent = await self._repository.get_comment(parent_id)
            if parent is None or parent.ticket_id != ticket_id:
                # Unknown or foreign parents are accepted; the reply becomes a root.
                logger.debug("Comment parent %s not found on ticket %s", parent_id, ticket_id)
                parent_id = None

        now = self._clock.now()
        comment = Comment(
            id=self._new_id(),
            ticket_id=ticket_id,
            parent_id=parent_id,
            author_id=actor.id,
            body=body,
            created_at=now,
        )
        entry = new_entry(
            entry_id=self._new_id(),
            ticket_id=ticket_id,
            actor_id=actor.id,
            data=CommentData(
                comment_id=comment.id,
                parent_id=parent_id,
                requested_parent_id=requested_parent_id,
            ),
            created_at=now,
        )
        created = await self._repository.add_comment(comment, entry)
        logger.info("Comment %s added to ticket %s by %s", created.id, ticket_id, actor.id)
        return created

    async def list_tickets(
        self,
        filters: TicketFilters | None = None,
        pagination: Pagination | None = None,
    ) -> TicketPage:
        filters = filters or TicketFilters()
        page = self._normalize_pagination(pagination)
        now = self._clock.now()
        tickets = await self._repository.list_tickets(filters, page, now=now)
        items = [
            TicketView(ticket=ticket, breached=is_breached(ticket.sla_deadline, ticket.status, now))
            for ticket in tickets
        ]
        return TicketPage(items=items, limit=page.limit, offset=page.offset)

    def _normalize_pagination(self, pagination: Pagination | None) -> Pagination:
        if pagination is None:
            return Pagination(limit=self._default_page_size, offset=0)
        limit = pagination.limit if pagination.limit and pagination.limit > 0 else self._default_page_size
        return Pagination(limit=min(limit, self._max_page_size), offset=max(pagination.offset, 0))

    async def get_ticket_detail(self, ticket_id: str) -> TicketDetail:
        record = await self._repository.get_ticket_detail(ticket_id)
        if record is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")

        ticket, comments, timeline = record
        return TicketDetail(
            ticket=ticket,
            breached=is_breached(ticket.sla_deadline, ticket.status, self._clock.now()),
            comments=build_comment_forest(comments),
            timeline=timeline,
        )
