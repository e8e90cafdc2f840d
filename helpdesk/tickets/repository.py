from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping

from sqlalchemy import or_, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from helpdesk.db.models import TicketCommentTable, TicketTable, TicketTimelineTable

from .errors import TicketStoreError
from .models import (
    Comment,
    Pagination,
    Ticket,
    TicketFilters,
    TicketStatus,
    TimelineAction,
    TimelineEntry,
)

_LIKE_ESCAPE = "\\"


class TicketRepository:
    """Persistence helper wrapping `tickets`, `ticket_comments` and `ticket_timeline`."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise TicketStoreError(f"Database operation failed: {exc}") from exc

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def ping(self) -> bool:
        async with self._session() as session:
            await session.execute(text("SELECT 1"))
        return True

    async def create_ticket(self, ticket: Ticket, entry: TimelineEntry) -> Ticket:
        async with self._session() as session:
            async with session.begin():
                session.add(
                    TicketTable(
                        id=ticket.id,
                        title=ticket.title,
                        description=ticket.description,
                        creator_id=ticket.creator_id,
                        assign_to=ticket.assign_to,
                        status=ticket.status.value,
                        sla_hours=ticket.sla_hours,
                        sla_deadline=ticket.sla_deadline,
                        created_at=ticket.created_at,
                        updated_at=ticket.updated_at,
                        version=ticket.version,
                    )
                )
                await session.flush()
                session.add(self._entry_to_table(entry))
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._session() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return self._table_to_ticket(row)

    async def update_ticket(
        self,
        ticket_id: str,
        *,
        expected_version: int,
        changes: Mapping[str, Any],
        updated_at: datetime,
        entry: TimelineEntry,
    ) -> Ticket | None:
        """Apply ``changes`` only if the stored version still equals ``expected_version``.

        The conditional UPDATE, the version bump and the timeline insert share one
        transaction. Returns ``None`` when another writer got there first.
        """

        values = self._changes_to_columns(changes)
        values["updated_at"] = updated_at
        values["version"] = TicketTable.version + 1

        async with self._session() as session:
            async with session.begin():
                result = await session.execute(
                    update(TicketTable)
                    .where(TicketTable.id == ticket_id, TicketTable.version == expected_version)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    return None
                session.add(self._entry_to_table(entry))
                row = (
                    await session.execute(
                        select(TicketTable)
                        .where(TicketTable.id == ticket_id)
                        .execution_options(populate_existing=True)
                    )
                ).scalar_one()
                return self._table_to_ticket(row)

    async def get_comment(self, comment_id: str) -> Comment | None:
        async with self._session() as session:
            row = await session.get(TicketCommentTable, comment_id)
            if row is None:
                return None
            return self._table_to_comment(row)

    async def add_comment(self, comment: Comment, entry: TimelineEntry) -> Comment:
        async with self._session() as session:
            async with session.begin():
                session.add(
                    TicketCommentTable(
                        id=comment.id,
                        ticket_id=comment.ticket_id,
                        parent_id=comment.parent_id,
                        author_id=comment.author_id,
                        body=comment.body,
                        created_at=comment.created_at,
                    )
                )
                await session.flush()
                session.add(self._entry_to_table(entry))
        return comment

    async def list_comments(self, ticket_id: str) -> list[Comment]:
        async with self._session() as session:
            result = await session.execute(_comments_query(ticket_id))
            return [self._table_to_comment(row) for row in result.scalars().all()]

    async def list_timeline(self, ticket_id: str) -> list[TimelineEntry]:
        async with self._session() as session:
            result = await session.execute(_timeline_query(ticket_id))
            return [self._table_to_entry(row) for row in result.scalars().all()]

    async def get_ticket_detail(
        self, ticket_id: str
    ) -> tuple[Ticket, list[Comment], list[TimelineEntry]] | None:
        """Read a ticket with its comments and timeline inside one transaction.

        PostgreSQL runs the transaction at REPEATABLE READ so all three reads see
        the same snapshot and the timeline never runs ahead of ``version``.
        """

        async with self._session() as session:
            async with session.begin():
                if session.get_bind().dialect.name == "postgresql":
                    await session.connection(execution_options={"isolation_level": "REPEATABLE READ"})
                row = await session.get(TicketTable, ticket_id)
                if row is None:
                    return None
                comments = (await session.execute(_comments_query(ticket_id))).scalars().all()
                timeline = (await session.execute(_timeline_query(ticket_id))).scalars().all()
                return (
                    self._table_to_ticket(row),
                    [self._table_to_comment(comment) for comment in comments],
                    [self._table_to_entry(entry) for entry in timeline],
                )

    async def list_tickets(
        self,
        filters: TicketFilters,
        pagination: Pagination,
        *,
        now: datetime,
    ) -> list[Ticket]:
        statement = select(TicketTable)
        if filters.status is not None:
            statement = statement.where(TicketTable.status == TicketStatus(filters.status).value)
        if filters.assign_to is not None:
            statement = statement.where(TicketTable.assign_to == filters.assign_to)
        if filters.breached:
            statement = statement.where(
                TicketTable.sla_deadline < now,
                TicketTable.status != TicketStatus.CLOSED.value,
            )
        if filters.search:
            pattern = _like_pattern(filters.search)
            latest_comment_body = (
                select(TicketCommentTable.body)
                .where(TicketCommentTable.ticket_id == TicketTable.id)
                .order_by(TicketCommentTable.created_at.desc(), TicketCommentTable.id.desc())
                .limit(1)
                .correlate(TicketTable)
                .scalar_subquery()
            )
            statement = statement.where(
                or_(
                    TicketTable.title.ilike(pattern, escape=_LIKE_ESCAPE),
                    TicketTable.description.ilike(pattern, escape=_LIKE_ESCAPE),
                    latest_comment_body.ilike(pattern, escape=_LIKE_ESCAPE),
                )
            )
        statement = (
            statement.order_by(TicketTable.created_at.desc(), TicketTable.id.desc())
            .limit(pagination.limit)
            .offset(pagination.offset)
        )

        async with self._session() as session:
            result = await session.execute(statement)
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    @staticmethod
    def _changes_to_columns(changes: Mapping[str, Any]) -> dict[str, Any]:
        values = dict(changes)
        if "status" in values:
            values["status"] = TicketStatus(values["status"]).value
        return values

    @staticmethod
    def _entry_to_table(entry: TimelineEntry) -> TicketTimelineTable:
        return TicketTimelineTable(
            id=entry.id,
            ticket_id=entry.ticket_id,
            actor_id=entry.actor_id,
            action=entry.action.value,
            data=dict(entry.data),
            created_at=entry.created_at,
        )

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            title=row.title,
            description=row.description,
            creator_id=row.creator_id,
            assign_to=row.assign_to,
            status=TicketStatus(row.status),
            sla_hours=row.sla_hours,
            sla_deadline=_ensure_datetime(row.sla_deadline),
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            version=row.version,
        )

    @staticmethod
    def _table_to_comment(row: TicketCommentTable) -> Comment:
        return Comment(
            id=row.id,
            ticket_id=row.ticket_id,
            parent_id=row.parent_id,
            author_id=row.author_id,
            body=row.body,
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_entry(row: TicketTimelineTable) -> TimelineEntry:
        return TimelineEntry(
            id=row.id,
            ticket_id=row.ticket_id,
            actor_id=row.actor_id,
            action=TimelineAction(row.action),
            data=dict(row.data or {}),
            created_at=_ensure_datetime(row.created_at),
        )


def _like_pattern(needle: str) -> str:
    escaped = (
        needle.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")



def _comments_query(ticket_id: str):
    return (
        select(TicketCommentTable)
        .where(TicketCommentTable.ticket_id == ticket_id)
        .order_by(TicketCommentTable.created_at.asc(), TicketCommentTable.id.asc())
    )


def _timeline_query(ticket_id: str):
    return (
        select(TicketTimelineTable)
        .where(TicketTimelineTable.ticket_id == ticket_id)
        .order_by(TicketTimelineTable.created_at.asc(), TicketTimelineTable.id.asc())
    )
