"""SQLModel table definitions for the helpdesk data layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class TicketTable(SQLModel, table=True):
    """Support tickets; ``version`` is the optimistic concurrency token."""

    __tablename__ = "tickets"

    id: str = Field(primary_key=True, index=True)
    title: str = Field(sa_column=Column(Text, nullable=False))
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    creator_id: str = Field(sa_column=Column(String(255), nullable=False))
    assign_to: str | None = Field(default=None, sa_column=Column(String(255), nullable=True, index=True))
    status: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    sla_hours: int = Field(default=24, sa_column=Column(Integer, nullable=False))
    sla_deadline: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False))


class TicketCommentTable(SQLModel, table=True):
    """Comments on a ticket, removed together with their ticket or parent comment."""

    __tablename__ = "ticket_comments"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    parent_id: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("ticket_comments.id", ondelete="CASCADE"), nullable=True),
    )
    author_id: str = Field(sa_column=Column(String(255), nullable=False))
    body: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTimelineTable(SQLModel, table=True):
    """Append-only audit trail of actions taken on a ticket."""

    __tablename__ = "ticket_timeline"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    actor_id: str = Field(sa_column=Column(String(255), nullable=False))
    action: str = Field(sa_column=Column(String(50), nullable=False))
    data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
