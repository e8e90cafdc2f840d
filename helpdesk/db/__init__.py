"""Database models and utilities."""

from .models import TicketCommentTable, TicketTable, TicketTimelineTable

__all__ = [
    "TicketCommentTable",
    "TicketTable",
    "TicketTimelineTable",
]
