"""Ticket domain models and services."""

from .errors import (
    TicketConflictError,
    TicketForbiddenError,
    TicketNotFoundError,
    TicketServiceError,
    TicketStoreError,
    TicketValidationError,
)
from .models import (
    Comment,
    CommentNode,
    Pagination,
    Ticket,
    TicketDetail,
    TicketFilters,
    TicketPage,
    TicketStatus,
    TicketView,
    TimelineAction,
    TimelineEntry,
)
from .permissions import Actor, Role
from .repository import TicketRepository
from .service import TicketService

__all__ = [
    "Actor",
    "Comment",
    "CommentNode",
    "Pagination",
    "Role",
    "Ticket",
    "TicketConflictError",
    "TicketDetail",
    "TicketFilters",
    "TicketForbiddenError",
    "TicketNotFoundError",
    "TicketPage",
    "TicketRepository",
    "TicketService",
    "TicketServiceError",
    "TicketStatus",
    "TicketStoreError",
    "TicketValidationError",
    "TicketView",
    "TimelineAction",
    "TimelineEntry",
]
