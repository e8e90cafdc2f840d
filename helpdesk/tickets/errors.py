from __future__ import annotations


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""

    kind = "error"

    @property
    def message(self) -> str:
        return str(self)


class TicketValidationError(TicketServiceError):
    """Raised when a request is missing required input or carries malformed values."""

    kind = "validation"


class TicketNotFoundError(TicketServiceError):
    """Raised when a ticket could not be located."""

    kind = "not_found"


class TicketForbiddenError(TicketServiceError):
    """Raised when the actor's role may not change one of the requested fields."""

    kind = "forbidden"


class TicketConflictError(TicketServiceError):
    """Raised when an update was made against a stale version."""

    kind = "conflict"


class TicketStoreError(TicketServiceError):
    """Raised when the underlying database fails."""

    kind = "store"
