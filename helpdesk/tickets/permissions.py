from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping

from .errors import TicketForbiddenError


class Role(str, Enum):
    """Supported roles."""

    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | None) -> Role:
        """Map a raw role string to a role, falling back to the least privileged one."""

        if value is None:
            return cls.USER
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.USER


@dataclass(slots=True, frozen=True)
class Actor:
    """Trusted identity performing a request."""

    id: str
    role: Role


_ANY_ROLE = frozenset(Role)
_STAFF = frozenset({Role.AGENT, Role.ADMIN})

FIELD_ROLES: Mapping[str, frozenset[Role]] = {
    "title": _ANY_ROLE,
    "description": _ANY_ROLE,
    "assign_to": _STAFF,
    "status": _STAFF,
    "sla_hours": frozenset({Role.ADMIN}),
}

EDITABLE_FIELDS: tuple[str, ...] = tuple(FIELD_ROLES)


def can_edit(role: Role, field_name: str) -> bool:
    return role in FIELD_ROLES.get(field_name, frozenset())


def assert_can_edit(actor: Actor, fields: Iterable[str]) -> None:
    """Reject the whole patch if any field is beyond the actor's role."""

    denied = [name for name in fields if not can_edit(actor.role, name)]
    if denied:
        raise TicketForbiddenError(
            f"Role '{actor.role.value}' may not change: {', '.join(sorted(denied))}"
        )
