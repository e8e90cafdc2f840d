from typing import Annotated

from fastapi import Depends, Request

from helpdesk.core.config import get_settings
from helpdesk.tickets.permissions import Actor, Role

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def resolve_actor(actor_id: str | None, role: str | None, *, default_id: str = "anonymous") -> Actor:
    """Build the actor for a request from the identity supplied upstream.

    Identity is verified before requests reach this service; missing values fall
    back to an anonymous ``user``, and an unrecognised role is never elevated.
    """

    cleaned_id = (actor_id or "").strip() or default_id
    return Actor(id=cleaned_id, role=Role.parse(role))


def actor_from_request(request: Request) -> Actor:
    return resolve_actor(
        request.headers.get(ACTOR_ID_HEADER),
        request.headers.get(ACTOR_ROLE_HEADER),
        default_id=get_settings().default_actor_id,
    )


async def get_current_actor(request: Request) -> Actor:
    cached = getattr(request.state, "actor", None)
    if isinstance(cached, Actor):
        return cached

    actor = actor_from_request(request)
    request.state.actor = actor
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
