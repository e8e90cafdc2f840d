"""Attach the calling actor to each request."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from helpdesk.dependencies.auth import actor_from_request

logger = logging.getLogger(__name__)


class ActorMiddleware(BaseHTTPMiddleware):
    """Populate the request state with the actor taken from the identity headers."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        actor = actor_from_request(request)
        request.state.actor = actor
        logger.debug("%s %s as %s (%s)", request.method, request.url.path, actor.id, actor.role.value)
        return await call_next(request)
