from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.dependencies.auth import CurrentActor
from helpdesk.dependencies.tickets import TicketServiceDep
from helpdesk.tickets.errors import (
    TicketConflictError,
    TicketForbiddenError,
    TicketNotFoundError,
    TicketServiceError,
    TicketStoreError,
    TicketValidationError,
)
from helpdesk.tickets.models import (
    Comment,
    CommentNode,
    Pagination,
    Ticket,
    TicketDetail,
    TicketFilters,
    TicketStatus,
    TicketView,
    TimelineAction,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])

_STATUS_BY_ERROR: dict[type[TicketServiceError], int] = {
    TicketValidationError: status.HTTP_400_BAD_REQUEST,
    TicketForbiddenError: status.HTTP_403_FORBIDDEN,
    TicketNotFoundError: status.HTTP_404_NOT_FOUND,
    TicketConflictError: status.HTTP_409_CONFLICT,
    TicketStoreError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _to_http_error(exc: TicketServiceError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail={"kind": exc.kind, "message": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests with the same body shape as domain validation errors."""

    problems = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"kind": TicketValidationError.kind, "message": "; ".join(problems)}},
    )


class TicketCreateRequest(BaseModel):
    """Loosely typed so malformed values reach the service and fail as validation errors."""

    title: Any = None
    description: Any = None
    sla_hours: Any = None


class TicketUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are applied."""

    model_config = ConfigDict(extra="ignore")

    version: Any = None
    title: Any = None
    description: Any = None
    assign_to: Any = None
    status: Any = None
    sla_hours: Any = None

    def to_patch(self) -> dict[str, Any]:
        patch = self.model_dump(exclude_unset=True)
        patch.pop("version", None)
        return patch


class CommentCreateRequest(BaseModel):
    body: Any = None
    parent_id: Any = None


class TicketModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
    version: int


class TicketSummaryModel(TicketModel):
    breached: bool

    @classmethod
    def from_view(cls, ticket: Ticket, breached: bool) -> "TicketSummaryModel":
        return cls(**TicketModel.model_validate(ticket).model_dump(), breached=breached)


class TicketPageModel(BaseModel):
    items: list[TicketSummaryModel]
    limit: int
    offset: int


class CommentModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    parent_id: str | None
    author_id: str
    body: str
    created_at: datetime


class CommentNodeModel(CommentModel):
    children: list["CommentNodeModel"] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node: CommentNode) -> "CommentNodeModel":
        return cls(
            **CommentModel.model_validate(node.comment).model_dump(),
            children=[cls.from_node(child) for child in node.children],
        )


class TimelineEntryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    actor_id: str
    action: TimelineAction
    data: dict[str, Any]
    created_at: datetime


class TicketDetailModel(BaseModel):
    ticket: TicketSummaryModel
    comments: list[CommentNodeModel]
    timeline: list[TimelineEntryModel]

    @classmethod
    def from_detail(cls, detail: TicketDetail) -> "TicketDetailModel":
        return cls(
            ticket=TicketSummaryModel.from_view(detail.ticket, detail.breached),
            comments=[CommentNodeModel.from_node(node) for node in detail.comments],
            timeline=[TimelineEntryModel.model_validate(entry) for entry in detail.timeline],
        )


CommentNodeModel.model_rebuild()


def _to_response(ticket: Ticket) -> TicketModel:
    return TicketModel.model_validate(ticket)


def _to_summary(view: TicketView) -> TicketSummaryModel:
    return TicketSummaryModel.from_view(view.ticket, view.breached)


def _to_comment_response(comment: Comment) -> CommentModel:
    return CommentModel.model_validate(comment)


@router.post("", response_model=TicketModel, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    service: TicketServiceDep,
    actor: CurrentActor,
    payload: TicketCreateRequest | None = None,
) -> TicketModel:
    if payload is None:
        payload = TicketCreateRequest()
    try:
        ticket = await service.create_ticket(
            title=payload.title,
            description=payload.description,
            sla_hours=payload.sla_hours,
            actor=actor,
        )
    except TicketServiceError as exc:
        raise _to_http_error(exc) from exc
    return _to_response(ticket)


@router.get("", response_model=TicketPageModel, summary="List tickets")
async def list_tickets(
    service: TicketServiceDep,
    _: CurrentActor,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    assign_to: str | None = Query(default=None),
    breached: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
) -> TicketPageModel:
    filters = TicketFilters(status=status_filter, assign_to=assign_to, breached=breached, search=search)
    pagination = Pagination(limit=limit, offset=offset)
    try:
        page = await service.list_tickets(filters, pagination)
    except TicketServiceError as exc:
        raise _to_http_error(exc) from exc
    return TicketPageModel(items=[_to_summary(item) for item in page.items], limit=page.limit, offset=page.offset)


@router.get("/{ticket_id}", response_model=TicketDetailModel)
async def get_ticket(ticket_id: str, service: TicketServiceDep, _: CurrentActor) -> TicketDetailModel:
    try:
        detail = await service.get_ticket_detail(ticket_id)
    except TicketServiceError as exc:
        raise _to_http_error(exc) from exc
    return TicketDetailModel.from_detail(detail)


@router.patch("/{ticket_id}", response_model=TicketModel)
async def update_ticket(
    ticket_id: str,
    service: TicketServiceDep,
    actor: CurrentActor,
    payload: TicketUpdateRequest | None = None,
) -> TicketModel:
    if payload is None:
        payload = TicketUpdateRequest()
    try:
        ticket = await service.update_ticket(
            ticket_id,
            version=payload.version,
            patch=payload.to_patch(),
            actor=actor,
        )
    except TicketServiceError as exc:
        raise _to_http_error(exc) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/comments", response_model=CommentModel, status_code=status.HTTP_201_CREATED)
async def add_comment(
    ticket_id: str,
    service: TicketServiceDep,
    actor: CurrentActor,
    payload: CommentCreateRequest | None = None,
) -> CommentModel:
    if payload is None:
        payload = CommentCreateRequest()
    try:
        comment = await service.add_comment(
            ticket_id,
            body=payload.body,
            parent_id=payload.parent_id,
            actor=actor,
        )
    except TicketServiceError as exc:
        raise _to_http_error(exc) from exc
    return _to_comment_response(comment)
