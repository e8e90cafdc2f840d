from fastapi import APIRouter, HTTPException

from helpdesk.dependencies.tickets import TicketServiceDep
from helpdesk.tickets.errors import TicketStoreError

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/db", summary="Database connectivity probe")
async def ping_database(service: TicketServiceDep) -> dict[str, str]:
    try:
        await service.ping()
    except TicketStoreError as exc:
        raise HTTPException(status_code=503, detail="Database is unavailable") from exc
    return {"status": "ok", "database": "ok"}
