import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from helpdesk.api.routes import ping, tickets
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.middleware import ActorMiddleware
from helpdesk.tickets.repository import TicketRepository
from helpdesk.tickets.service import TicketService


def to_async_dsn(dsn: str) -> str:
    """Ensure PostgreSQL DSNs use the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://") :]
    return dsn


def build_ticket_service(settings: Settings, session_factory: async_sessionmaker, engine=None) -> TicketService:
    repository = TicketRepository(session_factory, engine=engine)
    return TicketService(
        repository,
        default_sla_hours=settings.default_sla_hours,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.ticket_service = None
    db_engine = create_async_engine(to_async_dsn(settings.database_url), echo=settings.database_echo)
    try:
        session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
        service = build_ticket_service(settings, session_factory, engine=db_engine)
        await service.ensure_schema()
        app.state.ticket_service = service
        logger.info("Ticket service ready (%s)", settings.environment)
    except Exception:
        logger.exception("Ticket service initialisation failed; ticket routes will return 503")
    try:
        yield
    finally:
        await db_engine.dispose()
        shutdown_tracer(tracer_provider)
        logging.getLogger("helpdesk").info("Ticket service stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(ActorMiddleware)
    app.add_exception_handler(RequestValidationError, tickets.request_validation_handler)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    return app


app = create_app()
