# helpdesk_console/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from helpdesk_console.console.registry import get_registry
from helpdesk_console.console.routes import router as confirmations_router
from helpdesk_console.core.config import get_settings
from helpdesk_console.core.database import Base, engine
from helpdesk_console.core.errors import (
    ConsoleError,
    InvalidTransition,
    MissingFields,
    NotCancellable,
    NotFound,
    RemoteError,
    ValidationError,
    WorkflowNotActive,
)
from helpdesk_console.core.logging import configure_logging
from helpdesk_console.ticket.routes import router as ticket_router
from helpdesk_console.workflow.routes import executions_router, router as workflow_router

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

# demo store tables; the models are registered by the imports above
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await get_registry().aclose()


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESC,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: ConsoleError) -> int:
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, RemoteError):
        return 502
    if isinstance(exc, MissingFields):
        return 422
    if isinstance(exc, (InvalidTransition, NotCancellable, WorkflowNotActive)):
        return 409
    if isinstance(exc, ValidationError):
        return 400
    return 500


@app.exception_handler(ConsoleError)
async def console_error_handler(request: Request, exc: ConsoleError):
    return JSONResponse(status_code=_status_for(exc), content=exc.to_dict())


# Routers
app.include_router(ticket_router)
app.include_router(workflow_router)
app.include_router(executions_router)
app.include_router(confirmations_router)


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "data_source": settings.DATA_SOURCE}
