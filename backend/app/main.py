import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.errors import (
    ConfigurationError,
    DraftNotFoundError,
    EditorBusyError,
    InvoiceNotFoundError,
    InvoiceValidationError,
    PersistenceError,
    SubmissionError,
    UnsavedChangesError,
)
from app.core.logging import configure_logging
from app.db.gateway import InvoiceGateway, init_gateway, teardown_gateway
from app.services.drafts import DraftRegistry


settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

SUBMISSION_STATUS = {"configuration": 503, "persistence": 502}


def open_gateway(retries: int = 20) -> InvoiceGateway:
    gateway = init_gateway(settings)
    while True:
        try:
            gateway.create_schema()
            return gateway
        except ConfigurationError:
            retries -= 1
            if retries == 0:
                teardown_gateway(gateway)
                raise
            time.sleep(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        app.state.gateway = open_gateway()
    except ConfigurationError as exc:
        logger.error("Starting without an invoice store: %s", exc.message)
    yield
    if app.state.gateway is not None:
        teardown_gateway(app.state.gateway)
        app.state.gateway = None


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.state.gateway = None
app.state.drafts = DraftRegistry(idle_seconds=settings.draft_idle_minutes * 60)

origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvoiceValidationError)
def validation_error_handler(_request: Request, exc: InvoiceValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.message, "errors": exc.errors})


@app.exception_handler(ConfigurationError)
def configuration_error_handler(_request: Request, exc: ConfigurationError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": exc.message})


@app.exception_handler(PersistenceError)
def persistence_error_handler(_request: Request, exc: PersistenceError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": exc.message})


@app.exception_handler(SubmissionError)
def submission_error_handler(_request: Request, exc: SubmissionError) -> JSONResponse:
    return JSONResponse(
        status_code=SUBMISSION_STATUS.get(exc.kind, 500),
        content={"detail": exc.message, "kind": exc.kind},
    )


@app.exception_handler(EditorBusyError)
@app.exception_handler(UnsavedChangesError)
def conflict_handler(_request: Request, exc: EditorBusyError | UnsavedChangesError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(InvoiceNotFoundError)
@app.exception_handler(DraftNotFoundError)
def not_found_handler(_request: Request, exc: InvoiceNotFoundError | DraftNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.get("/")
def root() -> dict:
    return {
        "name": "Receipt Desk API",
        "version": "0.1.0",
        "docs": "/docs",
    }


app.include_router(api_router, prefix=settings.api_v1_prefix)
