# backend/angostura/main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from angostura.auth import auth_events, log_auth_event
from angostura.db import engine
from angostura.errors import DomainError, ErrorCode, FieldValidationError
from angostura.models import Base
from angostura.routes.admin import admin_router
from angostura.routes.auth import router as auth_router
from angostura.routes.booking import router as bookings_router
from angostura.routes.events import router as events_router
from angostura.routes.provider import provider_router

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CREATE_TABLES_ON_STARTUP = os.getenv("CREATE_TABLES_ON_STARTUP", "1").lower() in ("1", "true", "yes")

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

HTTP_STATUS = {
    ErrorCode.VALIDATION_FAILED: 422,
    ErrorCode.NOT_AUTHENTICATED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.EVENT_NOT_FOUND: 404,
    ErrorCode.EVENT_NOT_BOOKABLE: 409,
    ErrorCode.ALREADY_REGISTERED: 409,
    ErrorCode.INSUFFICIENT_SEATS: 409,
    ErrorCode.INVALID_SEAT_COUNT: 400,
    ErrorCode.STORAGE_ERROR: 503,
    ErrorCode.NOTIFICATION_ERROR: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    if CREATE_TABLES_ON_STARTUP:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception:
            # alembic owns the schema in deployments; this is a dev convenience
            logger.exception("Could not create tables on startup")
    subscription = auth_events.subscribe(log_auth_event)
    try:
        yield
    finally:
        subscription.unsubscribe()


app = FastAPI(title="Angostura Events - Backend", lifespan=lifespan)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    body = {"code": exc.code.value, "detail": exc.message}
    if isinstance(exc, FieldValidationError):
        body["errors"] = exc.errors.as_dict()
    return JSONResponse(status_code=HTTP_STATUS.get(exc.code, 400), content=body)


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(events_router)
app.include_router(bookings_router)
app.include_router(admin_router)
app.include_router(provider_router)
