from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import structlog

from helpdesk.api.admin import router as admin_router
from helpdesk.api.auth import router as auth_router
from helpdesk.api.dashboard import router as dashboard_router
from helpdesk.api.profile import router as profile_router
from helpdesk.api.setup import router as setup_router
from helpdesk.api.tickets import router as tickets_router
from helpdesk.core.config import settings
from helpdesk.core.database import engine, init_db
from helpdesk.core.logging import REQUEST_ID_HEADER, setup_logging, start_request_context
from helpdesk.services.access import AccessDeniedError

logger = structlog.get_logger(__name__)

app = FastAPI(title="Help Desk")


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = start_request_context(
        request.method, request.url.path, request.headers.get(REQUEST_ID_HEADER)
    )
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(AccessDeniedError)
async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "redirect": exc.redirect},
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.warning(
        "store_write_rejected",
        error_type=type(exc).__name__,
        error=str(exc),
    )
    if isinstance(exc, IntegrityError):
        return JSONResponse(status_code=409, content={"error": "Request conflicts with stored data"})
    return JSONResponse(status_code=503, content={"error": "Data store unavailable"})


origins = [origin.strip() for origin in settings.DASHBOARD_ORIGINS.split(",") if origin.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
async def on_startup() -> None:
    setup_logging()
    if settings.APP_ENV.lower() != "development" and settings.JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in non-development environments")
    await init_db()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await engine.dispose()


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(setup_router)
app.include_router(profile_router)
app.include_router(dashboard_router)
app.include_router(tickets_router)
app.include_router(admin_router)
