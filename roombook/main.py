import json
import logging
import os
import traceback
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

import roombook.models  # noqa: F401  # Ensure all SQLAlchemy models are registered
from roombook.config.loader import get_audit_enabled, get_cors_origins
from roombook.database import Base, SessionLocal, engine
from roombook.errors import BookingError
from roombook.routers import auth as auth_router
from roombook.routers import dashboard as dashboard_router
from roombook.routers import meetings as meetings_router
from roombook.routers import rooms as rooms_router
from roombook.routers import users as users_router
from roombook.utils.logging_config import setup_logging

logger = logging.getLogger("roombook")

_AUDITED_ROLES = {"admin", "manager"}
_REDACTED_KEYS = ("password", "token", "secret", "code")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized.")
    yield
    logger.info("Application shutdown.")


app = FastAPI(
    title="Roombook",
    description="Meeting room booking service",
    lifespan=lifespan,
)


def _summarize_payload(body: bytes) -> Optional[str]:
    if not body:
        return None
    parsed = json.loads(body.decode("utf-8"))
    if not isinstance(parsed, dict):
        return type(parsed).__name__
    redacted = {}
    for key, value in parsed.items():
        lower_key = str(key).lower()
        if any(marker in lower_key for marker in _REDACTED_KEYS):
            redacted[key] = "***"
        elif isinstance(value, (str, int, float, bool, type(None))):
            redacted[key] = value
        else:
            redacted[key] = type(value).__name__
    return json.dumps(redacted, ensure_ascii=True)


async def audit_action_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    """Log mutating API calls made by managers and admins."""
    method = request.method.upper()
    if method not in {"POST", "PUT", "PATCH", "DELETE"} or not request.url.path.startswith("/api/"):
        return await call_next(request)

    payload_summary: Optional[str] = None
    if request.headers.get("content-type", "").lower().startswith("application/json"):
        try:
            body = await request.body()
            payload_summary = _summarize_payload(body)
        except (ValueError, UnicodeDecodeError):
            payload_summary = "unavailable"

    response = await call_next(request)

    # Set by get_current_active_user once the caller is authenticated.
    caller = getattr(request.state, "caller", None)
    if not caller or str(caller.get("role", "")).lower() not in _AUDITED_ROLES:
        return response

    details = {
        "method": method,
        "path": request.url.path,
        "status": response.status_code,
        "user": caller.get("email") or caller.get("user_id") or "unknown",
        "role": caller.get("role"),
    }
    if payload_summary:
        details["payload"] = payload_summary
    logging.getLogger("audit").info("Audit action: %s", details)
    return response


async def request_id_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


if get_audit_enabled():
    app.add_middleware(BaseHTTPMiddleware, dispatch=audit_action_middleware)
app.add_middleware(BaseHTTPMiddleware, dispatch=request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

for api_router in (
    auth_router.router,
    users_router.router,
    rooms_router.router,
    rooms_router.features_router,
    meetings_router.router,
    dashboard_router.router,
):
    app.include_router(api_router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {str(exc)}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error. Please check logs."},
    )


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    logger.info(f"HTTP {exc.status_code} {exc.kind}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "kind": exc.kind},
        headers=exc.headers,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} error: {exc.detail}")
    else:
        logger.info(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Pydantic error contexts may hold non-JSON values; send messages only.
    error_messages = [err["msg"] for err in exc.errors()]
    logger.warning(f"Validation error: {error_messages}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": error_messages, "kind": "validation_failed"},
    )


@app.get("/health", tags=["healthcheck"])
def health_check():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except SQLAlchemyError as e:
        logger.error(f"Health check database connection error: {e}")
        raise HTTPException(
            status_code=503, detail=f"Database connection failed: {str(e)}"
        )
    finally:
        db.close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("roombook.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
