"""
Exception handlers. Every error leaves the API in one envelope:
{"error", "message", "details", "path"}
"""

import json
import logging
import re
import traceback
from typing import Optional, Tuple, Union
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError, ValidationException
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    TimeoutError,
    DisconnectionError,
)
from asyncpg.exceptions import (
    PostgresError,
    ConnectionFailureError,
    ConnectionDoesNotExistError,
    TooManyConnectionsError,
)

from academy.core.config import DEBUG
from academy.core.exceptions import (
    BaseAppException,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseTimeoutError,
    DatabaseIntegrityError,
)

logger = logging.getLogger(__name__)

# Constraint (PostgreSQL name, or "table.column" as SQLite reports it) -> message
CONSTRAINT_MESSAGES = {
    "coaches_email_key": "A coach with this email already exists",
    "coaches.email": "A coach with this email already exists",
    "ix_coaches_auth_id": "This login account is already linked to a coach",
    "coaches.auth_id": "This login account is already linked to a coach",
    "uq_coach_availability_day": "The coach already has this weekday",
    "uq_session_coach": "The coach is already assigned to this session",
    "uq_session_participant": "The student is already in this session",
    "uq_attendance_session_student": "The student already has attendance for this session",
    "uq_coach_session_time": "The coach already has a time record for this session",
    "uq_coach_attendance": "The coach already has an attendance mark for this session",
    "foreign_key": "The record is still referenced by, or refers to, missing data",
}

_PG_CONSTRAINT = re.compile(r'constraint "([^"]+)"')
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: ([\w.]+)")


def _envelope(
    status_code: int, error: str, message, details: dict, request: Request
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details,
            "path": request.url.path,
        },
    )


def _request_context(request: Request) -> dict:
    return {
        "path": request.url.path,
        "method": request.method,
        "request_id": getattr(request.state, "request_id", None),
        "coach_id": getattr(request.state, "coach_id", None),
    }


async def app_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    logger.log(
        logging.WARNING if exc.status_code < 500 else logging.ERROR,
        f"{exc.error_code}: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "details": exc.details,
            **_request_context(request),
        },
    )
    return _envelope(exc.status_code, exc.error_code, exc.message, exc.details, request)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    logger.warning(
        f"HTTP {exc.status_code}: {exc.detail}",
        extra={"status_code": exc.status_code, **_request_context(request)},
    )

    response = _envelope(exc.status_code, "HTTP_ERROR", exc.detail, {}, request)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def _json_safe(value):
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationException, PydanticValidationError],
) -> JSONResponse:
    """Request body, path or query values that fail schema validation"""
    fields = [
        {
            "field": " -> ".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "value_error"),
            "input": _json_safe(error.get("input")),
        }
        for error in exc.errors()
    ]

    logger.warning(
        f"Request validation failed for {len(fields)} field(s)",
        extra={"fields": fields, **_request_context(request)},
    )
    return _envelope(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        f"Validation failed for {len(fields)} field(s)",
        {"fields": fields},
        request,
    )


def constraint_of(exc: IntegrityError) -> Tuple[str, Optional[str]]:
    """Name the violated constraint for either backend, with a readable message"""
    original = exc.orig
    text = str(original)

    name = getattr(original, "constraint_name", None)
    if not name:
        match = _PG_CONSTRAINT.search(text) or _SQLITE_UNIQUE.search(text)
        if match:
            name = match.group(1)
        elif "FOREIGN KEY" in text.upper():
            name = "foreign_key"

    name = name or "unknown"
    return name, CONSTRAINT_MESSAGES.get(name)


def _to_app_exception(exc: Exception) -> BaseAppException:
    if isinstance(exc, IntegrityError):
        constraint, message = constraint_of(exc)
        return DatabaseIntegrityError(
            message or f"Database integrity constraint violated: {constraint}",
            constraint,
            {"original_error": str(exc.orig)} if DEBUG else None,
        )
    if isinstance(exc, TimeoutError):
        return DatabaseTimeoutError("database_operation", 30)
    if isinstance(exc, (OperationalError, DisconnectionError)):
        return DatabaseConnectionError("Database connection lost")
    if isinstance(exc, (ConnectionFailureError, ConnectionDoesNotExistError)):
        return DatabaseConnectionError("PostgreSQL connection failed")
    if isinstance(exc, TooManyConnectionsError):
        return DatabaseConnectionError("Too many database connections")
    if isinstance(exc, PostgresError):
        return DatabaseError(
            f"PostgreSQL error: {str(exc)}",
            {"postgres_code": getattr(exc, "sqlstate", None)},
        )
    return DatabaseError(f"Database operation failed: {str(exc)}")


async def database_exception_handler(
    request: Request, exc: Union[SQLAlchemyError, PostgresError]
) -> JSONResponse:
    app_exc = _to_app_exception(exc)

    logger.error(
        f"Database exception: {type(exc).__name__} - {str(exc)}",
        extra={
            "exception_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
            **_request_context(request),
        },
    )
    return await app_exception_handler(request, app_exc)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {type(exc).__name__} - {str(exc)}",
        extra={
            "exception_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
            **_request_context(request),
        },
    )

    # Internals are only exposed in development
    details = (
        {"exception_type": type(exc).__name__, "traceback": traceback.format_exc()}
        if DEBUG
        else {}
    )
    return _envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        details,
        request,
    )


def setup_exception_handlers(app):
    # RequestValidationError first: FastAPI ships its own default for it
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationException, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)

    app.add_exception_handler(BaseAppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(PostgresError, database_exception_handler)

    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
