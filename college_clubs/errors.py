"""Error taxonomy for club operations and the handlers that render it.

Every failure leaves the API as the common envelope
``{"success": false, "message": ...}`` so clients never see a bare
traceback or FastAPI's default error shape.
"""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ClubsError(Exception):
    """Base class for errors raised by the membership and role engines."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Request could not be completed"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.extra = extra


class NotFound(ClubsError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class Conflict(ClubsError):
    """Duplicate membership, duplicate pending request, already decided, etc."""

    message = "Conflicting state"


class Forbidden(ClubsError):
    """The caller lacks authority over the target."""

    status_code = status.HTTP_403_FORBIDDEN
    message = "Not authorized"


class ActionBlocked(Forbidden):
    """A rule forbids the action regardless of who asks (head leaving, self role change)."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Action not allowed"


class CapacityExceeded(ClubsError):
    message = "Club has reached maximum membership capacity"


class BadRequest(ClubsError):
    message = "Invalid request"


class Unauthorized(ClubsError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Token is not valid"


class Internal(ClubsError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server error"


def envelope(success: bool, message: str | None = None, data: Any = None, **extra: Any) -> dict:
    body: dict[str, Any] = {"success": success}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def _error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope(False, message, **extra)),
    )


async def clubs_error_handler(request: Request, exc: ClubsError) -> JSONResponse:
    return _error_response(exc.status_code, exc.message, **exc.extra)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, message)


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, Internal.message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClubsError, clubs_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
