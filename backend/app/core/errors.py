"""Failure taxonomy shared by services and routers.

Services raise these; ``register_exception_handlers`` renders them as
``{"detail": ..., "error": ...}`` JSON with the matching status code.
"""
import logging
import math
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ReservationError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal"
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, extra: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.extra = extra or {}
        super().__init__(self.message)

    def headers(self) -> dict[str, str] | None:
        return None


class InvalidInput(ReservationError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"
    default_message = "Invalid input."


class Closed(ReservationError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "closed"
    default_message = "We're sorry, the restaurant is closed at the selected time."


class NotFound(ReservationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Reservation not found."


class CapacityExceeded(ReservationError):
    status_code = status.HTTP_409_CONFLICT
    code = "capacity_exceeded"
    default_message = "We're sorry, there are no tables available at the selected time."


class Unauthorized(ReservationError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"


class Conflict(ReservationError):
    """Duplicate restaurant slug or admin username on the management paths."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Already exists."


class Internal(ReservationError):
    pass


class RateLimited(ReservationError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    default_message = "Too many attempts. Please wait and try again."

    def __init__(self, retry_after_ms: int | None, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms

    def headers(self) -> dict[str, str] | None:
        if not self.retry_after_ms:
            return None
        return {"Retry-After": str(retry_after_seconds(self.retry_after_ms))}


def retry_after_seconds(retry_after_ms: int) -> int:
    return max(1, math.ceil(retry_after_ms / 1000))


async def _reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    body = {"detail": exc.message, "error": exc.code, **exc.extra}
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body), headers=exc.headers())


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=InvalidInput.status_code,
        content=jsonable_encoder(
            {"detail": InvalidInput.default_message, "error": InvalidInput.code, "errors": exc.errors()}
        ),
    )


async def _store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return await _reservation_error_handler(request, Internal("Database error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationError, _reservation_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, _store_error_handler)
