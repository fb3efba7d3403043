"""
Custom exception hierarchy for StepStreak.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from stepstreak.schemas.common import ErrorDetail

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class StepStreakException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidGoalTargetError(StepStreakException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_GOAL_TARGET"

    def __init__(self, goal_target: int):
        super().__init__(
            message=f"Goal target must be a positive integer. Received {goal_target}.",
            details={"goal_target": goal_target},
        )


class ClockMovedBackwardError(StepStreakException):
    http_status = status.HTTP_409_CONFLICT
    code = "CLOCK_MOVED_BACKWARD"

    def __init__(self, today: date, watermark: date):
        super().__init__(
            message=(
                f"Cannot reconcile {today}: streak was already reconciled "
                f"through {watermark}."
            ),
            details={"today": str(today), "watermark": str(watermark)},
        )


class ReconciliationFailedError(StepStreakException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "RECONCILIATION_FAILED"

    def __init__(self, today: date, reason: str):
        super().__init__(
            message=f"Reconciliation for {today} was aborted; retry the request.",
            details={"today": str(today), "reason": reason},
        )


class InvalidDateRangeError(StepStreakException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_DATE_RANGE"

    def __init__(self, start: date, end: date):
        super().__init__(
            message=f"start_date {start} is after end_date {end}.",
            details={"start_date": str(start), "end_date": str(end)},
        )


class DateRangeTooLargeError(StepStreakException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "DATE_RANGE_TOO_LARGE"

    def __init__(self, start: date, end: date, max_days: int):
        super().__init__(
            message=f"Range {start}..{end} spans more than {max_days} days.",
            details={"start_date": str(start), "end_date": str(end), "max_days": max_days},
        )


class FutureDateError(StepStreakException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "FUTURE_DATE"

    def __init__(self, day: date, today: date):
        super().__init__(
            message=f"{day} is in the future; today is {today}.",
            details={"day": str(day), "today": str(today)},
        )


class StorageUnavailableError(StepStreakException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORAGE_UNAVAILABLE"

    def __init__(self, reason: str):
        super().__init__(
            message="Storage is unavailable; nothing was saved. Retry the request.",
            details={"reason": reason},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def stepstreak_exception_handler(
    request: Request, exc: StepStreakException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append(ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"] if loc != "body"),
            message=error["msg"],
            type=error["type"],
        ).model_dump())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
