"""
Custom exception hierarchy for the routing service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Storage faults (driver errors, unclassified constraint violations) are
NOT wrapped here; they propagate as-is and surface as INTERNAL_ERROR.
"""
from __future__ import annotations

from typing import Any

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class RoutingServiceError(Exception):
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


class InvalidInputError(RoutingServiceError):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_INPUT"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            details={"field": field} if field else {},
        )


class DuplicateRuleIdError(RoutingServiceError):
    http_status = status.HTTP_409_CONFLICT
    code = "DUPLICATE_RULE_ID"

    def __init__(self, rule_id: str):
        super().__init__(
            message=f"Rule with id '{rule_id}' already exists.",
            details={"rule_id": rule_id},
        )


class RuleNotFoundError(RoutingServiceError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        super().__init__(
            message=f"Rule '{rule_id}' not found.",
            details={"rule_id": rule_id},
        )


class NoFieldsProvidedError(RoutingServiceError):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "NO_FIELDS_PROVIDED"

    def __init__(self):
        super().__init__(
            message="Update must set at least one of: target, expires_at.",
            details={"allowed_fields": ["target", "expires_at"]},
        )


class NoMatchingRuleError(RoutingServiceError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NO_MATCHING_RULE"

    def __init__(self, domain: str):
        super().__init__(
            message=f"No active rule matches the request for domain '{domain}'.",
            details={"domain": domain},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def routing_exception_handler(
    request: Request, exc: RoutingServiceError
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
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
