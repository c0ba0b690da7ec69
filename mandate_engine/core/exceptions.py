"""Application-level exceptions and FastAPI exception handlers."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        super().__init__(message)


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: str | None = None):
        msg = f"{entity} not found" if not entity_id else f"{entity} '{entity_id}' not found"
        super().__init__(msg, status_code=404, code="NOT_FOUND")


class InvalidStateTransitionError(AppException):
    """The requested action is not an edge from the mandate's current status."""

    def __init__(self, action: str, current_status: str):
        self.action = action
        self.current_status = current_status
        super().__init__(
            f"Cannot {action} a mandate that is {current_status}",
            status_code=409,
            code="INVALID_STATE_TRANSITION",
            details={"action": action, "currentStatus": current_status},
        )


class UnauthorizedActorError(AppException):
    def __init__(self, message: str = "Actor is not allowed to perform this action"):
        super().__init__(message, status_code=403, code="UNAUTHORIZED_ACTOR")


class ValidationError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=422, code="VALIDATION_ERROR")


class PartialBatchFailureError(AppException):
    """Raised when any property of a batch fails; nothing from the batch is persisted."""

    def __init__(self, failed_property_ids: list[str], reasons: dict[str, str] | None = None):
        self.failed_property_ids = failed_property_ids
        self.reasons = reasons or {}
        super().__init__(
            f"Mandate batch rejected for {len(failed_property_ids)} propert"
            f"{'y' if len(failed_property_ids) == 1 else 'ies'}: "
            + ", ".join(failed_property_ids),
            status_code=422,
            code="PARTIAL_BATCH_FAILURE",
            details={"failedPropertyIds": failed_property_ids, "reasons": self.reasons},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_body(code: str, message: str, details: dict[str, Any] | None = None) -> dict:
    body: dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = details
    return {"error": body}


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, exc.details),
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=_error_body("NOT_FOUND", "Resource not found"),
        )

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", "An unexpected error occurred"),
        )
