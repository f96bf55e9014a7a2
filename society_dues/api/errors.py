"""API error handling and response helpers."""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from society_dues.errors import (
    AuthRejectedError,
    DocumentReadError,
    DocumentWriteError,
    ExpenseNotFoundError,
    InvalidPeriodError,
    NotSignedInError,
    PermissionDeniedError,
    SocietyError,
    UnitNotFoundError,
)

logger = logging.getLogger(__name__)

# (error code, HTTP status) per domain error; first match in MRO order wins
ERROR_CODES: dict[type[SocietyError], tuple[str, int]] = {
    AuthRejectedError: ("auth_rejected", status.HTTP_401_UNAUTHORIZED),
    NotSignedInError: ("not_signed_in", status.HTTP_401_UNAUTHORIZED),
    PermissionDeniedError: ("permission_denied", status.HTTP_403_FORBIDDEN),
    UnitNotFoundError: ("unit_not_found", status.HTTP_404_NOT_FOUND),
    ExpenseNotFoundError: ("expense_not_found", status.HTTP_404_NOT_FOUND),
    InvalidPeriodError: ("invalid_period", status.HTTP_422_UNPROCESSABLE_ENTITY),
    DocumentWriteError: ("document_write_failed", status.HTTP_502_BAD_GATEWAY),
    DocumentReadError: ("document_read_failed", status.HTTP_503_SERVICE_UNAVAILABLE),
}


def classify(error: SocietyError) -> tuple[str, int]:
    """Map a domain error to its (code, HTTP status)."""
    for error_type in type(error).__mro__:
        if error_type in ERROR_CODES:
            return ERROR_CODES[error_type]
    return "society_error", status.HTTP_400_BAD_REQUEST


def error_response(code: str, message: str) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": code,
            "message": message,
        }
    }


async def society_error_handler(request: Request, exc: SocietyError) -> JSONResponse:
    code, http_status = classify(exc)
    if http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, code, exc)
    return JSONResponse(status_code=http_status, content=error_response(code, str(exc)))


def register_error_handlers(app: FastAPI) -> None:
    """Install the SocietyError handler on an app."""
    app.add_exception_handler(SocietyError, society_error_handler)


__all__ = [
    "ERROR_CODES",
    "classify",
    "error_response",
    "society_error_handler",
    "register_error_handlers",
]
