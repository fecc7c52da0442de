"""
Application exceptions for the payment layer and the JSON error envelope.

Every error carries an HTTP status so routers can surface it unchanged:
- ConfigurationError: channel misconfigured (missing key, unknown adapter)
- VerificationError: bad webhook signature or payload
- UpstreamError: provider API or exchange-rate source failure
- DomainError: the request itself cannot be served (amount too low ...)
"""
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from .logging_config import get_logger

logger = get_logger(__name__)


class ApiException(Exception):
    """Base exception rendered as ``{status, message, data, error}``."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(ApiException):
    status_code = 500


class VerificationError(ApiException):
    status_code = 400


class UpstreamError(ApiException):
    status_code = 500


class DomainError(ApiException):
    status_code = 422


class AmountTooLowError(DomainError):
    def __init__(self, amount: int, minimum: int, currency: str):
        super().__init__(
            f"Amount {amount} {currency.upper()} is below the provider minimum of {minimum}"
        )
        self.amount = amount
        self.minimum = minimum
        self.currency = currency


def error_envelope(message: str, error: Optional[str] = None, data: Any = None) -> Dict[str, Any]:
    return {
        "status": "fail",
        "message": message,
        "data": data,
        "error": error,
    }


def fail(status_code: int, message: str) -> JSONResponse:
    """Plain failure response without an exception behind it."""
    return JSONResponse(status_code=status_code, content=error_envelope(message))


async def api_exception_handler(request: Request, exc: ApiException) -> JSONResponse:
    logger.warning(
        "api_exception",
        path=request.url.path,
        status_code=exc.status_code,
        error=type(exc).__name__,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.message, error=type(exc).__name__),
    )


def register_error_handlers(app):
    app.add_exception_handler(ApiException, api_exception_handler)
    return app
