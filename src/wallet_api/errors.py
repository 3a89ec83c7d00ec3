"""Exception taxonomy and the FastAPI handlers that render it."""

import logging
from typing import Any, Dict, Optional

import pydantic
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class WalletApiError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: Optional[str] = None

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "message": self.message}
        if self.error_code:
            payload["error"] = self.error_code
        if self.data is not None:
            payload["data"] = self.data
        return payload


class UnauthenticatedError(WalletApiError):
    status_code = status.HTTP_401_UNAUTHORIZED

    MISSING = "missing"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    REVOKED = "revoked"
    INVALID_CREDENTIALS = "invalid_credentials"

    def __init__(self, message: str, reason: str = MALFORMED):
        super().__init__(message)
        self.reason = reason


class ForbiddenError(WalletApiError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(WalletApiError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(WalletApiError):
    status_code = status.HTTP_409_CONFLICT


class InvalidRequestError(WalletApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class FileTooLargeError(InvalidRequestError):
    """A single file exceeds its hard per-file cap."""

    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    error_code = "FILE_TOO_LARGE"


class QuotaExceededError(WalletApiError):
    """The cumulative per-user quota would be exceeded."""

    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    error_code = "STORAGE_QUOTA_EXCEEDED"

    def __init__(self, message: str, decision: Any, data: Dict[str, Any]):
        super().__init__(message, data=data)
        self.decision = decision


class UpstreamFailureError(WalletApiError):
    """The document store or object store failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _expose_messages(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return settings is None or not settings.is_production


async def handle_wallet_api_errors(request: Request, exc: WalletApiError) -> JSONResponse:
    """Render a WalletApiError as the standard response envelope."""
    payload = exc.to_payload()
    if isinstance(exc, UpstreamFailureError):
        logger.error(f"Upstream failure on {request.method} {request.url.path}: {exc.message}")
        if not _expose_messages(request):
            payload["message"] = "Something went wrong"
    return JSONResponse(status_code=exc.status_code, content=payload)


async def handle_pydantic_validation_errors(
    request: Request, exc: pydantic.ValidationError | RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as 400s."""
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": errors[0]["msg"] if errors else "Invalid request",
            "data": [
                {"loc": list(error.get("loc", ())), "msg": error["msg"]}
                for error in errors
            ],
        },
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception as e:  # pylint: disable=broad-except
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = str(e) if _expose_messages(request) else "Something went wrong"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Internal server error", "message": message},
        )
