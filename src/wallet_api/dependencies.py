import logging
import re
from typing import Optional

from fastapi import Depends, Request

from wallet_api.backend import Backend
from wallet_api.errors import UnauthenticatedError
from wallet_api.services.document_service import DocumentService, get_document_service
from wallet_api.services.identity import VerifiedCredential
from wallet_api.services.user_service import UserService

logger = logging.getLogger(__name__)

_BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def get_backend(request: Request) -> Backend:
    """Backend handle built once by create_app."""
    return request.app.state.backend


def get_document_service_dep(backend: Backend = Depends(get_backend)) -> DocumentService:
    return get_document_service(backend)


def get_user_service(backend: Backend = Depends(get_backend)) -> UserService:
    return UserService(backend.db)


def parse_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an Authorization header, checking it is JWT-shaped."""
    if not authorization:
        raise UnauthenticatedError(
            "Authorization token required. Please provide a Bearer token.",
            reason=UnauthenticatedError.MISSING,
        )
    match = _BEARER_RE.match(authorization)
    if not match:
        raise UnauthenticatedError(
            "Invalid authorization format. Expected: Bearer <token>",
            reason=UnauthenticatedError.MALFORMED,
        )
    token = match.group(1).strip()
    if len(token.split(".")) != 3:
        raise UnauthenticatedError(
            "Invalid token format. Token must be a valid JWT.",
            reason=UnauthenticatedError.MALFORMED,
        )
    return token


def get_current_user(request: Request, backend: Backend = Depends(get_backend)) -> VerifiedCredential:
    token = parse_bearer_token(request.headers.get("Authorization"))
    return backend.identity.verify_credential(token)


def get_optional_user(request: Request, backend: Backend = Depends(get_backend)) -> Optional[VerifiedCredential]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    try:
        return get_current_user(request, backend)
    except UnauthenticatedError as e:
        logger.debug(f"Optional auth failed: {e.message}")
        return None
