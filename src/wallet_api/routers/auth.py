import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Request,
    UploadFile,
    status,
)

from wallet_api.backend import Backend
from wallet_api.dependencies import (
    get_backend,
    get_current_user,
    get_document_service_dep,
    get_user_service,
    parse_bearer_token,
)
from wallet_api.errors import InvalidRequestError, NotFoundError, UnauthenticatedError
from wallet_api.schemas import (
    ApiResponse,
    LoginRequest,
    LogoutRequest,
    RegisterRequest,
    UpdateProfileRequest,
    VerifyTokenRequest,
)
from wallet_api.services.document_service import DocumentService
from wallet_api.services.identity import VerifiedCredential
from wallet_api.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()

# returned by update-profile, in addition to uid
PROFILE_RESPONSE_FIELDS = (
    "email", "emailVerified", "masterPin", "QR", "name", "totalSize",
    "displayName", "mobileNumber", "updatedAt", "createdAt",
)


@router.post(
    "/register",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    body: RegisterRequest,
    backend: Backend = Depends(get_backend),
    users: UserService = Depends(get_user_service),
) -> ApiResponse:
    """Create an account and its user record (empty document index, zero usage)."""
    if not body.email or not body.password:
        raise InvalidRequestError("Email and password are required")

    account = backend.identity.register(body.email, body.password, body.displayName)
    users.create_user(
        account,
        mobile_number=body.mobileNumber,
        master_pin=body.masterPin,
        qr=body.QR,
        extra=body.model_extra,
    )
    token = backend.identity.issue_session_token(account["uid"])
    return ApiResponse(
        message="User registered successfully",
        data={
            "uid": account["uid"],
            "email": account["email"],
            "displayName": account["displayName"],
            "token": token,
        },
    )


@router.post("/login", response_model=ApiResponse, response_model_exclude_none=True)
async def login(
    body: LoginRequest,
    backend: Backend = Depends(get_backend),
    users: UserService = Depends(get_user_service),
) -> ApiResponse:
    if not body.email or not body.password:
        raise InvalidRequestError("Email and password are required")

    account = backend.identity.authenticate(body.email, body.password)
    token = backend.identity.issue_session_token(account["uid"])
    users.record_login(account["uid"])
    user_data = users.get_user(account["uid"]) or {}
    return ApiResponse(
        message="Login successful",
        data={
            "uid": account["uid"],
            "email": account["email"],
            "displayName": account.get("displayName"),
            "emailVerified": account.get("emailVerified", False),
            "token": token,
            **user_data,
        },
    )


@router.post("/verify-token", response_model=ApiResponse, response_model_exclude_none=True)
async def verify_token(
    body: VerifyTokenRequest,
    backend: Backend = Depends(get_backend),
    users: UserService = Depends(get_user_service),
) -> ApiResponse:
    if not body.idToken:
        raise InvalidRequestError("ID token is required")

    credential = backend.identity.verify_credential(body.idToken)
    user_data = users.get_user(credential.subject) or {}
    return ApiResponse(data={"uid": credential.subject, "email": credential.email, **user_data})


@router.post("/logout", response_model=ApiResponse, response_model_exclude_none=True)
async def logout(
    body: LogoutRequest,
    backend: Backend = Depends(get_backend),
    users: UserService = Depends(get_user_service),
) -> ApiResponse:
    """Revoke every session of the user identified by `uid` or `idToken`."""
    if not body.uid and not body.idToken:
        raise InvalidRequestError("User ID or ID token is required")

    uid = body.uid
    if not uid:
        try:
            uid = backend.identity.verify_credential(body.idToken).subject
        except UnauthenticatedError as e:
            raise UnauthenticatedError("Invalid token", reason=e.reason) from e

    if not backend.identity.revoke_all_sessions(uid):
        raise NotFoundError("User not found")
    users.record_logout(uid)
    return ApiResponse(message="Logout successful. All tokens have been revoked.")


@router.get("/me", response_model=ApiResponse, response_model_exclude_none=True)
async def me(
    request: Request,
    backend: Backend = Depends(get_backend),
    users: UserService = Depends(get_user_service),
) -> ApiResponse:
    token = parse_bearer_token(request.headers.get("Authorization"))
    credential = backend.identity.verify_credential(token)
    account = backend.identity.get_account(credential.subject) or {}
    user_data = users.get_user(credential.subject) or {}
    return ApiResponse(
        data={
            "uid": credential.subject,
            "email": credential.email,
            "emailVerified": account.get("emailVerified", False),
            **user_data,
        }
    )


@router.put("/update-profile", response_model=ApiResponse, response_model_exclude_none=True)
async def update_profile(
    body: UpdateProfileRequest,
    user: VerifiedCredential = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
    users: UserService = Depends(get_user_service),
) -> ApiResponse:
    updated = users.update_profile(user.subject, body.model_dump(exclude_none=True))
    if body.displayName is not None:
        backend.identity.update_display_name(user.subject, body.displayName)
    data = {"uid": user.subject}
    data.update({field: updated.get(field) for field in PROFILE_RESPONSE_FIELDS})
    return ApiResponse(message="Profile updated successfully", data=data)


@router.post("/update-profile-picture", response_model=ApiResponse, response_model_exclude_none=True)
async def update_profile_picture(
    profilePicture: Optional[UploadFile] = File(None, description="JPEG, PNG or WebP image, at most 5 MiB"),
    user: VerifiedCredential = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service_dep),
) -> ApiResponse:
    """Replace the caller's profile picture; the new size counts against the storage quota."""
    if profilePicture is None:
        raise InvalidRequestError("No image file uploaded")

    content = await profilePicture.read()
    data = service.replace_profile_picture(
        user_id=user.subject,
        file_name=profilePicture.filename or "profile.jpg",
        content=content,
        mime_type=profilePicture.content_type or "application/octet-stream",
    )
    return ApiResponse(message="Profile picture updated successfully", data=data)
