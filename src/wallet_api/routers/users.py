from fastapi import APIRouter, Depends

from wallet_api.dependencies import get_current_user, get_user_service
from wallet_api.schemas import ApiResponse
from wallet_api.services.identity import VerifiedCredential
from wallet_api.services.user_service import UserService

router = APIRouter()


@router.get("/profile", response_model=ApiResponse, response_model_exclude_none=True)
async def get_profile(
    user: VerifiedCredential = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
) -> ApiResponse:
    """The caller's user record, including `documents` and `totalSize`."""
    return ApiResponse(data={"uid": user.subject, **users.require_user(user.subject)})
