####################################
# --- Request/response schemas --- #
####################################

from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


class ApiResponse(BaseModel):
    """Envelope shared by every endpoint: `{success, data?, message?, count?}`."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None
    count: Optional[int] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Document uploaded successfully",
                "data": {
                    "documentId": "3f6c1c4e9d2a4b7f8e0a1b2c3d4e5f60",
                    "fileName": "passport.pdf",
                    "fileSize": 2097152,
                    "downloadURL": "https://wallet-documents.s3.amazonaws.com/...",
                    "documentType": "application/pdf",
                    "uploadedAt": "2026-10-18T09:30:00+00:00",
                },
            }
        }
    )


def _stringify(value: Any) -> Any:
    # PINs and phone numbers arrive as JSON numbers from some clients
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


#################
# --- Auth --- #
#################

class RegisterRequest(BaseModel):
    """Request body for `POST /api/auth/register`. Unknown keys are kept on the user record."""
    email: Optional[str] = None
    password: Optional[str] = None
    displayName: Optional[str] = None
    mobileNumber: Optional[str] = None
    masterPin: Optional[str] = None
    QR: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("mobileNumber", "masterPin", mode="before")
    @classmethod
    def stringify_numbers(cls, value: Any) -> Any:
        return _stringify(value)


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class VerifyTokenRequest(BaseModel):
    idToken: Optional[str] = None


class LogoutRequest(BaseModel):
    uid: Optional[str] = None
    idToken: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    """Only these four fields may be changed through `PUT /api/auth/update-profile`."""
    displayName: Optional[str] = None
    mobileNumber: Optional[str] = None
    masterPin: Optional[str] = None
    QR: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("mobileNumber", "masterPin", mode="before")
    @classmethod
    def stringify_numbers(cls, value: Any) -> Any:
        return _stringify(value)


#####################
# --- Documents --- #
#####################

class MyDocumentsRequest(BaseModel):
    userId: Optional[str] = None


class DocumentsByPinRequest(BaseModel):
    userId: Optional[str] = None
    pin: Optional[Union[str, int]] = Field(None, description="The user's master PIN")


class ToggleVisibilityRequest(BaseModel):
    # validated by hand so "true"/1 are rejected instead of coerced
    isDocShow: Any = None
