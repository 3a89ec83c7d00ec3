import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Path,
    UploadFile,
    status,
)

from wallet_api.dependencies import (
    get_current_user,
    get_document_service_dep,
    get_optional_user,
)
from wallet_api.errors import InvalidRequestError
from wallet_api.schemas import (
    ApiResponse,
    DocumentsByPinRequest,
    MyDocumentsRequest,
    ToggleVisibilityRequest,
)
from wallet_api.services.document_service import DocumentService
from wallet_api.services.identity import VerifiedCredential

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/upload",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    document: Optional[UploadFile] = File(None, description="The file to store"),
    description: Optional[str] = Form(None),
    user: VerifiedCredential = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service_dep),
) -> ApiResponse:
    """
    Upload a document for the authenticated user.

    The file must be an allow-listed type and at most 10 MiB, and must fit
    in the user's remaining storage quota (413 otherwise).
    """
    if document is None:
        raise InvalidRequestError("No file uploaded")

    content = await document.read()
    data = service.upload_document(
        user_id=user.subject,
        file_name=document.filename or "document",
        content=content,
        mime_type=document.content_type or "application/octet-stream",
        description=description,
    )
    return ApiResponse(message="Document uploaded successfully", data=data)


@router.post("/my-documents", response_model=ApiResponse, response_model_exclude_none=True)
async def my_documents(
    body: MyDocumentsRequest,
    caller: Optional[VerifiedCredential] = Depends(get_optional_user),
    service: DocumentService = Depends(get_document_service_dep),
) -> ApiResponse:
    """List a user's documents, newest first, with fresh download URLs."""
    user_id = body.userId or (caller.subject if caller else None)
    if not user_id:
        raise InvalidRequestError("userId is required")

    documents = service.list_user_documents(user_id)
    return ApiResponse(data=documents, count=len(documents))


@router.post("/get-documents-by-pin", response_model=ApiResponse, response_model_exclude_none=True)
async def get_documents_by_pin(
    body: DocumentsByPinRequest,
    service: DocumentService = Depends(get_document_service_dep),
) -> ApiResponse:
    """Visible documents of a user, gated by their master PIN."""
    if not body.userId or body.pin in (None, ""):
        raise InvalidRequestError("UserId and Pin are required")

    documents = service.get_documents_by_pin(body.userId, str(body.pin))
    return ApiResponse(
        message="Documents retrieved successfully",
        data=documents,
        count=len(documents),
    )


@router.get("/{document_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def get_document(
    document_id: str = Path(..., description="The document ID"),
    service: DocumentService = Depends(get_document_service_dep),
) -> ApiResponse:
    return ApiResponse(data=service.get_document(document_id))


@router.get("/{document_id}/download-url", response_model=ApiResponse, response_model_exclude_none=True)
async def get_download_url(
    document_id: str = Path(..., description="The document ID"),
    user: VerifiedCredential = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service_dep),
) -> ApiResponse:
    """Issue a fresh read URL for one of the caller's documents."""
    return ApiResponse(data=service.get_download_url(user.subject, document_id))


@router.delete("/{document_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def delete_document(
    document_id: str = Path(..., description="The document ID"),
    user: VerifiedCredential = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service_dep),
) -> ApiResponse:
    service.delete_document(user.subject, document_id)
    return ApiResponse(message="Document deleted successfully")


@router.put(
    "/{document_id}/toggle-visibility",
    response_model=ApiResponse,
    response_model_exclude_none=True,
)
async def toggle_visibility(
    body: ToggleVisibilityRequest,
    document_id: str = Path(..., description="The document ID"),
    user: VerifiedCredential = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service_dep),
) -> ApiResponse:
    """Show or hide a document on the PIN-gated listing."""
    if body.isDocShow is None:
        raise InvalidRequestError("isDocShow is required (true or false)")
    if not isinstance(body.isDocShow, bool):
        raise InvalidRequestError("isDocShow must be a boolean value (true or false)")

    data = service.set_visibility(user.subject, document_id, body.isDocShow)
    return ApiResponse(
        message=f"Document {'shown' if body.isDocShow else 'hidden'} successfully",
        data=data,
    )
