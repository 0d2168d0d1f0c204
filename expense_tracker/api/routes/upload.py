"""Receipt upload signing."""

from fastapi import APIRouter

from expense_tracker.api.dependencies import ServiceDep, UserDep
from expense_tracker.models.expense import UploadGrant, UploadSignRequest


router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("/sign", response_model=UploadGrant, summary="Get a presigned upload URL")
async def sign_upload(body: UploadSignRequest, service: ServiceDep, user: UserDep) -> UploadGrant:
    """
    Returns a short-lived URL the client PUTs the file to, and the key to
    attach to an expense afterwards. Requires a session.
    """
    return await service.sign_upload(body, user)
