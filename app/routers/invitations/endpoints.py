import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.common import get_current_user
from app.dependencies import get_connection_reconciler, get_invitation_service
from app.exceptions import ConnectionFlowError
from app.routers.errors import to_http_exception
from app.schemas.connections import ConnectionResultResponse
from app.schemas.invitation import CompleteInvitationRequest, EmailInvitationResponse, InvitationValidationResponse
from app.services.connection_reconciler import ConnectionReconciler
from app.services.invitation_service import InvitationService

logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/invitations", tags=["invitations"])

INVALID_INVITATION = "This invitation is invalid, expired or has already been used."

@router.get("/validate", response_model=InvitationValidationResponse)
async def validate_invitation_api(
    invitation: str = Query(..., description="Invitation id from the registration link"),
    code: str = Query(..., description="Invitation code from the registration link"),
    invitations: InvitationService = Depends(get_invitation_service)
):
    """
    Check a registration link before showing the sign-up form.

    Returns:
        InvitationValidationResponse: valid=False with a message for any bad link
    """
    row = await invitations.validate_invitation_code(invitation, code)
    if row is None:
        return InvitationValidationResponse(valid=False, message=INVALID_INVITATION)
    return InvitationValidationResponse(
        valid=True,
        invitation_id=row.invitation_id,
        sender_user_id=row.sender_user_id,
        recipient_email=row.recipient_email,
        expires_at=row.expires_at
    )

@router.post("/complete", response_model=ConnectionResultResponse)
async def complete_invitation_api(
    request: CompleteInvitationRequest,
    reconciler: ConnectionReconciler = Depends(get_connection_reconciler),
    current_user: dict = Depends(get_current_user)
):
    """
    Connect the newly registered user with whoever invited them.

    Raises:
        HTTPException: 404 if the invitation is invalid, expired, used or for another email
    """
    try:
        result = await reconciler.complete_invitation(request.invitation_id, request.code, current_user["uid"])
    except (ConnectionFlowError, ValueError) as e:
        raise to_http_exception(e)

    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INVALID_INVITATION)
    return ConnectionResultResponse(
        success=True,
        message="Connection request sent",
        connection_request_id=result.id
    )

@router.get("/pending", response_model=List[EmailInvitationResponse])
async def list_pending_invitations_api(
    invitations: InvitationService = Depends(get_invitation_service),
    current_user: dict = Depends(get_current_user)
):
    return await invitations.list_pending(current_user["uid"])
