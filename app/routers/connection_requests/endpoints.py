import logging
from typing import List
from fastapi import APIRouter, Depends
from app.common import get_current_user
from app.dependencies import get_request_manager
from app.exceptions import ConnectionFlowError
from app.routers.errors import to_http_exception
from app.schemas.connections import ApproveConnectionRequest, ConnectionRequestResponse
from app.schemas.contacts import ContactResponse
from app.services.connection_request_service import ConnectionRequestManager

logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/connection-requests", tags=["connection-requests"])

@router.get("/pending", response_model=List[ConnectionRequestResponse])
async def list_pending_requests_api(
    requests: ConnectionRequestManager = Depends(get_request_manager),
    current_user: dict = Depends(get_current_user)
):
    return await requests.list_pending(current_user["uid"])

@router.post("/{request_id}/approve", response_model=ContactResponse)
async def approve_request_api(
    request_id: str,
    request: ApproveConnectionRequest,
    requests: ConnectionRequestManager = Depends(get_request_manager),
    current_user: dict = Depends(get_current_user)
):
    """
    Approve a connection request addressed to the current user.

    Args:
        request_id: Id of the pending request
        request: Meeting details, tags, selected links and tier for the new contact

    Returns:
        ContactResponse: The contact created from the requester's profile

    Raises:
        HTTPException: 404 unknown request, 409 already declined, 400 invalid tier
    """
    try:
        return await requests.approve(
            request_id,
            current_user["uid"],
            location=request.location.model_dump(exclude_none=True) if request.location else None,
            tags=request.tags,
            shared_links=request.shared_links,
            mutual_connections=request.mutual_connections,
            note=request.note,
            badges=request.badges,
            tier=request.tier
        )
    except (ConnectionFlowError, ValueError) as e:
        raise to_http_exception(e)

@router.post("/{request_id}/decline", response_model=ConnectionRequestResponse)
async def decline_request_api(
    request_id: str,
    requests: ConnectionRequestManager = Depends(get_request_manager),
    current_user: dict = Depends(get_current_user)
):
    try:
        return await requests.decline(request_id, current_user["uid"])
    except (ConnectionFlowError, ValueError) as e:
        raise to_http_exception(e)
