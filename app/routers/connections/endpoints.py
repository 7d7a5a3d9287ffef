import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.common import get_current_user
from app.dependencies import get_connection_reconciler, get_memory_service
from app.exceptions import ConnectionFlowError
from app.routers.errors import to_http_exception
from app.schemas.connections import (
    CompletePendingScanRequest,
    ConnectionHistoryEntry,
    ConnectionResultResponse,
    ConnectionStatusResponse,
)
from app.services.connection_memory_service import ConnectionMemoryService
from app.services.connection_reconciler import ConnectionReconciler

logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/connections", tags=["connections"])

@router.get("", response_model=List[ConnectionHistoryEntry])
async def list_connections_api(
    connected_only: bool = Query(True),
    memories: ConnectionMemoryService = Depends(get_memory_service),
    current_user: dict = Depends(get_current_user)
):
    """
    Connection history of the current user with first-meeting context.

    Args:
        connected_only: Hide memories still waiting for their counterpart
    """
    return await memories.list_for_user(current_user["uid"], connected_only=connected_only)

@router.get("/status/{user_id}", response_model=ConnectionStatusResponse)
async def connection_status_api(
    user_id: str,
    memories: ConnectionMemoryService = Depends(get_memory_service),
    current_user: dict = Depends(get_current_user)
):
    memory = await memories.get_between(current_user["uid"], user_id)
    if memory is None:
        return ConnectionStatusResponse(is_connected=False)
    return ConnectionStatusResponse(
        is_connected=True,
        first_meeting_data=memory.first_meeting_data,
        connected_at=memory.registration_completed_at or memory.created_at
    )

@router.post("/complete-scan", response_model=ConnectionResultResponse)
async def complete_pending_scan_api(
    request: CompletePendingScanRequest,
    reconciler: ConnectionReconciler = Depends(get_connection_reconciler),
    current_user: dict = Depends(get_current_user)
):
    """
    Finish a scan made while signed out, using the pending token it returned.

    Raises:
        HTTPException: 400 for a bad token, 404 if the pending connection is gone
    """
    try:
        result = await reconciler.complete_pending_scan(request.pending_token, current_user["uid"])
    except (ConnectionFlowError, ValueError) as e:
        raise to_http_exception(e)

    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pending connection not found")
    return ConnectionResultResponse(
        success=True,
        message="Connection request sent",
        connection_request_id=result.id
    )
