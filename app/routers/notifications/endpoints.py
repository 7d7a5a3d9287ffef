import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.init_db import get_db
from app.common import get_current_user
from app.schemas.notifications import NotificationResponse, NotificationStatusUpdate
from app.services.notification_service import get_notifications, update_notification_status

logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/notifications", tags=["notifications"])

@router.get("/list", response_model=List[NotificationResponse])
async def get_notifications_api(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """
    Retrieve unread notifications for the current user.

    Returns:
        List[NotificationResponse]: Unread notifications, newest first
    """
    return await get_notifications(db, current_user)


@router.post("/update_status", response_model=dict)
async def update_notification_status_api(
    request: NotificationStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """
    Mark notifications as read or unread.

    Args:
        request (NotificationStatusUpdate): Ids to update and the new read flag

    Raises:
        HTTPException: 400 if the request is invalid
    """
    try:
        return await update_notification_status(request, db, current_user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
