import json
import logging
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notifications import Notification
from app.schemas.notifications import NotificationStatusUpdate, NotificationType
from app.services.user_service import get_user_by_id, profile_summary
from app.utils.id_generator import IdGenerator
from app.utils.time_utils import Clock

# Configure logging
logger = logging.getLogger(__name__)

NOTIFICATION_TEXT = {
    NotificationType.INVITATION_ACCEPTED: (
        "Invitation accepted",
        "{name} joined from your invitation. Review their connection request."
    ),
    NotificationType.QR_SCAN_CONNECTION: (
        "New connection from your QR code",
        "{name} scanned your QR code and wants to connect."
    ),
}

async def get_notifications(db: AsyncSession, current_user: dict):
    """
    Retrieve unread notifications for the current user.

    Args:
        db (AsyncSession): Database session dependency
        current_user (dict): Current authenticated user information

    Returns:
        List[Notification]: Unread notifications for the user, newest first
    """
    result = await db.execute(
        select(Notification).where(
            Notification.user_id == current_user['uid'],
            Notification.is_read == False
        ).order_by(Notification.created_at.desc())
    )
    return result.scalars().all()


async def update_notification_status(request: NotificationStatusUpdate, db: AsyncSession, current_user: dict):
    """
    Mark notifications as read or unread.

    Args:
        request (NotificationStatusUpdate): Ids to update and the new read flag
        db (AsyncSession): Database session dependency
        current_user (dict): Current authenticated user information

    Returns:
        dict: Response indicating the status of the update operation
    """
    stmt = (
        update(Notification)
        .where(Notification.user_id == current_user['uid'], Notification.id.in_(request.ids))
        .values(is_read=request.is_read)
        .execution_options(synchronize_session="fetch")
    )
    await db.execute(stmt)
    await db.commit()
    return {"updated_ids": request.ids, "is_read": request.is_read}


class NotificationDispatcher:
    """Tells the sharer when someone they met has connected."""

    def __init__(self, db: AsyncSession, clock: Clock, ids: IdGenerator):
        self.db = db
        self.clock = clock
        self.ids = ids

    async def dispatch(
        self,
        recipient_user_id: str,
        connected_user_id: str,
        kind: NotificationType,
        metadata: Optional[Dict[str, Any]] = None,
        reload: Sequence[Any] = ()
    ) -> Optional[Notification]:
        """
        Write a notification for ``recipient_user_id`` about ``connected_user_id``.

        The connection is already committed when this runs, so a failure
        here is logged and swallowed; it never undoes the connection.
        Rows listed in ``reload`` are refreshed after a failed write, since
        the rollback expires everything loaded in the session.

        Returns:
            Optional[Notification]: The stored notification, or None on failure
        """
        try:
            counterpart = await get_user_by_id(self.db, connected_user_id)
            summary = profile_summary(counterpart).model_dump() if counterpart else {"id": connected_user_id}
            name = summary.get("name") or "Someone"
            title, template = NOTIFICATION_TEXT[kind]

            notification = Notification(
                id=self.ids.row_id(),
                user_id=recipient_user_id,
                type=kind.value,
                title=title,
                message=template.format(name=name),
                data=json.dumps({"connected_user": summary, **(metadata or {})}, default=str),
                is_read=False,
                created_at=self.clock.now()
            )
            self.db.add(notification)
            await self.db.commit()
            logger.info(f"Notified {recipient_user_id} ({kind.value}) about {connected_user_id}")
            return notification
        except Exception:
            await self.db.rollback()
            logger.exception(f"Failed to notify {recipient_user_id} about {connected_user_id}")
            for row in reload:
                await self.db.refresh(row)
            return None
