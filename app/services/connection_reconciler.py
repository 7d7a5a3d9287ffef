import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ConnectionCode, ConnectionRequest
from app.schemas.connections import MeetingMethod
from app.schemas.notifications import NotificationType
from app.services.connection_memory_service import ConnectionMemoryService
from app.services.connection_request_service import ConnectionRequestManager
from app.services.invitation_service import InvitationService
from app.services.notification_service import NotificationDispatcher
from app.services.user_service import get_user_by_id
from app.utils.pending_token import PendingTokenSigner

# Configure logging
logger = logging.getLogger(__name__)

class ConnectionReconciler:
    """
    Finishes connections started before the viewer had an account.

    Both entry points commit their state changes once, then notify the
    sharer. The notification is outside the transaction and cannot undo it.
    """

    def __init__(
        self,
        db: AsyncSession,
        invitations: InvitationService,
        memories: ConnectionMemoryService,
        requests: ConnectionRequestManager,
        notifier: NotificationDispatcher,
        signer: PendingTokenSigner
    ):
        self.db = db
        self.invitations = invitations
        self.memories = memories
        self.requests = requests
        self.notifier = notifier
        self.signer = signer

    async def _code_id(self, code: Optional[str]) -> Optional[str]:
        if not code:
            return None
        result = await self.db.execute(select(ConnectionCode.id).where(ConnectionCode.code == code))
        return result.scalar_one_or_none()

    async def complete_invitation(
        self,
        invitation_id: str,
        connection_code: str,
        new_user_id: str
    ) -> Optional[ConnectionRequest]:
        """
        Connect a newly registered user with the person who invited them.

        The invitation becomes ``registered``, the correlated memory becomes
        ``connected`` and a pending request from the new user to the sender
        is created, all in one commit.

        Args:
            invitation_id: Invitation id from the registration link
            connection_code: Invitation code from the registration link
            new_user_id: The user who just signed up

        Returns:
            Optional[ConnectionRequest]: The pending request, or None when the
            invitation is invalid, expired, used, or addressed to another email
        """
        invitation = await self.invitations.validate_invitation_code(invitation_id, connection_code)
        if invitation is None:
            return None

        user = await get_user_by_id(self.db, new_user_id)
        if user is None:
            logger.warning(f"User {new_user_id} not found while completing invitation {invitation_id}")
            return None
        if (user.email or "").strip().lower() != invitation.recipient_email.lower():
            logger.warning(f"Invitation {invitation_id} was addressed to a different email than user {new_user_id}")
            return None
        if new_user_id == invitation.sender_user_id:
            return None

        snapshot = invitation.scan_snapshot or {}
        try:
            self.invitations.mark_registered(invitation, new_user_id)
            memory = await self.memories.resolve(invitation_id, new_user_id, commit=False)
            request = await self.requests.create(
                new_user_id,
                invitation.sender_user_id,
                {
                    "method": MeetingMethod.EMAIL_INVITATION.value,
                    "invitationId": invitation_id,
                    "scanId": snapshot.get("scan_id"),
                    "scanTimestamp": snapshot.get("scanned_at"),
                    "location": snapshot.get("location"),
                    "memoryId": memory.id if memory else None,
                },
                code_id=await self._code_id(snapshot.get("code")),
                commit=False
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception(f"Failed to complete invitation {invitation_id} for user {new_user_id}")
            raise

        logger.info(f"Invitation {invitation_id} completed by {new_user_id}; request {request.id}")
        await self.notifier.dispatch(
            invitation.sender_user_id,
            new_user_id,
            NotificationType.INVITATION_ACCEPTED,
            {"invitationId": invitation_id, "connectionRequestId": request.id},
            reload=(request,)
        )
        return request

    async def complete_pending_scan(self, token: str, user_id: str) -> Optional[ConnectionRequest]:
        """
        Finish a scan made while signed out, now that the viewer is signed in.

        Raises:
            InvalidPendingTokenError: The token is forged, expired or malformed
            ValueError: The owner is trying to connect with themselves

        Returns:
            Optional[ConnectionRequest]: The pending request, or None when the
            memory is gone or was resolved by someone else
        """
        pending = self.signer.verify(token)
        if user_id == pending.owner_user_id:
            raise ValueError("You cannot connect with yourself")

        is_new = await self.requests.find_open(user_id, pending.owner_user_id) is None
        try:
            memory = await self.memories.resolve_by_id(pending.memory_id, user_id, commit=False)
            if memory is None:
                await self.db.rollback()
                return None
            meeting = memory.first_meeting_data or {}
            request = await self.requests.create(
                user_id,
                pending.owner_user_id,
                {
                    "method": MeetingMethod.QR_SCAN.value,
                    "scanId": pending.scan_id,
                    "scanTimestamp": meeting.get("scanTimestamp"),
                    "location": meeting.get("location"),
                    "memoryId": memory.id,
                },
                code_id=await self._code_id(pending.code),
                commit=False
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception(f"Failed to complete pending scan {pending.scan_id} for user {user_id}")
            raise

        if is_new:
            await self.notifier.dispatch(
                pending.owner_user_id,
                user_id,
                NotificationType.QR_SCAN_CONNECTION,
                {"connectionRequestId": request.id, "scanId": pending.scan_id},
                reload=(request,)
            )
        return request
