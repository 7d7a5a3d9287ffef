import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvitationDeliveryError
from app.models import EmailInvitation
from app.schemas.invitation import InvitationStatus
from app.services.email_service import EmailTransport, build_invitation_email, build_sign_in_email
from app.services.rate_limit_service import FailurePolicy, RateLimiter
from app.services.user_service import get_user_by_id
from app.utils.id_generator import IdGenerator
from app.utils.time_utils import Clock, ensure_utc

# Configure logging
logger = logging.getLogger(__name__)

def build_registration_url(origin: str, invitation_id: str, connection_code: str) -> str:
    query = urlencode({"invitation": invitation_id, "code": connection_code})
    return f"{origin.rstrip('/')}/app/register?{query}"

def build_sign_in_url(origin: str, connection_code: str, pending_token: Optional[str] = None) -> str:
    params = {"code": connection_code}
    if pending_token:
        params["pending"] = pending_token
    return f"{origin.rstrip('/')}/app/login?{urlencode(params)}"

class InvitationService:
    """
    Email invitations for viewers who scanned a code without an account.

    Each invitation carries its own token pair (invitation id plus an
    ``invc_`` code). The code lives in a separate namespace from QR
    connection codes, so it can never be replayed as a profile scan.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock,
        ids: IdGenerator,
        transport: EmailTransport,
        origin: str,
        ttl_days: int = 7,
        rate_limiter: Optional[RateLimiter] = None,
        rate_limit_attempts: int = 3,
        rate_limit_window: timedelta = timedelta(hours=1)
    ):
        self.db = db
        self.clock = clock
        self.ids = ids
        self.transport = transport
        self.origin = origin
        self.ttl = timedelta(days=ttl_days)
        self.rate_limiter = rate_limiter
        self.rate_limit_attempts = rate_limit_attempts
        self.rate_limit_window = rate_limit_window

    async def _throttle(self, recipient_email: str) -> None:
        # One window per recipient, shared by invitations and sign-in notices
        if self.rate_limiter:
            await self.rate_limiter.hit(
                f"invitation:{recipient_email}",
                self.rate_limit_attempts,
                self.rate_limit_window,
                FailurePolicy.FAIL_CLOSED
            )

    async def send_invitation(
        self,
        recipient_email: str,
        sender_user_id: str,
        scan_snapshot: Dict[str, Any],
        invitation_id: Optional[str] = None,
        message: Optional[str] = None
    ) -> EmailInvitation:
        """
        Persist an invitation and email it, failure-atomically.

        The row is flushed inside the current transaction, the email is
        handed to the transport, and only then is the transaction committed.
        Anything the caller staged in the same session (the correlated
        connection memory) commits or rolls back together with it.

        Args:
            recipient_email: Address typed by the viewer
            sender_user_id: Owner of the scanned code
            scan_snapshot: The scan that led to the invitation
            invitation_id: Pre-allocated id when the caller already correlated a memory with it
            message: Optional note from the viewer

        Returns:
            EmailInvitation: The committed invitation with status ``sent``

        Raises:
            RateLimitExceededError: Too many invitations to this address recently
            InvitationDeliveryError: The email could not be sent; nothing was stored
        """
        recipient_email = recipient_email.strip().lower()
        await self._throttle(recipient_email)

        sender = await get_user_by_id(self.db, sender_user_id)
        if sender is None:
            raise ValueError("Sender not found")

        now = self.clock.now()
        invitation = EmailInvitation(
            id=self.ids.row_id(),
            invitation_id=invitation_id or self.ids.invitation_id(),
            recipient_email=recipient_email,
            sender_user_id=sender_user_id,
            connection_code=self.ids.invitation_code(),
            scan_snapshot=scan_snapshot,
            email_sent_at=now,
            expires_at=now + self.ttl,
            status=InvitationStatus.SENT,
            created_at=now
        )
        self.db.add(invitation)
        await self.db.flush()

        registration_url = build_registration_url(self.origin, invitation.invitation_id, invitation.connection_code)
        subject, text, html_body = build_invitation_email(sender, scan_snapshot, registration_url, invitation.expires_at, message)

        try:
            await self.transport.send(recipient_email, subject, text, html_body)
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"Invitation email to {recipient_email} failed, invitation discarded")
            raise InvitationDeliveryError("We couldn't send the invitation email. Please try again.") from e

        await self.db.commit()
        logger.info(f"Invitation {invitation.invitation_id} sent to {recipient_email} for sender {sender_user_id}")
        return invitation

    async def send_sign_in_notice(
        self,
        recipient_email: str,
        sender_user_id: str,
        connection_code: str,
        pending_token: Optional[str] = None,
        message: Optional[str] = None
    ) -> None:
        """
        Email an existing account holder whose address was typed on a scan page.

        Typing an address proves nothing about who typed it, so no request,
        memory or invitation is created here. The email links to sign-in,
        carrying the pending token when there is one, and the account
        holder connects from there.

        Raises:
            RateLimitExceededError: Too many emails to this address recently
            InvitationDeliveryError: The email could not be sent
        """
        recipient_email = recipient_email.strip().lower()
        await self._throttle(recipient_email)

        sender = await get_user_by_id(self.db, sender_user_id)
        if sender is None:
            raise ValueError("Sender not found")

        sign_in_url = build_sign_in_url(self.origin, connection_code, pending_token)
        subject, text, html_body = build_sign_in_email(sender, sign_in_url, message)

        try:
            await self.transport.send(recipient_email, subject, text, html_body)
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"Sign-in notice to {recipient_email} failed")
            raise InvitationDeliveryError("We couldn't send the invitation email. Please try again.") from e

        await self.db.commit()
        logger.info(f"Sign-in notice sent to {recipient_email} for sender {sender_user_id}")

    async def validate_invitation_code(self, invitation_id: str, connection_code: str) -> Optional[EmailInvitation]:
        """
        Check an invitation token pair.

        Both tokens must match the same row, the row must still be ``sent``
        and not past its expiry. Every failure returns None so the caller
        cannot tell which check failed.
        """
        if not invitation_id or not connection_code:
            return None

        result = await self.db.execute(
            select(EmailInvitation).where(
                EmailInvitation.invitation_id == invitation_id,
                EmailInvitation.connection_code == connection_code,
                EmailInvitation.status == InvitationStatus.SENT
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            logger.info(f"Invalid or used invitation {invitation_id}")
            return None

        if self.clock.now() > ensure_utc(invitation.expires_at):
            logger.info(f"Invitation {invitation_id} expired at {invitation.expires_at}")
            return None

        return invitation

    def mark_registered(self, invitation: EmailInvitation, user_id: str) -> None:
        """Terminal success. Staged only; the caller commits."""
        invitation.status = InvitationStatus.REGISTERED
        invitation.registered_user_id = user_id
        invitation.registration_completed_at = self.clock.now()

    async def list_pending(self, sender_user_id: str) -> List[EmailInvitation]:
        """
        Invitations the sender is still waiting on.

        Args:
            sender_user_id: Owner of the invitations

        Returns:
            List[EmailInvitation]: Unexpired invitations with status ``sent``, newest first
        """
        result = await self.db.execute(
            select(EmailInvitation).where(
                EmailInvitation.sender_user_id == sender_user_id,
                EmailInvitation.status == InvitationStatus.SENT,
                EmailInvitation.expires_at >= self.clock.now()
            ).order_by(EmailInvitation.email_sent_at.desc())
        )
        return list(result.scalars().all())

    async def expire_stale(self) -> int:
        """Move unanswered invitations past their expiry to ``expired``."""
        stmt = (
            update(EmailInvitation)
            .where(
                EmailInvitation.status.in_([InvitationStatus.SENT, InvitationStatus.OPENED]),
                EmailInvitation.expires_at < self.clock.now()
            )
            .values(status=InvitationStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        if result.rowcount:
            logger.info(f"Expired {result.rowcount} stale invitations")
        return result.rowcount
