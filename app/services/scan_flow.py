import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConnectionFlowError, InvalidPendingTokenError, ProfileNotPublicError
from app.models import ConnectionCode, ConnectionMemory, ConnectionRequest, ScanEvent
from app.schemas.connections import ConnectionStatus, MeetingMethod
from app.schemas.notifications import NotificationType
from app.schemas.scan import InvitationRequestResponse, ScanResponse, ScanSnapshot
from app.services.code_validator import CodeValidator
from app.services.connection_memory_service import ConnectionMemoryService
from app.services.connection_request_service import ConnectionRequestManager
from app.services.invitation_service import InvitationService
from app.services.notification_service import NotificationDispatcher
from app.services.scan_tracker import ScanTracker
from app.services.user_service import get_user_by_email
from app.utils.id_generator import IdGenerator
from app.utils.pending_token import PendingConnection, PendingTokenSigner
from app.utils.time_utils import Clock

# Configure logging
logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "This code has expired. Ask for a new one."
NOT_PUBLIC_MESSAGE = "This profile is not public."
INVITATION_SENT_MESSAGE = "Thanks! Check your email to finish connecting."

def request_metadata_from_scan(snapshot: Dict[str, Any], method: MeetingMethod) -> Dict[str, Any]:
    return {
        "method": method.value,
        "scanId": snapshot.get("scan_id"),
        "scanTimestamp": snapshot.get("scanned_at"),
        "location": snapshot.get("location"),
    }

class ScanFlow:
    """
    Everything that happens when a connection code is scanned.

    Validation and tracking run for every viewer. A signed-in viewer gets a
    pending connection request to the owner right away; an anonymous viewer
    gets a pending memory plus a signed token to finish the connection after
    signing up, or can ask for an email invitation.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock,
        ids: IdGenerator,
        validator: CodeValidator,
        tracker: ScanTracker,
        memories: ConnectionMemoryService,
        requests: ConnectionRequestManager,
        invitations: InvitationService,
        notifier: NotificationDispatcher,
        signer: PendingTokenSigner
    ):
        self.db = db
        self.clock = clock
        self.ids = ids
        self.validator = validator
        self.tracker = tracker
        self.memories = memories
        self.requests = requests
        self.invitations = invitations
        self.notifier = notifier
        self.signer = signer

    async def scan(
        self,
        raw: str,
        viewer_user_id: Optional[str] = None,
        location: Optional[Dict[str, Any]] = None,
        device_info: Optional[Dict[str, Any]] = None,
        referrer: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> Optional[ScanResponse]:
        """
        Validate, track and start the connection for one scan.

        Args:
            raw: Whatever was scanned (bare code, scan URL, share URL, JSON payload)
            viewer_user_id: Signed-in viewer, or None
            location: Coordinates reported by the viewer
            device_info: User agent, platform and mobile flag
            referrer: Referring page
            session_id: Session id from the viewer's cookie

        Returns:
            Optional[ScanResponse]: None when no code matches; status ``expired``
            for stale or revoked codes; ``not_public`` when the owner has turned
            off their public profile; otherwise ``valid`` with the filtered profile
        """
        connection_code, is_expired = await self.validator.lookup(raw)
        if connection_code is None:
            return None

        snapshot = await self.tracker.track(
            connection_code,
            location=location,
            viewer_user_id=viewer_user_id,
            device_info=device_info,
            referrer=referrer,
            session_id=session_id
        )

        result = await self.validator.describe(connection_code, is_expired)
        if result is None:
            return None
        if result.is_expired:
            return ScanResponse(
                status="expired",
                scan_id=snapshot.scan_id,
                session_id=snapshot.session_id,
                message=EXPIRED_MESSAGE
            )
        if not result.is_public:
            return ScanResponse(
                status="not_public",
                scan_id=snapshot.scan_id,
                session_id=snapshot.session_id,
                message=NOT_PUBLIC_MESSAGE
            )

        response = ScanResponse(
            status="valid",
            profile=result.profile,
            scan_id=snapshot.scan_id,
            session_id=snapshot.session_id
        )
        owner_user_id = connection_code.owner_user_id
        snapshot_data = snapshot.model_dump(mode="json")

        if viewer_user_id and viewer_user_id != owner_user_id:
            request = await self._connect_signed_in(connection_code, viewer_user_id, snapshot_data)
            response.connection_request_id = request.id
            response.message = "Connection request sent"
        elif not viewer_user_id:
            memory = await self.memories.create(owner_user_id, None, snapshot_data, MeetingMethod.QR_SCAN)
            response.pending_token = self.signer.issue(
                PendingConnection(
                    memory_id=memory.id,
                    scan_id=snapshot.scan_id,
                    code=connection_code.code,
                    owner_user_id=owner_user_id
                ),
                self.clock.now()
            )
        return response

    async def _connect_signed_in(
        self,
        connection_code: ConnectionCode,
        viewer_user_id: str,
        snapshot_data: Dict[str, Any]
    ) -> ConnectionRequest:
        owner_user_id = connection_code.owner_user_id
        existing = await self.requests.find_open(viewer_user_id, owner_user_id)
        if existing is not None:
            return existing

        try:
            await self.memories.connect_direct(owner_user_id, viewer_user_id, snapshot_data, commit=False)
            request = await self.requests.create(
                viewer_user_id,
                owner_user_id,
                request_metadata_from_scan(snapshot_data, MeetingMethod.QR_SCAN),
                code_id=connection_code.id,
                commit=False
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception(f"Failed to connect viewer {viewer_user_id} with {owner_user_id}")
            raise

        await self.notifier.dispatch(
            owner_user_id,
            viewer_user_id,
            NotificationType.QR_SCAN_CONNECTION,
            {"connectionRequestId": request.id, "scanId": snapshot_data.get("scan_id")},
            reload=(request,)
        )
        return request

    async def _scan_snapshot(self, scan_id: Optional[str], code: str) -> Dict[str, Any]:
        if scan_id:
            result = await self.db.execute(select(ScanEvent).where(ScanEvent.scan_id == scan_id))
            event = result.scalar_one_or_none()
            if event is not None:
                return ScanSnapshot.model_validate(event, from_attributes=True).model_dump(mode="json")
        return {
            "scan_id": None,
            "code": code,
            "scanned_at": self.clock.now().isoformat(),
            "device_info": {},
        }

    async def _pending_memory(self, pending: PendingConnection, owner_user_id: str) -> Optional[ConnectionMemory]:
        memory = await self.memories.get(pending.memory_id)
        if (
            memory is None
            or memory.from_user_id != owner_user_id
            or memory.connection_status != ConnectionStatus.PENDING
            or memory.invitation_id is not None
        ):
            return None
        return memory

    async def request_invitation(
        self,
        code: str,
        email: str,
        pending_token: Optional[str] = None,
        message: Optional[str] = None
    ) -> Optional[InvitationRequestResponse]:
        """
        Handle an anonymous viewer who left their email on the scan page.

        The caller is unauthenticated, so the address is only a claim. An
        address that already belongs to an account gets a sign-in email and
        nothing else; the account holder connects after signing in. Any other
        address gets an email invitation whose id is stamped on the pending
        memory, all in one transaction. Both cases return the same response,
        which does not reveal whether the address has an account.

        Returns:
            Optional[InvitationRequestResponse]: None when the code is unknown;
            ``success=False`` when it is expired

        Raises:
            InvalidPendingTokenError: The token is forged, expired or for another code
            ProfileNotPublicError: The owner has turned off their public profile
            RateLimitExceededError: Too many emails to this address
            InvitationDeliveryError: The email could not be sent
        """
        connection_code, is_expired = await self.validator.lookup(code)
        if connection_code is None:
            return None
        if is_expired:
            return InvitationRequestResponse(success=False, message=EXPIRED_MESSAGE)

        result = await self.validator.describe(connection_code, is_expired)
        if result is None:
            return None
        if not result.is_public:
            raise ProfileNotPublicError(NOT_PUBLIC_MESSAGE)

        owner_user_id = connection_code.owner_user_id
        pending = None
        if pending_token:
            pending = self.signer.verify(pending_token)
            if pending.code != connection_code.code:
                raise InvalidPendingTokenError("Pending connection token does not belong to this code")

        existing_user = await get_user_by_email(self.db, email)
        if existing_user is not None:
            if existing_user.id != owner_user_id:
                await self.invitations.send_sign_in_notice(
                    email,
                    owner_user_id,
                    connection_code.code,
                    pending_token=pending_token if pending else None,
                    message=message
                )
            else:
                logger.info(f"Owner {owner_user_id} entered their own email on their code; nothing sent")
            return InvitationRequestResponse(success=True, message=INVITATION_SENT_MESSAGE)

        snapshot = await self._scan_snapshot(pending.scan_id if pending else None, connection_code.code)
        invitation_id = self.ids.invitation_id()

        try:
            memory = await self._pending_memory(pending, owner_user_id) if pending else None
            if memory is not None:
                self.memories.attach_invitation(memory, invitation_id)
            else:
                await self.memories.create(
                    owner_user_id,
                    None,
                    snapshot,
                    MeetingMethod.EMAIL_INVITATION,
                    invitation_id=invitation_id,
                    commit=False
                )
            await self.invitations.send_invitation(
                email,
                owner_user_id,
                snapshot,
                invitation_id=invitation_id,
                message=message
            )
        except (ConnectionFlowError, ValueError):
            await self.db.rollback()
            raise

        return InvitationRequestResponse(success=True, message=INVITATION_SENT_MESSAGE)
