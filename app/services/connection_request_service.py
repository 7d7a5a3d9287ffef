import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    AuthenticationRequiredError,
    RequestNotFoundError,
    RequestStateConflictError,
)
from app.models import ConnectionRequest, Contact, ContactNote
from app.schemas.connections import ConnectionRequestStatus
from app.services.user_service import get_user_by_id, requester_snapshot
from app.utils.id_generator import IdGenerator
from app.utils.time_utils import Clock

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_TIER = 3
VALID_TIERS = (1, 2, 3)

class ConnectionRequestManager:
    """
    Explicit connection requests between users.

    Approval by the target is the only path that creates a Contact.
    """

    def __init__(self, db: AsyncSession, clock: Clock, ids: IdGenerator):
        self.db = db
        self.clock = clock
        self.ids = ids

    async def find_open(self, requester_id: str, target_user_id: str) -> Optional[ConnectionRequest]:
        """Pending or approved request from requester to target, if any."""
        result = await self.db.execute(
            select(ConnectionRequest).where(
                ConnectionRequest.requester_id == requester_id,
                ConnectionRequest.target_user_id == target_user_id,
                ConnectionRequest.status.in_([ConnectionRequestStatus.PENDING, ConnectionRequestStatus.APPROVED])
            ).order_by(ConnectionRequest.created_at.asc())
        )
        return result.scalars().first()

    async def create(
        self,
        requester_id: str,
        target_user_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        code_id: Optional[str] = None,
        commit: bool = True
    ) -> ConnectionRequest:
        """
        Ask ``target_user_id`` to connect with ``requester_id``.

        Idempotent per pair: when a pending or approved request from the
        requester to the target already exists, that request is returned.

        Args:
            requester_id: The user asking to connect
            target_user_id: The user who must approve
            metadata: Meeting context (location, method, invitation id, ...)
            code_id: Connection code the request came from, if any
            commit: Commit now, or only flush into the caller's transaction

        Returns:
            ConnectionRequest: The pending (or previously approved) request

        Raises:
            ValueError: Self-request or unknown requester
        """
        if requester_id == target_user_id:
            raise ValueError("Cannot send a connection request to yourself")

        existing = await self.find_open(requester_id, target_user_id)
        if existing is not None:
            logger.info(f"Connection request {requester_id} -> {target_user_id} already exists ({existing.status.value})")
            return existing

        requester = await get_user_by_id(self.db, requester_id)
        if requester is None:
            raise ValueError("Requester not found")

        now = self.clock.now()
        request = ConnectionRequest(
            id=self.ids.row_id(),
            requester_id=requester_id,
            target_user_id=target_user_id,
            code_id=code_id,
            status=ConnectionRequestStatus.PENDING,
            requester_snapshot=requester_snapshot(requester),
            request_metadata=metadata or {},
            created_at=now,
            updated_at=now
        )
        self.db.add(request)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()

        logger.info(f"Created connection request {request.id} from {requester_id} to {target_user_id}")
        return request

    async def _get_for_target(self, request_id: str, approver_id: Optional[str]) -> ConnectionRequest:
        if not approver_id:
            raise AuthenticationRequiredError()

        result = await self.db.execute(
            select(ConnectionRequest).where(
                ConnectionRequest.id == request_id,
                ConnectionRequest.target_user_id == approver_id
            )
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError("Connection request not found")
        return request

    async def _contact_for_request(self, request_id: str) -> Optional[Contact]:
        result = await self.db.execute(select(Contact).where(Contact.request_id == request_id))
        return result.scalar_one_or_none()

    async def approve(
        self,
        request_id: str,
        approver_id: Optional[str],
        location: Optional[Dict[str, Any]] = None,
        tags: Optional[List[str]] = None,
        shared_links: Optional[Dict[str, bool]] = None,
        mutual_connections: Optional[List[str]] = None,
        note: Optional[str] = None,
        badges: Optional[List[str]] = None,
        tier: Optional[int] = None
    ) -> Contact:
        """
        Approve a request and materialize the requester as a contact.

        Social links on the contact are the requester's shareable links
        narrowed to the platforms the approver selected. Approving twice
        returns the contact created the first time.

        Raises:
            AuthenticationRequiredError: No approver identity
            RequestNotFoundError: No such request addressed to the approver
            RequestStateConflictError: The request was already declined
            ValueError: Tier outside 1-3
        """
        request = await self._get_for_target(request_id, approver_id)

        if request.status == ConnectionRequestStatus.APPROVED:
            contact = await self._contact_for_request(request.id)
            if contact is not None:
                return contact
        elif request.status == ConnectionRequestStatus.DECLINED:
            raise RequestStateConflictError("Connection request was already declined")

        if tier is None:
            tier = DEFAULT_TIER
        if tier not in VALID_TIERS:
            raise ValueError(f"Tier must be one of {VALID_TIERS}")

        snapshot = request.requester_snapshot or {}
        metadata = request.request_metadata or {}
        selection = shared_links or {}
        links = {
            platform: url
            for platform, url in (snapshot.get("shareable_links") or {}).items()
            if selection.get(platform)
        }

        now = self.clock.now()
        contact = Contact(
            id=self.ids.row_id(),
            owner_user_id=approver_id,
            contact_user_id=request.requester_id,
            request_id=request.id,
            name=snapshot.get("name") or "Unknown",
            email=snapshot.get("email"),
            job_title=snapshot.get("job_title"),
            company=snapshot.get("company"),
            profile_image=snapshot.get("profile_image"),
            bio=snapshot.get("bio"),
            interests=list(snapshot.get("interests") or []),
            social_links=links,
            tags=list(tags or []),
            badges=list(badges or []),
            mutual_connections=list(mutual_connections or []),
            tier=tier,
            meeting_date=request.created_at,
            meeting_location=location or metadata.get("location"),
            first_met_at=request.created_at,
            connection_method=metadata.get("method"),
            created_at=now,
            updated_at=now,
            notes=[ContactNote(id=self.ids.row_id(), content=note, created_at=now)] if note else []
        )
        self.db.add(contact)

        request.status = ConnectionRequestStatus.APPROVED
        request.request_metadata = {
            **metadata,
            "location": location or metadata.get("location"),
            "tags": list(tags or []),
            "sharedLinks": selection,
            "mutualConnections": list(mutual_connections or []),
            "note": note,
            "badges": list(badges or []),
            "tier": tier,
        }
        request.updated_at = now

        try:
            await self.db.commit()
        except IntegrityError:
            # Contact.request_id is unique: a concurrent approval already created the contact
            await self.db.rollback()
            existing = await self._contact_for_request(request_id)
            if existing is None:
                logger.exception(f"Failed to approve connection request {request_id}")
                raise
            logger.info(f"Connection request {request_id} was approved concurrently; returning contact {existing.id}")
            return existing
        except Exception:
            await self.db.rollback()
            logger.exception(f"Failed to approve connection request {request_id}")
            raise

        logger.info(f"Approved connection request {request.id}; contact {contact.id} created for {approver_id}")
        return contact

    async def decline(self, request_id: str, approver_id: Optional[str]) -> ConnectionRequest:
        """
        Decline a request. No contact is created.

        Raises:
            AuthenticationRequiredError: No approver identity
            RequestNotFoundError: No such request addressed to the approver
            RequestStateConflictError: The request was already approved
        """
        request = await self._get_for_target(request_id, approver_id)

        if request.status == ConnectionRequestStatus.DECLINED:
            return request
        if request.status == ConnectionRequestStatus.APPROVED:
            raise RequestStateConflictError("Connection request was already approved")

        request.status = ConnectionRequestStatus.DECLINED
        request.updated_at = self.clock.now()
        await self.db.commit()
        logger.info(f"Declined connection request {request.id}")
        return request

    async def list_pending(self, target_user_id: str) -> List[ConnectionRequest]:
        result = await self.db.execute(
            select(ConnectionRequest).where(
                ConnectionRequest.target_user_id == target_user_id,
                ConnectionRequest.status == ConnectionRequestStatus.PENDING
            ).order_by(ConnectionRequest.created_at.desc())
        )
        return list(result.scalars().all())
