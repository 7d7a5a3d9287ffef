import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ConnectionMemory
from app.schemas.connections import (
    ConnectionHistoryEntry,
    ConnectionMemoryResponse,
    ConnectionStatus,
    MeetingMethod,
)
from app.services.user_service import profile_summary
from app.utils.id_generator import IdGenerator
from app.utils.time_utils import Clock

# Configure logging
logger = logging.getLogger(__name__)

def build_first_meeting_data(scan_snapshot: Dict[str, Any], method: MeetingMethod) -> Dict[str, Any]:
    """Context of the first meeting as stored on a memory."""
    data = {
        "scanTimestamp": scan_snapshot.get("scanned_at"),
        "method": method.value,
        "scanId": scan_snapshot.get("scan_id"),
    }
    if scan_snapshot.get("location"):
        data["location"] = scan_snapshot["location"]
    if scan_snapshot.get("device_info"):
        data["deviceInfo"] = scan_snapshot["device_info"]
    return data

class ConnectionMemoryService:
    """
    First-meeting records between a sharer and whoever scanned their code.

    Every write method takes ``commit``; orchestrators pass ``commit=False``
    to fold the write into a larger transaction and commit once themselves.
    """

    def __init__(self, db: AsyncSession, clock: Clock, ids: IdGenerator):
        self.db = db
        self.clock = clock
        self.ids = ids

    async def _save(self, commit: bool) -> None:
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()

    async def create(
        self,
        from_user_id: str,
        to_user_id: Optional[str],
        scan_snapshot: Dict[str, Any],
        method: MeetingMethod = MeetingMethod.QR_SCAN,
        invitation_id: Optional[str] = None,
        commit: bool = True
    ) -> ConnectionMemory:
        """
        Record a first meeting in ``pending`` state.

        Args:
            from_user_id: The sharer whose code was scanned
            to_user_id: The viewer, or None while still unknown
            scan_snapshot: The scan as recorded by the tracker
            method: How the two met
            invitation_id: Invitation that will later resolve this memory
            commit: Commit now, or only flush into the caller's transaction

        Returns:
            ConnectionMemory: The new pending memory
        """
        now = self.clock.now()
        memory = ConnectionMemory(
            id=self.ids.row_id(),
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            first_meeting_data=build_first_meeting_data(scan_snapshot, method),
            connection_status=ConnectionStatus.PENDING,
            invitation_id=invitation_id,
            scan_id=scan_snapshot.get("scan_id"),
            email_invitation_sent=now if invitation_id else None,
            created_at=now,
            updated_at=now
        )
        self.db.add(memory)
        await self._save(commit)
        logger.info(f"Created pending connection memory {memory.id} for sharer {from_user_id}")
        return memory

    async def get(self, memory_id: str) -> Optional[ConnectionMemory]:
        result = await self.db.execute(select(ConnectionMemory).where(ConnectionMemory.id == memory_id))
        return result.scalar_one_or_none()

    def attach_invitation(self, memory: ConnectionMemory, invitation_id: str) -> None:
        """Stamp the correlation token on a pending memory. Staged only."""
        now = self.clock.now()
        memory.invitation_id = invitation_id
        memory.email_invitation_sent = now
        memory.first_meeting_data = {**(memory.first_meeting_data or {}), "method": MeetingMethod.EMAIL_INVITATION.value}
        memory.updated_at = now

    def _connect(self, memory: ConnectionMemory, user_id: str) -> None:
        now = self.clock.now()
        memory.to_user_id = user_id
        memory.connection_status = ConnectionStatus.CONNECTED
        memory.registration_completed_at = now
        memory.updated_at = now

    async def resolve(self, invitation_id: str, new_user_id: str, commit: bool = True) -> Optional[ConnectionMemory]:
        """
        Resolve the pending memory correlated with an invitation.

        Matching is by the invitation id stamped on the memory, never by
        recency, so two open invitations from the same sharer cannot be
        confused. A memory resolves exactly once.

        Returns:
            Optional[ConnectionMemory]: The connected memory, or None when no
            pending memory carries that invitation id
        """
        result = await self.db.execute(
            select(ConnectionMemory).where(
                ConnectionMemory.invitation_id == invitation_id,
                ConnectionMemory.connection_status == ConnectionStatus.PENDING
            )
        )
        memory = result.scalar_one_or_none()
        if memory is None:
            logger.warning(f"No pending connection memory for invitation {invitation_id}")
            return None

        self._connect(memory, new_user_id)
        await self._save(commit)
        logger.info(f"Resolved connection memory {memory.id} to user {new_user_id}")
        return memory

    async def resolve_by_id(self, memory_id: str, user_id: str, commit: bool = True) -> Optional[ConnectionMemory]:
        """Resolve a memory referenced by a pending-connection token."""
        memory = await self.get(memory_id)
        if memory is None:
            return None
        if memory.connection_status != ConnectionStatus.PENDING:
            # Already resolved; only the same user gets it back
            return memory if memory.to_user_id == user_id else None
        if memory.from_user_id == user_id:
            return None

        self._connect(memory, user_id)
        await self._save(commit)
        logger.info(f"Resolved connection memory {memory.id} to user {user_id}")
        return memory

    async def get_between(self, user_a: str, user_b: str) -> Optional[ConnectionMemory]:
        """Earliest connected memory between two users, in either direction."""
        result = await self.db.execute(
            select(ConnectionMemory).where(
                ConnectionMemory.connection_status == ConnectionStatus.CONNECTED,
                or_(
                    and_(ConnectionMemory.from_user_id == user_a, ConnectionMemory.to_user_id == user_b),
                    and_(ConnectionMemory.from_user_id == user_b, ConnectionMemory.to_user_id == user_a)
                )
            ).order_by(ConnectionMemory.created_at.asc())
        )
        return result.scalars().first()

    async def are_connected(self, user_a: str, user_b: str) -> bool:
        return await self.get_between(user_a, user_b) is not None

    async def connect_direct(
        self,
        from_user_id: str,
        to_user_id: str,
        scan_snapshot: Dict[str, Any],
        method: MeetingMethod = MeetingMethod.QR_SCAN,
        commit: bool = True
    ) -> ConnectionMemory:
        """
        Memory for a scan by a signed-in viewer; both sides are known.

        The first meeting is kept: if the pair already has a connected
        memory, that one is returned unchanged.
        """
        existing = await self.get_between(from_user_id, to_user_id)
        if existing is not None:
            return existing

        memory = await self.create(from_user_id, to_user_id, scan_snapshot, method, commit=False)
        memory.connection_status = ConnectionStatus.CONNECTED
        memory.registration_completed_at = self.clock.now()
        await self._save(commit)
        return memory

    async def list_for_user(self, user_id: str, connected_only: bool = True) -> List[ConnectionHistoryEntry]:
        """
        Connection history of a user, newest first.

        Args:
            user_id: Either side of the memory
            connected_only: Skip memories still waiting for their counterpart

        Returns:
            List[ConnectionHistoryEntry]: Memories with the other side's summary
        """
        query = select(ConnectionMemory).where(
            or_(ConnectionMemory.from_user_id == user_id, ConnectionMemory.to_user_id == user_id)
        )
        if connected_only:
            query = query.where(ConnectionMemory.connection_status == ConnectionStatus.CONNECTED)
        result = await self.db.execute(
            query.order_by(ConnectionMemory.created_at.desc()).execution_options(populate_existing=True)
        )

        entries = []
        for memory in result.scalars().all():
            is_from_user = memory.from_user_id == user_id
            other = memory.to_user if is_from_user else memory.from_user
            entries.append(ConnectionHistoryEntry(
                memory=ConnectionMemoryResponse.model_validate(memory),
                is_from_user=is_from_user,
                connected_user=profile_summary(other) if other else None
            ))
        return entries
