import logging
from datetime import timedelta
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ConnectionCode, ScanEvent
from app.models.scan_event import SCAN_PURPOSE_GENERATION
from app.schemas.connection_codes import ConnectionCodeResponse, GeneratedCodeResponse
from app.utils.id_generator import IdGenerator
from app.utils.time_utils import Clock

logger = logging.getLogger(__name__)

def build_scan_url(origin: str, scan_id: str, code: str) -> str:
    return f"{origin.rstrip('/')}/scan/{quote(scan_id, safe='')}?code={quote(code, safe='')}"

def build_share_url(origin: str, code: str) -> str:
    return f"{origin.rstrip('/')}/share/{quote(code, safe='')}"

class CodeGenerator:
    """Mints time-bounded connection codes for a user."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock,
        ids: IdGenerator,
        origin: str,
        ttl_hours: int = 24
    ):
        self.db = db
        self.clock = clock
        self.ids = ids
        self.origin = origin
        self.ttl = timedelta(hours=ttl_hours)

    async def generate(self, owner_user_id: str) -> GeneratedCodeResponse:
        """
        Create an active code for the owner and its generation audit event.

        Both rows are committed together; a store failure propagates to the
        caller.

        Args:
            owner_user_id: The user who will share the code

        Returns:
            GeneratedCodeResponse: The stored code plus its scan and share URLs
        """
        now = self.clock.now()
        code = ConnectionCode(
            id=self.ids.row_id(),
            owner_user_id=owner_user_id,
            code=self.ids.connection_code(),
            is_active=True,
            created_at=now,
            expires_at=now + self.ttl,
            scan_count=0
        )
        self.db.add(code)

        scan_id = self.ids.scan_id()
        self.db.add(ScanEvent(
            id=self.ids.row_id(),
            scan_id=scan_id,
            code=code.code,
            code_id=code.id,
            owner_user_id=owner_user_id,
            purpose=SCAN_PURPOSE_GENERATION,
            scanned_at=now,
            device_info={},
            session_id=self.ids.session_id()
        ))

        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception(f"Failed to store connection code for user {owner_user_id}")
            raise
        await self.db.refresh(code)

        logger.info(f"Generated connection code {code.code} for user {owner_user_id}")
        return GeneratedCodeResponse(
            code=ConnectionCodeResponse.model_validate(code),
            scan_id=scan_id,
            scan_url=build_scan_url(self.origin, scan_id, code.code),
            share_url=build_share_url(self.origin, code.code)
        )

    async def list_active(self, owner_user_id: str) -> List[ConnectionCode]:
        now = self.clock.now()
        result = await self.db.execute(
            select(ConnectionCode).where(
                ConnectionCode.owner_user_id == owner_user_id,
                ConnectionCode.is_active == True,
                ConnectionCode.expires_at > now
            ).order_by(ConnectionCode.created_at.desc())
        )
        return list(result.scalars().all())

    async def deactivate(self, code_id: str, owner_user_id: str) -> Optional[ConnectionCode]:
        """Revoke a code before it expires. Only the owner can do this."""
        result = await self.db.execute(
            select(ConnectionCode).where(
                ConnectionCode.id == code_id,
                ConnectionCode.owner_user_id == owner_user_id
            )
        )
        code = result.scalar_one_or_none()
        if code is None:
            return None
        if code.is_active:
            code.is_active = False
            await self.db.commit()
            await self.db.refresh(code)
            logger.info(f"Deactivated connection code {code.code}")
        return code
