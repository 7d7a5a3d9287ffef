import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ConnectionCode, ScanEvent
from app.models.scan_event import SCAN_PURPOSE_SCAN
from app.schemas.connection_codes import ScanEventResponse, ScanStatsResponse
from app.schemas.scan import ScanSnapshot
from app.services.geocoding_service import ReverseGeocoder
from app.utils.id_generator import IdGenerator
from app.utils.time_utils import Clock

logger = logging.getLogger(__name__)

RECENT_SCANS_LIMIT = 50

class ScanTracker:
    """Records every read of a connection code."""

    def __init__(self, db: AsyncSession, clock: Clock, ids: IdGenerator, geocoder: Optional[ReverseGeocoder] = None):
        self.db = db
        self.clock = clock
        self.ids = ids
        self.geocoder = geocoder

    async def track(
        self,
        code: ConnectionCode,
        location: Optional[Dict[str, Any]] = None,
        viewer_user_id: Optional[str] = None,
        device_info: Optional[Dict[str, Any]] = None,
        referrer: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> ScanSnapshot:
        """
        Append a scan event for the code and bump its counters.

        The session id is reused when the caller already has one for this
        browsing session. Geocoding and the counter update are side effects:
        their failures are logged and never abort the scan.

        Args:
            code: The scanned connection code row
            location: Raw coordinates reported by the viewer, if any
            viewer_user_id: Identity of the viewer when signed in
            device_info: User agent, platform and mobile flag
            referrer: Referring page, if any
            session_id: Session id from the viewer's cookie

        Returns:
            ScanSnapshot: The recorded scan
        """
        now = self.clock.now()
        scan_id = self.ids.scan_id()
        session_id = session_id or self.ids.session_id()

        if location and self.geocoder:
            location = await self.geocoder.enrich(location)

        snapshot = ScanSnapshot(
            scan_id=scan_id,
            code=code.code,
            scanned_at=now,
            location=location,
            device_info=device_info or {},
            referrer=referrer,
            session_id=session_id,
            viewer_user_id=viewer_user_id
        )

        self.db.add(ScanEvent(
            id=self.ids.row_id(),
            scan_id=scan_id,
            code=code.code,
            code_id=code.id,
            owner_user_id=code.owner_user_id,
            purpose=SCAN_PURPOSE_SCAN,
            scanned_at=now,
            location=location,
            device_info=snapshot.device_info,
            referrer=referrer,
            session_id=session_id,
            viewer_user_id=viewer_user_id
        ))
        await self.db.commit()

        await self._bump_scan_count(code, now, location)

        logger.info(f"Tracked scan {scan_id} of code {snapshot.code}")
        return snapshot

    async def _bump_scan_count(self, code: ConnectionCode, scanned_at, location: Optional[Dict[str, Any]]) -> None:
        code_id = code.id
        # Single UPDATE so concurrent scans never lose an increment
        try:
            await self.db.execute(
                update(ConnectionCode)
                .where(ConnectionCode.id == code_id)
                .values(
                    scan_count=ConnectionCode.scan_count + 1,
                    last_scanned_at=scanned_at,
                    last_scan_location=location
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Failed to update scan count for code {code_id}: {e}")
            # Rollback expired the row; reload it for the rest of the request
            try:
                await self.db.refresh(code)
            except Exception as refresh_error:
                logger.warning(f"Could not reload code {code_id} after failed count update: {refresh_error}")

    async def get_scan_stats(self, owner_user_id: str) -> ScanStatsResponse:
        """Scan history of the owner's codes. Generation events are excluded."""
        conditions = (
            ScanEvent.owner_user_id == owner_user_id,
            ScanEvent.purpose == SCAN_PURPOSE_SCAN
        )
        total = (await self.db.execute(
            select(func.count()).select_from(ScanEvent).where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(ScanEvent)
            .where(*conditions)
            .order_by(ScanEvent.scanned_at.desc())
            .limit(RECENT_SCANS_LIMIT)
        )
        recent = [ScanEventResponse.model_validate(event) for event in result.scalars().all()]

        return ScanStatsResponse(
            total_scans=total,
            recent_scans=recent,
            last_scan_date=recent[0].scanned_at if recent else None
        )
