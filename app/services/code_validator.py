import json
import logging
from typing import Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ConnectionCode
from app.schemas.scan import CodeValidationResult
from app.services.user_service import get_user_by_id, project_public_profile, public_profile_settings
from app.utils.time_utils import Clock, ensure_utc

logger = logging.getLogger(__name__)

def _code_from_json(raw: str) -> Optional[str]:
    if not raw.startswith("{"):
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("c"), str) and payload["c"].strip():
        return payload["c"].strip()
    return None

def _code_from_scan_url(raw: str) -> Optional[str]:
    parsed = urlparse(raw)
    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) >= 2 and segments[-2] == "scan":
        codes = parse_qs(parsed.query).get("code")
        if codes and codes[0].strip():
            return codes[0].strip()
    return None

def _code_from_share_url(raw: str) -> Optional[str]:
    parsed = urlparse(raw)
    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) >= 2 and segments[-2] == "share":
        return unquote(segments[-1]).strip() or None
    return None

def extract_code(raw: Optional[str]) -> Optional[str]:
    """
    Canonicalize whatever was scanned into a bare code string.

    Precedence: legacy JSON payload with a ``c`` field, then the ``code``
    query parameter of a ``/scan/{scanId}`` URL, then the last segment of a
    ``/share/{code}`` URL, then the raw string itself.
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    for extractor in (_code_from_json, _code_from_scan_url, _code_from_share_url):
        code = extractor(raw)
        if code:
            return code
    # A URL that matched neither route shape is not a code
    if "://" in raw or raw.startswith("{"):
        return None
    return raw

class CodeValidator:
    """Resolves scanned input to the owner's privacy-filtered profile."""

    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    async def lookup(self, raw: Optional[str]) -> Tuple[Optional[ConnectionCode], bool]:
        """
        Find the code row behind the input.

        Returns:
            Tuple[Optional[ConnectionCode], bool]: the row (None when unknown)
            and whether it is expired or inactive
        """
        code = extract_code(raw)
        if not code:
            return None, False

        result = await self.db.execute(select(ConnectionCode).where(ConnectionCode.code == code))
        connection_code = result.scalar_one_or_none()
        if connection_code is None:
            return None, False

        if not connection_code.is_active:
            return connection_code, True
        is_expired = self.clock.now() >= ensure_utc(connection_code.expires_at)
        return connection_code, is_expired

    async def validate(self, raw: Optional[str]) -> Optional[CodeValidationResult]:
        """
        Validate a raw code or URL.

        Returns:
            CodeValidationResult with the profile when the code is usable,
            CodeValidationResult with is_expired=True when it exists but is
            stale or inactive, CodeValidationResult with is_public=False and
            no profile when the owner turned off their public profile, None
            when nothing matches. Malformed input never raises.
        """
        connection_code, is_expired = await self.lookup(raw)
        if connection_code is None:
            logger.info("No connection code matched the scanned input")
            return None
        return await self.describe(connection_code, is_expired)

    async def describe(self, connection_code: ConnectionCode, is_expired: bool) -> Optional[CodeValidationResult]:
        """Validation result for a row already found by ``lookup``."""
        if is_expired:
            logger.info(f"Connection code {connection_code.code} is expired or inactive")
            return CodeValidationResult(code=connection_code.code, code_id=connection_code.id, is_expired=True)

        owner = await get_user_by_id(self.db, connection_code.owner_user_id)
        if owner is None:
            logger.error(f"Owner {connection_code.owner_user_id} missing for code {connection_code.code}")
            return None

        if not public_profile_settings(owner).enabled:
            logger.info(f"Owner {connection_code.owner_user_id} has turned off their public profile")
            return CodeValidationResult(code=connection_code.code, code_id=connection_code.id, is_expired=False, is_public=False)

        return CodeValidationResult(
            code=connection_code.code,
            code_id=connection_code.id,
            is_expired=False,
            profile=project_public_profile(owner)
        )
