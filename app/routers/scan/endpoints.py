import logging
from typing import Optional
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from app.common import get_optional_user
from app.config import settings
from app.dependencies import get_scan_flow
from app.exceptions import ConnectionFlowError
from app.routers.errors import to_http_exception
from app.schemas.scan import InvitationRequestCreate, InvitationRequestResponse, ScanRequest, ScanResponse
from app.services.scan_flow import ScanFlow

logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/scan", tags=["scan"])

SESSION_COOKIE_MAX_AGE = 60 * 60 * 24

@router.post("", response_model=ScanResponse)
async def scan_code_api(
    request: ScanRequest,
    response: Response,
    flow: ScanFlow = Depends(get_scan_flow),
    current_user: Optional[dict] = Depends(get_optional_user),
    scan_session_id: Optional[str] = Cookie(default=None, alias=settings.scan_session_cookie)
):
    """
    Scan a connection code, signed in or not.

    Every scan is recorded. A signed-in viewer's connection request is
    created immediately; an anonymous viewer receives a pending token to
    finish connecting after signing up.

    Raises:
        HTTPException: 404 if no code matches, 410 if the code expired, 403 if
        the owner turned off their public profile
    """
    try:
        result = await flow.scan(
            request.payload,
            viewer_user_id=current_user["uid"] if current_user else None,
            location=request.location.model_dump(exclude_none=True) if request.location else None,
            device_info=request.device_info.model_dump() if request.device_info else None,
            referrer=request.referrer,
            session_id=scan_session_id
        )
    except (ConnectionFlowError, ValueError) as e:
        raise to_http_exception(e)

    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection code not found")
    if result.status == "expired":
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=result.message)
    if result.status == "not_public":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=result.message)

    response.set_cookie(
        settings.scan_session_cookie,
        result.session_id,
        max_age=SESSION_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax"
    )
    return result

@router.post("/invitation", response_model=InvitationRequestResponse)
async def request_invitation_api(
    request: InvitationRequestCreate,
    flow: ScanFlow = Depends(get_scan_flow)
):
    """
    Leave an email after scanning while signed out.

    Raises:
        HTTPException: 404 unknown code, 410 expired code, 403 profile not
        public, 429 too many emails to the address, 502 email could not be sent
    """
    try:
        result = await flow.request_invitation(
            request.code,
            request.email,
            pending_token=request.pending_token,
            message=request.message
        )
    except (ConnectionFlowError, ValueError) as e:
        raise to_http_exception(e)

    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection code not found")
    if not result.success:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=result.message)
    return result
