import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.common import get_current_user
from app.dependencies import get_code_generator, get_code_validator, get_scan_tracker
from app.schemas.connection_codes import ConnectionCodeResponse, GeneratedCodeResponse, ScanStatsResponse
from app.schemas.scan import CodeValidationResult
from app.services.code_generator import CodeGenerator
from app.services.code_validator import CodeValidator
from app.services.scan_tracker import ScanTracker

logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/connection-codes", tags=["connection-codes"])

@router.post("", response_model=GeneratedCodeResponse, status_code=status.HTTP_201_CREATED)
async def generate_connection_code_api(
    generator: CodeGenerator = Depends(get_code_generator),
    current_user: dict = Depends(get_current_user)
):
    """
    Generate a new connection code for the current user.

    Returns:
        GeneratedCodeResponse: The code with the scan URL to encode in the QR image
    """
    return await generator.generate(current_user["uid"])

@router.get("", response_model=List[ConnectionCodeResponse])
async def list_connection_codes_api(
    generator: CodeGenerator = Depends(get_code_generator),
    current_user: dict = Depends(get_current_user)
):
    return await generator.list_active(current_user["uid"])

@router.post("/{code_id}/deactivate", response_model=ConnectionCodeResponse)
async def deactivate_connection_code_api(
    code_id: str,
    generator: CodeGenerator = Depends(get_code_generator),
    current_user: dict = Depends(get_current_user)
):
    """
    Revoke one of the current user's codes.

    Raises:
        HTTPException: 404 if the code does not exist or belongs to someone else
    """
    code = await generator.deactivate(code_id, current_user["uid"])
    if code is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection code not found")
    return code

@router.get("/stats", response_model=ScanStatsResponse)
async def get_scan_stats_api(
    tracker: ScanTracker = Depends(get_scan_tracker),
    current_user: dict = Depends(get_current_user)
):
    return await tracker.get_scan_stats(current_user["uid"])

@router.get("/validate", response_model=CodeValidationResult)
async def validate_connection_code_api(
    code: str = Query(..., description="Raw code, scan URL, share URL or legacy JSON payload"),
    validator: CodeValidator = Depends(get_code_validator)
):
    """
    Resolve a code to the owner's public profile without recording a scan.

    Raises:
        HTTPException: 404 if no code matches, 410 if it expired or was revoked,
            403 if the owner turned off their public profile
    """
    result = await validator.validate(code)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection code not found")
    if result.is_expired:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="This code has expired. Ask for a new one.")
    if not result.is_public:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This profile is not public.")
    return result
