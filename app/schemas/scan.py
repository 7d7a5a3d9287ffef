from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

class ScanLocation(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

class DeviceInfo(BaseModel):
    user_agent: str = "unknown"
    platform: str = "unknown"
    is_mobile: bool = False

class ScanSnapshot(BaseModel):
    """Everything recorded about one read of a connection code."""
    scan_id: str
    code: str
    scanned_at: datetime
    location: Optional[Dict[str, Any]] = None
    device_info: Dict[str, Any] = Field(default_factory=dict)
    referrer: Optional[str] = None
    session_id: str
    viewer_user_id: Optional[str] = None

class PublicProfileView(BaseModel):
    """Owner profile after the privacy filter has been applied."""
    user_id: str
    name: str
    profile_image: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    bio: Optional[Dict[str, Any]] = None
    interests: Optional[List[str]] = None
    location: Optional[str] = None
    social_links: Dict[str, str] = Field(default_factory=dict)

class CodeValidationResult(BaseModel):
    code: str
    code_id: str
    is_expired: bool
    is_public: bool = True
    profile: Optional[PublicProfileView] = None

class ScanRequest(BaseModel):
    payload: str = Field(..., description="Raw code, scan URL, share URL or legacy JSON payload")
    location: Optional[ScanLocation] = None
    device_info: Optional[DeviceInfo] = None
    referrer: Optional[str] = None

class ScanResponse(BaseModel):
    status: str  # valid, expired, not_public
    profile: Optional[PublicProfileView] = None
    scan_id: Optional[str] = None
    session_id: Optional[str] = None
    pending_token: Optional[str] = None
    connection_request_id: Optional[str] = None
    message: Optional[str] = None

class InvitationRequestCreate(BaseModel):
    code: str
    email: EmailStr
    message: Optional[str] = Field(default=None, max_length=500)
    pending_token: Optional[str] = None

class InvitationRequestResponse(BaseModel):
    success: bool
    message: str
