from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime

class ConnectionCodeResponse(BaseModel):
    id: str
    owner_user_id: str
    code: str
    is_active: bool
    created_at: datetime
    expires_at: datetime
    scan_count: int
    last_scanned_at: Optional[datetime] = None
    last_scan_location: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True

class GeneratedCodeResponse(BaseModel):
    code: ConnectionCodeResponse
    scan_id: str
    scan_url: str
    share_url: str

class ScanEventResponse(BaseModel):
    scan_id: str
    code: str
    purpose: str
    scanned_at: datetime
    location: Optional[Dict[str, Any]] = None
    device_info: Optional[Dict[str, Any]] = None
    referrer: Optional[str] = None
    session_id: str
    viewer_user_id: Optional[str] = None

    class Config:
        from_attributes = True

class ScanStatsResponse(BaseModel):
    total_scans: int
    recent_scans: List[ScanEventResponse]
    last_scan_date: Optional[datetime] = None
