from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime
from enum import Enum as PyEnum
from .users import ProfileSummary

class ConnectionStatus(str, PyEnum):
    PENDING = "pending"
    CONNECTED = "connected"
    DECLINED = "declined"

class MeetingMethod(str, PyEnum):
    QR_SCAN = "qr_scan"
    MANUAL = "manual"
    EMAIL_INVITATION = "email_invitation"

class ConnectionRequestStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"

Tier = Literal[1, 2, 3]

class ConnectionMemoryResponse(BaseModel):
    id: str
    from_user_id: str
    to_user_id: Optional[str] = None
    first_meeting_data: Dict[str, Any]
    connection_status: ConnectionStatus
    email_invitation_sent: Optional[datetime] = None
    registration_completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ConnectionHistoryEntry(BaseModel):
    memory: ConnectionMemoryResponse
    is_from_user: bool
    connected_user: Optional[ProfileSummary] = None

class ConnectionStatusResponse(BaseModel):
    is_connected: bool
    first_meeting_data: Optional[Dict[str, Any]] = None
    connected_at: Optional[datetime] = None

class ConnectionRequestResponse(BaseModel):
    id: str
    requester_id: str
    target_user_id: str
    code_id: Optional[str] = None
    status: ConnectionRequestStatus
    requester_snapshot: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="request_metadata")
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True

class MeetingLocation(BaseModel):
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    venue: Optional[str] = None
    eventContext: Optional[str] = None

class ApproveConnectionRequest(BaseModel):
    location: Optional[MeetingLocation] = None
    tags: List[str] = Field(default_factory=list)
    shared_links: Dict[str, bool] = Field(default_factory=dict)
    mutual_connections: List[str] = Field(default_factory=list)
    note: Optional[str] = None
    badges: Optional[List[str]] = None
    tier: Optional[Tier] = None

class CompletePendingScanRequest(BaseModel):
    pending_token: str

class ConnectionResultResponse(BaseModel):
    success: bool
    message: str
    connection_request_id: Optional[str] = None
