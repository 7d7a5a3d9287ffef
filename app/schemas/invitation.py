from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum as PyEnum

class InvitationStatus(str, PyEnum):
    SENT = "sent"
    OPENED = "opened"
    REGISTERED = "registered"
    EXPIRED = "expired"

class EmailInvitationResponse(BaseModel):
    invitation_id: str
    recipient_email: str
    sender_user_id: str
    scan_snapshot: Optional[Dict[str, Any]] = None
    email_sent_at: datetime
    expires_at: datetime
    status: InvitationStatus

    class Config:
        from_attributes = True

class InvitationValidationResponse(BaseModel):
    valid: bool
    invitation_id: Optional[str] = None
    sender_user_id: Optional[str] = None
    recipient_email: Optional[str] = None
    expires_at: Optional[datetime] = None
    message: Optional[str] = None

class CompleteInvitationRequest(BaseModel):
    invitation_id: str
    code: str
