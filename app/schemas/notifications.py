# schemas.py
from typing import List, Optional
from pydantic import BaseModel
from datetime import datetime
from enum import Enum as PyEnum

class NotificationType(str, PyEnum):
    INVITATION_ACCEPTED = "invitation_accepted"
    QR_SCAN_CONNECTION = "qr_scan_connection"

class NotificationResponse(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: Optional[str] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True

class NotificationStatusUpdate(BaseModel):
    ids: List[str]
    is_read: bool = True
