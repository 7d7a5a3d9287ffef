import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Text
from ..database import Base
from sqlalchemy import func

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), index=True)
    type = Column(String)  # invitation_accepted, qr_scan_connection
    title = Column(String)
    message = Column(String)
    data = Column(Text)  # JSON data as string
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
