import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Integer
from sqlalchemy.sql import func

from app.database import Base, JSONType

class ConnectionCode(Base):
    __tablename__ = "connection_codes"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    owner_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    code = Column(String, unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False)
    scan_count = Column(Integer, default=0, nullable=False)
    last_scanned_at = Column(DateTime(timezone=True), nullable=True)
    last_scan_location = Column(JSONType, nullable=True)
