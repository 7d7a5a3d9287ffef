import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.sql import func

from app.database import Base, JSONType

# purpose values
SCAN_PURPOSE_GENERATION = "generation"
SCAN_PURPOSE_SCAN = "scan"

class ScanEvent(Base):
    """One read of a connection code. Rows are written once and never updated."""
    __tablename__ = "scan_events"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    scan_id = Column(String, unique=True, index=True, nullable=False)
    code = Column(String, index=True, nullable=False)
    code_id = Column(String, ForeignKey("connection_codes.id"), index=True, nullable=False)
    # Owner of the scanned code; only the owner may read these rows
    owner_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    purpose = Column(String, default=SCAN_PURPOSE_SCAN, nullable=False)
    scanned_at = Column(DateTime(timezone=True), server_default=func.now())
    location = Column(JSONType, nullable=True)
    device_info = Column(JSONType, nullable=True)
    referrer = Column(Text, nullable=True)
    session_id = Column(String, index=True, nullable=False)
    viewer_user_id = Column(String, ForeignKey("users.id"), nullable=True)
