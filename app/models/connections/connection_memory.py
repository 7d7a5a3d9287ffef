import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base, JSONType, enum_values
from app.schemas.connections import ConnectionStatus

class ConnectionMemory(Base):
    __tablename__ = "connection_memories"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    # The sharer whose code was scanned
    from_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    # Unknown until the viewer is identified
    to_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)
    first_meeting_data = Column(JSONType, nullable=False)
    connection_status = Column(
        Enum(ConnectionStatus, name="connectionstatus", values_callable=enum_values),
        default=ConnectionStatus.PENDING,
        nullable=False
    )
    # Correlates the memory with the invitation that will resolve it
    invitation_id = Column(String, unique=True, index=True, nullable=True)
    scan_id = Column(String, index=True, nullable=True)
    email_invitation_sent = Column(DateTime(timezone=True), nullable=True)
    registration_completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    from_user = relationship("User", foreign_keys=[from_user_id], lazy="selectin")
    to_user = relationship("User", foreign_keys=[to_user_id], lazy="selectin")
