import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base, JSONType, enum_values
from app.schemas.connections import ConnectionRequestStatus

class ConnectionRequest(Base):
    __tablename__ = "connection_requests"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    requester_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    target_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    code_id = Column(String, ForeignKey("connection_codes.id"), nullable=True)
    status = Column(
        Enum(ConnectionRequestStatus, name="connectionrequeststatus", values_callable=enum_values),
        default=ConnectionRequestStatus.PENDING,
        nullable=False
    )
    # Requester profile captured when the request was made
    requester_snapshot = Column(JSONType, nullable=True)
    # "metadata" is reserved on declarative classes
    request_metadata = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    requester = relationship("User", foreign_keys=[requester_id], lazy="selectin")
    target_user = relationship("User", foreign_keys=[target_user_id], lazy="selectin")
