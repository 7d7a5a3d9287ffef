import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base, JSONType, enum_values
from app.schemas.invitation import InvitationStatus

class EmailInvitation(Base):
    __tablename__ = "email_invitations"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    invitation_id = Column(String, unique=True, index=True, nullable=False)
    recipient_email = Column(String, index=True, nullable=False)
    sender_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    # Invitation namespace token, never a usable QR code
    connection_code = Column(String, unique=True, index=True, nullable=False)
    scan_snapshot = Column(JSONType, nullable=True)
    email_sent_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(Enum(InvitationStatus, name="invitationstatus", values_callable=enum_values), default=InvitationStatus.SENT, nullable=False)
    registered_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    registration_completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sender = relationship("User", foreign_keys=[sender_user_id], lazy="selectin")
