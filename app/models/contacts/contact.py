import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base, JSONType

class Contact(Base):
    __tablename__ = "contacts"
    __table_args__ = (
        CheckConstraint("tier IN (1, 2, 3)", name="ck_contacts_tier"),
    )

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    owner_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    contact_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    # One approved request materializes at most one contact
    request_id = Column(String, ForeignKey("connection_requests.id"), unique=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    job_title = Column(String, nullable=True)
    company = Column(String, nullable=True)
    profile_image = Column(String, nullable=True)
    bio = Column(JSONType, nullable=True)
    interests = Column(JSONType, nullable=True)
    social_links = Column(JSONType, nullable=True)
    tags = Column(JSONType, nullable=True)
    badges = Column(JSONType, nullable=True)
    mutual_connections = Column(JSONType, nullable=True)
    tier = Column(Integer, default=3, nullable=False)
    meeting_date = Column(DateTime(timezone=True), nullable=True)
    meeting_location = Column(JSONType, nullable=True)
    first_met_at = Column(DateTime(timezone=True), nullable=True)
    connection_method = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    notes = relationship("ContactNote", back_populates="contact", lazy="selectin", cascade="all, delete-orphan")

class ContactNote(Base):
    __tablename__ = "contact_notes"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    contact_id = Column(String, ForeignKey("contacts.id"), index=True, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    contact = relationship("Contact", back_populates="notes")
