from sqlalchemy import Column, String, DateTime, Boolean, Enum
from sqlalchemy.sql import func

from app.database import Base, JSONType, enum_values
from app.schemas.users import UserStatus

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=True)
    phone_number = Column(String, unique=True, index=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    job_title = Column(String, nullable=True)
    company = Column(String, nullable=True)
    profile_image = Column(String, nullable=True)
    location = Column(String, nullable=True)
    bio = Column(JSONType, nullable=True)
    interests = Column(JSONType, nullable=True)
    social_links = Column(JSONType, nullable=True)
    # {"enabled": bool, "allowedFields": {...}, "defaultSharedLinks": {...}}
    public_profile = Column(JSONType, nullable=True)
    is_active = Column(Boolean, default=True)
    status = Column(Enum(UserStatus, name="userstatus", values_callable=enum_values), default=UserStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
