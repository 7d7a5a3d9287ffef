from pydantic import BaseModel, Field
from typing import Optional, Dict
from enum import Enum

class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

# Which profile fields a public scan may reveal when the owner has not said otherwise
DEFAULT_ALLOWED_FIELDS: Dict[str, bool] = {
    "email": False,
    "phone": False,
    "company": True,
    "jobTitle": True,
    "bio": True,
    "interests": True,
    "location": True,
}

class PublicProfileSettings(BaseModel):
    enabled: bool = True
    allowedFields: Dict[str, bool] = Field(default_factory=lambda: dict(DEFAULT_ALLOWED_FIELDS))
    defaultSharedLinks: Dict[str, bool] = Field(default_factory=dict)

class ProfileSummary(BaseModel):
    """Minimal counterpart profile used in notifications and memories."""
    id: str
    name: str
    profile_image: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
