from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime

class ContactNoteResponse(BaseModel):
    id: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True

class ContactResponse(BaseModel):
    id: str
    owner_user_id: str
    contact_user_id: str
    request_id: str
    name: str
    email: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    profile_image: Optional[str] = None
    bio: Optional[Dict[str, Any]] = None
    interests: List[str] = []
    social_links: Dict[str, str] = {}
    tags: List[str] = []
    badges: List[str] = []
    mutual_connections: List[str] = []
    tier: int
    meeting_date: Optional[datetime] = None
    meeting_location: Optional[Dict[str, Any]] = None
    connection_method: Optional[str] = None
    notes: List[ContactNoteResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True
