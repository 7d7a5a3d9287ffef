from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User
from app.schemas.users import DEFAULT_ALLOWED_FIELDS, ProfileSummary, PublicProfileSettings
from app.schemas.scan import PublicProfileView

async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    """
    Retrieve a user by their unique identifier.

    Args:
        db: AsyncSession - Database session for executing queries
        user_id: str - Unique identifier of the user

    Returns:
        Optional[User]: User object if found, None otherwise
    """
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()

async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """
    Retrieve a user by email address, ignoring case.

    Args:
        db: AsyncSession - Database session for executing queries
        email: str - Email address of the user

    Returns:
        Optional[User]: User object if found, None otherwise
    """
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalars().first()

def public_profile_settings(user: User) -> PublicProfileSettings:
    """Owner's sharing settings with the defaults filled in for missing keys."""
    raw = user.public_profile or {}
    allowed = dict(DEFAULT_ALLOWED_FIELDS)
    allowed.update({k: bool(v) for k, v in (raw.get("allowedFields") or {}).items()})
    shared = {k: bool(v) for k, v in (raw.get("defaultSharedLinks") or {}).items()}
    return PublicProfileSettings(
        enabled=raw.get("enabled", True),
        allowedFields=allowed,
        defaultSharedLinks=shared,
    )

def shareable_links(user: User) -> Dict[str, str]:
    """Social links the owner has marked as shared by default."""
    selection = public_profile_settings(user).defaultSharedLinks
    links = user.social_links or {}
    return {platform: url for platform, url in links.items() if url and selection.get(platform)}

def project_public_profile(user: User) -> PublicProfileView:
    """
    Build the view a scanner is allowed to see.

    A field appears only when its allowedFields entry is true; a social link
    appears only when the owner's defaultSharedLinks selection includes it.
    """
    allowed = public_profile_settings(user).allowedFields

    def pick(field: str, value: Any) -> Any:
        return value if allowed.get(field) else None

    return PublicProfileView(
        user_id=user.id,
        name=user.full_name,
        profile_image=user.profile_image,
        email=pick("email", user.email),
        phone=pick("phone", user.phone_number),
        job_title=pick("jobTitle", user.job_title),
        company=pick("company", user.company),
        bio=pick("bio", user.bio),
        interests=pick("interests", list(user.interests or [])),
        location=pick("location", user.location),
        social_links=shareable_links(user),
    )

def profile_summary(user: User) -> ProfileSummary:
    return ProfileSummary(
        id=user.id,
        name=user.full_name,
        profile_image=user.profile_image,
        job_title=user.job_title,
        company=user.company,
    )

def requester_snapshot(user: User) -> Dict[str, Any]:
    """Profile copy stored on a connection request for the approver to review."""
    return {
        "name": user.full_name,
        "email": user.email,
        "job_title": user.job_title,
        "company": user.company,
        "profile_image": user.profile_image,
        "bio": user.bio,
        "interests": list(user.interests or []),
        "shareable_links": shareable_links(user),
    }
