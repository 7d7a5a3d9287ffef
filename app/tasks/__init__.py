from app.tasks.celery_app import celery_app
from app.tasks.invitation_tasks import expire_stale_invitations

__all__ = [
    "celery_app",
    "expire_stale_invitations"
]
