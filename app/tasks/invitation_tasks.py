import asyncio

from celery import Task
from celery.utils.log import get_task_logger

from app.database import AsyncSessionLocal
from app.services.invitation_service import InvitationService
from app.services.email_service import LoggingEmailTransport
from app.config import settings
from app.tasks.celery_app import celery_app
from app.utils.id_generator import IdGenerator
from app.utils.time_utils import Clock

logger = get_task_logger(__name__)

class BaseTaskWithRetry(Task):
    """Base task class with retry logic."""
    max_retries = 1
    default_retry_delay = 60  # 1 minute

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Log task failure using Celery's task logger."""
        logger.error(
            "Task failed: %s (task_id: %s, task_args: %s, task_kwargs: %s)",
            str(exc),
            task_id,
            args,
            kwargs,
            exc_info=exc
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

async def run_expire_stale_invitations(session_factory=AsyncSessionLocal, clock: Clock = None) -> int:
    async with session_factory() as db:
        # Expiry never sends email
        service = InvitationService(
            db,
            clock or Clock(),
            IdGenerator(),
            LoggingEmailTransport(),
            settings.public_origin,
            ttl_days=settings.invitation_ttl_days
        )
        return await service.expire_stale()

@celery_app.task(
    bind=True,
    base=BaseTaskWithRetry,
    name="expire_stale_invitations"
)
def expire_stale_invitations(self) -> dict:
    """
    Mark invitations nobody answered before their expiry as expired.
    """
    try:
        expired = asyncio.run(run_expire_stale_invitations())
        logger.info("Expired %s stale invitations", expired)
        return {"status": "success", "expired": expired}
    except Exception as exc:
        logger.error("Error expiring stale invitations: %s", str(exc), exc_info=True)
        raise self.retry(exc=exc)
