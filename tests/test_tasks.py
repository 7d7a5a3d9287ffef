import pytest
from sqlalchemy import select

from app.models import EmailInvitation
from app.schemas.invitation import InvitationStatus
from app.tasks import celery_app, expire_stale_invitations
from app.tasks.invitation_tasks import run_expire_stale_invitations


@pytest.mark.asyncio
async def test_expiry_job_marks_old_invitations(db, session_factory, make_user, invitation_service, clock):
    await make_user("u1")
    old = await invitation_service.send_invitation("old@example.com", "u1", {"scan_id": "scan_1"})
    clock.advance(days=6)
    fresh = await invitation_service.send_invitation("fresh@example.com", "u1", {"scan_id": "scan_2"})
    clock.advance(days=2)

    assert await run_expire_stale_invitations(session_factory, clock) == 1

    rows = (await db.execute(select(EmailInvitation).execution_options(populate_existing=True))).scalars().all()
    statuses = {row.invitation_id: row.status for row in rows}
    assert statuses == {old.invitation_id: InvitationStatus.EXPIRED, fresh.invitation_id: InvitationStatus.SENT}


def test_expiry_job_is_scheduled_hourly():
    schedule = celery_app.conf.beat_schedule["expire-stale-invitations"]

    assert schedule["task"] == expire_stale_invitations.name
    assert celery_app.conf.task_routes[expire_stale_invitations.name] == {"queue": "invitations"}
