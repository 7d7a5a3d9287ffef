import json
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from app.exceptions import InvalidPendingTokenError
from app.models import ConnectionMemory, ConnectionRequest, EmailInvitation, Notification
from app.schemas.connections import ConnectionRequestStatus, ConnectionStatus
from app.schemas.invitation import InvitationStatus
from app.services import notification_service
from app.utils.pending_token import PendingConnection, PendingTokenSigner


async def _all(db, model):
    return (await db.execute(select(model).execution_options(populate_existing=True))).scalars().all()


async def _invited(make_user, code_generator, scan_flow, email="newcomer@example.com"):
    await make_user("u1", first_name="Ada", last_name="Lovelace")
    generated = await code_generator.generate("u1")
    scanned = await scan_flow.scan(generated.scan_url, location={"latitude": 37.79, "longitude": -122.39})
    await scan_flow.request_invitation(generated.code.code, email, pending_token=scanned.pending_token)
    invitation = (
        await scan_flow.db.execute(select(EmailInvitation).where(EmailInvitation.recipient_email == email.lower()))
    ).scalar_one()
    return scanned, invitation


@pytest.mark.asyncio
async def test_completing_invitation_connects_and_notifies(db, make_user, code_generator, scan_flow, reconciler):
    scanned, invitation = await _invited(make_user, code_generator, scan_flow)
    await make_user("u3", email="Newcomer@Example.com", first_name="Linus", last_name="Torvalds")

    request = await reconciler.complete_invitation(invitation.invitation_id, invitation.connection_code, "u3")

    assert request is not None
    assert request.requester_id == "u3"
    assert request.target_user_id == "u1"
    assert request.status == ConnectionRequestStatus.PENDING
    assert request.request_metadata["method"] == "email_invitation"
    assert request.request_metadata["invitationId"] == invitation.invitation_id
    assert request.request_metadata["scanId"] == scanned.scan_id

    stored = (await _all(db, EmailInvitation))[0]
    assert stored.status == InvitationStatus.REGISTERED
    assert stored.registered_user_id == "u3"

    memory = (await _all(db, ConnectionMemory))[0]
    assert memory.connection_status == ConnectionStatus.CONNECTED
    assert memory.to_user_id == "u3"
    assert request.request_metadata["memoryId"] == memory.id

    notification = (await _all(db, Notification))[0]
    assert notification.user_id == "u1"
    assert notification.type == "invitation_accepted"
    data = json.loads(notification.data)
    assert data["connected_user"]["name"] == "Linus Torvalds"
    assert data["connectionRequestId"] == request.id


@pytest.mark.asyncio
async def test_invitation_completes_only_once(db, make_user, code_generator, scan_flow, reconciler):
    _, invitation = await _invited(make_user, code_generator, scan_flow)
    await make_user("u3", email="newcomer@example.com")

    assert await reconciler.complete_invitation(invitation.invitation_id, invitation.connection_code, "u3") is not None
    assert await reconciler.complete_invitation(invitation.invitation_id, invitation.connection_code, "u3") is None
    assert len(await _all(db, ConnectionRequest)) == 1


@pytest.mark.asyncio
async def test_invitation_for_other_email_is_rejected(db, make_user, code_generator, scan_flow, reconciler):
    _, invitation = await _invited(make_user, code_generator, scan_flow)
    await make_user("u4", email="someone-else@example.com")

    assert await reconciler.complete_invitation(invitation.invitation_id, invitation.connection_code, "u4") is None
    stored = (await _all(db, EmailInvitation))[0]
    assert stored.status == InvitationStatus.SENT
    assert await _all(db, ConnectionRequest) == []


@pytest.mark.asyncio
async def test_wrong_invitation_code_is_rejected(make_user, code_generator, scan_flow, reconciler):
    _, invitation = await _invited(make_user, code_generator, scan_flow)
    await make_user("u3", email="newcomer@example.com")

    assert await reconciler.complete_invitation(invitation.invitation_id, "not-the-code", "u3") is None


@pytest.mark.asyncio
async def test_notification_failure_keeps_connection(db, make_user, code_generator, scan_flow, reconciler, monkeypatch):
    _, invitation = await _invited(make_user, code_generator, scan_flow)
    await make_user("u3", email="newcomer@example.com")

    def broken_summary(user):
        raise RuntimeError("boom")

    monkeypatch.setattr(notification_service, "profile_summary", broken_summary)

    request = await reconciler.complete_invitation(invitation.invitation_id, invitation.connection_code, "u3")

    assert request.status == ConnectionRequestStatus.PENDING
    assert await _all(db, Notification) == []
    assert len(await _all(db, ConnectionRequest)) == 1
    assert (await _all(db, EmailInvitation))[0].status == InvitationStatus.REGISTERED


@pytest.mark.asyncio
async def test_complete_pending_scan_after_signup(db, make_user, code_generator, scan_flow, reconciler):
    await make_user("u1")
    generated = await code_generator.generate("u1")
    scanned = await scan_flow.scan(generated.code.code)
    await make_user("u5", first_name="Barbara", last_name="Liskov")

    request = await reconciler.complete_pending_scan(scanned.pending_token, "u5")

    assert request.requester_id == "u5"
    assert request.target_user_id == "u1"
    assert request.code_id == generated.code.id
    assert request.request_metadata["scanId"] == scanned.scan_id
    memory = (await _all(db, ConnectionMemory))[0]
    assert memory.connection_status == ConnectionStatus.CONNECTED
    assert memory.to_user_id == "u5"
    assert [(n.user_id, n.type) for n in await _all(db, Notification)] == [("u1", "qr_scan_connection")]

    again = await reconciler.complete_pending_scan(scanned.pending_token, "u5")
    assert again.id == request.id
    assert len(await _all(db, Notification)) == 1


@pytest.mark.asyncio
async def test_pending_scan_claimed_by_someone_else(make_user, code_generator, scan_flow, reconciler):
    await make_user("u1")
    generated = await code_generator.generate("u1")
    scanned = await scan_flow.scan(generated.code.code)
    await make_user("u5")
    await make_user("u6")

    assert await reconciler.complete_pending_scan(scanned.pending_token, "u5") is not None
    assert await reconciler.complete_pending_scan(scanned.pending_token, "u6") is None


@pytest.mark.asyncio
async def test_pending_scan_rejects_owner_and_forged_tokens(make_user, code_generator, scan_flow, reconciler):
    await make_user("u1")
    generated = await code_generator.generate("u1")
    scanned = await scan_flow.scan(generated.code.code)

    with pytest.raises(ValueError):
        await reconciler.complete_pending_scan(scanned.pending_token, "u1")
    forged = PendingTokenSigner("not-the-server-secret").issue(
        PendingConnection(memory_id="mem_x", scan_id=scanned.scan_id, code=generated.code.code, owner_user_id="u1"),
        datetime.now(timezone.utc)
    )
    with pytest.raises(InvalidPendingTokenError):
        await reconciler.complete_pending_scan(forged, "u2")
