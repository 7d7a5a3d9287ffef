"""
End-to-end scan handling for signed-in and anonymous viewers.
"""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy import select

from app.exceptions import InvalidPendingTokenError, InvitationDeliveryError, ProfileNotPublicError
from app.models import ConnectionMemory, ConnectionRequest, EmailInvitation, Notification, ScanEvent
from app.schemas.connections import ConnectionStatus, ConnectionRequestStatus


async def _setup(make_user, code_generator):
    await make_user("u1", first_name="Ada", last_name="Lovelace", company="Engines")
    await make_user("u2", first_name="Grace", last_name="Hopper")
    return await code_generator.generate("u1")


async def _all(db, model):
    return (await db.execute(select(model).execution_options(populate_existing=True))).scalars().all()


@pytest.mark.asyncio
async def test_anonymous_scan_returns_profile_and_pending_token(db, make_user, code_generator, scan_flow, signer):
    generated = await _setup(make_user, code_generator)

    response = await scan_flow.scan(generated.scan_url, session_id="sess_cookie")

    assert response.status == "valid"
    assert response.profile.user_id == "u1"
    assert response.profile.company == "Engines"
    assert response.session_id == "sess_cookie"
    assert response.connection_request_id is None

    pending = signer.verify(response.pending_token)
    assert pending.owner_user_id == "u1"
    assert pending.scan_id == response.scan_id
    memories = await _all(db, ConnectionMemory)
    assert [m.id for m in memories] == [pending.memory_id]
    assert memories[0].connection_status == ConnectionStatus.PENDING


@pytest.mark.asyncio
async def test_signed_in_scan_creates_request_and_notifies_owner(db, make_user, code_generator, scan_flow):
    generated = await _setup(make_user, code_generator)

    response = await scan_flow.scan(generated.code.code, viewer_user_id="u2")

    assert response.connection_request_id is not None
    assert response.pending_token is None
    requests = await _all(db, ConnectionRequest)
    assert len(requests) == 1
    assert requests[0].requester_id == "u2"
    assert requests[0].target_user_id == "u1"
    assert requests[0].status == ConnectionRequestStatus.PENDING
    assert requests[0].code_id == generated.code.id

    notifications = await _all(db, Notification)
    assert [(n.user_id, n.type) for n in notifications] == [("u1", "qr_scan_connection")]
    assert "Grace Hopper" in notifications[0].message


@pytest.mark.asyncio
async def test_repeated_scans_by_same_viewer_yield_one_request(db, make_user, code_generator, scan_flow):
    generated = await _setup(make_user, code_generator)

    first = await scan_flow.scan(generated.code.code, viewer_user_id="u2")
    second = await scan_flow.scan(generated.code.code, viewer_user_id="u2")

    assert first.connection_request_id == second.connection_request_id
    assert len(await _all(db, ConnectionRequest)) == 1
    assert len(await _all(db, Notification)) == 1
    scans = [e for e in await _all(db, ScanEvent) if e.purpose == "scan"]
    assert len(scans) == 2


@pytest.mark.asyncio
async def test_owner_scanning_own_code_creates_nothing(db, make_user, code_generator, scan_flow):
    generated = await _setup(make_user, code_generator)

    response = await scan_flow.scan(generated.code.code, viewer_user_id="u1")

    assert response.status == "valid"
    assert response.pending_token is None
    assert await _all(db, ConnectionRequest) == []
    assert await _all(db, ConnectionMemory) == []


@pytest.mark.asyncio
async def test_expired_code_is_tracked_but_not_usable(db, make_user, code_generator, scan_flow, clock):
    generated = await _setup(make_user, code_generator)
    clock.advance(hours=25)

    response = await scan_flow.scan(generated.code.code, viewer_user_id="u2")

    assert response.status == "expired"
    assert response.profile is None
    assert await _all(db, ConnectionRequest) == []
    assert len([e for e in await _all(db, ScanEvent) if e.purpose == "scan"]) == 1


@pytest.mark.asyncio
async def test_unknown_code_returns_none(make_user, code_generator, scan_flow):
    await _setup(make_user, code_generator)

    assert await scan_flow.scan("conn_missing") is None


@pytest.mark.asyncio
async def test_request_invitation_stamps_pending_memory(db, make_user, code_generator, scan_flow, signer, email_transport):
    generated = await _setup(make_user, code_generator)
    scanned = await scan_flow.scan(generated.scan_url)

    result = await scan_flow.request_invitation(
        generated.code.code, "newcomer@example.com", pending_token=scanned.pending_token, message="Hi!"
    )

    assert result.success is True
    assert len(email_transport.sent) == 1

    invitation = (await _all(db, EmailInvitation))[0]
    assert invitation.invitation_id.startswith("inv_")
    assert invitation.scan_snapshot["scan_id"] == scanned.scan_id

    memory_id = signer.verify(scanned.pending_token).memory_id
    memories = await _all(db, ConnectionMemory)
    assert len(memories) == 1
    assert memories[0].id == memory_id
    assert memories[0].invitation_id == invitation.invitation_id
    assert memories[0].email_invitation_sent is not None


@pytest.mark.asyncio
async def test_request_invitation_without_token_creates_memory(db, make_user, code_generator, scan_flow):
    generated = await _setup(make_user, code_generator)

    await scan_flow.request_invitation(generated.code.code, "newcomer@example.com")

    invitation = (await _all(db, EmailInvitation))[0]
    memories = await _all(db, ConnectionMemory)
    assert len(memories) == 1
    assert memories[0].invitation_id == invitation.invitation_id
    assert memories[0].first_meeting_data["method"] == "email_invitation"


@pytest.mark.asyncio
async def test_existing_account_email_only_gets_sign_in_link(db, make_user, code_generator, scan_flow, signer, email_transport):
    generated = await _setup(make_user, code_generator)
    scanned = await scan_flow.scan(generated.scan_url)

    result = await scan_flow.request_invitation(generated.code.code, "U2@example.com", pending_token=scanned.pending_token)
    newcomer = await scan_flow.request_invitation(generated.code.code, "newcomer@example.com")

    assert result == newcomer
    assert await _all(db, ConnectionRequest) == []
    assert await _all(db, Notification) == []
    assert [i.recipient_email for i in await _all(db, EmailInvitation)] == ["newcomer@example.com"]

    memory_id = signer.verify(scanned.pending_token).memory_id
    memory = next(m for m in await _all(db, ConnectionMemory) if m.id == memory_id)
    assert memory.connection_status == ConnectionStatus.PENDING
    assert memory.invitation_id is None

    notice = email_transport.sent[0]
    assert notice["to"] == "u2@example.com"
    link = next(line for line in notice["text"].splitlines() if "/app/login?" in line)
    query = parse_qs(urlparse(link.strip()).query)
    assert query["code"] == [generated.code.code]
    assert query["pending"] == [scanned.pending_token]


@pytest.mark.asyncio
async def test_owner_email_on_own_code_sends_nothing(db, make_user, code_generator, scan_flow, email_transport):
    generated = await _setup(make_user, code_generator)

    result = await scan_flow.request_invitation(generated.code.code, "u1@example.com")

    assert result.success is True
    assert email_transport.sent == []
    assert await _all(db, ConnectionRequest) == []
    assert await _all(db, EmailInvitation) == []


@pytest.mark.asyncio
async def test_private_profile_is_not_served(db, make_user, code_generator, scan_flow, email_transport):
    await make_user("u1", company="Acme", job_title="CTO", public_profile={"enabled": False})
    await make_user("u2")
    generated = await code_generator.generate("u1")

    anonymous = await scan_flow.scan(generated.scan_url)
    signed_in = await scan_flow.scan(generated.code.code, viewer_user_id="u2")

    for response in (anonymous, signed_in):
        assert response.status == "not_public"
        assert response.profile is None
        assert response.pending_token is None
        assert response.connection_request_id is None
    assert await _all(db, ConnectionMemory) == []
    assert await _all(db, ConnectionRequest) == []
    assert len([e for e in await _all(db, ScanEvent) if e.purpose == "scan"]) == 2

    with pytest.raises(ProfileNotPublicError):
        await scan_flow.request_invitation(generated.code.code, "newcomer@example.com")
    assert email_transport.sent == []


@pytest.mark.asyncio
async def test_failed_invitation_email_rolls_back_memory_stamp(db, make_user, code_generator, scan_flow, email_transport):
    generated = await _setup(make_user, code_generator)
    scanned = await scan_flow.scan(generated.scan_url)
    email_transport.fail_with = httpx.ConnectError("down")

    with pytest.raises(InvitationDeliveryError):
        await scan_flow.request_invitation(generated.code.code, "newcomer@example.com", pending_token=scanned.pending_token)

    assert await _all(db, EmailInvitation) == []
    memories = await _all(db, ConnectionMemory)
    assert len(memories) == 1
    assert memories[0].invitation_id is None


@pytest.mark.asyncio
async def test_request_invitation_rejects_token_for_other_code(make_user, code_generator, scan_flow):
    generated = await _setup(make_user, code_generator)
    other = await code_generator.generate("u1")
    scanned = await scan_flow.scan(other.code.code)

    with pytest.raises(InvalidPendingTokenError):
        await scan_flow.request_invitation(generated.code.code, "newcomer@example.com", pending_token=scanned.pending_token)


@pytest.mark.asyncio
async def test_request_invitation_on_expired_code(make_user, code_generator, scan_flow, clock, email_transport):
    generated = await _setup(make_user, code_generator)
    clock.advance(days=2)

    result = await scan_flow.request_invitation(generated.code.code, "newcomer@example.com")

    assert result.success is False
    assert email_transport.sent == []
