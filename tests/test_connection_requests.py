"""
Connection requests: approval is the only way a contact is created.
"""
import pytest
from sqlalchemy import func, select

from app.exceptions import AuthenticationRequiredError, RequestNotFoundError, RequestStateConflictError
from app.models import Contact, ConnectionRequest
from app.schemas.connections import ConnectionRequestStatus
from app.services.connection_request_service import ConnectionRequestManager


async def _count_contacts(db):
    return (await db.execute(select(func.count()).select_from(Contact))).scalar_one()


@pytest.fixture
def users(make_user):
    async def _users():
        owner = await make_user("u1")
        requester = await make_user(
            "u2",
            job_title="Designer",
            company="Studio",
            interests=["typography"],
            social_links={"linkedin": "https://linkedin.com/in/u2", "github": "https://github.com/u2"},
            public_profile={"defaultSharedLinks": {"linkedin": True, "github": True}}
        )
        return owner, requester

    return _users


@pytest.mark.asyncio
async def test_create_is_pending_with_requester_snapshot(users, request_manager):
    await users()

    request = await request_manager.create("u2", "u1", {"method": "qr_scan"})

    assert request.status == ConnectionRequestStatus.PENDING
    assert request.requester_snapshot["job_title"] == "Designer"
    assert request.requester_snapshot["shareable_links"] == {
        "linkedin": "https://linkedin.com/in/u2",
        "github": "https://github.com/u2",
    }


@pytest.mark.asyncio
async def test_create_is_idempotent_per_pair(users, request_manager):
    await users()

    first = await request_manager.create("u2", "u1", {"method": "qr_scan"})
    second = await request_manager.create("u2", "u1", {"method": "qr_scan"})

    assert first.id == second.id
    assert len(await request_manager.list_pending("u1")) == 1


@pytest.mark.asyncio
async def test_self_request_is_rejected(users, request_manager):
    await users()

    with pytest.raises(ValueError):
        await request_manager.create("u1", "u1")


@pytest.mark.asyncio
async def test_approve_creates_one_contact(db, users, request_manager):
    await users()
    request = await request_manager.create("u2", "u1", {"method": "qr_scan"})

    contact = await request_manager.approve(
        request.id,
        "u1",
        location={"name": "Web Summit"},
        tags=["conference"],
        shared_links={"linkedin": True, "github": False, "twitter": True},
        note="Talked about fonts",
        tier=2
    )

    assert contact.tier == 2
    assert contact.tags == ["conference"]
    assert contact.owner_user_id == "u1"
    assert contact.contact_user_id == "u2"
    assert contact.social_links == {"linkedin": "https://linkedin.com/in/u2"}
    assert contact.meeting_location == {"name": "Web Summit"}
    assert contact.connection_method == "qr_scan"
    assert [n.content for n in contact.notes] == ["Talked about fonts"]
    assert request.status == ConnectionRequestStatus.APPROVED
    assert await _count_contacts(db) == 1


@pytest.mark.asyncio
async def test_approve_defaults_tier_and_is_idempotent(db, users, request_manager):
    await users()
    request = await request_manager.create("u2", "u1")

    first = await request_manager.approve(request.id, "u1")
    second = await request_manager.approve(request.id, "u1", tier=1)

    assert first.tier == 3
    assert second.id == first.id
    assert second.tier == 3
    assert await _count_contacts(db) == 1


@pytest.mark.asyncio
async def test_concurrent_approvals_share_one_contact(session_factory, db, users, request_manager, clock, ids):
    await users()
    request = await request_manager.create("u2", "u1")

    async with session_factory() as other:
        # Loaded while still pending, before the first approval commits
        stale = await other.get(ConnectionRequest, request.id)
        assert stale.status == ConnectionRequestStatus.PENDING

        first = await request_manager.approve(request.id, "u1")
        second = await ConnectionRequestManager(other, clock, ids).approve(request.id, "u1")

    assert second.id == first.id
    assert await _count_contacts(db) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("tier", [0, 4, -1])
async def test_approve_rejects_tier_outside_range(db, users, request_manager, tier):
    await users()
    request = await request_manager.create("u2", "u1")

    with pytest.raises(ValueError):
        await request_manager.approve(request.id, "u1", tier=tier)

    assert request.status == ConnectionRequestStatus.PENDING
    assert await _count_contacts(db) == 0


@pytest.mark.asyncio
async def test_decline_creates_no_contact_and_is_idempotent(db, users, request_manager):
    await users()
    request = await request_manager.create("u2", "u1")

    declined = await request_manager.decline(request.id, "u1")
    again = await request_manager.decline(request.id, "u1")

    assert declined.status == ConnectionRequestStatus.DECLINED
    assert again.status == ConnectionRequestStatus.DECLINED
    assert await _count_contacts(db) == 0


@pytest.mark.asyncio
async def test_terminal_states_do_not_flip(users, request_manager):
    await users()
    approved = await request_manager.create("u2", "u1")
    await request_manager.approve(approved.id, "u1")

    with pytest.raises(RequestStateConflictError):
        await request_manager.decline(approved.id, "u1")

    await request_manager.create("u1", "u2")
    declined = (await request_manager.list_pending("u2"))[0]
    await request_manager.decline(declined.id, "u2")

    with pytest.raises(RequestStateConflictError):
        await request_manager.approve(declined.id, "u2")


@pytest.mark.asyncio
async def test_only_the_target_can_resolve(users, make_user, request_manager):
    await users()
    await make_user("u3")
    request = await request_manager.create("u2", "u1")

    with pytest.raises(RequestNotFoundError):
        await request_manager.approve(request.id, "u3")
    with pytest.raises(RequestNotFoundError):
        await request_manager.approve(request.id, "u2")
    with pytest.raises(AuthenticationRequiredError):
        await request_manager.approve(request.id, None)
    with pytest.raises(AuthenticationRequiredError):
        await request_manager.decline(request.id, "")


@pytest.mark.asyncio
async def test_declined_pair_can_request_again(users, request_manager):
    await users()
    first = await request_manager.create("u2", "u1")
    await request_manager.decline(first.id, "u1")

    second = await request_manager.create("u2", "u1")

    assert second.id != first.id
    assert second.status == ConnectionRequestStatus.PENDING
