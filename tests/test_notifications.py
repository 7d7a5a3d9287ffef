import json

import pytest
from sqlalchemy import select

from app.models import Notification
from app.schemas.notifications import NotificationStatusUpdate, NotificationType
from app.services.notification_service import get_notifications, update_notification_status


@pytest.mark.asyncio
async def test_dispatch_stores_summary_and_metadata(db, make_user, notifier):
    await make_user("u1")
    await make_user("u2", first_name="Grace", last_name="Hopper", company="Navy")

    notification = await notifier.dispatch("u1", "u2", NotificationType.QR_SCAN_CONNECTION, {"connectionRequestId": "req_1"})

    assert notification.title == "New connection from your QR code"
    assert notification.message == "Grace Hopper scanned your QR code and wants to connect."
    data = json.loads(notification.data)
    assert data["connected_user"]["company"] == "Navy"
    assert data["connectionRequestId"] == "req_1"


@pytest.mark.asyncio
async def test_dispatch_failure_is_swallowed(db, make_user, notifier, monkeypatch):
    user = await make_user("u1")

    async def broken_commit():
        raise RuntimeError("database went away")

    monkeypatch.setattr(db, "commit", broken_commit)

    assert await notifier.dispatch("u1", "u2", NotificationType.QR_SCAN_CONNECTION, reload=(user,)) is None
    assert user.first_name == "U1"
    monkeypatch.undo()
    assert (await db.execute(select(Notification))).scalars().all() == []


@pytest.mark.asyncio
async def test_list_and_mark_read(db, make_user, notifier, clock):
    await make_user("u1")
    await make_user("u2")
    first = await notifier.dispatch("u1", "u2", NotificationType.QR_SCAN_CONNECTION)
    clock.advance(minutes=1)
    second = await notifier.dispatch("u1", "u2", NotificationType.INVITATION_ACCEPTED)
    await notifier.dispatch("u2", "u1", NotificationType.QR_SCAN_CONNECTION)

    unread = await get_notifications(db, {"uid": "u1"})
    assert [n.id for n in unread] == [second.id, first.id]

    result = await update_notification_status(NotificationStatusUpdate(ids=[first.id]), db, {"uid": "u1"})
    assert result == {"updated_ids": [first.id], "is_read": True}
    assert [n.id for n in await get_notifications(db, {"uid": "u1"})] == [second.id]


@pytest.mark.asyncio
async def test_cannot_mark_someone_elses_notifications(db, make_user, notifier):
    await make_user("u1")
    await make_user("u2")
    notification = await notifier.dispatch("u1", "u2", NotificationType.QR_SCAN_CONNECTION)

    await update_notification_status(NotificationStatusUpdate(ids=[notification.id]), db, {"uid": "u2"})

    assert [n.id for n in await get_notifications(db, {"uid": "u1"})] == [notification.id]
