from __future__ import annotations

import asyncio

import pytest

from pagegen.services.notifications import NotificationService


def test_add_remove_and_snapshots():
    service = NotificationService(default_duration_seconds=0)
    snapshots = []
    service.subscribe(snapshots.append)

    first = service.add("Saved", "success")
    second = service.add("Heads up")
    service.remove(first)

    assert [item.message for item in service.notifications] == ["Heads up"]
    assert service.notifications[0].id == second
    assert service.notifications[0].type == "info"
    assert [len(snapshot) for snapshot in snapshots] == [1, 2, 1]


def test_remove_unknown_id_does_not_emit():
    service = NotificationService(default_duration_seconds=0)
    snapshots = []
    service.subscribe(snapshots.append)

    service.remove("missing")

    assert snapshots == []


def test_remove_oldest_and_clear():
    service = NotificationService(default_duration_seconds=0)
    service.add("one")
    service.add("two")
    service.add("three")

    service.remove_oldest()
    assert [item.message for item in service.notifications] == ["two", "three"]

    service.clear()
    assert service.notifications == ()
    service.remove_oldest()


def test_unsubscribe_stops_updates():
    service = NotificationService(default_duration_seconds=0)
    snapshots = []
    service.subscribe(snapshots.append)
    service.subscribe(snapshots.append)
    service.add("one")
    service.unsubscribe(snapshots.append)
    service.add("two")

    assert len(snapshots) == 1


def test_notifications_expire_on_the_event_loop():
    async def scenario():
        service = NotificationService(default_duration_seconds=0.01)
        service.add("short lived")
        service.add("sticky", duration_seconds=0)
        await asyncio.sleep(0.05)
        return service

    service = asyncio.run(scenario())

    assert [item.message for item in service.notifications] == ["sticky"]


def test_close_cancels_timers_and_rejects_new_notifications():
    async def scenario():
        service = NotificationService(default_duration_seconds=0.01)
        snapshots = []
        service.subscribe(snapshots.append)
        service.add("pending")
        service.close()
        await asyncio.sleep(0.05)
        return service, snapshots

    service, snapshots = asyncio.run(scenario())

    assert service.closed
    assert service.notifications == ()
    assert len(snapshots) == 1
    with pytest.raises(RuntimeError):
        service.add("too late")
