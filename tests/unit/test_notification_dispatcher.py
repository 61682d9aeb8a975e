"""
Unit tests for NotificationDispatcher
Opt-out handling, status fan-out and inbox operations against in-memory stores
"""

import pytest
from freezegun import freeze_time

from event_waitlist.config import DispatchConfig
from event_waitlist.exceptions import InvalidArgumentError, StoreError
from event_waitlist.models.decision import Decision, DecisionStatus
from event_waitlist.models.notification import NotificationType
from event_waitlist.models.results import BatchStatus
from event_waitlist.services.notification_dispatcher import NotificationDispatcher


async def _seed_decision(stores, event_id, entrant_id, status):
    return await stores.decisions.create(
        event_id, Decision(event_id=event_id, entrant_id=entrant_id, status=status)
    )


class TestSendNotification:
    """send_notification()"""

    @pytest.mark.asyncio
    async def test_creates_unread_notification(self, dispatcher, db, seed_profile):
        await seed_profile("user-1")

        with freeze_time("2024-05-01 09:30:00"):
            ref = await dispatcher.send_notification("user-1", "event-1", "invited", "You're in", "Please respond")

        assert ref is not None
        assert ref.path == f"users/user-1/notifications/{ref.id}"
        stored = db.get(ref.path)
        assert stored["type"] == "INVITED"
        assert stored["eventId"] == "event-1"
        assert stored["userId"] == "user-1"
        assert stored["read"] is False
        assert stored["title"] == "You're in"

    @pytest.mark.asyncio
    async def test_opted_out_user_gets_nothing(self, dispatcher, db, seed_profile):
        await seed_profile("user-1", opt_out=True)
        writes_before = db.write_count

        ref = await dispatcher.send_notification("user-1", "event-1", NotificationType.INVITED, "t", "m")

        assert ref is None
        assert db.write_count == writes_before
        assert db.calls("notifications.create") == 0

    @pytest.mark.asyncio
    async def test_missing_profile_gets_nothing(self, dispatcher, db):
        ref = await dispatcher.send_notification("ghost", "event-1", "LOST", "t", "m")

        assert ref is None
        assert db.write_count == 0

    @pytest.mark.asyncio
    async def test_invalid_arguments_rejected_before_store_calls(self, dispatcher, db):
        with pytest.raises(InvalidArgumentError):
            await dispatcher.send_notification("", "event-1", "INVITED", "t", "m")
        with pytest.raises(InvalidArgumentError):
            await dispatcher.send_notification("user-1", "event-1", "NOT_A_TYPE", "t", "m")

        assert db.operations == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, dispatcher, db, seed_profile):
        await seed_profile("user-1")
        db.fail_on("notifications.create")

        with pytest.raises(StoreError):
            await dispatcher.send_notification("user-1", "event-1", "INVITED", "t", "m")


class TestStatusFanOut:
    """send_notifications_to_entrants_by_status()"""

    @pytest.mark.asyncio
    async def test_counts_only_opted_in_entrants(self, dispatcher, stores, db, seed_profile):
        await seed_profile("u1")
        await seed_profile("u2", opt_out=True)
        await seed_profile("u3")
        for user_id in ("u1", "u2", "u3"):
            await _seed_decision(stores, "E", user_id, DecisionStatus.INVITED)
        await _seed_decision(stores, "E", "u4", DecisionStatus.PENDING)

        result = await dispatcher.send_notifications_to_entrants_by_status("E", "INVITED", "t", "m")

        assert result.to_dict() == {"status": "success", "count": 2, "message": "Sent 2 notifications"}
        assert set(db.documents_under("users/u1/notifications"))
        assert db.documents_under("users/u2/notifications") == {}
        assert set(db.documents_under("users/u3/notifications"))
        assert db.documents_under("users/u4/notifications") == {}

    @pytest.mark.asyncio
    async def test_no_matching_decisions(self, dispatcher, db):
        result = await dispatcher.send_notifications_to_entrants_by_status("E", "ACCEPTED", "t", "m")

        assert result.status == BatchStatus.SUCCESS
        assert result.count == 0
        assert result.message == "No entrants found"
        assert db.write_count == 0

    @pytest.mark.asyncio
    async def test_decision_query_failure_returns_error(self, dispatcher, db):
        db.fail_on("decisions.query_by_status", "E")

        result = await dispatcher.send_notifications_to_entrants_by_status("E", "INVITED", "t", "m")

        assert result.to_dict() == {"status": "error", "count": 0, "message": "Failed to get decisions"}
        assert db.calls("notifications.create") == 0

    @pytest.mark.asyncio
    async def test_unknown_status_returns_error(self, dispatcher, db):
        result = await dispatcher.send_notifications_to_entrants_by_status("E", "WAITING", "t", "m")

        assert result.status == BatchStatus.ERROR
        assert result.count == 0
        assert db.operations == []

    @pytest.mark.asyncio
    async def test_decision_without_entrant_is_skipped(self, dispatcher, stores, seed_profile):
        await seed_profile("u1")
        await _seed_decision(stores, "E", "u1", DecisionStatus.LOST)
        await _seed_decision(stores, "E", None, DecisionStatus.LOST)

        result = await dispatcher.send_notifications_to_entrants_by_status("E", DecisionStatus.LOST, "t", "m")

        assert result.ok
        assert result.count == 1

    @pytest.mark.asyncio
    async def test_single_entrant_failure_does_not_abort(self, dispatcher, stores, db, seed_profile):
        for user_id in ("u1", "u2", "u3"):
            await seed_profile(user_id)
            await _seed_decision(stores, "E", user_id, DecisionStatus.INVITED)
        db.fail_on("notifications.create", "u2")

        result = await dispatcher.send_notifications_to_entrants_by_status("E", "INVITED", "t", "m")

        assert result.ok
        assert result.count == 2

    @pytest.mark.asyncio
    async def test_notification_type_matches_status(self, dispatcher, stores, seed_profile):
        await seed_profile("u1")
        await _seed_decision(stores, "E", "u1", DecisionStatus.DECLINED)

        await dispatcher.send_notifications_to_entrants_by_status("E", "declined", "t", "m")

        inbox = await dispatcher.get_user_notifications("u1")
        assert [n.type for n in inbox] == [NotificationType.DECLINED]

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self, stores, seed_profile):
        dispatcher = NotificationDispatcher(
            stores.profiles,
            stores.notifications,
            stores.decisions,
            stores.entries,
            config=DispatchConfig(max_concurrency=2),
        )
        for i in range(5):
            await seed_profile(f"u{i}")
            await _seed_decision(stores, "E", f"u{i}", DecisionStatus.INVITED)

        result = await dispatcher.send_notifications_to_entrants_by_status("E", "INVITED", "t", "m")

        assert result.count == 5


class TestWaitingListFanOut:
    """send_notifications_to_waiting_list_entrants()"""

    @pytest.mark.asyncio
    async def test_notifies_every_entry_as_enrolled(self, dispatcher, manager, seed_profile):
        await seed_profile("u1")
        await seed_profile("u2", opt_out=True)
        await manager.join("E", "u1")
        await manager.join("E", "u2")

        result = await dispatcher.send_notifications_to_waiting_list_entrants("E", "Reminder", "Draw is tomorrow")

        assert result.ok
        assert result.count == 1
        inbox = await dispatcher.get_user_notifications("u1")
        assert inbox[0].type == NotificationType.ENROLLED
        assert inbox[0].event_id == "E"

    @pytest.mark.asyncio
    async def test_empty_waiting_list(self, dispatcher):
        result = await dispatcher.send_notifications_to_waiting_list_entrants("E", "t", "m")

        assert result.to_dict() == {"status": "success", "count": 0, "message": "No entrants found on waiting list"}

    @pytest.mark.asyncio
    async def test_waiting_list_query_failure(self, dispatcher, db):
        db.fail_on("entries.query_for_event")

        result = await dispatcher.send_notifications_to_waiting_list_entrants("E", "t", "m")

        assert result.status == BatchStatus.ERROR
        assert result.message == "Failed to get waiting list"


class TestMultiStatusFanOut:
    """send_notifications_to_entrants()"""

    @pytest.mark.asyncio
    async def test_aggregates_per_status(self, dispatcher, stores, seed_profile):
        for user_id, status in (("u1", DecisionStatus.INVITED), ("u2", DecisionStatus.INVITED), ("u3", DecisionStatus.LOST)):
            await seed_profile(user_id)
            await _seed_decision(stores, "E", user_id, status)

        result = await dispatcher.send_notifications_to_entrants("E", ["invited", "LOST", "INVITED"], "t", "m")

        assert result.to_dict() == {
            "status": "success",
            "totalSent": 3,
            "statusCounts": {"INVITED": 2, "LOST": 1},
            "message": "Sent 3 notifications",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("statuses", ["INVITED", DecisionStatus.INVITED])
    async def test_single_status_not_split_into_characters(self, dispatcher, stores, seed_profile, statuses):
        await seed_profile("u1")
        await _seed_decision(stores, "E", "u1", DecisionStatus.INVITED)

        result = await dispatcher.send_notifications_to_entrants("E", statuses, "t", "m")

        assert result.status == BatchStatus.SUCCESS
        assert result.status_counts == {"INVITED": 1}
        assert result.total_sent == 1

    @pytest.mark.asyncio
    async def test_no_statuses_selected(self, dispatcher, db):
        result = await dispatcher.send_notifications_to_entrants("E", [], "t", "m")

        assert result.status == BatchStatus.ERROR
        assert result.message == "No statuses selected"
        assert db.operations == []

    @pytest.mark.asyncio
    async def test_error_only_when_every_status_fails(self, dispatcher, db):
        db.fail_on("decisions.query_by_status")

        result = await dispatcher.send_notifications_to_entrants("E", ["INVITED", "LOST"], "t", "m")

        assert result.status == BatchStatus.ERROR
        assert result.total_sent == 0
        assert result.status_counts == {"INVITED": 0, "LOST": 0}

    @pytest.mark.asyncio
    async def test_one_bad_status_does_not_fail_the_batch(self, dispatcher, stores, seed_profile):
        await seed_profile("u1")
        await _seed_decision(stores, "E", "u1", DecisionStatus.ACCEPTED)

        result = await dispatcher.send_notifications_to_entrants("E", ["ACCEPTED", "bogus"], "t", "m")

        assert result.status == BatchStatus.SUCCESS
        assert result.status_counts == {"ACCEPTED": 1, "BOGUS": 0}


class TestInbox:
    """get_user_notifications / get_unread_notifications / mark_notification_read"""

    @pytest.mark.asyncio
    async def test_newest_first_and_unread_filter(self, dispatcher, seed_profile):
        await seed_profile("u1")
        with freeze_time("2024-05-01 09:00:00"):
            first = await dispatcher.send_notification("u1", "E", "PENDING", "first", "m")
        with freeze_time("2024-05-02 09:00:00"):
            await dispatcher.send_notification("u1", "E", "INVITED", "second", "m")

        await dispatcher.mark_notification_read("u1", first.id)

        inbox = await dispatcher.get_user_notifications("u1")
        assert [n.title for n in inbox] == ["second", "first"]
        assert [n.read for n in inbox] == [False, True]

        unread = await dispatcher.get_unread_notifications("u1")
        assert [n.title for n in unread] == ["second"]

    @pytest.mark.asyncio
    async def test_mark_read_changes_only_read_flag(self, dispatcher, db, seed_profile):
        await seed_profile("u1")
        ref = await dispatcher.send_notification("u1", "E", "INVITED", "title", "body")
        before = db.get(ref.path)

        await dispatcher.mark_notification_read("u1", ref.id)

        after = db.get(ref.path)
        assert after["read"] is True
        assert {k: v for k, v in after.items() if k != "read"} == {k: v for k, v in before.items() if k != "read"}

    @pytest.mark.asyncio
    async def test_mark_read_missing_notification(self, dispatcher):
        with pytest.raises(StoreError):
            await dispatcher.mark_notification_read("u1", "missing")
