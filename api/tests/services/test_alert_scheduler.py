"""
DeadlineAlertScheduler tests against LocalStorage in a temp directory.
"now" is always passed explicitly.
"""
from datetime import datetime, timedelta, timezone

import pytest

from grylin.schemas.alert import AlertCreate, AlertResponse
from grylin.schemas.document import DocumentCreate
from grylin.schemas.user import NotificationSettings
from grylin.services import alert_scheduler
from grylin.services.alert_scheduler import (
    create_scam_warning,
    days_until_due,
    determine_alert_kind,
    group_by_urgency,
    is_kind_enabled,
    schedule_for_document,
)

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


async def new_doc(storage, user_id, due_in_days=None, **extra):
    due = NOW + timedelta(days=due_in_days) if due_in_days is not None else None
    return await storage.create_document(
        user_id, DocumentCreate(title="Electric Bill", category="Finance", due_date=due, **extra)
    )


class TestDetermineKind:
    @pytest.mark.parametrize(
        "delta, kind",
        [
            (timedelta(days=-2), "overdue"),
            (timedelta(hours=-1), "deadline_1day"),  # ceil(-1/24) == 0
            (timedelta(hours=3), "deadline_1day"),
            (timedelta(days=1), "deadline_1day"),
            (timedelta(days=1, hours=1), "deadline_7day"),
            (timedelta(days=7), "deadline_7day"),
            (timedelta(days=7, hours=1), None),
            (timedelta(days=30), None),
        ],
    )
    def test_boundaries(self, delta, kind):
        assert determine_alert_kind(NOW + delta, NOW) == kind

    def test_days_until_due_rounds_up(self):
        assert days_until_due(NOW + timedelta(hours=25), NOW) == 2

    def test_naive_datetimes_are_utc(self):
        assert days_until_due(datetime(2026, 3, 12, 9, 0), NOW) == 2


class TestToggles:
    def test_push_off_disables_everything(self):
        prefs = NotificationSettings(push_notifications_enabled=False)
        for kind in ("overdue", "deadline_1day", "deadline_7day", "scam_warning"):
            assert not is_kind_enabled(kind, prefs)

    def test_reminder_toggles(self):
        prefs = NotificationSettings(reminder_7day_enabled=False)
        assert not is_kind_enabled("deadline_7day", prefs)
        assert is_kind_enabled("deadline_1day", prefs)
        assert is_kind_enabled("overdue", NotificationSettings(reminder_1day_enabled=False))


class TestScheduleForDocument:
    @pytest.mark.asyncio
    async def test_creates_alert_with_due_date_trigger(self, storage, user_id, prefs):
        document = await new_doc(storage, user_id, due_in_days=5)
        alert = await schedule_for_document(storage, user_id, document, prefs, NOW)
        assert alert.alert_type == "deadline_7day"
        assert alert.trigger_date == document.due_date

    @pytest.mark.asyncio
    async def test_idempotent(self, storage, user_id, prefs):
        document = await new_doc(storage, user_id, due_in_days=1)
        assert await schedule_for_document(storage, user_id, document, prefs, NOW) is not None
        assert await schedule_for_document(storage, user_id, document, prefs, NOW) is None
        assert len(await storage.list_alerts(user_id)) == 1

    @pytest.mark.asyncio
    async def test_new_alert_after_dismissal(self, storage, user_id, prefs):
        document = await new_doc(storage, user_id, due_in_days=6)
        first = await schedule_for_document(storage, user_id, document, prefs, NOW)
        await storage.dismiss_alert(user_id, first.id)
        later = NOW + timedelta(days=5, hours=12)
        second = await schedule_for_document(storage, user_id, document, prefs, later)
        assert second.alert_type == "deadline_1day"

    @pytest.mark.asyncio
    async def test_skips_without_due_date(self, storage, user_id, prefs):
        document = await new_doc(storage, user_id)
        assert await schedule_for_document(storage, user_id, document, prefs, NOW) is None

    @pytest.mark.asyncio
    async def test_skips_paid_documents(self, storage, user_id, prefs):
        document = await new_doc(storage, user_id, due_in_days=-3)
        paid = await storage.update_document(user_id, document.id, status="paid")
        assert await schedule_for_document(storage, user_id, paid, prefs, NOW) is None

    @pytest.mark.asyncio
    async def test_respects_toggle(self, storage, user_id):
        document = await new_doc(storage, user_id, due_in_days=1)
        prefs = NotificationSettings(reminder_1day_enabled=False)
        assert await schedule_for_document(storage, user_id, document, prefs, NOW) is None

    @pytest.mark.asyncio
    async def test_store_failure_is_swallowed(self, storage, user_id, prefs, monkeypatch):
        document = await new_doc(storage, user_id, due_in_days=2)

        async def broken(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(storage, "create_alert", broken)
        assert await schedule_for_document(storage, user_id, document, prefs, NOW) is None


class TestCheckDeadlines:
    @pytest.mark.asyncio
    async def test_scans_unpaid_documents(self, storage, user_id):
        await new_doc(storage, user_id, due_in_days=-1)
        await new_doc(storage, user_id, due_in_days=3)
        await new_doc(storage, user_id, due_in_days=60)
        await new_doc(storage, user_id)

        created = await alert_scheduler.check_deadlines(storage, user_id, now=NOW)
        assert sorted(a.alert_type for a in created) == ["deadline_7day", "overdue"]

        # running again creates nothing new
        assert await alert_scheduler.check_deadlines(storage, user_id, now=NOW) == []

    @pytest.mark.asyncio
    async def test_push_disabled(self, storage, user_id):
        await new_doc(storage, user_id, due_in_days=-1)
        await storage.save_notification_settings(
            user_id, NotificationSettings(push_notifications_enabled=False)
        )
        assert await alert_scheduler.check_deadlines(storage, user_id, now=NOW) == []


class TestScamWarning:
    @pytest.mark.asyncio
    async def test_created_without_due_date(self, storage, user_id, prefs):
        document = await new_doc(storage, user_id, is_scam=True, risk_score=85)
        alert = await create_scam_warning(storage, user_id, document, prefs, NOW)
        assert alert.alert_type == "scam_warning"
        assert alert.trigger_date == NOW

    @pytest.mark.asyncio
    async def test_gated_by_push(self, storage, user_id):
        document = await new_doc(storage, user_id, is_scam=True)
        prefs = NotificationSettings(push_notifications_enabled=False)
        assert await create_scam_warning(storage, user_id, document, prefs, NOW) is None


class TestGroupByUrgency:
    @pytest.mark.asyncio
    async def test_buckets(self, storage, user_id):
        document = await new_doc(storage, user_id)
        triggers = {
            "overdue": NOW - timedelta(days=1),
            "today": NOW + timedelta(hours=5),
            "this_week": NOW + timedelta(days=3),
            "later": NOW + timedelta(days=20),
        }
        for trigger in triggers.values():
            await storage.create_alert(
                user_id, AlertCreate(document_id=document.id, alert_type="deadline_7day", trigger_date=trigger)
            )
        alerts = await storage.list_alerts(user_id)

        groups = group_by_urgency(alerts, NOW)
        assert [a.trigger_date for a in groups.overdue] == [triggers["overdue"]]
        assert [a.trigger_date for a in groups.today] == [triggers["today"]]
        assert [a.trigger_date for a in groups.this_week] == [triggers["this_week"]]
        assert [a.trigger_date for a in groups.later] == [triggers["later"]]

    def test_dismissed_are_left_out(self, user_id):
        alert = AlertResponse(
            id=user_id,
            user_id=user_id,
            document_id=user_id,
            alert_type="overdue",
            trigger_date=NOW,
            is_dismissed=True,
            is_sent=False,
            created_at=NOW,
        )
        groups = group_by_urgency([alert], NOW)
        assert groups.today == [] and groups.overdue == []
