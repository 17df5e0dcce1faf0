"""
Guardian alert scheduler: turns due dates into reminder alerts.

    days = ceil((due_date - now) / 1 day)

    days < 0        overdue          (push toggle only)
    0 <= days <= 1  deadline_1day    (push + 1-day toggle)
    1 < days <= 7   deadline_7day    (push + 7-day toggle)
    days > 7        nothing yet

A document never has more than one non-dismissed alert: if one exists the
scheduler does nothing, so re-running a check is harmless.  Scam warnings
are raised on a positive verdict regardless of due date, gated by the push
toggle alone.

Creating an alert is a side effect of scanning or checking; when the store
refuses the write the failure is logged and the caller carries on.
"""
import logging
import math
import uuid
from datetime import datetime, timedelta, timezone

from grylin.schemas.alert import AlertCreate, AlertResponse, AlertType, GroupedAlerts
from grylin.schemas.document import DocumentResponse
from grylin.schemas.user import NotificationSettings
from grylin.storage.base import StorageBackend

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
WEEK_DAYS = 7


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def days_until_due(due_date: datetime, now: datetime) -> int:
    return math.ceil((_aware(due_date) - _aware(now)) / ONE_DAY)


def determine_alert_kind(due_date: datetime, now: datetime) -> AlertType | None:
    days = days_until_due(due_date, now)
    if days < 0:
        return "overdue"
    if days <= 1:
        return "deadline_1day"
    if days <= WEEK_DAYS:
        return "deadline_7day"
    return None


def is_kind_enabled(kind: AlertType, prefs: NotificationSettings) -> bool:
    if not prefs.push_notifications_enabled:
        return False
    if kind == "deadline_1day":
        return prefs.reminder_1day_enabled
    if kind == "deadline_7day":
        return prefs.reminder_7day_enabled
    return True


async def _create(
    storage: StorageBackend, user_id: uuid.UUID, document_id: uuid.UUID, kind: AlertType, trigger: datetime
) -> AlertResponse | None:
    try:
        alert = await storage.create_alert(
            user_id, AlertCreate(document_id=document_id, alert_type=kind, trigger_date=trigger)
        )
    except Exception as exc:
        logger.warning("Failed to create %s alert for document %s: %s", kind, document_id, exc)
        return None
    logger.info("Created %s alert for document %s", kind, document_id)
    return alert


async def schedule_for_document(
    storage: StorageBackend,
    user_id: uuid.UUID,
    document: DocumentResponse,
    prefs: NotificationSettings,
    now: datetime | None = None,
) -> AlertResponse | None:
    """Create the deadline alert this document is due, if any."""
    if document.due_date is None or document.status != "new":
        return None

    kind = determine_alert_kind(document.due_date, now or datetime.now(timezone.utc))
    if kind is None or not is_kind_enabled(kind, prefs):
        return None

    if await storage.get_active_alert(user_id, document.id) is not None:
        return None

    return await _create(storage, user_id, document.id, kind, _aware(document.due_date))


async def check_deadlines(
    storage: StorageBackend,
    user_id: uuid.UUID,
    now: datetime | None = None,
    prefs: NotificationSettings | None = None,
) -> list[AlertResponse]:
    """Scan every unpaid document with a due date; return the alerts created."""
    prefs = prefs or await storage.get_notification_settings(user_id)
    if not prefs.push_notifications_enabled:
        return []

    now = now or datetime.now(timezone.utc)
    created = []
    for document in await storage.list_documents(user_id, status="new"):
        alert = await schedule_for_document(storage, user_id, document, prefs, now)
        if alert is not None:
            created.append(alert)

    if created:
        logger.info("Deadline check for user %s created %d alert(s)", user_id, len(created))
    return created


async def create_scam_warning(
    storage: StorageBackend,
    user_id: uuid.UUID,
    document: DocumentResponse,
    prefs: NotificationSettings,
    now: datetime | None = None,
) -> AlertResponse | None:
    if not prefs.push_notifications_enabled:
        return None
    if await storage.get_active_alert(user_id, document.id) is not None:
        return None
    return await _create(storage, user_id, document.id, "scam_warning", now or datetime.now(timezone.utc))


def group_by_urgency(alerts: list[AlertResponse], now: datetime | None = None) -> GroupedAlerts:
    """
    Bucket active alerts by trigger date relative to ``now``.

    overdue: before today; today: within today; this_week: after today up
    to the end of the seventh day from now; later: everything after that.
    """
    now = _aware(now or datetime.now(timezone.utc))
    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end_of_today = start_of_today + ONE_DAY - timedelta(microseconds=1)
    end_of_week = end_of_today + timedelta(days=WEEK_DAYS)

    groups = GroupedAlerts(overdue=[], today=[], this_week=[], later=[])
    for alert in alerts:
        if alert.is_dismissed:
            continue
        trigger = _aware(alert.trigger_date)
        if trigger < start_of_today:
            groups.overdue.append(alert)
        elif trigger <= end_of_today:
            groups.today.append(alert)
        elif trigger <= end_of_week:
            groups.this_week.append(alert)
        else:
            groups.later.append(alert)
    return groups
