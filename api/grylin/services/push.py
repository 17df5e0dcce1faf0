"""
Push notification client.

Calls the push gateway service (on the private Docker network) to deliver a
notification to a device token.  All failures are logged and swallowed so a
gateway outage never breaks alert scheduling.
"""

import logging

import requests

from grylin.core.config import settings

logger = logging.getLogger(__name__)

ALERT_TITLES = {
    "deadline_7day": "Due in a week",
    "deadline_1day": "Due tomorrow",
    "overdue": "Overdue",
    "scam_warning": "Possible scam detected",
}


def alert_message(alert_type: str, document_title: str) -> tuple[str, str]:
    """(title, body) shown on the device for an alert."""
    title = ALERT_TITLES.get(alert_type, "GryLin reminder")
    if alert_type == "scam_warning":
        return title, f"\"{document_title}\" looks suspicious. Do not share OTPs or card details."
    if alert_type == "overdue":
        return title, f"\"{document_title}\" is past its due date."
    return title, f"\"{document_title}\" needs your attention."


def send_push(token: str | None, title: str, body: str, data: dict | None = None) -> bool:
    """
    Deliver one notification through the gateway.

    Returns True on success, False on any error (logs the reason).
    Safe to call with push_enabled=False or no token; returns False silently.
    """
    if not settings.push_enabled:
        return False
    if not token or not body:
        return False
    try:
        resp = requests.post(
            f"{settings.push_gateway_url}/send",
            json={"to": token, "title": title, "body": body, "data": data or {}},
            timeout=10,
        )
        if resp.status_code == 200:
            return True
        logger.warning("Push /send returned %d: %s", resp.status_code, resp.text[:200])
        return False
    except Exception as exc:
        logger.warning("Push send failed: %s", exc)
        return False
