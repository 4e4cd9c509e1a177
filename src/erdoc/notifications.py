"""
ERDoc - Consultation notifications.

Posts new consultation requests to the on-call Slack channel. Delivery is
fire-and-forget: errors are logged and the request record stands.
"""

import logging

import httpx

from erdoc.config import settings

logger = logging.getLogger(__name__)


def build_consultation_message(consultation: dict, person: dict | None) -> dict:
    """Slack payload for a new consultation request."""
    patient = "Unknown patient"
    if person:
        patient = f"{person.get('first_name', '')} {person.get('last_name', '')}".strip() or patient

    return {
        "text": (
            f":rotating_light: New consultation request\n"
            f"*Patient:* {patient}\n"
            f"*Chief complaint:* {consultation.get('chief_complaint', '')}\n"
            f"*Request ID:* {consultation.get('id', '')}"
        ),
    }


async def notify_consultation_created(consultation: dict, person: dict | None = None) -> bool:
    """
    Send the on-call notification.

    Returns True if the webhook accepted the message. Never raises.
    """
    webhook_url = settings.slack_webhook_url
    if not webhook_url:
        logger.info("Slack webhook not configured; skipping consultation notification")
        return False

    try:
        async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as http:
            response = await http.post(webhook_url, json=build_consultation_message(consultation, person))
            response.raise_for_status()
        return True
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Consultation notification failed for {consultation.get('id')}: {e}")
        return False
