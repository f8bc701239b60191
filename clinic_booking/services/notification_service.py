"""SMS notifications for appointment changes.

Messages go to an HTTP webhook (an SMS gateway) and are deduplicated through
Redis because realtime delivery is at-least-once.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from .realtime import APPOINTMENT_UPDATED, RealtimeBroker
from ..core.config import settings
from ..core.database import get_redis
from ..core.time_utils import format_date_time

logger = logging.getLogger(__name__)

DEDUPE_TTL_SECONDS = 24 * 3600


def build_sms_message(update_type: str, appointment: Dict[str, Any], time_zone: Optional[str] = None) -> Optional[str]:
    schedule = datetime.fromisoformat(appointment["schedule"])
    when = format_date_time(schedule, time_zone)

    if update_type == "schedule":
        return f"{settings.CLINIC_NAME}. Your appointment is scheduled on {when}. See you!"
    if update_type == "cancel":
        return (
            f"{settings.CLINIC_NAME}. We regret to inform you that your appointment for {when} "
            f"is cancelled. Reason: {appointment.get('cancellationReason') or 'not given'}."
        )
    return None


class SmsNotifier:
    def __init__(self, redis_client=None, http_client: Optional[httpx.Client] = None):
        self._redis = redis_client
        self._http_client = http_client

    @property
    def redis(self):
        return self._redis if self._redis is not None else get_redis()

    def register(self, broker: RealtimeBroker):
        return broker.subscribe("appointments", self.handle_event)

    def handle_event(self, event: str, payload: Dict[str, Any]) -> bool:
        """Send the SMS for an ``appointment.updated`` event. Returns True if sent."""
        if event != APPOINTMENT_UPDATED:
            return False

        appointment = payload.get("appointment") or {}
        update_type = payload.get("type")
        message = build_sms_message(update_type, appointment, payload.get("timeZone")) if appointment else None
        if not message:
            return False

        patient = appointment.get("patient") or {}
        phone = patient.get("phone")
        if not phone:
            logger.info(f"No phone number for appointment {appointment.get('id')}, SMS skipped")
            return False

        dedupe_key = f"sms:{appointment.get('id')}:{update_type}:{appointment.get('schedule')}"
        if self.redis.get(dedupe_key):
            logger.info(f"SMS already sent for {dedupe_key}")
            return False

        if not settings.SMS_WEBHOOK_URL:
            logger.info(f"SMS webhook not configured; would send to {phone}: {message}")
            return False

        self._send(phone, message)
        self.redis.setex(dedupe_key, DEDUPE_TTL_SECONDS, 1)
        return True

    def _send(self, phone: str, message: str):
        headers = {}
        if settings.SMS_WEBHOOK_TOKEN:
            headers["Authorization"] = f"Bearer {settings.SMS_WEBHOOK_TOKEN}"

        client = self._http_client or httpx.Client(timeout=settings.SMS_TIMEOUT_SECONDS)
        try:
            response = client.post(
                settings.SMS_WEBHOOK_URL,
                json={"to": phone, "message": message},
                headers=headers,
            )
            response.raise_for_status()
        finally:
            if self._http_client is None:
                client.close()

        logger.info(f"SMS sent to {phone}")


notifier = SmsNotifier()
