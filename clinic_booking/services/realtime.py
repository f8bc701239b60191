"""In-process event fan-out mirrored to Redis pub/sub.

Delivery is at-least-once: a publish reaches every local subscriber and is
then pushed to Redis for other processes, so subscribers must be idempotent.
"""

import json
import logging
import threading
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Callable, Dict, List

from ..core.config import settings
from ..core.database import get_redis

logger = logging.getLogger(__name__)

APPOINTMENT_CREATED = "appointment.created"
APPOINTMENT_UPDATED = "appointment.updated"
AVAILABILITY_UPDATED = "availability.updated"

Subscriber = Callable[[str, Dict[str, Any]], None]


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class RealtimeBroker:
    def __init__(self, redis_client=None):
        self._redis = redis_client
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    @property
    def redis(self):
        return self._redis if self._redis is not None else get_redis()

    def subscribe(self, channel: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback(event, payload)``; returns an unsubscribe function."""
        with self._lock:
            self._subscribers[channel].append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers[channel]:
                    self._subscribers[channel].remove(callback)

        return unsubscribe

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> int:
        """Deliver to local subscribers, then to Redis. Returns local deliveries."""
        with self._lock:
            subscribers = list(self._subscribers.get(channel, []))

        delivered = 0
        for callback in subscribers:
            try:
                callback(event, payload)
                delivered += 1
            except Exception as exc:
                logger.error(f"Subscriber {getattr(callback, '__name__', callback)} failed on {event}: {exc}")

        message = json.dumps({"event": event, "payload": payload}, default=_json_default)
        try:
            self.redis.publish(f"{settings.REALTIME_CHANNEL_PREFIX}:{channel}", message)
        except Exception as exc:
            logger.error(f"Redis publish failed for {channel}: {exc}")

        return delivered

    def clear(self):
        with self._lock:
            self._subscribers.clear()


broker = RealtimeBroker()


def get_broker() -> RealtimeBroker:
    return broker
