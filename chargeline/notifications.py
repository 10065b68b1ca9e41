"""
Customer notifications for charging orders.

Delivery is best effort: the lifecycle controller hands a prepared payload
to a notifier after the transition has been committed, and a failed
delivery is logged without touching the stored order.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Optional

import requests
from loguru import logger
from pydantic import BaseModel

from chargeline.config import NOTIFICATION_TIMEOUT, NOTIFICATION_WEBHOOK_URL
from chargeline.errors import NotificationDeliveryFailure
from chargeline.models import ChargingSession, Station


class ChargingNotification(BaseModel):
    """Payload handed to the notification sender."""

    type: str = "charging"
    event: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    order_number: str
    station_code: Optional[str] = None
    vehicle_number: Optional[str] = None
    start_time: Optional[datetime] = None
    expected_end_time: Optional[datetime] = None
    total_amount: Optional[Decimal] = None

    @classmethod
    def for_session(cls, event: str, session: ChargingSession, station: Optional[Station]):
        return cls(
            event=event,
            customer_name=session.customer_name,
            customer_email=session.customer_email,
            customer_phone=session.customer_phone,
            order_number=session.order_number,
            station_code=station.station_id if station else None,
            vehicle_number=session.vehicle_number,
            start_time=session.start_time,
            expected_end_time=session.expected_end_time,
            total_amount=session.total_amount,
        )


class Notifier:
    """Interface for notification senders."""

    async def send(self, payload: ChargingNotification) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Default sender: records the notification in the log only."""

    async def send(self, payload: ChargingNotification) -> None:
        logger.info(
            f"Notification ({payload.event}) for order {payload.order_number} "
            f"to {payload.customer_email or payload.customer_phone or payload.customer_name}"
        )


class WebhookNotifier(Notifier):
    """POST the payload as JSON to an external email/SMS sender."""

    def __init__(self, url: str, timeout: float = NOTIFICATION_TIMEOUT):
        self.url = url
        self.timeout = timeout

    def _post(self, body: dict):
        try:
            response = requests.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationDeliveryFailure(f"Notification request failed: {e}") from e

        if not response.ok:
            raise NotificationDeliveryFailure(
                f"Notification endpoint returned {response.status_code}"
            )

    async def send(self, payload: ChargingNotification) -> None:
        # requests is blocking; keep it off the event loop
        await asyncio.to_thread(self._post, payload.model_dump(mode="json"))
        logger.info(
            f"Notification ({payload.event}) for order {payload.order_number} delivered"
        )


def default_notifier() -> Notifier:
    """Webhook sender when a URL is configured, log-only otherwise."""
    if NOTIFICATION_WEBHOOK_URL:
        return WebhookNotifier(NOTIFICATION_WEBHOOK_URL)
    return LoggingNotifier()


async def dispatch(notifier: Notifier, payload: ChargingNotification) -> bool:
    """
    Send a notification, logging instead of raising on failure.

    Returns:
        bool: True if the notifier reported success
    """
    try:
        await notifier.send(payload)
        return True
    except Exception as e:
        logger.error(
            f"Failed to send {payload.event} notification for order "
            f"{payload.order_number}: {e}"
        )
        return False
