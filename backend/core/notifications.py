import json
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List

import redis.asyncio as redis

from core.celery.celery_app import celery_app  # noqa: F401  binds shared tasks to the broker
from core.celery.alert_tasks import deliver_email, send_alert_email

logger = logging.getLogger(__name__)

ALERT_EVENT = "alert"
DEVICE_STATUS_EVENT = "device_status"


class RedisLivePublisher:
    """Publishes dashboard events on a Redis pub/sub channel relayed by every API process."""

    def __init__(self, redis_url: str, channel: str):
        self.channel = channel
        self._client = redis.from_url(redis_url, decode_responses=True)

    async def publish(self, event: str, data: dict) -> int:
        message = json.dumps({"event": event, "data": data}, default=str)
        return await self._client.publish(self.channel, message)

    async def ping(self) -> bool:
        return await self._client.ping()

    async def close(self):
        await self._client.aclose()


class SmtpMailer:
    """Sends mail over SMTP_SSL from a worker thread."""

    def __init__(self, server: str, port: int, sender: str, password: str, timeout: float = 15):
        self.server = server
        self.port = port
        self.sender = sender
        self.password = password
        self.timeout = timeout

    async def send(self, recipient: str, subject: str, body: str):
        if not self.server or not self.sender:
            raise RuntimeError("SMTP is not configured")
        await asyncio.to_thread(
            deliver_email, self.sender, self.password, recipient, subject, body,
            self.server, self.port, self.timeout,
        )


class CeleryMailer:
    """Hands each mail to the Celery `send_alert_email` task; delivery happens on a worker."""

    async def send(self, recipient: str, subject: str, body: str):
        await asyncio.to_thread(send_alert_email.apply_async, args=[recipient, subject, body], queue="mail_queue")


@dataclass
class FanoutReport:
    alert_id: int
    live_published: bool = False
    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def alert_mail(alert: dict):
    """Subject and plain-text body of the alert notification."""
    device = (alert.get("device") or {}).get("name", alert.get("device_id"))
    sensor = (alert.get("sensor") or {}).get("name", alert.get("sensor_id"))
    subject = f"Alarm alert: {alert['type']} on {device}"
    body = (
        f"Type: {alert['type']}\n"
        f"Message: {alert['message']}\n"
        f"Device: {device}\n"
        f"Sensor: {sensor}\n"
        f"Time: {alert['created_at']}\n"
    )
    return subject, body


class NotificationFanout:
    """
    Dispatches a stored alert to the live dashboard, then mails the device's users.

    The live publish always goes first. Mail is sent to every recipient
    concurrently; each one has its own timeout, and a failed recipient does
    not affect the others. Nothing is retried.
    """

    def __init__(self, live, mailer, recipients_for: Callable[[int], List[str]], mail_timeout: float = 15):
        self.live = live
        self.mailer = mailer
        self.recipients_for = recipients_for
        self.mail_timeout = mail_timeout

    async def dispatch(self, alert: dict) -> FanoutReport:
        report = FanoutReport(alert_id=alert["id"])

        try:
            await self.live.publish(ALERT_EVENT, alert)
            report.live_published = True
        except Exception as e:
            logger.error(f"Live publish failed for alert {alert['id']}: {e}")

        try:
            recipients = await asyncio.to_thread(self.recipients_for, alert["device_id"])
        except Exception as e:
            logger.error(f"Could not resolve mail recipients for alert {alert['id']}: {e}")
            return report

        if not recipients:
            logger.info(f"No users to notify for alert {alert['id']}")
            return report

        subject, body = alert_mail(alert)
        results = await asyncio.gather(*(self._send_one(r, subject, body) for r in recipients))
        for recipient, ok in zip(recipients, results):
            (report.delivered if ok else report.failed).append(recipient)

        logger.info(
            f"Alert {alert['id']} mailed to {len(report.delivered)}/{len(recipients)} recipient(s)"
        )
        return report

    async def _send_one(self, recipient: str, subject: str, body: str) -> bool:
        try:
            await asyncio.wait_for(self.mailer.send(recipient, subject, body), timeout=self.mail_timeout)
            return True
        except asyncio.TimeoutError:
            logger.error(f"Mail to {recipient} timed out after {self.mail_timeout}s")
        except Exception as e:
            logger.error(f"Mail to {recipient} failed: {e}")
        return False
