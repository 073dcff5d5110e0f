import logging
from fastapi import Request

from config import settings
from api.alerts.intake import AlertIntake
from api.alerts.schemas import alert_event
from core.alert_store import AlertStore
from core.background import DetachedTasks
from core.capture import CaptureOrchestrator, FfmpegRecorder
from core.identity import IdentityResolver
from core.notifications import (
    ALERT_EVENT, CeleryMailer, NotificationFanout, RedisLivePublisher, SmtpMailer,
)

logger = logging.getLogger(__name__)


class AlarmServices:
    """
    Process-wide services shared by the request handlers.

    Built once at startup and shut down explicitly; routes get them through
    the `get_services` dependency.
    """

    def __init__(self, resolver, store, live, mailer, recorder, video_dir, *,
                 video_url_prefix="/videos", capture_sensor_types=("motion",), camera_url=None,
                 default_duration=10, max_duration=60, grace_seconds=5.0, mail_timeout=15.0):
        self.resolver = resolver
        self.store = store
        self.live = live
        self.mailer = mailer
        self.tasks = DetachedTasks()
        self.orchestrator = CaptureOrchestrator(
            store,
            recorder,
            video_dir,
            url_prefix=video_url_prefix,
            default_duration=default_duration,
            grace_seconds=grace_seconds,
            on_linked=self.announce_clip,
        )
        self.fanout = NotificationFanout(live, mailer, resolver.recipients_for_device, mail_timeout=mail_timeout)
        self.intake = AlertIntake(
            resolver, store, self.orchestrator, self.fanout, self.tasks,
            capture_sensor_types=capture_sensor_types,
            camera_url=camera_url,
            max_duration=max_duration,
        )

    async def announce_clip(self, alert):
        """Re-publishes an alert once its clip is linked."""
        await self.live.publish(ALERT_EVENT, alert_event(alert))

    async def shutdown(self, grace_seconds: float):
        await self.orchestrator.shutdown(grace_seconds)
        await self.tasks.drain(grace_seconds)
        close = getattr(self.live, "close", None)
        if close is not None:
            await close()
        logger.info("Alarm services stopped.")


def build_services(session_factory) -> AlarmServices:
    """Wires the production services from settings."""
    mailer = CeleryMailer() if settings.MAIL_BACKEND == "celery" else SmtpMailer(
        settings.SMTP_SERVER, settings.SMTP_PORT, settings.SMTP_EMAIL, settings.SMTP_PASSWORD,
        timeout=settings.MAIL_TIMEOUT_SECONDS,
    )
    return AlarmServices(
        IdentityResolver(session_factory),
        AlertStore(session_factory),
        RedisLivePublisher(settings.REDIS_URL, settings.LIVE_CHANNEL),
        mailer,
        FfmpegRecorder(settings.FFMPEG_BINARY),
        settings.VIDEO_DIR,
        video_url_prefix=settings.VIDEO_URL_PREFIX,
        capture_sensor_types=settings.capture_sensor_types,
        camera_url=settings.CAMERA_STREAM_URL,
        default_duration=settings.CAPTURE_DEFAULT_SECONDS,
        max_duration=settings.CAPTURE_MAX_SECONDS,
        grace_seconds=settings.CAPTURE_GRACE_SECONDS,
        mail_timeout=settings.MAIL_TIMEOUT_SECONDS,
    )


def get_services(request: Request) -> AlarmServices:
    """Dependency returning the services built at startup."""
    return request.app.state.services
