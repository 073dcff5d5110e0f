import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from api.alerts.schemas import AlertIn, alert_event
from core.alert_store import AlertStoreError
from core.capture import CaptureRejected, clip_base_name
from core.identity import ResolutionError

logger = logging.getLogger(__name__)


class IntakeRejected(Exception):
    """An alert was refused before anything was stored."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail)


class AlertIntake:
    """
    Drives one inbound alert: validate, resolve names, store, then dispatch.

    `submit` returns as soon as the alert is stored. Fan-out and capture are
    started on detached tasks and nothing they do can change the outcome
    already reported to the gateway.
    """

    def __init__(self, resolver, store, orchestrator, fanout, tasks,
                 capture_sensor_types=("motion",), camera_url: Optional[str] = None,
                 max_duration: int = 60):
        self.resolver = resolver
        self.store = store
        self.orchestrator = orchestrator
        self.fanout = fanout
        self.tasks = tasks
        self.capture_sensor_types = set(capture_sensor_types)
        self.camera_url = camera_url
        self.max_duration = max_duration

    def validate(self, payload: Optional[AlertIn]):
        if payload is None:
            raise IntakeRejected(400, "Empty payload")

        missing = []
        if not (payload.type or "").strip():
            missing.append("type")
        if not (payload.message or "").strip():
            missing.append("message")
        if not (payload.device or "").strip() and payload.device_id is None:
            missing.append("device")
        if not (payload.sensor or "").strip() and payload.sensor_id is None:
            missing.append("sensor")
        if missing:
            raise IntakeRejected(400, f"Missing required fields in payload: {', '.join(missing)}")

        if payload.duration is not None and not 1 <= payload.duration <= self.max_duration:
            raise IntakeRejected(400, f"Capture duration must be between 1 and {self.max_duration} seconds")

    async def submit(self, payload: Optional[AlertIn]):
        self.validate(payload)

        try:
            identity = await asyncio.to_thread(
                self.resolver.resolve,
                device=payload.device,
                sensor=payload.sensor,
                device_id=payload.device_id,
                sensor_id=payload.sensor_id,
            )
        except ResolutionError as e:
            raise IntakeRejected(400, str(e))
        except SQLAlchemyError as e:
            logger.error(f"Identity lookup failed: {e}")
            raise IntakeRejected(500, "Error processing alert")

        try:
            alert = await asyncio.to_thread(
                self.store.create, payload.type, payload.message, identity.device.id, identity.sensor.id
            )
        except AlertStoreError:
            raise IntakeRejected(500, "Error processing alert")

        logger.info(f"Alert {alert.id} stored ({alert.type} from {identity.device.name}/{identity.sensor.name})")

        if payload.video_path:
            await self._link_supplied_clip(alert, payload.video_path)

        self.dispatch(alert, identity, payload)
        return alert

    async def _link_supplied_clip(self, alert, video_path: str):
        """Gateway already recorded the clip; link it instead of capturing one."""
        try:
            if await asyncio.to_thread(self.store.set_capture_path, alert.id, video_path):
                alert.video_path = video_path
        except AlertStoreError as e:
            logger.error(f"Could not link supplied clip to alert {alert.id}: {e}")

    def wants_capture(self, identity, payload: AlertIn) -> Optional[str]:
        """Stream URL to record for this alert, or None when no clip is wanted."""
        if payload.video_path:
            return None
        if identity.sensor.type not in self.capture_sensor_types:
            return None
        return identity.device.camera_url or self.camera_url

    def dispatch(self, alert, identity, payload: AlertIn):
        self.tasks.spawn(self.fanout.dispatch(alert_event(alert)), name=f"fanout-{alert.id}")

        source = self.wants_capture(identity, payload)
        if source is None:
            return
        base_name = clip_base_name(alert.id, alert.created_at)
        try:
            self.orchestrator.start(alert.id, base_name, source, payload.duration)
        except CaptureRejected as e:
            logger.warning(f"Capture not started for alert {alert.id}: {e}")
