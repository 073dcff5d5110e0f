import logging
from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from models import Alert

logger = logging.getLogger(__name__)


class AlertStoreError(Exception):
    """The alert store could not complete a read or write."""


class AlertStore:
    """
    Durable record of alerts.

    Every operation opens its own session, so the store can be shared by
    request handlers and detached capture jobs running on worker threads.
    Writes touching the same alert are serialized by the database: the
    capture path is linked with a single conditional UPDATE, which either
    hits the row before a concurrent DELETE or finds nothing after it.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _load(self, db, alert_id: int) -> Optional[Alert]:
        return (
            db.query(Alert)
            .options(joinedload(Alert.device), joinedload(Alert.sensor))
            .filter(Alert.id == alert_id)
            .first()
        )

    def create(self, type: str, message: str, device_id: int, sensor_id: int) -> Alert:
        """Inserts an alert and returns it with its device and sensor loaded."""
        with self._session_factory() as db:
            try:
                alert = Alert(type=type, message=message, device_id=device_id, sensor_id=sensor_id)
                db.add(alert)
                db.commit()
                return self._load(db, alert.id)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to store alert for device {device_id}: {e}")
                raise AlertStoreError("could not store alert") from e

    def set_capture_path(self, alert_id: int, path: str) -> bool:
        """
        Links a captured clip to an alert.

        Returns False when the alert no longer exists or already has a clip;
        the path is never overwritten.
        """
        with self._session_factory() as db:
            try:
                result = db.execute(
                    update(Alert)
                    .where(Alert.id == alert_id, Alert.video_path.is_(None))
                    .values(video_path=path)
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise AlertStoreError(f"could not link clip to alert {alert_id}") from e
            return result.rowcount == 1

    def get(self, alert_id: int) -> Optional[Alert]:
        with self._session_factory() as db:
            try:
                return self._load(db, alert_id)
            except SQLAlchemyError as e:
                raise AlertStoreError(f"could not read alert {alert_id}") from e

    def delete(self, alert_id: int) -> Optional[Alert]:
        """Deletes an alert and returns the removed record, or None if unknown."""
        with self._session_factory() as db:
            try:
                # row lock: a capture path linked concurrently is either in the
                # returned record or blocked until the row is gone
                alert = db.query(Alert).filter(Alert.id == alert_id).with_for_update().first()
                if alert is None:
                    return None
                db.delete(alert)
                db.commit()
                return alert
            except SQLAlchemyError as e:
                db.rollback()
                raise AlertStoreError(f"could not delete alert {alert_id}") from e

    def list(self, device_ids: Optional[Iterable[int]] = None) -> List[Alert]:
        """Alerts newest first, optionally restricted to some devices."""
        with self._session_factory() as db:
            try:
                query = db.query(Alert).options(joinedload(Alert.device), joinedload(Alert.sensor))
                if device_ids is not None:
                    query = query.filter(Alert.device_id.in_(list(device_ids)))
                return query.order_by(Alert.created_at.desc(), Alert.id.desc()).all()
            except SQLAlchemyError as e:
                raise AlertStoreError("could not list alerts") from e
