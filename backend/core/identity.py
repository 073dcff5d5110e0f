import logging
from dataclasses import dataclass
from typing import List, Optional

from models import Device, Sensor, Users, user_devices

logger = logging.getLogger(__name__)


class ResolutionError(Exception):
    """Raised when the device or sensor named by an alert is not registered."""

    def __init__(self, entity: str, value, device: Optional[str] = None):
        self.entity = entity
        self.value = value
        if entity == "device":
            message = f"Device '{value}' is not registered."
        else:
            message = f"Sensor '{value}' is not registered for device '{device}'."
        super().__init__(message)


@dataclass
class ResolvedIdentity:
    device: Device
    sensor: Sensor


class IdentityResolver:
    """
    Name-to-record lookup for devices and sensors.

    Gateways report devices and sensors by display name; older payloads carry
    raw identifiers instead. Both shapes go through `resolve`. When an
    identifier and a name are given for the same entity, the identifier wins.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def resolve(
        self,
        device: Optional[str] = None,
        sensor: Optional[str] = None,
        device_id: Optional[int] = None,
        sensor_id: Optional[int] = None,
    ) -> ResolvedIdentity:
        with self._session_factory() as db:
            if device_id is not None:
                device_obj = db.get(Device, device_id)
            else:
                device_obj = db.query(Device).filter(Device.name == device).first()

            if device_obj is None:
                missing = device_id if device_id is not None else device
                logger.info(f"Device not found: {missing}")
                raise ResolutionError("device", missing)

            query = db.query(Sensor).filter(Sensor.device_id == device_obj.id)
            if sensor_id is not None:
                sensor_obj = query.filter(Sensor.id == sensor_id).first()
            else:
                sensor_obj = query.filter(Sensor.name == sensor).first()

            if sensor_obj is None:
                missing = sensor_id if sensor_id is not None else sensor
                logger.info(f"Sensor not found: {missing} on device {device_obj.name}")
                raise ResolutionError("sensor", missing, device=device_obj.name)

            return ResolvedIdentity(device=device_obj, sensor=sensor_obj)

    def recipients_for_device(self, device_id: int) -> List[str]:
        """E-mail addresses of every user associated with the device."""
        with self._session_factory() as db:
            rows = (
                db.query(Users.email)
                .join(user_devices, user_devices.c.user_id == Users.id)
                .filter(user_devices.c.device_id == device_id)
                .order_by(Users.id)
                .all()
            )
            return [row.email for row in rows]

    def device_ids_for_user(self, user_id: int) -> List[int]:
        with self._session_factory() as db:
            rows = db.execute(
                user_devices.select().where(user_devices.c.user_id == user_id)
            ).fetchall()
            return [row.device_id for row in rows]
