from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

class AlertIn(BaseModel):
    """
    Payload posted by the device gateway.

    Fields are optional at the schema level so that missing ones are reported
    as a 400 with the list of missing fields.
    """
    type: Optional[str] = None
    message: Optional[str] = None
    device: Optional[str] = None
    sensor: Optional[str] = None
    device_id: Optional[int] = None
    sensor_id: Optional[int] = None
    duration: Optional[int] = None
    video_path: Optional[str] = None

class AlertAccepted(BaseModel):
    message: str
    # gateway clients read the id as `alertId`
    alert_id: int = Field(serialization_alias="alertId")

class DeviceSummary(BaseModel):
    id: int
    name: str
    location: Optional[str] = None
    status: Optional[str] = None

    class Config:
        from_attributes = True

class SensorSummary(BaseModel):
    id: int
    name: str
    type: str
    location: Optional[str] = None

    class Config:
        from_attributes = True

class AlertResponse(BaseModel):
    id: int
    type: str
    message: str
    device_id: int
    sensor_id: int
    created_at: datetime
    video_path: Optional[str] = None
    device: Optional[DeviceSummary] = None
    sensor: Optional[SensorSummary] = None

    class Config:
        from_attributes = True


def alert_event(alert) -> dict:
    """JSON-ready alert as sent to the dashboard and used for mail."""
    return AlertResponse.model_validate(alert).model_dump(mode="json")
