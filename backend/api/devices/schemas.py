from pydantic import BaseModel, EmailStr
from typing import List, Optional

class SensorBase(BaseModel):
    name: str
    type: str = "motion"
    location: Optional[str] = None
    status: Optional[str] = "normal"

class SensorCreate(SensorBase):
    pass

class Sensor(SensorBase):
    id: int
    device_id: int

    class Config:
        from_attributes = True

class DeviceBase(BaseModel):
    name: str
    location: Optional[str] = None
    status: Optional[str] = "inactive"
    camera_url: Optional[str] = None

class DeviceCreate(DeviceBase):
    pass

class DeviceStatusUpdate(BaseModel):
    status: str

class DeviceUserCreate(BaseModel):
    email: EmailStr

class Device(DeviceBase):
    id: int
    sensors: List[Sensor] = []
    users: List[EmailStr] = []

    class Config:
        from_attributes = True

    @classmethod
    def from_orm(cls, obj):
        """Convert ORM model to schema, flattening users to their e-mails"""
        return cls(
            id=obj.id,
            name=obj.name,
            location=obj.location,
            status=obj.status,
            camera_url=obj.camera_url,
            sensors=[Sensor.model_validate(sensor) for sensor in obj.sensors],
            users=[user.email for user in obj.users],
        )
