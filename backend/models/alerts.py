from datetime import datetime
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from models.base import Base

class Alert(Base):
    __tablename__ = 'alerts'

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False)
    message = Column(String, nullable=False)
    device_id = Column(Integer, ForeignKey('devices.id'), nullable=False, index=True)
    sensor_id = Column(Integer, ForeignKey('sensors.id'), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    video_path = Column(String, nullable=True)  # set once, after a successful capture

    device = relationship("Device")
    sensor = relationship("Sensor")
