from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from models.base import Base

class Device(Base):
    __tablename__ = 'devices'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)  # name the gateway reports
    location = Column(String, nullable=True)
    status = Column(String, default="inactive", nullable=False)
    camera_url = Column(String, nullable=True)  # stream recorded for this device's alerts

    sensors = relationship("Sensor", back_populates="device", cascade="all, delete-orphan")
    users = relationship("Users", secondary="user_devices", back_populates="devices")
