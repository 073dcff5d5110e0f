from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from models.base import Base

class Sensor(Base):
    __tablename__ = 'sensors'
    __table_args__ = (UniqueConstraint("device_id", "name", name="uq_sensor_device_name"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    type = Column(String, nullable=False, default="motion")
    location = Column(String, nullable=True)
    status = Column(String, default="normal", nullable=False)
    device_id = Column(Integer, ForeignKey('devices.id', ondelete="CASCADE"), nullable=False)

    device = relationship("Device", back_populates="sensors")
