# models/user_devices.py
from sqlalchemy import Table, Column, Integer, ForeignKey
from models.base import Base

user_devices = Table(
    "user_devices",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("device_id", Integer, ForeignKey("devices.id", ondelete="CASCADE"), primary_key=True)
)
