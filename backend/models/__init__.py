# models/__init__.py
from .base import Base
from .users import Users
from .devices import Device
from .sensors import Sensor
from .user_devices import user_devices
from .alerts import Alert
