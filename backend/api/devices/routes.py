import logging
from typing import List
from core.database import get_db
from sqlalchemy.orm import Session
from models import Device as DeviceModel, Sensor as SensorModel, Users
from core.notifications import DEVICE_STATUS_EVENT
from api.auth.schemas import UserResponseSchema
from api.auth.security import is_admin, get_current_user
from services import AlarmServices, get_services
from fastapi import APIRouter, Depends, HTTPException, status
from api.devices.schemas import Device, DeviceCreate, DeviceStatusUpdate, DeviceUserCreate, Sensor, SensorCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices", tags=["Devices"])


def _get_device(db: Session, device_id: int) -> DeviceModel:
    device = db.query(DeviceModel).filter(DeviceModel.id == device_id).first()
    if not device:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return device


@router.post("/", response_model=Device, status_code=status.HTTP_201_CREATED)
def create_device(device: DeviceCreate, db: Session = Depends(get_db), current_user: UserResponseSchema = Depends(is_admin)):
    existing = db.query(DeviceModel).filter(DeviceModel.name == device.name).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Device '{device.name}' already exists."
        )

    db_device = DeviceModel(**device.model_dump())
    db.add(db_device)
    db.commit()
    db.refresh(db_device)
    return Device.from_orm(db_device)


@router.get("/", response_model=List[Device])
def get_devices(db: Session = Depends(get_db), current_user: UserResponseSchema = Depends(is_admin)):
    return [Device.from_orm(device) for device in db.query(DeviceModel).order_by(DeviceModel.id).all()]


@router.get("/{device_id}", response_model=Device)
def get_device(device_id: int, db: Session = Depends(get_db), current_user: UserResponseSchema = Depends(get_current_user)):
    device = _get_device(db, device_id)
    if not current_user.is_admin and current_user.id not in [user.id for user in device.users]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this device.")
    return Device.from_orm(device)


@router.post("/{device_id}/sensors", response_model=Sensor, status_code=status.HTTP_201_CREATED)
def create_sensor(device_id: int, sensor: SensorCreate, db: Session = Depends(get_db),
                  current_user: UserResponseSchema = Depends(is_admin)):
    device = _get_device(db, device_id)
    existing = db.query(SensorModel).filter(SensorModel.device_id == device.id, SensorModel.name == sensor.name).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Sensor '{sensor.name}' already exists on device '{device.name}'."
        )

    db_sensor = SensorModel(device_id=device.id, **sensor.model_dump())
    db.add(db_sensor)
    db.commit()
    db.refresh(db_sensor)
    return db_sensor


@router.post("/{device_id}/users", response_model=Device)
def add_user_to_device(device_id: int, data: DeviceUserCreate, db: Session = Depends(get_db),
                       current_user: UserResponseSchema = Depends(is_admin)):
    """Associates a user with a device so they receive its alert e-mails."""
    device = _get_device(db, device_id)
    user = db.query(Users).filter(Users.email == data.email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if user not in device.users:
        device.users.append(user)
        db.commit()
        db.refresh(device)
    return Device.from_orm(device)


@router.patch("/{device_id}/status", response_model=Device)
async def update_device_status(device_id: int, update: DeviceStatusUpdate, db: Session = Depends(get_db),
                               services: AlarmServices = Depends(get_services),
                               current_user: UserResponseSchema = Depends(is_admin)):
    """Updates a device's status and pushes the change to live dashboards."""
    device = _get_device(db, device_id)
    device.status = update.status
    db.commit()
    db.refresh(device)

    try:
        await services.live.publish(DEVICE_STATUS_EVENT, {"device_id": device.id, "name": device.name, "status": device.status})
    except Exception as e:
        logger.error(f"Could not publish status of device {device.id}: {e}")

    return Device.from_orm(device)
