import bcrypt
from core.database import SessionLocal, init_db
from models import Device, Sensor, Users

def seed():
    """Creates the default admin user, the ESP32 board and its PIR sensor if missing."""
    init_db()
    db = SessionLocal()
    try:
        admin = db.query(Users).filter(Users.email == "admin@alarma.com").first()
        if not admin:
            admin = Users(
                email="admin@alarma.com",
                hashed_password=bcrypt.hashpw("admin123".encode("utf-8"), bcrypt.gensalt()).decode("utf-8"),
                is_admin=True,
            )
            db.add(admin)

        device = db.query(Device).filter(Device.name == "ESP32").first()
        if not device:
            device = Device(name="ESP32", location="Salón", status="inactive")
            db.add(device)
            db.flush()

        if admin not in device.users:
            device.users.append(admin)

        sensor = db.query(Sensor).filter(Sensor.device_id == device.id, Sensor.name == "PIR_Principal").first()
        if not sensor:
            sensor = Sensor(name="PIR_Principal", type="motion", location="Salón", status="normal", device_id=device.id)
            db.add(sensor)

        db.commit()
        print(f'User: {admin.email}')
        print(f'Device: {device.name} (ID {device.id})')
        print(f'Sensor: {sensor.name} (ID {sensor.id})')
    finally:
        db.close()

if __name__ == "__main__":
    seed()
