import os
import asyncio
import tempfile

# point the app at throwaway storage before config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(tempfile.mkdtemp(), "alarma-test.db"))
os.environ.setdefault("VIDEO_DIR", tempfile.mkdtemp())

import bcrypt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.auth.security import create_access_token
from core.alert_store import AlertStore
from core.capture import CaptureError
from core.database import get_db, init_db, make_engine, make_session_factory
from core.identity import IdentityResolver
from models import Device, Sensor, Users
from services import AlarmServices


class FakeLive:
    """Records published events instead of sending them to Redis."""

    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    async def publish(self, event, data):
        if self.fail:
            raise ConnectionError("redis is down")
        self.events.append((event, data))
        return 1

    async def ping(self):
        return True

    def of_type(self, event):
        return [data for name, data in self.events if name == event]


class FakeMailer:
    """Collects mail; addresses in `fail_for` raise and those in `hang_for` never finish."""

    def __init__(self, live=None, fail_for=(), hang_for=()):
        self.live = live
        self.fail_for = set(fail_for)
        self.hang_for = set(hang_for)
        self.attempts = []
        self.sent = []
        self.live_events_seen = []

    async def send(self, recipient, subject, body):
        self.attempts.append(recipient)
        if self.live is not None:
            self.live_events_seen.append(len(self.live.events))
        if recipient in self.hang_for:
            await asyncio.sleep(3600)
        if recipient in self.fail_for:
            raise ConnectionRefusedError(f"mailbox {recipient} unavailable")
        self.sent.append((recipient, subject, body))


class FakeRecorder:
    """
    Stands in for ffmpeg.

    mode "ok" writes a small file, "fail" raises CaptureError, "hang" never
    returns. When `gate` is set, recording waits for it before finishing.
    """

    def __init__(self, mode="ok", gate=None):
        self.mode = mode
        self.gate = gate
        self.calls = []

    async def record(self, source, output, duration):
        self.calls.append((source, output, duration))
        output.write_bytes(b"\x00\x00\x00\x18ftypmp42")
        if self.gate is not None:
            await self.gate.wait()
        if self.mode == "fail":
            raise CaptureError("camera unreachable")
        if self.mode == "hang":
            await asyncio.sleep(3600)


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'alarma.db'}")
    init_db(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


def _hash(password):
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture
def identity(session_factory):
    """
    Two devices: ESP32 (camera attached, two users) and Garage (no camera, one user).
    Both carry a sensor; the names differ so ownership checks can be tested.
    """
    with session_factory() as db:
        admin = Users(email="admin@alarma.com", hashed_password=_hash("admin123"), is_admin=True)
        guard = Users(email="guard@alarma.com", hashed_password=_hash("guard123"))
        neighbour = Users(email="neighbour@alarma.com", hashed_password=_hash("neighbour123"))

        esp32 = Device(name="ESP32", location="Salón", status="inactive", camera_url="rtsp://camera.local/stream")
        garage = Device(name="Garage", location="Garage", status="inactive")
        esp32.users.extend([admin, guard])
        garage.users.append(neighbour)

        pir = Sensor(name="PIR_Principal", type="motion", location="Salón", device=esp32)
        door = Sensor(name="Door", type="door", location="Garage", device=garage)

        db.add_all([admin, guard, neighbour, esp32, garage, pir, door])
        db.commit()
        return {
            "admin": admin.id,
            "guard": guard.id,
            "neighbour": neighbour.id,
            "esp32": esp32.id,
            "garage": garage.id,
            "pir": pir.id,
            "door": door.id,
        }


@pytest.fixture
def store(session_factory):
    return AlertStore(session_factory)


@pytest.fixture
def resolver(session_factory):
    return IdentityResolver(session_factory)


@pytest.fixture
def live():
    return FakeLive()


@pytest.fixture
def mailer(live):
    return FakeMailer(live=live)


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def video_dir(tmp_path):
    return tmp_path / "videos"


@pytest_asyncio.fixture
async def alarm_services(resolver, store, live, mailer, recorder, video_dir, identity):
    alarm = AlarmServices(
        resolver, store, live, mailer, recorder, video_dir,
        capture_sensor_types={"motion"},
        default_duration=10,
        grace_seconds=0.5,
        mail_timeout=0.5,
    )
    yield alarm
    await alarm.shutdown(1)


@pytest_asyncio.fixture
async def client(alarm_services, session_factory):
    from main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.state.services = alarm_services
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    app.state.services = None


@pytest.fixture
def admin_headers(identity):
    token = create_access_token(identity["admin"], "admin@alarma.com", True)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def guard_headers(identity):
    token = create_access_token(identity["guard"], "guard@alarma.com", False)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def settle(alarm_services):
    """Returns a coroutine function waiting for detached fan-out and capture work."""
    async def _settle():
        await alarm_services.tasks.drain(5)
        await alarm_services.orchestrator.wait(5)
    return _settle
