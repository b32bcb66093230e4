"""Fixtures compartidos: SQLite temporal, fakeredis y cliente ASGI"""
import os

# Configuración de tests antes de importar settings
os.environ["APP_ENV"] = "test"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["QR_SECRET"] = "test-qr-secret"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fakeredis import FakeServer, aioredis as fake_aioredis  # noqa: E402

from app.core.security import create_access_token  # noqa: E402
from shared.cache.redis_client import set_redis  # noqa: E402
from shared.database import connection  # noqa: E402
from shared.database.models import Event  # noqa: E402
from shared.database.queries import create_ticket  # noqa: E402
from shared.utils.rate_limiter import limiter  # noqa: E402
from main import app  # noqa: E402

HOST_USER_ID = "host-user-1"
OTHER_HOST_USER_ID = "host-user-2"
HOLDER_USER_ID = "holder-user-1"


class FakeClock:
    """Reloj controlable; se llama como utc_now()"""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 3, 14, 20, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True
    limiter.reset()


@pytest.fixture(autouse=True)
def fake_redis():
    # Servidor propio por test: nada de cache entre tests
    client = fake_aioredis.FakeRedis(server=FakeServer(), decode_responses=True)
    set_redis(client)
    yield client
    set_redis(None)


@pytest_asyncio.fixture
async def database(tmp_path):
    # Archivo (no :memory:) para que sesiones concurrentes vean el mismo estado
    await connection.init_db(f"sqlite+aiosqlite:///{tmp_path / 'checkin.db'}", create_tables=True)
    yield connection
    await connection.close_db()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.async_session_maker() as session:
        yield session


async def make_event(db_session, host_user_id: str = HOST_USER_ID, title: str = "Friday Night Jazz") -> Event:
    event = Event(
        title=title,
        location_text="The Loft, 12 Main St",
        starts_at=datetime(2026, 3, 14, 21, 0, 0, tzinfo=timezone.utc),
        created_by_user_id=host_user_id,
    )
    db_session.add(event)
    await db_session.commit()
    return event


@pytest_asyncio.fixture
async def event(db_session):
    return await make_event(db_session)


@pytest_asyncio.fixture
async def other_event(db_session):
    return await make_event(db_session, host_user_id=OTHER_HOST_USER_ID, title="Sunday Matinee")


@pytest_asyncio.fixture
async def ticket(db_session, event):
    return await create_ticket(
        db_session,
        event,
        holder_name="Ada Lovelace",
        email="Ada@Example.com",
        quantity=2,
        price_per_ticket=Decimal("25.00"),
        user_id=HOLDER_USER_ID,
    )


@pytest_asyncio.fixture
async def cancelled_ticket(db_session, event):
    return await create_ticket(
        db_session,
        event,
        holder_name="Miles Davis",
        email="miles@example.com",
        quantity=1,
        price_per_ticket=Decimal("25.00"),
        status="cancelled",
    )


@pytest_asyncio.fixture
async def client(database):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user_id: str, role: str = "user") -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}


@pytest.fixture
def scanner_headers():
    return auth_headers("door-staff-1", role="scanner")


@pytest.fixture
def host_headers():
    return auth_headers(HOST_USER_ID)


@pytest.fixture
def other_host_headers():
    return auth_headers(OTHER_HOST_USER_ID)
