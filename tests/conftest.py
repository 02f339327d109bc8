# tests/conftest.py
"""
In-process test harness.

- The app runs through httpx.AsyncClient + ASGITransport (no server, no lifespan)
- DATABASE_URL points at a throwaway SQLite file (aiosqlite); tables are
  dropped and re-created for every test
- Redis rate limiting and NATS publishing are switched off
"""
from __future__ import annotations

import os
import sys
import logging
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

_TMP = Path(tempfile.mkdtemp(prefix="securein-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'test.db'}"
os.environ["RL_ENABLED"] = "false"
os.environ["NATS_ENABLED"] = "false"
os.environ["VERIFY_BASE_URL"] = "http://gate.test"
os.environ["LOCAL_TIMEZONE"] = "Asia/Kolkata"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from httpx import AsyncClient, ASGITransport  # noqa: E402

from securein.main import app  # noqa: E402
from securein.db import engine, async_session_maker  # noqa: E402
from securein.models import Base, UserRole  # noqa: E402
from securein.core.security import create_access_token  # noqa: E402
from securein.services import auth_service  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout
               for h in root.handlers):
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(h)


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def db(schema):
    async with async_session_maker() as s:
        yield s


@pytest.fixture
async def client(schema):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def staff(db):
    return await auth_service.create_user(
        db, name="Gate Staff", email="staff@campus.test", password="staffpass", role=UserRole.STAFF
    )


@pytest.fixture
async def admin(db):
    return await auth_service.create_user(
        db, name="Admin", email="admin@campus.test", password="adminpass", role=UserRole.ADMIN
    )


def bearer(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id=user.id, role=user.role.value)}"}


@pytest.fixture
def staff_headers(staff) -> dict:
    return bearer(staff)


@pytest.fixture
def admin_headers(admin) -> dict:
    return bearer(admin)


@pytest.fixture
def issue(client, staff_headers):
    """POST /passes with a window relative to now (hours); returns the created pass JSON."""
    async def _issue(start_h: float = -1, end_h: float = 1, **body):
        now = datetime.now(timezone.utc)
        payload = {
            "visitorName": "Asha Rao",
            "visitorPhone": "+91 98450 00000",
            "visitType": "parent",
            "idType": "aadhaar",
            "idNumber": "XXXX-1234",
            "studentName": "Ravi Rao",
            "relationToStudent": "mother",
            "department": "Physics",
            "purpose": "Hostel visit",
            "validFrom": (now + timedelta(hours=start_h)).isoformat(),
            "validUntil": (now + timedelta(hours=end_h)).isoformat(),
            **body,
        }
        r = await client.post("/passes", json=payload, headers=staff_headers)
        assert r.status_code == 201, r.text
        return r.json()["pass"]
    return _issue
