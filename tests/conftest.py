from __future__ import annotations

import os
import sys
from collections.abc import AsyncIterator
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from rolodex.core.config import get_settings  # noqa: E402

TEST_DB_PATH = ROOT / "test.db"
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
get_settings.cache_clear()

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"


async def _reset_database() -> None:
    from rolodex.core.db import engine
    from rolodex.models import Base

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)


@pytest.fixture()
async def client() -> AsyncIterator[AsyncClient]:
    from rolodex.main import app

    await _reset_database()

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers={"X-Owner-Id": OWNER_ID},
    ) as client:
        yield client


@pytest.fixture()
async def session():
    from rolodex.core.db import AsyncSessionLocal

    await _reset_database()

    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"
