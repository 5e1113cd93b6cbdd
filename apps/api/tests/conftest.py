import os

# Must be set before config/database are imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from connector_testkit import make_oauth_config
from config import OAuthClientConfig
from database import Base
import models  # noqa: F401


@pytest.fixture
def oauth_config() -> OAuthClientConfig:
    return make_oauth_config()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "social_connect.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")

    # SQLite ignores foreign keys unless asked; PostgreSQL always enforces them.
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()
