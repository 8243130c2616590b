import os
import tempfile

# Settings are cached on first use; point them at throwaway storage before any import
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="ptm-explorer-logs-"))
os.environ.pop("REDIS_URL", None)

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from ptm_explorer.core.database import build_session_factory, create_tables
from ptm_explorer.services.repository import MemoryRepository
from ptm_explorer.services.sql_repository import SqlRepository


@pytest.fixture(params=["memory", "sqlite"])
async def repository(request):
    if request.param == "memory":
        yield MemoryRepository()
        return

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    yield SqlRepository(build_session_factory(engine))
    await engine.dispose()
