from __future__ import annotations

import os
import tempfile
from uuid import uuid4

# Point settings at a throwaway SQLite file before any ledgerhub module builds the engine.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), f'ledgerhub-test-{uuid4().hex}.db')}",
)
os.environ.setdefault("CURSOR_SECRET", "test-cursor-secret")

import pytest  # noqa: E402

from ledgerhub.apps.api.deps import clear_auth_cache  # noqa: E402
from ledgerhub.domain.models import Base  # noqa: E402
from ledgerhub.persistence.db import engine  # noqa: E402


@pytest.fixture(autouse=True)
async def create_schema() -> None:
    # create_all skips existing tables, so this is cheap after the first test.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture(autouse=True)
async def dispose_engine_between_tests() -> None:
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    yield
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_auth_cache() -> None:
    # Cached principals must not leak between tests that revoke or expire keys.
    clear_auth_cache()
    yield
    clear_auth_cache()
