"""Test configuration for importing the application package."""

from __future__ import annotations

import os
import tempfile

# Settings are validated at import time; seed what the app requires before importing it.
os.environ.setdefault("PUSHRELAY_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("PUSHRELAY_LOG_DIR", os.path.join(tempfile.gettempdir(), "pushrelay-test-logs"))
os.environ.setdefault("PUSHRELAY_PUSH_ENABLED", "false")

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from app.core import database  # noqa: E402
from app.main import app  # noqa: E402
from app.schema import ErrorLog, NotificationLog, PushToken  # noqa: E402,F401


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
async def sqlite_sessions(monkeypatch, tmp_path):
  """Point the repositories at a fresh SQLite database file."""
  # File-backed so concurrent sessions get separate connections.
  engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'relay.db'}")
  async with engine.begin() as connection:
    await connection.run_sync(database.Base.metadata.create_all)

  session_factory = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
  monkeypatch.setattr(database, "SessionLocal", session_factory)
  try:
    yield session_factory
  finally:
    await engine.dispose()


@pytest.fixture
def api_app():
  try:
    yield app
  finally:
    app.dependency_overrides.clear()
