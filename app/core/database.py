from __future__ import annotations

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import get_database_settings

_ASYNC_POSTGRES_DRIVER = "postgresql+asyncpg"


class Base(DeclarativeBase):
  pass


engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def _database_url() -> URL | None:
  """Parse the configured DSN, forcing the asyncpg driver for plain Postgres URLs."""
  dsn = get_database_settings().pg_dsn
  if not dsn:
    return None

  url = make_url(dsn)
  if url.drivername in {"postgres", "postgresql"}:
    url = url.set(drivername=_ASYNC_POSTGRES_DRIVER)
  return url


def redacted_database_url() -> str:
  """Render the configured DSN for logs with the password masked."""
  try:
    url = _database_url()
  except ArgumentError:
    return "<invalid>"
  if url is None:
    return "<unset>"
  return url.render_as_string(hide_password=True)


def get_db_engine() -> AsyncEngine | None:
  global engine
  if engine is not None:
    return engine

  url = _database_url()
  if url is None:
    return None

  settings = get_database_settings()
  connect_args = {"timeout": settings.pg_connect_timeout} if url.drivername == _ASYNC_POSTGRES_DRIVER else {}
  engine = create_async_engine(url, echo=settings.debug, pool_pre_ping=True, connect_args=connect_args)
  return engine


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
  global SessionLocal
  if SessionLocal is None:
    db_engine = get_db_engine()
    if db_engine is not None:
      SessionLocal = async_sessionmaker(bind=db_engine, expire_on_commit=False, class_=AsyncSession)
  return SessionLocal


def require_session_factory() -> async_sessionmaker[AsyncSession]:
  """Return the session factory or fail loudly when no database is configured."""
  session_factory = get_session_factory()
  if session_factory is None:
    raise RuntimeError("Database connection is not configured (PUSHRELAY_PG_DSN is missing).")
  return session_factory


async def create_all_tables() -> bool:
  """Create ORM tables when a database is configured; returns whether anything ran."""
  # Import models so their tables are registered on the metadata.
  from app.schema import error_logs, notification_logs, push_tokens  # noqa: F401

  db_engine = get_db_engine()
  if db_engine is None:
    return False

  async with db_engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)
  return True


async def dispose_engine() -> None:
  """Dispose pooled connections on shutdown."""
  global engine, SessionLocal
  if engine is not None:
    await engine.dispose()
  engine = None
  SessionLocal = None
