import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.database import create_all_tables, dispose_engine, redacted_database_url
from app.core.logging import _initialize_logging
from app.notifications.factory import build_broadcast_pipeline, build_push_gateway


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, storage and the shared push gateway for the process lifetime."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  _initialize_logging(settings)
  logger.info("Starting push relay environment=%s database=%s", settings.environment, redacted_database_url())

  if settings.auto_create_tables:
    try:
      created = await create_all_tables()
      logger.info("Auto-create tables %s", "applied" if created else "skipped (no database configured)")
    except Exception:
      # Fail-fast when the configured database cannot be prepared.
      logger.error("Failed to create database tables; refusing to start the service.", exc_info=True)
      raise

  # One gateway client per process; routes receive it through app.state.
  gateway = build_push_gateway(settings)
  app.state.push_gateway = gateway
  app.state.broadcast_pipeline = build_broadcast_pipeline(settings, gateway=gateway)
  logger.info("Startup complete.")

  try:
    yield
  finally:
    await gateway.aclose()
    await dispose_engine()
    logger.info("Shutdown complete.")
