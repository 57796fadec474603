"""Postgres-backed storage for client error reports."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Select, desc, func, select

from app.core.database import require_session_factory
from app.schema.error_logs import ErrorLog


@dataclass(frozen=True)
class ErrorReport:
  """Capture a single client-side error for storage."""

  error_type: str
  message: str
  token_id: str | None = None
  platform: str | None = None
  stack_trace: str | None = None
  context: dict[str, Any] | None = None
  app_version: str | None = None


@dataclass(frozen=True)
class ErrorLogRecord:
  """Read-side view of a stored error report."""

  id: uuid.UUID
  token_id: str | None
  platform: str | None
  error_type: str
  message: str
  stack_trace: str | None
  context: dict[str, Any] | None
  app_version: str | None
  created_at: datetime.datetime


@dataclass(frozen=True)
class ErrorTypeCount:
  error_type: str
  count: int


@dataclass(frozen=True)
class ErrorLogSummary:
  """Filtered total plus an unfiltered count per error type."""

  total: int
  by_type: list[ErrorTypeCount] = field(default_factory=list)


def _apply_filters(stmt: Select, *, error_type: str | None, platform: str | None) -> Select:
  if error_type:
    stmt = stmt.where(ErrorLog.error_type == error_type)
  if platform:
    stmt = stmt.where(ErrorLog.platform == platform)
  return stmt


class ErrorLogRepository:
  """Persist and query client error reports."""

  async def insert(self, report: ErrorReport) -> uuid.UUID:
    """Insert a new error report and return its id."""
    async with require_session_factory()() as session:
      record = ErrorLog(
        token_id=report.token_id,
        platform=report.platform,
        error_type=report.error_type,
        message=report.message,
        stack_trace=report.stack_trace,
        context=report.context,
        app_version=report.app_version,
      )
      session.add(record)
      await session.commit()
      return record.id

  async def list_recent(self, *, error_type: str | None = None, platform: str | None = None, limit: int = 50) -> list[ErrorLogRecord]:
    """Return the newest reports matching the optional filters."""
    async with require_session_factory()() as session:
      stmt = _apply_filters(select(ErrorLog), error_type=error_type, platform=platform)
      stmt = stmt.order_by(desc(ErrorLog.created_at), desc(ErrorLog.id)).limit(limit)
      result = await session.execute(stmt)
      return [
        ErrorLogRecord(
          id=row.id,
          token_id=row.token_id,
          platform=row.platform,
          error_type=row.error_type,
          message=row.message,
          stack_trace=row.stack_trace,
          context=row.context,
          app_version=row.app_version,
          created_at=row.created_at,
        )
        for row in result.scalars().all()
      ]

  async def summarize(self, *, error_type: str | None = None, platform: str | None = None) -> ErrorLogSummary:
    """Count reports matching the filters and group all reports by type."""
    async with require_session_factory()() as session:
      total_stmt = _apply_filters(select(func.count(ErrorLog.id)), error_type=error_type, platform=platform)
      total = int((await session.execute(total_stmt)).scalar_one())

      # The per-type breakdown covers every report so the dashboard can offer all filter values.
      count_column = func.count(ErrorLog.id)
      type_stmt = select(ErrorLog.error_type, count_column).group_by(ErrorLog.error_type).order_by(desc(count_column), ErrorLog.error_type)
      type_rows = (await session.execute(type_stmt)).all()
      return ErrorLogSummary(total=total, by_type=[ErrorTypeCount(error_type=str(name), count=int(count)) for name, count in type_rows])
