"""Repository helpers for notification send logs."""

from __future__ import annotations

import datetime
import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import require_session_factory
from app.notifications.contracts import NotificationLogEntry
from app.schema.notification_logs import NotificationLog

logger = logging.getLogger(__name__)


class NotificationLogRepository:
  """Persist notification send logs using SQLAlchemy."""

  async def create(self, entry: NotificationLogEntry) -> uuid.UUID:
    """Insert a new notification log row."""
    async with require_session_factory()() as session:
      return await self._create_with_session(session=session, entry=entry)

  async def _create_with_session(self, *, session: AsyncSession, entry: NotificationLogEntry) -> uuid.UUID:
    record = NotificationLog(token_id=entry.token_id, title=entry.title, body=entry.body, data=entry.data, status=entry.status, ticket_id=entry.ticket_id)
    session.add(record)
    await session.commit()
    return record.id

  async def count(self, *, since: datetime.datetime | None = None) -> int:
    """Count logs, optionally restricted to those sent at or after `since`."""
    async with require_session_factory()() as session:
      stmt = select(func.count(NotificationLog.id))
      if since is not None:
        stmt = stmt.where(NotificationLog.sent_at >= since)
      result = await session.execute(stmt)
      return int(result.scalar_one())
