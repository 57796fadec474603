"""Repository helpers for device push token persistence."""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import require_session_factory
from app.notifications.contracts import PushTokenEntry
from app.schema.push_tokens import PushToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushTokenRegistration:
  """Capture a single device registration payload for storage."""

  token: str
  platform: str
  device_info: dict[str, Any] | None = None


@dataclass(frozen=True)
class TokenCountSummary:
  """Token totals for the admin dashboard."""

  active: int
  inactive: int
  active_by_platform: dict[str, int] = field(default_factory=dict)


def _utc_now() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


class PushTokenRepository:
  """Persist and query device push tokens using SQLAlchemy."""

  async def find_active(self) -> list[PushTokenEntry]:
    """Return every active token, oldest registration first."""
    async with require_session_factory()() as session:
      stmt = select(PushToken).where(PushToken.is_active.is_(True)).order_by(PushToken.created_at, PushToken.id)
      result = await session.execute(stmt)
      rows = result.scalars().all()
      return [PushTokenEntry(id=row.id, token=row.token, platform=row.platform, is_active=row.is_active) for row in rows]

  async def bulk_update_last_used(self, ids: list[uuid.UUID], at: datetime.datetime) -> int:
    """Stamp last-used time on many tokens in one statement."""
    if not ids:
      return 0

    async with require_session_factory()() as session:
      stmt = update(PushToken).where(PushToken.id.in_(ids)).values(last_used_at=at).execution_options(synchronize_session=False)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  async def upsert(self, registration: PushTokenRegistration) -> tuple[uuid.UUID, bool]:
    """Create or refresh a token keyed by its token string; returns (id, created)."""
    session_factory = require_session_factory()
    async with session_factory() as session:
      existing_id = await self._reactivate_with_session(session=session, registration=registration)
      if existing_id is not None:
        return existing_id, False

      record = PushToken(token=registration.token, platform=registration.platform, device_info=registration.device_info, is_active=True, last_used_at=_utc_now())
      session.add(record)
      try:
        await session.commit()
        return record.id, True
      except IntegrityError:
        # Another request registered the same token between our read and insert.
        await session.rollback()
        logger.info("Concurrent registration detected; updating existing token instead")

    async with session_factory() as session:
      existing_id = await self._reactivate_with_session(session=session, registration=registration)
      if existing_id is None:
        raise RuntimeError("Push token vanished during concurrent registration")
      return existing_id, False

  async def _reactivate_with_session(self, *, session: AsyncSession, registration: PushTokenRegistration) -> uuid.UUID | None:
    # Re-registration overwrites device fields and always reactivates the row.
    result = await session.execute(select(PushToken).where(PushToken.token == registration.token))
    existing = result.scalar_one_or_none()
    if existing is None:
      return None

    existing.platform = registration.platform
    existing.device_info = registration.device_info
    existing.is_active = True
    existing.last_used_at = _utc_now()
    token_id = existing.id
    await session.commit()
    return token_id

  async def deactivate_by_token(self, token: str) -> int:
    """Soft-delete a token so registration history is preserved."""
    async with require_session_factory()() as session:
      stmt = update(PushToken).where(PushToken.token == token).values(is_active=False).execution_options(synchronize_session=False)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  async def count_summary(self) -> TokenCountSummary:
    """Count tokens by active flag and active tokens by platform."""
    async with require_session_factory()() as session:
      status_rows = await session.execute(select(PushToken.is_active, func.count(PushToken.id)).group_by(PushToken.is_active))
      counts = {bool(is_active): int(count) for is_active, count in status_rows.all()}
      platform_rows = await session.execute(select(PushToken.platform, func.count(PushToken.id)).where(PushToken.is_active.is_(True)).group_by(PushToken.platform).order_by(PushToken.platform))
      by_platform = {str(platform): int(count) for platform, count in platform_rows.all()}
      return TokenCountSummary(active=counts.get(True, 0), inactive=counts.get(False, 0), active_by_platform=by_platform)
