"""SQLAlchemy model for registered device push tokens."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import Boolean, DateTime, String, Text, Uuid, func, true
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.schema.types import JSONPayload


class PushToken(Base):
  """Persist one gateway-issued device address; rows are deactivated, never deleted."""

  __tablename__ = "push_tokens"

  id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
  token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
  platform: Mapped[str] = mapped_column(String(32), nullable=False)
  device_info: Mapped[dict[str, Any] | None] = mapped_column(JSONPayload, nullable=True)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true(), index=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
  last_used_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
