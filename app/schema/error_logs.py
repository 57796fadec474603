"""SQLAlchemy model for client-reported errors."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import DateTime, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.schema.types import JSONPayload


class ErrorLog(Base):
  """Immutable error report submitted by a mobile client."""

  __tablename__ = "error_logs"

  id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
  token_id: Mapped[str | None] = mapped_column(Text, nullable=True)
  platform: Mapped[str | None] = mapped_column(Text, nullable=True)
  error_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  stack_trace: Mapped[str | None] = mapped_column(Text, nullable=True)
  context: Mapped[dict[str, Any] | None] = mapped_column(JSONPayload, nullable=True)
  app_version: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
