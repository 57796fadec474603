"""SQLAlchemy model for per-device notification send records."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.schema.types import JSONPayload


class NotificationLog(Base):
  """Append-only record of one notification sent to one push token."""

  __tablename__ = "notification_logs"

  id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
  token_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey("push_tokens.id", ondelete="SET NULL"), nullable=True)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  data: Mapped[dict[str, Any] | None] = mapped_column(JSONPayload, nullable=True)
  status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
  ticket_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
  # Receipt and delivery columns are reserved for receipt polling; the broadcast path leaves them empty.
  receipt_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
  error_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  sent_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
  delivered_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  read_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
