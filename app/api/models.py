"""Request and response models for the relay HTTP API."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.notifications.broadcast import BatchError, BroadcastResult
from app.notifications.contracts import PushPriority, PushTicket
from app.storage.error_logs_repo import ErrorLogRecord


def _to_camel(string: str) -> str:
  """Convert snake_case to camelCase so the API speaks the mobile client's payload style."""
  parts = string.split("_")
  if not parts:
    return string
  return parts[0] + "".join(part[:1].upper() + part[1:] for part in parts[1:])


class CamelModel(BaseModel):
  model_config = ConfigDict(populate_by_name=True, extra="ignore", alias_generator=_to_camel)


class SendNotificationRequest(CamelModel):
  """Broadcast request; title/body are checked by the pipeline so failures map to 400."""

  title: str | None = None
  body: str | None = None
  data: dict[str, Any] | None = None
  sound: str | None = Field(default=None, max_length=64)
  badge: int | None = Field(default=None, ge=0)
  priority: PushPriority | None = None


class TicketModel(CamelModel):
  status: str
  id: str | None = None
  message: str | None = None
  details: dict[str, Any] | None = None

  @classmethod
  def from_ticket(cls, ticket: PushTicket) -> TicketModel:
    return cls(status=ticket.status, id=ticket.id, message=ticket.message, details=ticket.details)


class BatchErrorModel(CamelModel):
  batch: int
  size: int
  error_type: str
  message: str

  @classmethod
  def from_error(cls, error: BatchError) -> BatchErrorModel:
    return cls(batch=error.batch_index, size=error.size, error_type=error.error_type, message=error.message)


class SendNotificationResponse(CamelModel):
  success: bool
  message: str
  sent: int
  tickets: list[TicketModel] = Field(default_factory=list)
  errors: list[BatchErrorModel] | None = None

  @classmethod
  def from_result(cls, result: BroadcastResult) -> SendNotificationResponse:
    # Batch errors are only reported when at least one batch failed.
    errors = [BatchErrorModel.from_error(error) for error in result.errors] or None
    return cls(success=result.success, message=result.message, sent=result.sent, tickets=[TicketModel.from_ticket(ticket) for ticket in result.tickets], errors=errors)


class RegisterTokenRequest(CamelModel):
  token: str | None = None
  platform: str = Field(..., pattern="^(ios|android|web)$")
  device_info: dict[str, Any] | None = None


class RegisterTokenResponse(CamelModel):
  success: bool
  message: str
  token_id: uuid.UUID


class UnregisterTokenRequest(CamelModel):
  expo_push_token: str | None = None


class UnregisterTokenResponse(CamelModel):
  success: bool
  message: str
  count: int


class PlatformCount(CamelModel):
  platform: str
  count: int


class NotificationStats(CamelModel):
  total_active_tokens: int
  total_inactive_tokens: int
  platform_breakdown: list[PlatformCount]
  notifications_sent_24h: int
  total_notifications_sent: int


class NotificationStatsResponse(CamelModel):
  success: bool
  stats: NotificationStats


class ErrorReportRequest(CamelModel):
  """Client error report; errorType and message are enforced by the route so failures map to 400."""

  error_type: str | None = None
  message: str | None = None
  token_id: str | None = None
  platform: str | None = None
  stack_trace: str | None = None
  context: dict[str, Any] | None = None
  app_version: str | None = None


class ErrorReportResponse(CamelModel):
  success: bool
  id: uuid.UUID


class ErrorLogModel(CamelModel):
  id: uuid.UUID
  token_id: str | None
  platform: str | None
  error_type: str
  message: str
  stack_trace: str | None
  context: dict[str, Any] | None
  app_version: str | None
  created_at: datetime.datetime

  @classmethod
  def from_record(cls, record: ErrorLogRecord) -> ErrorLogModel:
    return cls(
      id=record.id,
      token_id=record.token_id,
      platform=record.platform,
      error_type=record.error_type,
      message=record.message,
      stack_trace=record.stack_trace,
      context=record.context,
      app_version=record.app_version,
      created_at=record.created_at,
    )


class ErrorTypeCountModel(CamelModel):
  type: str
  count: int


class ErrorLogStats(CamelModel):
  total: int
  error_types: list[ErrorTypeCountModel]


class ErrorLogListResponse(CamelModel):
  success: bool
  data: list[ErrorLogModel]
  stats: ErrorLogStats
