"""Contracts shared by the broadcast pipeline and its collaborators."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

PushPriority = Literal["default", "normal", "high"]
PUSH_PRIORITIES: tuple[str, ...] = ("default", "normal", "high")


@dataclass(frozen=True)
class PushMessage:
  """One outbound message addressed to a single device token."""

  to: str
  title: str
  body: str
  data: dict[str, Any]
  sound: str | None
  badge: int | None
  priority: PushPriority

  def to_payload(self) -> dict[str, Any]:
    """Render the gateway wire shape, omitting unset optional fields."""
    payload: dict[str, Any] = {"to": self.to, "title": self.title, "body": self.body, "data": self.data, "priority": self.priority}
    if self.sound is not None:
      payload["sound"] = self.sound
    if self.badge is not None:
      payload["badge"] = self.badge
    return payload


@dataclass(frozen=True)
class PushTicket:
  """Synchronous acknowledgement returned by the gateway for one message."""

  status: str
  id: str | None = None
  message: str | None = None
  details: dict[str, Any] | None = None

  @classmethod
  def from_payload(cls, payload: dict[str, Any]) -> PushTicket:
    details = payload.get("details")
    return cls(status=str(payload.get("status") or "error"), id=payload.get("id"), message=payload.get("message"), details=details if isinstance(details, dict) else None)


@dataclass(frozen=True)
class PushTokenEntry:
  """Read-side view of a registered token."""

  id: uuid.UUID
  token: str
  platform: str
  is_active: bool


@dataclass(frozen=True)
class NotificationLogEntry:
  """Capture a single notification send for one targeted token."""

  token_id: uuid.UUID | None
  title: str
  body: str
  data: dict[str, Any] = field(default_factory=dict)
  status: str = "sent"
  ticket_id: str | None = None


class NotificationError(Exception):
  """Base class for all notification failures."""


class BroadcastValidationError(NotificationError):
  """Raised when a broadcast request is rejected before any side effect."""


class PushGatewayError(NotificationError):
  """Raised when the push gateway rejects or fails an entire batch."""

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code


class PushGateway(Protocol):
  """Client contract for the third-party push gateway."""

  def is_valid_address(self, token: str) -> bool:
    """Return whether a token passes the gateway's syntactic address check."""

  def chunk(self, messages: list[PushMessage]) -> list[list[PushMessage]]:
    """Partition messages into order-preserving batches within the gateway limit."""

  async def send(self, batch: list[PushMessage]) -> list[PushTicket]:
    """Submit one batch and return one ticket per message, in order."""

  async def aclose(self) -> None:
    """Release transport resources."""


class PushTokenStore(Protocol):
  """Token registry operations used by the broadcast pipeline."""

  async def find_active(self) -> list[PushTokenEntry]:
    """Return a point-in-time snapshot of active tokens."""

  async def bulk_update_last_used(self, ids: list[uuid.UUID], at: datetime.datetime) -> int:
    """Stamp last-used time on the given tokens and return the row count."""


class NotificationLogStore(Protocol):
  """Append-only store for notification send records."""

  async def create(self, entry: NotificationLogEntry) -> uuid.UUID:
    """Persist one record and return its identifier."""
