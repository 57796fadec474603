"""Broadcast pipeline: fan a notification out to every active device token."""

from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from app.notifications.contracts import PUSH_PRIORITIES, BroadcastValidationError, NotificationLogEntry, NotificationLogStore, PushGateway, PushMessage, PushTicket, PushTokenEntry, PushTokenStore
from app.notifications.push_gateway import token_preview

logger = logging.getLogger(__name__)

SENT_STATUS = "sent"
# Kept below the default SQLAlchemy pool capacity (5 + 10 overflow).
DEFAULT_LOG_WRITE_CONCURRENCY = 10


@dataclass(frozen=True)
class BatchError:
  """A batch the gateway failed wholesale; the broadcast carries on past it."""

  batch_index: int
  size: int
  error_type: str
  message: str


@dataclass(frozen=True)
class LogWriteOutcome:
  """Result of persisting the log record for one targeted token."""

  token_id: uuid.UUID
  ok: bool
  error: str | None = None


@dataclass(frozen=True)
class BroadcastResult:
  """Aggregate outcome of one broadcast call."""

  success: bool
  message: str
  sent: int
  tickets: list[PushTicket] = field(default_factory=list)
  errors: list[BatchError] = field(default_factory=list)
  log_outcomes: list[LogWriteOutcome] = field(default_factory=list)
  last_used_updated: bool = False

  @classmethod
  def empty(cls) -> BroadcastResult:
    return cls(success=False, message="No active tokens found", sent=0)

  @property
  def log_failures(self) -> list[LogWriteOutcome]:
    return [outcome for outcome in self.log_outcomes if not outcome.ok]


def _require_text(value: Any) -> bool:
  return isinstance(value, str) and value != ""


class BroadcastPipeline:
  """Sends one notification to all active tokens in sequential gateway batches."""

  def __init__(self, *, token_store: PushTokenStore, log_store: NotificationLogStore, gateway: PushGateway, default_sound: str = "default", log_write_concurrency: int = DEFAULT_LOG_WRITE_CONCURRENCY) -> None:
    if log_write_concurrency <= 0:
      raise ValueError("log_write_concurrency must be positive")
    self._token_store = token_store
    self._log_store = log_store
    self._gateway = gateway
    self._default_sound = default_sound
    self._log_write_concurrency = log_write_concurrency

  async def broadcast(self, *, title: str | None, body: str | None, data: dict[str, Any] | None = None, sound: str | None = None, badge: int | None = None, priority: str | None = None) -> BroadcastResult:
    """Deliver a notification to every active token and record one log row per target.

    Raises:
      BroadcastValidationError: title/body missing or priority unknown; nothing is read or written.
    """
    if not _require_text(title) or not _require_text(body):
      raise BroadcastValidationError("title and body are required")

    effective_priority = priority or "high"
    if effective_priority not in PUSH_PRIORITIES:
      raise BroadcastValidationError(f"priority must be one of: {', '.join(PUSH_PRIORITIES)}")

    payload = dict(data or {})
    effective_sound = sound or self._default_sound

    logger.info("Broadcasting to all active tokens")
    tokens = await self._token_store.find_active()
    if not tokens:
      logger.info("No active tokens found; nothing to send")
      return BroadcastResult.empty()

    logger.info("Found %d active tokens", len(tokens))
    targets = self._filter_targets(tokens)
    messages = [PushMessage(to=entry.token, title=title, body=body, data=payload, sound=effective_sound, badge=badge, priority=effective_priority) for entry in targets]

    tickets, errors = await self._dispatch(self._gateway.chunk(messages))

    # Bookkeeping covers every target, including tokens whose batch failed.
    log_outcomes = await self._record_logs(targets, title=title, body=body, data=payload)
    last_used_updated = await self._touch_targets(targets)

    logger.info("Broadcast complete sent=%d tickets=%d batch_errors=%d log_failures=%d", len(messages), len(tickets), len(errors), sum(1 for outcome in log_outcomes if not outcome.ok))
    return BroadcastResult(success=True, message=f"Sent {len(messages)} notifications", sent=len(messages), tickets=tickets, errors=errors, log_outcomes=log_outcomes, last_used_updated=last_used_updated)

  def _filter_targets(self, tokens: list[PushTokenEntry]) -> list[PushTokenEntry]:
    targets: list[PushTokenEntry] = []
    for entry in tokens:
      if self._gateway.is_valid_address(entry.token):
        targets.append(entry)
      else:
        # Malformed tokens stay active and unreported; see DESIGN.md open questions.
        logger.debug("Skipping token with invalid address format token=%s", token_preview(entry.token))
    return targets

  async def _dispatch(self, batches: list[list[PushMessage]]) -> tuple[list[PushTicket], list[BatchError]]:
    """Send batches one after another; a failed batch is recorded and skipped."""
    tickets: list[PushTicket] = []
    errors: list[BatchError] = []
    for index, batch in enumerate(batches):
      try:
        batch_tickets = await self._gateway.send(batch)
      except Exception as exc:  # noqa: BLE001
        logger.error("Error sending batch index=%d size=%d error=%s", index, len(batch), exc)
        errors.append(BatchError(batch_index=index, size=len(batch), error_type=type(exc).__name__, message=str(exc) or type(exc).__name__))
        continue

      tickets.extend(batch_tickets)
      logger.info("Sent batch of %d notifications", len(batch))
    return tickets, errors

  async def _record_logs(self, targets: list[PushTokenEntry], *, title: str, body: str, data: dict[str, Any]) -> list[LogWriteOutcome]:
    if not targets:
      return []

    limiter = asyncio.Semaphore(self._log_write_concurrency)
    outcomes = await asyncio.gather(*(self._record_log(limiter, entry.id, NotificationLogEntry(token_id=entry.id, title=title, body=body, data=data, status=SENT_STATUS)) for entry in targets))
    failures = [outcome for outcome in outcomes if not outcome.ok]
    if failures:
      logger.error("Notification log writes failed count=%d first_error=%s", len(failures), failures[0].error)
    return list(outcomes)

  async def _record_log(self, limiter: asyncio.Semaphore, token_id: uuid.UUID, entry: NotificationLogEntry) -> LogWriteOutcome:
    try:
      async with limiter:
        await self._log_store.create(entry)
    except Exception as exc:  # noqa: BLE001
      return LogWriteOutcome(token_id=token_id, ok=False, error=f"{type(exc).__name__}: {exc}")
    return LogWriteOutcome(token_id=token_id, ok=True)

  async def _touch_targets(self, targets: list[PushTokenEntry]) -> bool:
    if not targets:
      return False

    try:
      updated = await self._token_store.bulk_update_last_used([entry.id for entry in targets], datetime.datetime.now(datetime.UTC))
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed to update last-used timestamps for %d tokens: %s", len(targets), exc, exc_info=True)
      return False

    logger.debug("Updated last-used timestamps rows=%d", updated)
    return True
