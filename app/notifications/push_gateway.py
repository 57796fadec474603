"""Expo push gateway client implementations."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx

from app.config import EXPO_MAX_BATCH_SIZE
from app.notifications.contracts import PushGateway, PushGatewayError, PushMessage, PushTicket

logger = logging.getLogger(__name__)

_EXPO_SEND_PATH = "/--/api/v2/push/send"
_EXPO_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")
_BARE_TOKEN_RE = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE)


def is_expo_push_token(token: object) -> bool:
  """Apply Expo's syntactic token check; this never contacts the gateway."""
  if not isinstance(token, str):
    return False

  if token.startswith(_EXPO_TOKEN_PREFIXES) and token.endswith("]"):
    return True

  return bool(_BARE_TOKEN_RE.fullmatch(token))


def token_preview(token: str) -> str:
  """Shorten a token for logs so full device addresses never land in log files."""
  return f"{token[:16]}..." if len(token) > 16 else token


class BasePushGateway(PushGateway, ABC):
  """Address validation and batching shared by every Expo-compatible gateway."""

  def __init__(self, *, batch_size: int = EXPO_MAX_BATCH_SIZE) -> None:
    if batch_size <= 0 or batch_size > EXPO_MAX_BATCH_SIZE:
      raise ValueError(f"batch_size must be between 1 and {EXPO_MAX_BATCH_SIZE}")
    self._batch_size = batch_size

  @property
  def batch_size(self) -> int:
    return self._batch_size

  def is_valid_address(self, token: str) -> bool:
    return is_expo_push_token(token)

  def chunk(self, messages: list[PushMessage]) -> list[list[PushMessage]]:
    size = self._batch_size
    return [messages[start : start + size] for start in range(0, len(messages), size)]

  @abstractmethod
  async def send(self, batch: list[PushMessage]) -> list[PushTicket]:
    """Deliver one batch; subclasses map transport failures to PushGatewayError."""

  async def aclose(self) -> None:
    return None


class ExpoPushGateway(BasePushGateway):
  """`httpx` backed client for the Expo push API; one instance is shared per process."""

  def __init__(self, *, base_url: str, access_token: str | None = None, timeout_seconds: float = 10.0, batch_size: int = EXPO_MAX_BATCH_SIZE, client: httpx.AsyncClient | None = None) -> None:
    super().__init__(batch_size=batch_size)
    headers = {"accept": "application/json", "accept-encoding": "gzip, deflate", "content-type": "application/json"}
    if access_token:
      headers["authorization"] = f"Bearer {access_token}"
    self._send_url = f"{base_url.rstrip('/')}{_EXPO_SEND_PATH}"
    self._headers = headers
    # Never trust environment proxy variables for gateway traffic.
    self._client = client or httpx.AsyncClient(timeout=timeout_seconds, trust_env=False)

  async def send(self, batch: list[PushMessage]) -> list[PushTicket]:
    """Submit a batch and map the response to tickets; any wholesale failure raises."""
    if not batch:
      return []

    if len(batch) > self._batch_size:
      raise PushGatewayError(f"Batch of {len(batch)} messages exceeds the limit of {self._batch_size}")

    payload = [message.to_payload() for message in batch]
    try:
      response = await self._client.post(self._send_url, json=payload, headers=self._headers)
      response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      status_code = exc.response.status_code
      raise PushGatewayError(f"Expo push request failed (status={status_code}): {_error_summary(exc.response)}", status_code=status_code) from exc
    except httpx.RequestError as exc:
      raise PushGatewayError(f"Expo push request failed: {type(exc).__name__}: {exc}") from exc

    try:
      body = response.json()
    except ValueError as exc:
      raise PushGatewayError("Expo push response was not valid JSON", status_code=response.status_code) from exc

    return _parse_tickets(body, expected=len(batch), status_code=response.status_code)

  async def aclose(self) -> None:
    await self._client.aclose()


class NullPushGateway(BasePushGateway):
  """Gateway used when push delivery is disabled; batches are logged and acknowledged locally."""

  async def send(self, batch: list[PushMessage]) -> list[PushTicket]:
    logger.info("[DEV MODE] Push delivery disabled; would send %d notifications title=%r", len(batch), batch[0].title if batch else None)
    return [PushTicket(status="ok") for _ in batch]


def _parse_tickets(body: Any, *, expected: int, status_code: int) -> list[PushTicket]:
  """Validate the Expo response envelope and build one ticket per submitted message."""
  if not isinstance(body, dict):
    raise PushGatewayError("Expo push response has an unexpected shape", status_code=status_code)

  # Request-level errors mean no message in the batch was accepted.
  errors = body.get("errors")
  if errors:
    raise PushGatewayError(f"Expo push request rejected: {_describe_errors(errors)}", status_code=status_code)

  data = body.get("data")
  if not isinstance(data, list):
    raise PushGatewayError("Expo push response is missing ticket data", status_code=status_code)

  if len(data) != expected:
    raise PushGatewayError(f"Expo push response returned {len(data)} tickets for {expected} messages", status_code=status_code)

  return [PushTicket.from_payload(item if isinstance(item, dict) else {}) for item in data]


def _describe_errors(errors: Any) -> str:
  if isinstance(errors, list):
    parts = []
    for error in errors:
      if isinstance(error, dict):
        parts.append(f"{error.get('code', 'UNKNOWN')}: {error.get('message', '')}".strip())
      else:
        parts.append(str(error))
    return "; ".join(parts)
  return str(errors)


def _error_summary(response: httpx.Response) -> str:
  try:
    body = response.json()
  except ValueError:
    return response.text[:200]

  if isinstance(body, dict) and body.get("errors"):
    return _describe_errors(body["errors"])
  return str(body)[:200]
