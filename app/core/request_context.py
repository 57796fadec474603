"""Request-scoped context so log lines can be correlated with API calls."""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_CURRENT_REQUEST_ID: ContextVar[str | None] = ContextVar("request_id", default=None)
_CLIENT_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def get_request_id() -> str | None:
  """Return the id of the request being served, if any."""
  return _CURRENT_REQUEST_ID.get()


def resolve_request_id(incoming: str | None) -> str:
  """Reuse a well-formed client-supplied id, otherwise mint a new one."""
  if incoming and _CLIENT_REQUEST_ID_RE.fullmatch(incoming):
    return incoming
  return str(uuid.uuid4())


@contextmanager
def request_id_context(request_id: str) -> Iterator[str]:
  """Bind a request id for the duration of one request and reset it afterward."""
  token = _CURRENT_REQUEST_ID.set(request_id)
  try:
    yield request_id
  finally:
    _CURRENT_REQUEST_ID.reset(token)
