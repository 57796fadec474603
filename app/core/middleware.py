import logging
import time
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

from app.core.request_context import request_id_context, resolve_request_id

logger = logging.getLogger("app.core.middleware")

# Probes hit these constantly; keep them out of INFO logs.
_QUIET_PATHS = frozenset({"/health"})


def _client_host(scope: Scope) -> str:
  client = scope.get("client")
  if not client:
    return "-"
  return str(client[0])


class RequestLoggingMiddleware:
  """Bind a request id for the exchange and log method, path, status and latency."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = resolve_request_id(Headers(scope=scope).get("x-request-id"))
    # Exception handlers read the id through `request.state`.
    scope.setdefault("state", {})["request_id"] = request_id

    path = scope.get("path", "")
    method = scope.get("method", "UNKNOWN")
    level = logging.DEBUG if path in _QUIET_PATHS else logging.INFO
    status_code = 0

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = int(message.get("status") or 0)
        MutableHeaders(scope=message)["x-request-id"] = request_id
      await send(message)

    started = time.perf_counter()
    with request_id_context(request_id):
      logger.log(level, "%s %s from %s", method, path, _client_host(scope))
      try:
        await self.app(scope, receive, send_wrapper)
      finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        if status_code >= 500 or status_code == 0:
          logger.warning("%s %s -> %s in %.1fms", method, path, status_code or "no response", elapsed_ms)
        else:
          logger.log(level, "%s %s -> %s in %.1fms", method, path, status_code, elapsed_ms)


class SecurityHeadersMiddleware:
  """Drop server fingerprinting headers and keep API responses out of shared caches."""

  def __init__(self, app: ASGIApp, *, no_store_prefix: str = "/api/") -> None:
    self.app = app
    self.no_store_prefix = no_store_prefix

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    no_store = scope.get("path", "").startswith(self.no_store_prefix)

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for header in ("server", "x-powered-by"):
          if header in headers:
            del headers[header]
        headers.setdefault("x-content-type-options", "nosniff")
        # Token stats and error reports must not be cached by proxies.
        if no_store:
          headers["cache-control"] = "no-store"
      await send(message)

    await self.app(scope, receive, send_wrapper)
