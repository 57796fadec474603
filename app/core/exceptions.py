import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.request_context import get_request_id
from app.notifications.contracts import BroadcastValidationError, NotificationError, PushGatewayError

logger = logging.getLogger("app.core.exceptions")

GENERIC_ERROR_DETAIL = "Internal Server Error"


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    text = str(value)
    return f"{type(value).__name__}: {text}" if text else type(value).__name__
  return str(value)


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None) or get_request_id()


def error_response(request: Request, status_code: int, detail: Any, *, headers: dict[str, str] | None = None) -> JSONResponse:
  """Render the relay's error envelope: `{"detail": ..., "requestId": ...}`."""
  content: dict[str, Any] = {"detail": detail}
  request_id = _request_id(request)
  if request_id:
    content["requestId"] = request_id
  return JSONResponse(status_code=status_code, content=content, headers=headers)


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Drop echoed input from validation errors; push payloads may carry device tokens."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    entry = {key: value for key, value in error.items() if key not in {"input", "url"}}
    ctx = entry.get("ctx")
    if isinstance(ctx, dict):
      entry["ctx"] = {key: value for key, value in ctx.items() if key != "input"}
    sanitized.append(_coerce_json_safe(entry))
  return sanitized


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Last-resort handler: log with traceback, answer with a generic 500."""
  logger.error("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path, exc_info=exc)
  return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_DETAIL)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Return 422 with field errors, minus the offending input values."""
  errors = _sanitize_validation_errors(list(exc.errors()))
  logger.warning("Rejected %s %s: %d validation error(s) at %s", request.method, request.url.path, len(errors), [error.get("loc") for error in errors])
  return error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, errors)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Pass 4xx details through; replace 5xx details with the generic message."""
  from app.config import get_settings

  if exc.status_code >= 500:
    logger.error("%s %s failed with %s: %s", request.method, request.url.path, exc.status_code, exc.detail, exc_info=exc.__cause__ or exc)
    return error_response(request, exc.status_code, GENERIC_ERROR_DETAIL)

  if get_settings().log_http_4xx:
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
  return error_response(request, exc.status_code, exc.detail, headers=exc.headers)


async def notification_exception_handler(request: Request, exc: NotificationError) -> JSONResponse:
  """Map notification errors that escape a route onto HTTP statuses."""
  if isinstance(exc, BroadcastValidationError):
    return error_response(request, status.HTTP_400_BAD_REQUEST, str(exc))

  if isinstance(exc, PushGatewayError):
    logger.error("Push gateway failure on %s (upstream status=%s): %s", request.url.path, exc.status_code, exc)
    return error_response(request, status.HTTP_502_BAD_GATEWAY, "Push gateway unavailable")

  logger.error("Notification failure on %s", request.url.path, exc_info=exc)
  return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_DETAIL)
