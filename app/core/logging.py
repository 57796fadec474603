"""Process-wide logging: stdout plus a rotating file, every line tagged with the request id."""

import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path
from types import TracebackType

from app.config import Settings
from app.core.request_context import get_request_id

LOG_LINE_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"

_LOG_FILE_PATH: Path | None = None
_LOGGING_INITIALIZED = False

# Loggers that install their own handlers unless rebound.
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")
# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite", "asyncio")


class RequestIdFilter(logging.Filter):
  """Stamp each record with the id of the request that produced it ("-" outside requests)."""

  def filter(self, record: logging.LogRecord) -> bool:
    record.request_id = get_request_id() or "-"
    return True


class ConsoleFormatter(logging.Formatter):
  """Console formatter that keeps only the head and tail of long tracebacks."""

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    if len(lines) <= 6:
      return "".join(lines)
    return "".join([lines[0], "    ...\n", *lines[-5:]])


def _backup_name(default_name: str) -> str:
  """Rotate `pushrelay.log.1` to `pushrelay-1.log` so backups keep the .log suffix."""
  stem, _, index = default_name.rpartition(".")
  if not index.isdigit() or not stem.endswith(".log"):
    return default_name
  return f"{stem[: -len('.log')]}-{index}.log"


def _log_path(settings: Settings) -> Path:
  log_dir = Path(settings.log_dir).expanduser().resolve()
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Cannot create log directory {log_dir}: {exc}") from exc
  return log_dir / f"pushrelay_{time.strftime('%Y%m%d')}_{settings.environment}.log"


def _build_handlers(settings: Settings) -> tuple[list[logging.Handler], Path]:
  log_path = _log_path(settings)
  request_filter = RequestIdFilter()

  console = logging.StreamHandler(sys.stdout)
  console.setFormatter(ConsoleFormatter(LOG_LINE_FORMAT, datefmt=CONSOLE_DATE_FORMAT))
  console.addFilter(request_filter)

  try:
    file_handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  except OSError as exc:
    raise RuntimeError(f"Cannot open log file {log_path}: {exc}") from exc
  file_handler.namer = _backup_name
  file_handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT))
  file_handler.addFilter(request_filter)
  return [console, file_handler], log_path


def setup_logging(settings: Settings) -> Path:
  """Route root, uvicorn and fastapi logs through the relay's handlers."""
  handlers, log_path = _build_handlers(settings)
  logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO, handlers=handlers, force=True)

  for name in _SERVER_LOGGERS:
    server_logger = logging.getLogger(name)
    server_logger.handlers = list(handlers)
    server_logger.propagate = False

  for name in _QUIET_LOGGERS:
    logging.getLogger(name).setLevel(logging.WARNING)

  return log_path


def _initialize_logging(settings: Settings) -> None:
  """Initialize logging once per process."""
  global _LOG_FILE_PATH, _LOGGING_INITIALIZED
  if _LOGGING_INITIALIZED:
    return
  _LOG_FILE_PATH = setup_logging(settings)
  _LOGGING_INITIALIZED = True
  logging.getLogger("app.core.logging").info("Logging to %s (environment=%s)", _LOG_FILE_PATH, settings.environment)
