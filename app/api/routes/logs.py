"""Routes for client error-report intake and review."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, status

from app.api.models import ErrorLogListResponse, ErrorLogModel, ErrorLogStats, ErrorReportRequest, ErrorReportResponse, ErrorTypeCountModel
from app.config import get_settings
from app.storage.error_logs_repo import ErrorLogRepository, ErrorReport

logger = logging.getLogger(__name__)

router = APIRouter()


def _clean(value: str | None) -> str | None:
  # Empty strings are stored as NULL; anything else is kept exactly as sent.
  return value or None


@router.post("/error", response_model=ErrorReportResponse, response_model_by_alias=True)
async def report_error(payload: ErrorReportRequest) -> ErrorReportResponse:
  """Store one error reported by a client app."""
  error_type = _clean(payload.error_type)
  message = _clean(payload.message)
  if error_type is None or message is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="errorType and message are required")

  report = ErrorReport(
    error_type=error_type,
    message=message,
    token_id=_clean(payload.token_id),
    platform=_clean(payload.platform),
    stack_trace=_clean(payload.stack_trace),
    context=payload.context,
    app_version=_clean(payload.app_version),
  )
  try:
    error_id = await ErrorLogRepository().insert(report)
  except Exception as exc:  # noqa: BLE001
    logger.error("Failed to store error report type=%s: %s", error_type, exc, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to log error") from exc

  logger.info("Client error logged id=%s type=%s platform=%s", error_id, error_type, report.platform)
  return ErrorReportResponse(success=True, id=error_id)


@router.get("/error", response_model=ErrorLogListResponse, response_model_by_alias=True)
async def list_errors(limit: int | None = Query(default=None, ge=1), error_type: str | None = Query(default=None, alias="errorType"), platform: str | None = None) -> ErrorLogListResponse:  # noqa: B008
  """Return recent error reports with summary counts."""
  settings = get_settings()
  effective_limit = min(limit or settings.error_log_default_limit, settings.error_log_max_limit)
  error_type = _clean(error_type)
  platform = _clean(platform)

  repo = ErrorLogRepository()
  try:
    records = await repo.list_recent(error_type=error_type, platform=platform, limit=effective_limit)
    summary = await repo.summarize(error_type=error_type, platform=platform)
  except Exception as exc:  # noqa: BLE001
    logger.error("Failed to fetch error logs: %s", exc, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch error logs") from exc

  return ErrorLogListResponse(
    success=True,
    data=[ErrorLogModel.from_record(record) for record in records],
    stats=ErrorLogStats(total=summary.total, error_types=[ErrorTypeCountModel(type=item.error_type, count=item.count) for item in summary.by_type]),
  )
