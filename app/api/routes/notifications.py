"""Routes for broadcasting notifications and managing device tokens."""

from __future__ import annotations

import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_broadcast_pipeline, get_push_gateway
from app.api.models import NotificationStats, NotificationStatsResponse, PlatformCount, RegisterTokenRequest, RegisterTokenResponse, SendNotificationRequest, SendNotificationResponse, UnregisterTokenRequest, UnregisterTokenResponse
from app.notifications.broadcast import BroadcastPipeline
from app.notifications.contracts import NotificationError, PushGateway
from app.notifications.notification_log_repo import NotificationLogRepository
from app.notifications.push_gateway import token_preview
from app.notifications.push_token_repo import PushTokenRegistration, PushTokenRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/send", response_model=SendNotificationResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def send_notification(payload: SendNotificationRequest, pipeline: BroadcastPipeline = Depends(get_broadcast_pipeline)) -> SendNotificationResponse:  # noqa: B008
  """Broadcast one notification to every active device."""
  try:
    result = await pipeline.broadcast(title=payload.title, body=payload.body, data=payload.data, sound=payload.sound, badge=payload.badge, priority=payload.priority)
  except NotificationError:
    # Mapped to 400/502 by the notification exception handler.
    raise
  except Exception as exc:  # noqa: BLE001
    logger.error("Broadcast failed: %s", exc, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send notifications") from exc

  return SendNotificationResponse.from_result(result)


@router.post("/register-token", response_model=RegisterTokenResponse, response_model_by_alias=True)
async def register_token(payload: RegisterTokenRequest, gateway: PushGateway = Depends(get_push_gateway)) -> RegisterTokenResponse:  # noqa: B008
  """Register a device token, reactivating it when it already exists."""
  token = (payload.token or "").strip()
  if not gateway.is_valid_address(token):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Expo push token format")

  try:
    token_id, created = await PushTokenRepository().upsert(PushTokenRegistration(token=token, platform=payload.platform, device_info=payload.device_info))
  except Exception as exc:  # noqa: BLE001
    logger.error("Failed to register push token %s: %s", token_preview(token), exc, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to register token") from exc

  logger.info("Push token %s platform=%s token=%s", "registered" if created else "updated", payload.platform, token_preview(token))
  message = "Token registered successfully" if created else "Token updated successfully"
  return RegisterTokenResponse(success=True, message=message, token_id=token_id)


@router.post("/unregister-token", response_model=UnregisterTokenResponse, response_model_by_alias=True)
async def unregister_token(payload: UnregisterTokenRequest) -> UnregisterTokenResponse:
  """Deactivate a device token; unknown tokens are not an error."""
  token = (payload.expo_push_token or "").strip()
  if not token:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="expoPushToken is required")

  try:
    count = await PushTokenRepository().deactivate_by_token(token)
  except Exception as exc:  # noqa: BLE001
    logger.error("Failed to unregister push token %s: %s", token_preview(token), exc, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to unregister token") from exc

  logger.info("Push token unregistered token=%s rows=%d", token_preview(token), count)
  return UnregisterTokenResponse(success=True, message="Token unregistered successfully", count=count)


@router.get("/stats", response_model=NotificationStatsResponse, response_model_by_alias=True)
async def notification_stats() -> NotificationStatsResponse:
  """Summarize registered tokens and sent notifications."""
  since = datetime.datetime.now(datetime.UTC) - datetime.timedelta(hours=24)
  try:
    tokens = await PushTokenRepository().count_summary()
    log_repo = NotificationLogRepository()
    sent_recent = await log_repo.count(since=since)
    sent_total = await log_repo.count()
  except Exception as exc:  # noqa: BLE001
    logger.error("Failed to load notification stats: %s", exc, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load notification stats") from exc

  stats = NotificationStats(
    total_active_tokens=tokens.active,
    total_inactive_tokens=tokens.inactive,
    platform_breakdown=[PlatformCount(platform=platform, count=count) for platform, count in tokens.active_by_platform.items()],
    notifications_sent_24h=sent_recent,
    total_notifications_sent=sent_total,
  )
  return NotificationStatsResponse(success=True, stats=stats)
