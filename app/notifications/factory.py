"""Factory helpers for push delivery services."""

from __future__ import annotations

import logging

from app.config import Settings
from app.notifications.broadcast import BroadcastPipeline
from app.notifications.contracts import PushGateway
from app.notifications.notification_log_repo import NotificationLogRepository
from app.notifications.push_gateway import ExpoPushGateway, NullPushGateway
from app.notifications.push_token_repo import PushTokenRepository

logger = logging.getLogger(__name__)


def build_push_gateway(settings: Settings) -> PushGateway:
  """Construct the process-wide gateway client based on environment configuration."""
  # Push is disabled by default to avoid accidental delivery in dev/test.
  if settings.push_enabled:
    logger.info("Expo push gateway enabled base_url=%s batch_size=%d", settings.expo_base_url, settings.push_batch_size)
    return ExpoPushGateway(base_url=settings.expo_base_url, access_token=settings.expo_access_token, timeout_seconds=settings.expo_timeout_seconds, batch_size=settings.push_batch_size)

  logger.info("Push delivery disabled; using null gateway")
  return NullPushGateway(batch_size=settings.push_batch_size)


def build_broadcast_pipeline(settings: Settings, *, gateway: PushGateway) -> BroadcastPipeline:
  """Wire the broadcast pipeline to the SQL stores and the shared gateway."""
  return BroadcastPipeline(token_store=PushTokenRepository(), log_store=NotificationLogRepository(), gateway=gateway, default_sound=settings.push_default_sound, log_write_concurrency=settings.log_write_concurrency)
