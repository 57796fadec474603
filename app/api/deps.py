"""Shared FastAPI dependencies for the relay's long-lived collaborators."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from app.notifications.broadcast import BroadcastPipeline
from app.notifications.contracts import PushGateway

logger = logging.getLogger(__name__)


def get_broadcast_pipeline(request: Request) -> BroadcastPipeline:
  """Return the pipeline built during startup."""
  pipeline = getattr(request.app.state, "broadcast_pipeline", None)
  if pipeline is None:
    logger.error("Broadcast pipeline requested before application startup completed")
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting")
  return pipeline


def get_push_gateway(request: Request) -> PushGateway:
  """Return the process-wide push gateway."""
  gateway = getattr(request.app.state, "push_gateway", None)
  if gateway is None:
    logger.error("Push gateway requested before application startup completed")
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting")
  return gateway
