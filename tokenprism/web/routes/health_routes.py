"""
Health check routes
"""

import time

from fastapi import APIRouter, Request
from loguru import logger

from tokenprism import __version__
from tokenprism.web.models import APIResponse
from tokenprism.web.utils import get_container

router = APIRouter()


@router.get("/health", response_model=APIResponse, response_model_exclude_none=True)
async def health_check(request: Request) -> APIResponse:
    """
    Basic health check

    Reports the snapshot state and connected client count.
    """
    container = get_container(request)
    snapshot = container.snapshot_store.current
    uptime = time.time() - getattr(request.app.state, "start_time", time.time())

    data = {
        "status": "ok",
        "version": __version__,
        "uptime_seconds": round(uptime, 3),
        "sources": container.token_service.source_names,
        "snapshot_size": len(snapshot) if snapshot is not None else 0,
        "snapshot_taken_at": snapshot.taken_at if snapshot is not None else None,
        "refreshing": container.refresh_loop.is_refreshing,
        "connected_clients": container.registry.connection_count,
    }
    logger.debug("Health check completed", snapshot_size=data["snapshot_size"])
    return APIResponse(success=True, data=data, message="Service healthy")


@router.get("/health/live", response_model=APIResponse, response_model_exclude_none=True)
async def liveness_check() -> APIResponse:
    return APIResponse(success=True, data={"alive": True})
