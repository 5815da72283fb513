"""Fixed one-minute window API rate limiting backed by the cache."""

import time

from fastapi import HTTPException, Request
from loguru import logger

from tokenprism.web.utils import client_key, get_container

WINDOW_SECONDS = 60


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency rejecting clients over the per-minute budget with 429."""
    container = get_container(request)
    limit = container.config.server.api_rate_limit
    client = client_key(request)
    window = int(time.time() // WINDOW_SECONDS)

    count = await container.cache.increment(f"ratelimit:api:{client}:{window}", WINDOW_SECONDS)
    if count > limit:
        logger.warning("API rate limit exceeded", client=client, count=count, limit=limit)
        raise HTTPException(status_code=429, detail="Too many requests, please try again later")
