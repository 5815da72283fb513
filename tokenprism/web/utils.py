"""Request helpers shared by the routes."""

from fastapi import Request

from tokenprism.core.container import ServiceContainer


def get_request_id(request: Request) -> str | None:
    """Read the X-Request-ID header."""
    return request.headers.get("X-Request-ID")


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def client_key(request: Request) -> str:
    """Identity used for per-client rate limiting."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
