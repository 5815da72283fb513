"""
Web API routes
"""

from tokenprism.web.metrics import router as metrics_router
from tokenprism.web.routes.health_routes import router as health_router
from tokenprism.web.routes.token_routes import router as token_router
from tokenprism.web.routes.websocket_routes import router as websocket_router

__all__ = ["health_router", "metrics_router", "token_router", "websocket_router"]
