"""FastAPI utilities for Prometheus metrics exposure."""

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from tokenprism.web.utils import get_container

router = APIRouter()


@router.get("/metrics", include_in_schema=False, summary="Prometheus metrics endpoint")
def metrics_endpoint(request: Request) -> Response:
    """Expose collected metrics in Prometheus text format."""
    container = get_container(request)
    container.metrics.set_connected_clients(container.registry.connection_count)
    return Response(content=container.metrics.render(), media_type=CONTENT_TYPE_LATEST)
