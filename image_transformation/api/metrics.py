"""
Metrics Endpoint

GET /metrics - Prometheus metrics endpoint
"""

from fastapi import APIRouter, Response

from image_transformation.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()


@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.

    Exposes:
    - pipeline_latency_seconds (per stage)
    - images_processed_total
    - images_deleted_total
    - rate_limited_requests_total
    - http_requests_total
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
