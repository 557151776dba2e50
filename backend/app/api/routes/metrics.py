"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - llm_latency_ms{operation, outcome}
    - llm_errors_total{operation, reason}
    - chat_turns_total{kind}
    - document_versions_total{source}
    - analyses_total{kind, outcome}
    - rate_limited_total{bucket}
    """
    metrics_output = generate_latest()
    return Response(content=metrics_output, media_type=CONTENT_TYPE_LATEST)
