"""Liveness and readiness probes.

/health never touches dependencies. /healthz probes the database and Redis
(both required) and, when enabled, the LLM vendor (reported only).
"""

import asyncio
from typing import Any

import httpx
import redis.asyncio as aioredis
from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text

from backend.app.config import Settings, get_settings
from backend.app.db.engine import create_async_engine_from_settings

router = APIRouter()

ComponentStatus = tuple[bool, str]


def _failed(e: Exception) -> ComponentStatus:
    return (False, f"error: {type(e).__name__}")


async def check_db(settings: Settings) -> ComponentStatus:
    """Run SELECT 1 on a short-lived engine."""
    try:
        engine = create_async_engine_from_settings(settings)
    except ValueError as e:
        return _failed(e)

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return _failed(e)
    finally:
        await engine.dispose()
    return (True, "ok")


async def check_redis(settings: Settings) -> ComponentStatus:
    """PING Redis; an unset REDIS_URL counts as healthy."""
    if not settings.redis_url:
        return (True, "not_configured")

    client = aioredis.from_url(settings.redis_url)
    try:
        await client.ping()
    except Exception as e:
        return _failed(e)
    finally:
        await client.aclose()
    return (True, "ok")


async def check_upstream(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> ComponentStatus:
    """Probe the LLM vendor when the outbound check is enabled.

    Any HTTP answer (even 401 without credentials) counts as reachable.
    """
    if not settings.enable_outbound_healthcheck:
        return (True, "disabled")

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=5.0)

    try:
        await client.get(settings.outbound_healthcheck_url)
    except httpx.HTTPError as e:
        return _failed(e)
    finally:
        if owns_client:
            await client.aclose()
    return (True, "ok")


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | Response:
    """Readiness probe.

    Returns:
        200 with per-component status, or 503 when the database or Redis
        is down. The LLM vendor never degrades the result.
    """
    settings = get_settings()

    (db_ok, db_status), (redis_ok, redis_status), (_, llm_status) = await asyncio.gather(
        check_db(settings), check_redis(settings), check_upstream(settings)
    )
    ready = db_ok and redis_ok

    body = {
        "status": "ok" if ready else "degraded",
        "components": {"db": db_status, "redis": redis_status, "llm": llm_status},
    }
    if not ready:
        return JSONResponse(content=body, status_code=503)
    return body
