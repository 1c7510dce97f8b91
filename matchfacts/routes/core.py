"""Core routes: health, metrics.

Auth per-endpoint:
- /health: public, rate limited
- /metrics: Bearer token (METRICS_BEARER_TOKEN, empty = public)
"""

from fastapi import APIRouter, Header, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from matchfacts.config import get_settings
from matchfacts.security import limiter
from matchfacts.telemetry import get_metrics_text

router = APIRouter(tags=["core"])


class HealthResponse(BaseModel):
    status: str
    season: str
    renderer_enabled: bool


def _unauthorized(reason: str) -> PlainTextResponse:
    return PlainTextResponse(
        content=f"# Unauthorized: {reason}\n",
        status_code=401,
        media_type="text/plain",
    )


@router.get("/health", response_model=HealthResponse)
@limiter.limit("120/minute")
async def health_check(request: Request):
    """Health check endpoint."""
    pipeline = request.app.state.pipeline
    return HealthResponse(
        status="ok",
        season=pipeline.gate_config.season_label,
        renderer_enabled=pipeline.renderer is not None,
    )


@router.get("/metrics")
async def prometheus_metrics(
    authorization: str = Header(None, alias="Authorization"),
):
    """
    Prometheus metrics endpoint.

    Exposes provider request counts/latency, retries, extraction tier
    outcomes and batch unit outcomes. Requires Bearer token
    authentication when METRICS_BEARER_TOKEN is set.
    """
    expected_token = get_settings().METRICS_BEARER_TOKEN
    if expected_token:
        if not authorization:
            return _unauthorized("Missing Authorization header")
        # Extract token from "Bearer <token>"
        parts = authorization.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return _unauthorized("Invalid Authorization format")
        if parts[1] != expected_token:
            return _unauthorized("Invalid token")

    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)
