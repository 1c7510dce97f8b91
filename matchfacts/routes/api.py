"""Extraction endpoints: check, calendar, discover, probe, season report.

Request bodies accept both camelCase and snake_case keys. Malformed
bodies are rejected by pydantic (422); semantically invalid input
(empty url list, bad dates, unresolvable match reference) is a 400.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field, model_validator

from matchfacts.config import get_settings
from matchfacts.etl.exceptions import ResolutionError
from matchfacts.etl.models import PlayerQuery
from matchfacts.security import limiter, verify_api_key
from matchfacts.services.calendar import parse_day

logger = logging.getLogger(__name__)

router = APIRouter(tags=["extraction"], dependencies=[Depends(verify_api_key)])
settings = get_settings()


class CheckRequest(BaseModel):
    match_url: str = Field(..., validation_alias=AliasChoices("matchUrl", "match_url"))
    player_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("playerId", "player_id", "player"),
    )
    player_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("playerName", "player_name"),
    )

    @model_validator(mode="after")
    def require_player(self) -> "CheckRequest":
        if self.player_id is None and not (self.player_name or "").strip():
            raise ValueError("Provide playerId or playerName")
        return self


class CalendarRequest(BaseModel):
    date_from: Optional[str] = Field(default=None, validation_alias=AliasChoices("from", "date_from"))
    date_to: Optional[str] = Field(default=None, validation_alias=AliasChoices("to", "date_to"))


class DiscoverRequest(BaseModel):
    urls: list[str]
    max_matches: int = Field(default=0, ge=0, validation_alias=AliasChoices("maxMatches", "max_matches"))


class SeasonReportRequest(BaseModel):
    urls: list[str]
    max_matches: Optional[int] = Field(
        default=None, ge=1, validation_alias=AliasChoices("maxMatches", "max_matches"),
    )


class ProbeRequest(BaseModel):
    match_ids: list[int] = Field(..., validation_alias=AliasChoices("matchIds", "match_ids"))


def _require_urls(urls: list[str]) -> list[str]:
    cleaned = [url.strip() for url in urls if url and url.strip()]
    if not cleaned:
        raise HTTPException(status_code=400, detail="Provide { urls: [...] }")
    return cleaned


@router.post("/check")
@limiter.limit(settings.RATE_LIMIT)
async def check_match(request: Request, body: CheckRequest):
    """One match + one player -> checked-match record."""
    pipeline = request.app.state.pipeline
    query = PlayerQuery(id=body.player_id, name=body.player_name)
    try:
        return await pipeline.checker.check(body.match_url, query)
    except ResolutionError as e:
        logger.info("[CHECK] Unresolvable reference %s", body.match_url)
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": e.reason, "matchUrl": body.match_url},
        )


@router.post("/calendar")
@limiter.limit(settings.RATE_LIMIT)
async def calendar(request: Request, body: CalendarRequest):
    """Allowed-league match URLs for a YYYYMMDD window (defaults: season start .. today)."""
    pipeline = request.app.state.pipeline
    try:
        date_from = parse_day(body.date_from) if body.date_from else None
        date_to = parse_day(body.date_to) if body.date_to else None
        return await pipeline.calendar.discover(date_from, date_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/discover")
@limiter.limit(settings.RATE_LIMIT)
async def discover(request: Request, body: DiscoverRequest):
    pipeline = request.app.state.pipeline
    return await pipeline.discovery.discover_many(_require_urls(body.urls), body.max_matches)


@router.post("/probe")
@limiter.limit(settings.RATE_LIMIT)
async def probe(request: Request, body: ProbeRequest):
    """Validate candidate match ids against the structured endpoint."""
    if not body.match_ids:
        raise HTTPException(status_code=400, detail="Provide { matchIds: [...] }")
    pipeline = request.app.state.pipeline
    return await pipeline.prober.probe(body.match_ids)


@router.post("/season-report")
@limiter.limit(settings.RATE_LIMIT)
async def season_report(request: Request, body: SeasonReportRequest):
    """Per-player POTM hits for the configured season, with totals and CSV."""
    pipeline = request.app.state.pipeline
    return await pipeline.season_report.run(_require_urls(body.urls), body.max_matches)
