"""Application configuration using Pydantic Settings."""

from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # FotMob endpoints
    FOTMOB_BASE_URL: str = "https://www.fotmob.com"
    FOTMOB_API_BASE: str = "https://www.fotmob.com/api"

    # Resilient fetcher (2 retries = 3 attempts total)
    FETCH_TIMEOUT_SECONDS: float = 30.0
    FETCH_MAX_RETRIES: int = 2
    FETCH_BACKOFF_BASE_SECONDS: float = 0.2
    FETCH_BACKOFF_STEP_SECONDS: float = 0.2
    PROXY_URL: str = ""  # Optional outbound proxy (shared by all requests)

    # Politeness throttle between sequential probes against the same endpoint
    PROBE_DELAY_SECONDS: float = 1.5

    # Batch orchestrator
    BATCH_CONCURRENCY: int = 2
    BATCH_FAILURE_CAP: int = 6
    BATCH_DEADLINE_SECONDS: float = 120.0

    # Season/league gate
    ALLOWED_LEAGUE_IDS: str = "47,87,54,55,53"  # PL, LaLiga, Bundesliga, Serie A, Ligue 1
    ALLOWED_LEAGUE_LABELS: str = "premier league,bundesliga,laliga,la liga,serie a,ligue 1"
    SEASON_START: str = "2025-07-01T00:00:00Z"
    SEASON_END: str = "2026-06-30T23:59:59Z"

    # Discovery
    DISCOVER_MAX_MATCHES: int = 40
    DISCOVER_MAX_SCROLLS: int = 10

    # Browser renderer (degraded alternate source, needs the "browser" extra)
    RENDERER_ENABLED: bool = False
    RENDERER_TIMEOUT_SECONDS: float = 60.0

    # HTTP API
    API_KEY: str = ""  # X-API-Key for the extraction endpoints (empty = open, dev only)
    API_KEY_HEADER: str = "X-API-Key"
    RATE_LIMIT: str = "30/minute"  # Per-IP limit on the extraction endpoints

    # Telemetry
    METRICS_BEARER_TOKEN: str = ""  # Bearer token for /metrics (empty = public)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def _parse_utc(value: str) -> datetime:
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class GateConfig:
    """
    Immutable competition/season configuration.

    Injected into the season gate at construction so tests can swap
    leagues and seasons without touching process-wide settings.
    """

    allowed_league_ids: frozenset[int]
    season_start: datetime
    season_end: datetime
    allowed_league_labels: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "GateConfig":
        settings = settings or get_settings()
        ids = frozenset(
            int(tok) for tok in settings.ALLOWED_LEAGUE_IDS.split(",") if tok.strip()
        )
        labels = tuple(
            tok.strip().lower()
            for tok in settings.ALLOWED_LEAGUE_LABELS.split(",")
            if tok.strip()
        )
        return cls(
            allowed_league_ids=ids,
            season_start=_parse_utc(settings.SEASON_START),
            season_end=_parse_utc(settings.SEASON_END),
            allowed_league_labels=labels,
        )

    @property
    def season_label(self) -> str:
        """e.g. "2025_26" for a July-to-June season."""
        return f"{self.season_start.year}_{str(self.season_end.year)[-2:]}"
