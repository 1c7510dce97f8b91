"""
Calendar discovery: UTC date window -> canonical match URLs of allowed leagues.

One batch unit per day against the date-indexed listing endpoint
(`/api/matches?date=YYYYMMDD&timezone=UTC`). A failing day lands in
the capped `failed_days` list and never aborts the window.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from matchfacts.config import GateConfig, Settings, get_settings
from matchfacts.etl.fetcher import ResilientFetcher
from matchfacts.etl.raw_value import as_int, as_sequence, as_str, get_path
from matchfacts.jobs.batch import BatchOrchestrator

logger = logging.getLogger(__name__)

DAY_FORMAT = "%Y%m%d"


def parse_day(value: str) -> date:
    """YYYYMMDD -> date. Raises ValueError on anything else."""
    return datetime.strptime(value.strip(), DAY_FORMAT).date()


def format_day(value: date) -> str:
    return value.strftime(DAY_FORMAT)


def days_in_window(date_from: date, date_to: date) -> list[date]:
    """Inclusive list of days. Raises ValueError when from > to."""
    if date_from > date_to:
        raise ValueError(f"window start {format_day(date_from)} is after end {format_day(date_to)}")
    span = (date_to - date_from).days
    return [date_from + timedelta(days=offset) for offset in range(span + 1)]


def match_ids_from_listing(payload: Any, allowed_league_ids: frozenset[int]) -> list[str]:
    """Match ids of allowed leagues (by `primaryId`) from one day listing."""
    ids = []
    for league in as_sequence(get_path(payload, "leagues")) or []:
        if as_int(get_path(league, "primaryId")) not in allowed_league_ids:
            continue
        for match in as_sequence(get_path(league, "matches")) or []:
            match_id = as_str(get_path(match, "id"))
            if match_id:
                ids.append(match_id)
    return ids


class CalendarDiscovery:
    def __init__(
        self,
        fetcher: ResilientFetcher,
        gate_config: GateConfig,
        settings: Optional[Settings] = None,
    ):
        self._fetcher = fetcher
        self._gate_config = gate_config
        self._settings = settings or get_settings()

    def listing_url(self, day: date) -> str:
        return f"{self._settings.FOTMOB_API_BASE}/matches?date={format_day(day)}&timezone=UTC"

    def match_url(self, match_id: str) -> str:
        return f"{self._settings.FOTMOB_BASE_URL}/match/{match_id}"

    async def _day(self, day: date) -> list[str]:
        payload = await self._fetcher.fetch_json(self.listing_url(day))
        return match_ids_from_listing(payload, self._gate_config.allowed_league_ids)

    async def discover(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> dict[str, Any]:
        """
        Defaults: from = season start, to = today (UTC).

        Raises:
            ValueError: from > to.
        """
        date_from = date_from or self._gate_config.season_start.date()
        date_to = date_to or datetime.now(timezone.utc).date()
        days = days_in_window(date_from, date_to)

        orchestrator = BatchOrchestrator(
            concurrency=self._settings.BATCH_CONCURRENCY,
            failure_cap=self._settings.BATCH_FAILURE_CAP,
            deadline_seconds=self._settings.BATCH_DEADLINE_SECONDS,
            name="calendar",
        )
        batch = await orchestrator.run(days, self._day, key=format_day)

        seen: dict[str, None] = {}
        for ids in batch.values():
            for match_id in ids:
                seen.setdefault(match_id, None)

        logger.info(
            "[CALENDAR] %s..%s: %d matches, %d failed days",
            format_day(date_from), format_day(date_to), len(seen), batch.failure_count,
        )
        return {
            "ok": True,
            "match_urls": [self.match_url(match_id) for match_id in seen],
            "debug": {
                "window_from": format_day(date_from),
                "window_to": format_day(date_to),
                "failed_days": [{"date": f.key, "error": f.error} for f in batch.failures],
            },
        }
