"""
Season POTM report.

For every player URL: discover candidate matches, check each one for
that player, keep the matches that are in an allowed league, inside the
season window and name the player as player of the match. Output carries
per-player bundles, totals, a summary and a CSV rendering.
"""

import csv
import io
import logging
from typing import Any, Optional

from matchfacts.config import Settings, get_settings
from matchfacts.etl.models import PlayerQuery
from matchfacts.jobs.batch import BatchOrchestrator
from matchfacts.services.check import MatchChecker
from matchfacts.services.discovery import PlayerDiscovery

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "player_name",
    "player_url",
    "match_url",
    "match_title",
    "league_label",
    "match_datetime_utc",
    "rating",
]


def _clean(value: Any) -> str:
    return "" if value is None else str(value).replace(",", " ")


def to_csv(bundles: list[dict[str, Any]]) -> str:
    """One row per POTM hit; commas in free text become spaces."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for bundle in bundles:
        for hit in bundle["pom_matches"]:
            writer.writerow([
                _clean(bundle["player_name"]),
                bundle["player_url"],
                hit["match_url"],
                _clean(hit["match_title"]),
                _clean(hit["league_label"]),
                hit["match_datetime_utc"] or "",
                "" if hit["player_rating"] is None else str(hit["player_rating"]),
            ])
    return buffer.getvalue().rstrip("\n")


def is_pom_hit(record: dict[str, Any]) -> bool:
    return bool(record["league_allowed"] and record["within_season"] and record["player_is_pom"])


class SeasonReport:
    def __init__(
        self,
        discovery: PlayerDiscovery,
        checker: MatchChecker,
        settings: Optional[Settings] = None,
    ):
        self._discovery = discovery
        self._checker = checker
        self._settings = settings or get_settings()

    def _orchestrator(self, name: str, unit_delay: float = 0.0) -> BatchOrchestrator:
        return BatchOrchestrator(
            concurrency=self._settings.BATCH_CONCURRENCY,
            failure_cap=self._settings.BATCH_FAILURE_CAP,
            deadline_seconds=self._settings.BATCH_DEADLINE_SECONDS,
            name=name,
            unit_delay=unit_delay,
        )

    async def player_bundle(self, player_url: str, max_matches: int) -> dict[str, Any]:
        found = await self._discovery.discover(player_url, max_matches)
        bundle: dict[str, Any] = {
            "player_url": player_url,
            "player_name": found.player_name,
            "player_id": found.player_id,
            "checked_matches": 0,
            "pom_count": 0,
            "pom_matches": [],
            "raw": [],
            "errors": list(found.debug.errors),
        }
        if not found.match_urls:
            return bundle

        # Raises ValueError when the URL yields neither id nor name
        query = PlayerQuery(id=found.player_id, name=found.player_name)

        async def check_one(match_url: str) -> dict[str, Any]:
            return await self._checker.check(match_url, query)

        batch = await self._orchestrator("check", self._settings.PROBE_DELAY_SECONDS).run(
            found.match_urls, check_one,
        )
        records = batch.values()
        hits = [record for record in records if is_pom_hit(record)]
        bundle.update(
            checked_matches=len(records),
            pom_count=len(hits),
            pom_matches=hits,
            raw=records,
        )
        bundle["errors"].extend(f"{f.key}: {f.error}" for f in batch.failures)
        bundle["errors"] = bundle["errors"][: self._settings.BATCH_FAILURE_CAP]
        logger.info("[REPORT] %s: %d/%d POTM hits", player_url, len(hits), len(records))
        return bundle

    async def run(self, player_urls: list[str], max_matches: Optional[int] = None) -> dict[str, Any]:
        """
        Raises:
            ValueError: empty url list.
        """
        cap = max_matches or self._settings.DISCOVER_MAX_MATCHES
        batch = await self._orchestrator("season_report").run(
            player_urls, lambda url: self.player_bundle(url, cap),
        )
        bundles = batch.values()
        return {
            "results": bundles,
            "totals": [{"player_name": b["player_name"], "total": b["pom_count"]} for b in bundles],
            "summary": {
                "players_processed": len(bundles),
                "total_pom_hits": sum(b["pom_count"] for b in bundles),
            },
            "csv": to_csv(bundles),
            "failures": [f.to_dict() for f in batch.failures],
        }
