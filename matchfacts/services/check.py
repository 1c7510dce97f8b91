"""
Checked-match record: one match reference + one player -> flat JSON record.

The record always carries `source`; when every extraction tier failed it
is "unavailable" with the collected errors instead of an exception.
Only an unresolvable reference raises (ResolutionError).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from matchfacts.etl.extractor import MatchExtractor
from matchfacts.etl.match_resolver import MatchResolver
from matchfacts.etl.models import ExtractionSource, MatchData, PlayerQuery
from matchfacts.gate import SeasonGate
from matchfacts.stats.aggregator import (
    aggregate_player_stats,
    decide_player_of_the_match,
    max_rating,
    player_rating,
)

logger = logging.getLogger(__name__)


def format_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a Z suffix, or None."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class MatchChecker:
    def __init__(
        self,
        resolver: MatchResolver,
        extractor: MatchExtractor,
        gate: SeasonGate,
        error_cap: int = 6,
    ):
        self.resolver = resolver
        self.extractor = extractor
        self.gate = gate
        self.error_cap = error_cap

    def _league_allowed(self, data: MatchData) -> Optional[bool]:
        if data.league_id is not None:
            return self.gate.league_allowed(data.league_id)
        if data.league_name:
            return self.gate.label_allowed(data.league_name)
        return None

    def build_record(
        self,
        reference: str,
        match_id: int,
        source: ExtractionSource,
        data: MatchData,
        query: PlayerQuery,
        errors: list[str],
    ) -> dict[str, Any]:
        potm = decide_player_of_the_match(data)
        stats = aggregate_player_stats(data, query)
        return {
            "ok": source != ExtractionSource.UNAVAILABLE,
            "match_url": reference,
            "resolved_match_id": str(match_id),
            "match_title": data.title,
            "league_id": data.league_id,
            "league_label": data.league_name,
            "match_datetime_utc": format_utc(data.kickoff_utc),
            "league_allowed": self._league_allowed(data),
            "within_season": self.gate.within_season(data.kickoff_utc),
            "player_is_pom": stats.is_player_of_match,
            "player_rating": player_rating(data, query),
            "max_rating": max_rating(data),
            "potm": potm.to_dict() if potm is not None else None,
            "source": source.value,
            "stats": stats.to_dict(),
            "errors": errors[: self.error_cap],
        }

    async def check(self, reference: str, query: PlayerQuery) -> dict[str, Any]:
        """
        Resolve, extract and aggregate one match for one player.

        Raises:
            ResolutionError: the reference does not map to a match id.
        """
        resolved = await self.resolver.resolve(reference)
        result = await self.extractor.extract(resolved)
        logger.info(
            "[CHECK] match %d via %s (%d tier errors)",
            result.match_id, result.source.value, len(result.errors),
        )
        return self.build_record(
            reference, result.match_id, result.source, result.data, query, result.errors,
        )
