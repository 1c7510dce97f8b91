"""
Season/league gate.

Pure predicate over (league id, kickoff). A rejection is a value in the
output record, never an exception.
"""

from datetime import datetime, timezone
from typing import Optional

from matchfacts.config import GateConfig
from matchfacts.etl.name_normalization import normalize_player_name


class SeasonGate:
    def __init__(self, config: GateConfig):
        self.config = config

    def league_allowed(self, league_id: Optional[int]) -> Optional[bool]:
        """None when the league is unknown (distinct from disallowed)."""
        if league_id is None:
            return None
        return league_id in self.config.allowed_league_ids

    def label_allowed(self, label: Optional[str]) -> bool:
        """Rendered-label allow-list, used when only a visible league label is available."""
        if not label:
            return False
        normalized = normalize_player_name(label)
        return any(allowed in normalized for allowed in self.config.allowed_league_labels)

    def within_season(self, kickoff_utc: Optional[datetime]) -> bool:
        """Inclusive window; unknown kickoff fails closed."""
        if kickoff_utc is None:
            return False
        if kickoff_utc.tzinfo is None:
            kickoff_utc = kickoff_utc.replace(tzinfo=timezone.utc)
        return self.config.season_start <= kickoff_utc <= self.config.season_end

    def allows(self, league_id: Optional[int], kickoff_utc: Optional[datetime]) -> bool:
        return bool(self.league_allowed(league_id)) and self.within_season(kickoff_utc)
