"""Data transfer objects for normalized match data and derived player stats."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class CardKind(str, Enum):
    YELLOW = "yellow"
    SECOND_YELLOW = "second_yellow"
    RED = "red"


class ExtractionSource(str, Enum):
    """Which tier produced a MatchData."""

    STRUCTURED = "structured"
    EMBEDDED_DOCUMENT = "embedded_document"
    REGEX_FALLBACK = "regex_fallback"
    UNAVAILABLE = "unavailable"


class PotmBasis(str, Enum):
    EXPLICIT = "explicit"
    MAX_RATING_FALLBACK = "max_rating_fallback"


@dataclass
class GoalEvent:
    scorer_id: Optional[int] = None
    scorer_name: Optional[str] = None
    assist_id: Optional[int] = None
    assist_name: Optional[str] = None
    is_penalty: bool = False
    is_own_goal: bool = False
    minute: Optional[int] = None


@dataclass
class CardEvent:
    kind: CardKind
    player_id: Optional[int] = None
    player_name: Optional[str] = None
    minute: Optional[int] = None


@dataclass
class PlayerRatingRow:
    """A rating-table row. `fields` keeps the raw row for direct stat reads."""

    name: str
    rating: Optional[float]
    id: Optional[int] = None
    fields: dict = field(default_factory=dict, repr=False, compare=False)


@dataclass
class LineupEntry:
    """One player row snapshot from a lineup container."""

    player_id: Optional[int] = None
    player_name: Optional[str] = None
    is_starter: Optional[bool] = None  # None = container carried no starter marker
    sub_in_minute: Optional[int] = None
    sub_out_minute: Optional[int] = None
    minutes_played: Optional[int] = None


@dataclass
class PlayerOfTheMatch:
    id: Optional[int] = None
    name: Optional[str] = None
    rating: Optional[float] = None
    by: PotmBasis = PotmBasis.EXPLICIT

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "rating": self.rating, "by": self.by.value}


@dataclass
class MatchData:
    """
    Normalized match snapshot. Every field may be absent: a None or an
    empty list is a legitimate terminal state, not an error.
    """

    league_id: Optional[int] = None
    league_name: Optional[str] = None
    kickoff_utc: Optional[datetime] = None
    title: Optional[str] = None
    player_of_the_match: Optional[PlayerOfTheMatch] = None
    goal_events: list[GoalEvent] = field(default_factory=list)
    card_events: list[CardEvent] = field(default_factory=list)
    player_ratings: list[PlayerRatingRow] = field(default_factory=list)
    lineups: list[LineupEntry] = field(default_factory=list)


@dataclass(frozen=True)
class PlayerQuery:
    """Subject player; at least one of id/name must be present."""

    id: Optional[int] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.id is None and not (self.name or "").strip():
            raise ValueError("PlayerQuery needs a player id or a player name")


@dataclass
class StatAggregate:
    goals: int = 0
    penalty_goals: int = 0
    non_penalty_goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    minutes_played: Optional[int] = None
    full_match_played: bool = False
    is_player_of_match: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ResolvedMatch:
    """Outcome of match identity resolution."""

    match_id: int
    final_url: str
    html: Optional[str] = None  # page already fetched during resolution, if any


@dataclass
class ExtractionResult:
    match_id: int
    source: ExtractionSource
    data: MatchData
    errors: list[str] = field(default_factory=list)
