"""
Per-player stat aggregation over a normalized MatchData.

Layered sourcing, each layer only fills what the previous left unknown:

A. direct rating-row fields (aliases tried in a fixed priority order)
B. goal/card event derivation (id match preferred, normalized name fallback)
C. minutes / full-match inference from lineup snapshots

Invariants:
- a second-yellow event adds exactly one yellow AND one red
- own goals never count toward the scorer's goals
- unknown minutes -> full_match_played is False (never None)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from matchfacts.etl.models import (
    CardKind,
    MatchData,
    PlayerOfTheMatch,
    PlayerQuery,
    PlayerRatingRow,
    PotmBasis,
    StatAggregate,
)
from matchfacts.etl.name_normalization import normalize_player_name, player_matches
from matchfacts.etl.raw_value import as_int

logger = logging.getLogger(__name__)

FULL_MATCH_MINUTES = 90

# Alias priority per stat (first present wins)
GOAL_ALIASES = ("goals", "goalsScored", "totalGoals")
PENALTY_GOAL_ALIASES = ("penaltyGoals", "penalty_goals", "goalsFromPenalty")
ASSIST_ALIASES = ("assists", "goalAssist", "goal_assist", "assist")
YELLOW_ALIASES = ("yellowCards", "yellow_cards", "yellowCard", "yellow_card")
RED_ALIASES = ("redCards", "red_cards", "redCard", "red_card")
MINUTES_ALIASES = ("minutesPlayed", "minutes_played", "playedMinutes", "minutes")


@dataclass
class _Partial:
    goals: Optional[int] = None
    penalty_goals: Optional[int] = None
    assists: Optional[int] = None
    yellow_cards: Optional[int] = None
    red_cards: Optional[int] = None
    minutes_played: Optional[int] = None

    def fill_from(self, other: "_Partial") -> None:
        """Copy every field of `other` that is still unknown here."""
        for name in self.__dataclass_fields__:
            if getattr(self, name) is None:
                setattr(self, name, getattr(other, name))


def _first_int(fields: dict, aliases: tuple) -> Optional[int]:
    """First alias whose value converts to an int; unusable values are skipped."""
    for alias in aliases:
        value = as_int(fields.get(alias))
        if value is not None:
            return value
    return None


def find_rating_row(data: MatchData, query: PlayerQuery) -> Optional[PlayerRatingRow]:
    for row in data.player_ratings:
        if player_matches(query, row.id, row.name):
            return row
    return None


def _row_fields(row: Optional[PlayerRatingRow]) -> _Partial:
    """Layer A."""
    if row is None:
        return _Partial()
    fields = row.fields
    return _Partial(
        goals=_first_int(fields, GOAL_ALIASES),
        penalty_goals=_first_int(fields, PENALTY_GOAL_ALIASES),
        assists=_first_int(fields, ASSIST_ALIASES),
        yellow_cards=_first_int(fields, YELLOW_ALIASES),
        red_cards=_first_int(fields, RED_ALIASES),
        minutes_played=_first_int(fields, MINUTES_ALIASES),
    )


def _event_counts(data: MatchData, query: PlayerQuery) -> _Partial:
    """Layer B. Always yields counts (zero when the player has no events)."""
    goals = penalty_goals = assists = yellow = red = 0

    for goal in data.goal_events:
        if not goal.is_own_goal and player_matches(query, goal.scorer_id, goal.scorer_name):
            goals += 1
            if goal.is_penalty:
                penalty_goals += 1
        if player_matches(query, goal.assist_id, goal.assist_name):
            assists += 1

    for card in data.card_events:
        if not player_matches(query, card.player_id, card.player_name):
            continue
        if card.kind == CardKind.YELLOW:
            yellow += 1
        elif card.kind == CardKind.RED:
            red += 1
        elif card.kind == CardKind.SECOND_YELLOW:
            yellow += 1
            red += 1

    return _Partial(
        goals=goals,
        penalty_goals=penalty_goals,
        assists=assists,
        yellow_cards=yellow,
        red_cards=red,
    )


def infer_minutes(data: MatchData, query: PlayerQuery) -> Optional[int]:
    """
    Layer C. Starter with no substitution-out -> 90; starter subbed off
    -> that minute; no starting marker -> unknown (None), never zero.
    """
    for entry in data.lineups:
        if not player_matches(query, entry.player_id, entry.player_name):
            continue
        if entry.minutes_played is not None:
            return entry.minutes_played
        if entry.is_starter is not True:
            return None
        if entry.sub_out_minute is None:
            return FULL_MATCH_MINUTES
        return entry.sub_out_minute
    return None


def _fallback_sort_key(row: PlayerRatingRow) -> tuple:
    # Highest rating first; ties -> lowest player id, rows without id last, then name
    return (-row.rating, row.id is None, row.id or 0, normalize_player_name(row.name))


def decide_player_of_the_match(data: MatchData) -> Optional[PlayerOfTheMatch]:
    """
    Explicit provider POTM when present, else the max-rated row tagged
    `max_rating_fallback` so callers can see it was inferred.
    """
    if data.player_of_the_match is not None:
        return data.player_of_the_match
    rated = [row for row in data.player_ratings if row.rating is not None]
    if not rated:
        return None
    best = min(rated, key=_fallback_sort_key)
    return PlayerOfTheMatch(
        id=best.id,
        name=best.name or None,
        rating=best.rating,
        by=PotmBasis.MAX_RATING_FALLBACK,
    )


def max_rating(data: MatchData) -> Optional[float]:
    ratings = [row.rating for row in data.player_ratings if row.rating is not None]
    return max(ratings) if ratings else None


def player_rating(data: MatchData, query: PlayerQuery) -> Optional[float]:
    row = find_rating_row(data, query)
    return row.rating if row is not None else None


def aggregate_player_stats(data: MatchData, query: PlayerQuery) -> StatAggregate:
    """Compute a fresh StatAggregate for one player in one match."""
    partial = _row_fields(find_rating_row(data, query))
    partial.fill_from(_event_counts(data, query))
    if partial.minutes_played is None:
        partial.minutes_played = infer_minutes(data, query)

    goals = partial.goals or 0
    penalty_goals = min(partial.penalty_goals or 0, goals)
    minutes = partial.minutes_played
    potm = decide_player_of_the_match(data)

    return StatAggregate(
        goals=goals,
        penalty_goals=penalty_goals,
        non_penalty_goals=goals - penalty_goals,
        assists=partial.assists or 0,
        yellow_cards=partial.yellow_cards or 0,
        red_cards=partial.red_cards or 0,
        minutes_played=minutes,
        full_match_played=minutes is not None and minutes >= FULL_MATCH_MINUTES,
        is_player_of_match=potm is not None and player_matches(query, potm.id, potm.name),
    )
