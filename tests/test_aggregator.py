"""Tests for per-player stat aggregation and the POTM decision."""

import pytest

from matchfacts.etl.models import (
    CardEvent,
    CardKind,
    GoalEvent,
    LineupEntry,
    MatchData,
    PlayerOfTheMatch,
    PlayerQuery,
    PlayerRatingRow,
    PotmBasis,
)
from matchfacts.etl.normalizer import normalize_match_data
from matchfacts.stats.aggregator import (
    aggregate_player_stats,
    decide_player_of_the_match,
    infer_minutes,
    max_rating,
    player_rating,
)

from conftest import CAICEDO, FOFANA, ODEGAARD, SAKA, TROSSARD


@pytest.fixture
def match_data(match_payload) -> MatchData:
    return normalize_match_data(match_payload)


class TestEventDerivation:
    """Layer B over a normalized FotMob document."""

    def test_goals_and_penalties(self, match_data):
        stats = aggregate_player_stats(match_data, PlayerQuery(id=SAKA))

        assert stats.goals == 2
        assert stats.penalty_goals == 1
        assert stats.non_penalty_goals == 1
        assert stats.is_player_of_match is True

    def test_assist_by_id(self, match_data):
        assert aggregate_player_stats(match_data, PlayerQuery(id=ODEGAARD)).assists == 1

    def test_own_goal_never_counts(self, match_data):
        stats = aggregate_player_stats(match_data, PlayerQuery(id=FOFANA))
        assert stats.goals == 0
        assert stats.penalty_goals == 0

    def test_second_yellow_counts_once_each(self, match_data):
        """Yellow + second yellow -> 2 yellows, 1 red."""
        stats = aggregate_player_stats(match_data, PlayerQuery(id=CAICEDO))
        assert stats.yellow_cards == 2
        assert stats.red_cards == 1

    def test_name_only_query(self, match_data):
        stats = aggregate_player_stats(match_data, PlayerQuery(name="moises caicedo"))
        assert stats.yellow_cards == 2
        assert stats.red_cards == 1

    def test_lone_second_yellow(self):
        data = MatchData(card_events=[CardEvent(kind=CardKind.SECOND_YELLOW, player_id=5)])
        stats = aggregate_player_stats(data, PlayerQuery(id=5))
        assert (stats.yellow_cards, stats.red_cards) == (1, 1)

    def test_own_goal_with_penalty_flag(self):
        data = MatchData(goal_events=[GoalEvent(scorer_id=5, is_own_goal=True, is_penalty=True)])
        stats = aggregate_player_stats(data, PlayerQuery(id=5))
        assert (stats.goals, stats.penalty_goals) == (0, 0)


class TestMinutes:
    """Layer C lineup inference."""

    def test_starter_subbed_off(self, match_data):
        stats = aggregate_player_stats(match_data, PlayerQuery(id=SAKA))
        assert stats.minutes_played == 85
        assert stats.full_match_played is False

    def test_starter_not_subbed_plays_full_match(self, match_data):
        stats = aggregate_player_stats(match_data, PlayerQuery(id=ODEGAARD))
        assert stats.minutes_played == 90
        assert stats.full_match_played is True

    def test_bench_player_minutes_unknown(self, match_data):
        stats = aggregate_player_stats(match_data, PlayerQuery(id=TROSSARD))
        assert stats.minutes_played is None
        assert stats.full_match_played is False

    def test_late_sub_out_counts_as_full_match(self):
        data = MatchData(lineups=[LineupEntry(player_id=5, is_starter=True, sub_out_minute=90)])
        stats = aggregate_player_stats(data, PlayerQuery(id=5))
        assert stats.full_match_played is True

    def test_no_starter_marker_is_unknown(self):
        data = MatchData(lineups=[LineupEntry(player_id=5, is_starter=None)])
        assert infer_minutes(data, PlayerQuery(id=5)) is None
        assert aggregate_player_stats(data, PlayerQuery(id=5)).full_match_played is False

    def test_player_absent_everywhere(self, match_data):
        stats = aggregate_player_stats(match_data, PlayerQuery(id=42))
        assert stats.minutes_played is None
        assert stats.full_match_played is False
        assert stats.goals == 0


class TestRatingRowFields:
    """Layer A wins over derived layers."""

    def test_direct_fields_take_priority(self):
        data = MatchData(
            player_ratings=[PlayerRatingRow(
                name="X", rating=7.0, id=5,
                fields={"goals": 1, "penaltyGoals": 1, "minutesPlayed": 90, "yellowCards": 0},
            )],
            goal_events=[GoalEvent(scorer_id=5), GoalEvent(scorer_id=5)],
            card_events=[CardEvent(kind=CardKind.YELLOW, player_id=5)],
        )
        stats = aggregate_player_stats(data, PlayerQuery(id=5))

        assert stats.goals == 1
        assert stats.penalty_goals == 1
        assert stats.non_penalty_goals == 0
        assert stats.yellow_cards == 0
        assert stats.minutes_played == 90
        assert stats.full_match_played is True

    def test_alias_priority(self):
        data = MatchData(player_ratings=[PlayerRatingRow(
            name="X", rating=7.0, id=5, fields={"goalsScored": 3, "goals": 2, "minutes_played": 45},
        )])
        stats = aggregate_player_stats(data, PlayerQuery(id=5))
        assert stats.goals == 2
        assert stats.minutes_played == 45

    def test_fotmob_grouped_stats_are_flattened(self):
        payload = {"players": [{
            "id": 5, "name": "X", "rating": 7.2,
            "stats": [{"title": "Top stats", "stats": {
                "Goals": {"key": "goals", "stat": {"value": 1}},
                "Minutes played": {"key": "minutes_played", "stat": {"value": 90}},
            }}],
        }]}
        stats = aggregate_player_stats(normalize_match_data(payload), PlayerQuery(id=5))
        assert stats.goals == 1
        assert stats.minutes_played == 90


class TestPlayerOfTheMatch:
    def test_explicit_field_wins(self, match_data):
        potm = decide_player_of_the_match(match_data)
        assert potm.id == SAKA
        assert potm.by == PotmBasis.EXPLICIT

    def test_explicit_by_name(self, match_data):
        assert aggregate_player_stats(match_data, PlayerQuery(name="Bukayo Saka")).is_player_of_match

    def test_max_rating_fallback(self):
        data = MatchData(player_ratings=[
            PlayerRatingRow(name="A", rating=7.1, id=1),
            PlayerRatingRow(name="B", rating=8.4, id=2),
        ])
        potm = decide_player_of_the_match(data)

        assert potm.id == 2
        assert potm.by == PotmBasis.MAX_RATING_FALLBACK
        assert aggregate_player_stats(data, PlayerQuery(id=2)).is_player_of_match

    def test_tie_broken_by_lowest_id(self):
        data = MatchData(player_ratings=[
            PlayerRatingRow(name="B", rating=7.5, id=20),
            PlayerRatingRow(name="A", rating=7.5, id=10),
            PlayerRatingRow(name="C", rating=7.0, id=5),
        ])
        assert decide_player_of_the_match(data).id == 10

    def test_tie_rows_without_id_sort_last(self):
        data = MatchData(player_ratings=[
            PlayerRatingRow(name="Zed", rating=8.0),
            PlayerRatingRow(name="Yan", rating=8.0, id=99),
        ])
        assert decide_player_of_the_match(data).id == 99

    def test_tie_without_ids_by_name(self):
        data = MatchData(player_ratings=[
            PlayerRatingRow(name="Zed", rating=8.0),
            PlayerRatingRow(name="Ábe", rating=8.0),
        ])
        assert decide_player_of_the_match(data).name == "Ábe"

    def test_no_ratings_no_potm(self):
        data = MatchData(player_ratings=[PlayerRatingRow(name="A", rating=None, id=1)])
        assert decide_player_of_the_match(data) is None
        assert max_rating(data) is None

    def test_explicit_potm_untouched(self):
        explicit = PlayerOfTheMatch(id=7, name="G", rating=None)
        data = MatchData(
            player_of_the_match=explicit,
            player_ratings=[PlayerRatingRow(name="H", rating=9.9, id=8)],
        )
        assert decide_player_of_the_match(data) is explicit


class TestRatings:
    def test_player_and_max_rating(self, match_data):
        assert player_rating(match_data, PlayerQuery(id=ODEGAARD)) == 7.6
        assert player_rating(match_data, PlayerQuery(id=42)) is None
        assert max_rating(match_data) == 8.9


class TestDeterminism:
    def test_repeated_runs_identical(self, match_payload):
        """Normalize + aggregate twice from fresh documents: identical output."""
        query = PlayerQuery(id=SAKA, name="Bukayo Saka")
        first = aggregate_player_stats(normalize_match_data(match_payload), query)
        second = aggregate_player_stats(normalize_match_data(match_payload), query)
        assert first == second
        assert first.to_dict() == second.to_dict()


class TestRegressionPayloads:
    def test_goal_in_match_facts_and_shotmap_counts_once(self):
        payload = {"content": {
            "matchFacts": {"events": {"events": [
                {"time": 23, "type": "Goal", "playerId": 5, "eventId": 111, "isPenalty": True},
            ]}},
            "shotmap": {"shots": [
                {"id": 111, "eventType": "Goal", "playerId": 5, "min": 23, "situation": "Penalty"},
            ]},
        }}
        stats = aggregate_player_stats(normalize_match_data(payload), PlayerQuery(id=5))

        assert (stats.goals, stats.penalty_goals, stats.non_penalty_goals) == (1, 1, 0)

    def test_incident_shaped_events(self):
        payload = {"incidents": [
            {"id": 999001, "incidentType": "card", "incidentClass": "yellow", "player": {"id": 5}},
            {"id": 999002, "incidentType": "goal", "player": {"id": 5}},
        ]}
        stats = aggregate_player_stats(normalize_match_data(payload), PlayerQuery(id=5))

        assert stats.yellow_cards == 1
        assert stats.goals == 1

    def test_unusable_alias_value_skipped(self):
        """A name under `assists` must not hide a numeric `goalAssist`."""
        data = MatchData(player_ratings=[PlayerRatingRow(
            name="X", rating=7.0, id=5, fields={"assists": "Martin Ødegaard", "goalAssist": 2},
        )])
        assert aggregate_player_stats(data, PlayerQuery(id=5)).assists == 2
