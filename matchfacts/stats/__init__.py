"""Per-player stat aggregation."""

from matchfacts.stats.aggregator import aggregate_player_stats, decide_player_of_the_match

__all__ = ["aggregate_player_stats", "decide_player_of_the_match"]
