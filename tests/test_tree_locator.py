"""Tests for shape/key-pattern search over provider documents."""

import re

from matchfacts.etl.normalizer import RATING_MARKERS, _positive_int
from matchfacts.etl.tree_locator import (
    FieldRule,
    find_arrays,
    find_by_key,
    find_node,
    has_marker,
    iter_nodes,
    locate_fields,
)

LEAGUE_RE = re.compile(r"(leagueid|tournamentid|competitionid)$", re.I)


class TestTraversal:
    """Iterative DFS with identity-keyed visited set."""

    def test_self_referential_graph_terminates(self):
        """A -> B -> A: each node yielded exactly once."""
        node_a = {"name": "a"}
        node_b = {"child": node_a}
        node_a["child"] = node_b

        nodes = list(iter_nodes(node_a))

        assert len(nodes) == 2
        assert {id(n) for n in nodes} == {id(node_a), id(node_b)}

    def test_shared_subnode_visited_once(self):
        shared = {"x": 1}
        root = {"left": shared, "right": [shared, shared]}

        nodes = list(iter_nodes(root))

        assert len(nodes) == 3  # root, shared, the list
        assert sum(1 for n in nodes if n is shared) == 1

    def test_scalar_root_yields_nothing(self):
        assert list(iter_nodes(5)) == []
        assert list(iter_nodes(None)) == []

    def test_document_order(self):
        root = {"a": {"leagueId": 1}, "b": {"leagueId": 2}}
        assert find_by_key(root, LEAGUE_RE, _positive_int) == 1


class TestFindByKey:
    def test_skips_values_that_do_not_coerce(self):
        root = {"leagueId": "n/a", "inner": {"deeper": {"parentLeagueId": 47}}}
        assert find_by_key(root, LEAGUE_RE, _positive_int) == 47

    def test_missing_field_is_none(self):
        assert find_by_key({"a": [1, 2, {"b": 3}]}, LEAGUE_RE, _positive_int) is None

    def test_survives_cycles(self):
        root: dict = {"x": {}}
        root["x"]["back"] = root
        assert find_by_key(root, LEAGUE_RE, _positive_int) is None


class TestLocateFields:
    def test_single_pass_matches_per_rule_lookup(self):
        rules = (
            FieldRule("league", LEAGUE_RE, _positive_int),
            FieldRule("title", re.compile(r"^matchname$", re.I), lambda v: v if isinstance(v, str) else None),
        )
        root = {"x": [{"matchName": "A vs B"}], "y": {"tournamentId": 87}}

        found = locate_fields(root, rules)

        assert found == {"league": 87, "title": "A vs B"}
        assert found["league"] == find_by_key(root, LEAGUE_RE, _positive_int)

    def test_absent_rules_map_to_none(self):
        rules = (FieldRule("league", LEAGUE_RE, _positive_int),)
        assert locate_fields({}, rules) == {"league": None}


class TestShapeSearch:
    def test_rating_array_found_at_any_depth(self):
        root = {
            "deep": {"deeper": {"rows": [{"name": "X", "stats": {"rating": 7.1}}]}},
            "noise": [{"foo": 1}],
        }

        hits = find_arrays(root, lambda item: has_marker(item, *RATING_MARKERS))

        assert [hit.key for hit in hits] == ["rows"]
        assert hits[0].items[0]["name"] == "X"

    def test_empty_arrays_ignored(self):
        assert find_arrays({"rows": []}, lambda item: True) == []

    def test_find_node_predicate(self):
        root = {"a": [{"playerOfTheMatch": None}, {"playerOfTheMatch": {"id": 9}}]}
        node = find_node(root, lambda n: isinstance(n.get("playerOfTheMatch"), dict))
        assert node == {"playerOfTheMatch": {"id": 9}}


class TestHasMarker:
    def test_nested_marker(self):
        assert has_marker({"performance": {"rating": 7}}, ("performance", "rating"))

    def test_null_marker_does_not_count(self):
        assert not has_marker({"stats": {"rating": None}}, ("stats", "rating"))

    def test_non_mapping_step(self):
        assert not has_marker({"stats": [1, 2]}, ("stats", "rating"))
