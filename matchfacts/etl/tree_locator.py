"""
Shape- and key-pattern search over decoded provider documents.

FotMob relocates the same semantic data to different paths depending on
the page template version (API payload vs. __NEXT_DATA__ props vs. older
hydration blobs). Nothing in here indexes by path: every lookup walks the
whole graph and matches on key names or on the shape of the value, and a
missing field is "not found" (None / empty list), never an exception.

Traversal is iterative depth-first, document order, with a visited set
keyed by node identity so self-referential graphs terminate and each
container node is visited exactly once.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

from matchfacts.etl.raw_value import RawKind, as_mapping, is_container, kind_of


@dataclass(frozen=True)
class FieldRule:
    """
    One declarative lookup: a key-name pattern plus the coercion that
    decides whether a candidate value is usable.

    The first value (in traversal order) whose key matches `pattern`
    and whose coerced result is not None wins.
    """

    name: str
    pattern: re.Pattern
    coerce: Callable[[Any], Any]


@dataclass(frozen=True)
class ArrayHit:
    """A sequence-valued field found by shape search."""

    key: str
    parent: Mapping
    items: Sequence


def _children(node: Any) -> list:
    if kind_of(node) == RawKind.MAPPING:
        return [v for v in node.values() if is_container(v)]
    return [v for v in node if is_container(v)]


def iter_nodes(root: Any) -> Iterator[Any]:
    """Yield every mapping/sequence node reachable from root, each once."""
    if not is_container(root):
        return
    visited: set[int] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        node_id = id(node)
        if node_id in visited:
            continue
        visited.add(node_id)
        yield node
        # Reversed so the pop order follows document order
        stack.extend(reversed(_children(node)))


def iter_mappings(root: Any) -> Iterator[Mapping]:
    for node in iter_nodes(root):
        if kind_of(node) == RawKind.MAPPING:
            yield node


def find_by_key(root: Any, pattern: re.Pattern, coerce: Callable[[Any], Any]) -> Any:
    """First coercible value stored under a key matching `pattern`."""
    for node in iter_mappings(root):
        for key, value in node.items():
            if not isinstance(key, str) or not pattern.search(key):
                continue
            result = coerce(value)
            if result is not None:
                return result
    return None


def locate_fields(root: Any, rules: Sequence[FieldRule]) -> dict[str, Any]:
    """
    Evaluate a rule set in a single traversal.

    Returns {rule.name: value-or-None} for every rule; each rule keeps its
    first hit in document order, same as calling `find_by_key` per rule.
    """
    found: dict[str, Any] = {rule.name: None for rule in rules}
    pending = list(rules)
    for node in iter_mappings(root):
        if not pending:
            break
        for key, value in node.items():
            if not isinstance(key, str):
                continue
            for rule in list(pending):
                if not rule.pattern.search(key):
                    continue
                result = rule.coerce(value)
                if result is not None:
                    found[rule.name] = result
                    pending.remove(rule)
    return found


def find_arrays(root: Any, item_predicate: Callable[[Mapping], bool]) -> list[ArrayHit]:
    """
    Every non-empty sequence of mappings, under any key, in which at least
    one mapping satisfies `item_predicate`.
    """
    hits: list[ArrayHit] = []
    for node in iter_mappings(root):
        for key, value in node.items():
            if kind_of(value) != RawKind.SEQUENCE or not value:
                continue
            if any(as_mapping(item) is not None and item_predicate(item) for item in value):
                hits.append(ArrayHit(key=str(key), parent=node, items=value))
    return hits


def find_node(root: Any, predicate: Callable[[Mapping], bool]) -> Optional[Mapping]:
    """First mapping node satisfying `predicate`."""
    for node in iter_mappings(root):
        if predicate(node):
            return node
    return None


def has_marker(item: Mapping, *paths: tuple[str, ...]) -> bool:
    """True when any dotted path (given as key tuples) exists with a non-None value."""
    for path in paths:
        current: Any = item
        for key in path:
            current = as_mapping(current)
            if current is None or key not in current:
                break
            current = current[key]
        else:
            if current is not None:
                return True
    return False
