"""
Normalize a decoded FotMob document into MatchData.

Both the structured (API) tier and the embedded-document tier run the
same normalizer over the *whole* decoded graph, so a page blob yields
at least what a same-shape API response would have.

Parse by key name and value shape, NEVER by path or array index:
- scalar facts (league, kickoff, title) come from the FieldRule set
- rating tables are any array whose rows carry rating markers
- goal/card events are bucketed out of every array by a permissive
  type/keyword classifier (enrichment pass)
- lineup rows are any array rows carrying starter/substitution markers
"""

import logging
import re
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from matchfacts.etl.models import (
    CardEvent,
    CardKind,
    GoalEvent,
    LineupEntry,
    MatchData,
    PlayerOfTheMatch,
    PlayerRatingRow,
    PotmBasis,
)
from matchfacts.etl.name_normalization import normalize_player_name
from matchfacts.etl.raw_value import (
    RawKind,
    as_bool,
    as_float,
    as_int,
    as_mapping,
    as_sequence,
    as_str,
    first_present,
    get_path,
    kind_of,
)
from matchfacts.etl.tree_locator import (
    FieldRule,
    find_arrays,
    find_node,
    has_marker,
    iter_mappings,
    locate_fields,
)

logger = logging.getLogger(__name__)

# =============================================================================
# SCALAR FIELD RULES
# =============================================================================

_KICKOFF_TEXT_FORMATS = (
    "%a, %b %d, %Y, %H:%M UTC",  # "Sat, Aug 16, 2025, 14:00 UTC" (general.matchTimeUTC)
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def _positive_int(value: Any) -> Optional[int]:
    result = as_int(value)
    return result if result is not None and result > 0 else None


def parse_kickoff_text(value: Any) -> Optional[datetime]:
    """ISO-8601 (or FotMob's "Sat, Aug 16, 2025, 14:00 UTC") -> aware UTC datetime."""
    text = as_str(value)
    if text is None or kind_of(value) != RawKind.STRING:
        return None
    dt: Optional[datetime] = None
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _KICKOFF_TEXT_FORMATS:
            try:
                dt = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_kickoff_epoch(value: Any) -> Optional[datetime]:
    """Epoch seconds, or milliseconds when > 1e12 -> aware UTC datetime."""
    if kind_of(value) not in (RawKind.NUMBER, RawKind.STRING):
        return None
    ts = as_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > 1e12:
        ts = ts / 1000.0
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


_FIXTURE_TITLE_RE = re.compile(r"\S\s+(?:vs\.?|v|-|–)\s+\S", re.I)


def _fixture_title(value: Any) -> Optional[str]:
    """A generic `title` counts only when it names a fixture ("Arsenal vs Chelsea")."""
    text = as_str(value) if kind_of(value) == RawKind.STRING else None
    if text is None or not _FIXTURE_TITLE_RE.search(text):
        return None
    return text


MATCH_FIELD_RULES = (
    FieldRule("league_id", re.compile(r"(leagueid|tournamentid|competitionid)$", re.I), _positive_int),
    FieldRule("league_name", re.compile(r"(leaguename|tournamentname|competitionname)$", re.I), as_str),
    FieldRule(
        "kickoff_text",
        re.compile(
            r"^(matchtimeutcdate|matchtimeutc|starttimeutc|startdate|kickoffiso|utcstart|dateutc|utctime|matchtime)$",
            re.I,
        ),
        parse_kickoff_text,
    ),
    FieldRule("kickoff_epoch", re.compile(r"^(epoch|timestamp|kickoff|matchtime)$", re.I), parse_kickoff_epoch),
    FieldRule("title", re.compile(r"^(matchname|matchtitle)$", re.I), as_str),
    FieldRule("title_fallback", re.compile(r"^title$", re.I), _fixture_title),
)

# =============================================================================
# PLAYER REFERENCES
# =============================================================================


def _name_text(value: Any) -> Optional[str]:
    """A player name that may be a plain string or {fullName, firstName, lastName}."""
    if kind_of(value) == RawKind.STRING:
        return as_str(value)
    node = as_mapping(value)
    if node is None:
        return None
    full = as_str(node.get("fullName"))
    if full:
        return full
    parts = [as_str(node.get("firstName")), as_str(node.get("lastName"))]
    joined = " ".join(p for p in parts if p)
    return joined or None


def player_ref(item: Mapping, bare_id: bool = True) -> tuple[Optional[int], Optional[str]]:
    """
    (id, name) of the player an item refers to, whatever the variant.

    A nested `player` mapping beats the row's own `id`. Event rows pass
    `bare_id=False`: their `id` names the incident or shot, never a player.
    """
    player = as_mapping(item.get("player"))
    player_id = as_int(first_present(item, "playerId", "player_id"))
    if player_id is None and player is not None:
        player_id = as_int(player.get("id"))
    if player_id is None and player is None and bare_id:
        player_id = as_int(item.get("id"))
    name = None
    for key in ("fullName", "name", "playerName", "nameStr", "player_name"):
        name = _name_text(item.get(key))
        if name:
            break
    if not name and player is not None:
        name = _name_text(player.get("name")) or as_str(player.get("fullName"))
    return player_id, name


def _rating_value(value: Any) -> Optional[float]:
    """Rating as number, numeric string, or FotMob's {"num": "7.8", "isTop": ...}."""
    node = as_mapping(value)
    if node is not None:
        return as_float(first_present(node, "num", "value", "rating"))
    return as_float(value)


# =============================================================================
# PLAYER OF THE MATCH (explicit)
# =============================================================================

_POTM_KEY_RE = re.compile(r"^(playerofthematch|manofthematch|potm)$", re.I)


def _potm_candidate(node: Mapping) -> Optional[Mapping]:
    for key, value in node.items():
        if not isinstance(key, str) or not _POTM_KEY_RE.match(key):
            continue
        candidate = as_mapping(value)
        if candidate is None:
            continue
        pid, name = player_ref(candidate)
        if pid is not None or name:
            return candidate
    return None


def explicit_player_of_the_match(root: Any) -> Optional[PlayerOfTheMatch]:
    node = find_node(root, lambda n: _potm_candidate(n) is not None)
    if node is None:
        return None
    candidate = _potm_candidate(node)
    pid, name = player_ref(candidate)
    rating = _rating_value(first_present(candidate, "rating", "playerRating"))
    if rating is None:
        rating = _rating_value(get_path(candidate, "stats", "rating"))
    return PlayerOfTheMatch(id=pid, name=name, rating=rating, by=PotmBasis.EXPLICIT)


# =============================================================================
# RATING TABLES
# =============================================================================

RATING_MARKERS = (
    ("rating",),
    ("playerRating",),
    ("stats", "rating"),
    ("performance", "rating"),
)


def _looks_rated(item: Mapping) -> bool:
    return has_marker(item, *RATING_MARKERS)


def flatten_stat_fields(item: Mapping) -> dict:
    """
    Scalar stat fields of a row, flattened for alias lookup.

    Handles flat rows, a nested `stats` mapping, and FotMob's grouped
    `stats: [{title, stats: {"Goals": {key: "goals", stat: {value: 1}}}}]`.
    Top-level keys win over nested ones.
    """
    flat: dict = {}
    stats = item.get("stats")
    stats_map = as_mapping(stats)
    if stats_map is not None:
        for key, value in stats_map.items():
            if kind_of(value) in (RawKind.NUMBER, RawKind.STRING, RawKind.BOOLEAN):
                flat[key] = value
    for group in as_sequence(stats) or ():
        entries = as_mapping(get_path(group, "stats"))
        for label, entry in (entries or {}).items():
            key = as_str(get_path(entry, "key")) or label
            value = get_path(entry, "stat", "value")
            if value is not None:
                flat.setdefault(key, value)
    performance = as_mapping(item.get("performance"))
    if performance is not None:
        for key, value in performance.items():
            if kind_of(value) in (RawKind.NUMBER, RawKind.STRING, RawKind.BOOLEAN):
                flat.setdefault(key, value)
    for key, value in item.items():
        if kind_of(value) in (RawKind.NUMBER, RawKind.STRING, RawKind.BOOLEAN):
            flat[key] = value
    return flat


def _rating_row(item: Any) -> Optional[PlayerRatingRow]:
    node = as_mapping(item)
    if node is None:
        return None
    pid, name = player_ref(node)
    if pid is None and not name:
        return None
    rating = _rating_value(first_present(node, "rating", "playerRating"))
    if rating is None:
        rating = _rating_value(get_path(node, "stats", "rating"))
    if rating is None:
        rating = _rating_value(get_path(node, "performance", "rating"))
    return PlayerRatingRow(id=pid, name=name or "", rating=rating, fields=flatten_stat_fields(node))


def _player_key(player_id: Optional[int], name: Optional[str]) -> str:
    if player_id is not None:
        return f"id:{player_id}"
    return f"name:{normalize_player_name(name)}"


def extract_rating_rows(root: Any) -> list[PlayerRatingRow]:
    """Every rating-shaped array anywhere in the graph, one row per player (first seen wins)."""
    rows: "OrderedDict[str, PlayerRatingRow]" = OrderedDict()
    for hit in find_arrays(root, _looks_rated):
        for item in hit.items:
            row = _rating_row(item)
            if row is None:
                continue
            key = _player_key(row.id, row.name)
            existing = rows.get(key)
            if existing is None:
                rows[key] = row
            elif existing.rating is None and row.rating is not None:
                existing.rating = row.rating
    return list(rows.values())


# =============================================================================
# EVENT ENRICHMENT (goals / cards)
# =============================================================================

_NON_GOAL_TOKENS = ("kick", "attempt", "missed", "disallowed", "cancel", "saved", "post", "against")
_CARD_TYPES = {"card", "yellow", "red", "yellowred", "secondyellow", "yellowcard", "redcard"}


def _type_text(item: Mapping) -> str:
    raw = as_str(first_present(item, "type", "eventType", "incidentType", "kind")) or ""
    return re.sub(r"[^a-z]", "", raw.lower())


def classify_event(item: Mapping) -> Optional[str]:
    """'goal', 'card' or None for a raw array entry."""
    if as_bool(item.get("isPenaltyShootoutEvent")):
        return None
    type_text = _type_text(item)
    if not type_text:
        return None
    if type_text in _CARD_TYPES or "card" in type_text:
        return "card"
    if type_text in ("goal", "owngoal", "penaltygoal"):
        return "goal"
    if "goal" in type_text and not any(tok in type_text for tok in _NON_GOAL_TOKENS):
        return "goal"
    return None


def _description(item: Mapping) -> str:
    parts = [
        as_str(item.get(key)) or ""
        for key in ("goalDescription", "goalDescriptionKey", "situation", "incidentClass", "type")
    ]
    return " ".join(parts).lower()


def _event_minute(item: Mapping) -> Optional[int]:
    """Regular-time minute; shotmap rows call it `min`."""
    return as_int(first_present(item, "time", "minute", "min"))


def _assist_ref(item: Mapping) -> tuple[Optional[int], Optional[str]]:
    assist = as_mapping(item.get("assist"))
    assist_id = as_int(first_present(item, "assistPlayerId", "assistId"))
    if assist_id is None and assist is not None:
        assist_id = as_int(assist.get("id"))
    name = as_str(first_present(item, "assistInput", "assistName"))
    if not name and assist is not None:
        name = _name_text(assist.get("name"))
    if not name:
        assist_str = as_str(item.get("assistStr"))
        if assist_str:
            name = re.sub(r"^\s*assist\s+by\s+", "", assist_str, flags=re.I).strip() or None
    return assist_id, name


def _goal_event(item: Mapping) -> GoalEvent:
    scorer_id, scorer_name = player_ref(item, bare_id=False)
    if scorer_id is None:
        scorer_id = as_int(item.get("scorerId"))
    scorer_name = scorer_name or as_str(item.get("scorerName"))
    assist_id, assist_name = _assist_ref(item)
    description = _description(item)
    type_text = _type_text(item)
    is_own_goal = bool(
        as_bool(first_present(item, "ownGoal", "isOwnGoal"))
        or type_text == "owngoal"
        or "own goal" in description
        or "owngoal" in description
    )
    is_penalty = bool(
        as_bool(first_present(item, "isPenalty", "penalty"))
        or type_text == "penaltygoal"
        or "penalty" in description
    )
    return GoalEvent(
        scorer_id=scorer_id,
        scorer_name=scorer_name,
        assist_id=assist_id,
        assist_name=assist_name,
        is_penalty=is_penalty,
        is_own_goal=is_own_goal,
        minute=_event_minute(item),
    )


def _card_kind(item: Mapping) -> Optional[CardKind]:
    raw = " ".join(
        as_str(item.get(key)) or "" for key in ("card", "cardType", "incidentClass", "type")
    ).lower()
    compact = re.sub(r"[^a-z0-9]", "", raw)
    if "yellowred" in compact or "secondyellow" in compact or "2ndyellow" in compact:
        return CardKind.SECOND_YELLOW
    if "red" in compact:
        return CardKind.RED
    if "yellow" in compact:
        return CardKind.YELLOW
    return None


def _card_event(item: Mapping) -> Optional[CardEvent]:
    kind = _card_kind(item)
    if kind is None:
        return None
    player_id, player_name = player_ref(item, bare_id=False)
    return CardEvent(
        kind=kind,
        player_id=player_id,
        player_name=player_name,
        minute=_event_minute(item),
    )


def _event_key(kind: str, minute: Optional[int], player_id: Optional[int], player_name: Optional[str], extra: Any) -> tuple:
    """
    Cross-array identity of an event: kind, player, minute and a kind flag.

    Provider event ids are not part of the key: the same goal is `eventId`
    in match facts, a shot `id` in the shotmap and absent in header lists.
    Distinct events sharing a key inside one array stay apart through the
    multiset merge.
    """
    return (kind, _player_key(player_id, player_name), minute, extra)


def _detail(events: list) -> int:
    return sum(
        1 for event in events for value in vars(event).values() if value not in (None, False)
    )


def _merge_multiset(merged: "OrderedDict[tuple, list]", groups: "OrderedDict[tuple, list]") -> None:
    """
    Keep, per key, the largest group seen in any single array. Equal sizes
    go to the more detailed copy (header goal lists omit assists).
    """
    for key, events in groups.items():
        current = merged.get(key)
        if (
            current is None
            or len(events) > len(current)
            or (len(events) == len(current) and _detail(events) > _detail(current))
        ):
            merged[key] = events


def extract_events(root: Any) -> tuple[list[GoalEvent], list[CardEvent]]:
    """
    Bucket entries of every array in every node into goal and card events.

    The same event usually appears in several arrays (match facts timeline,
    header goal lists, ...). Arrays are merged as a multiset union per
    event key, so duplicates across arrays collapse while two genuinely
    distinct events inside one array both survive.
    """
    goals: "OrderedDict[tuple, list]" = OrderedDict()
    cards: "OrderedDict[tuple, list]" = OrderedDict()

    for node in iter_mappings(root):
        for value in node.values():
            items = as_sequence(value)
            if not items:
                continue
            goal_groups: "OrderedDict[tuple, list]" = OrderedDict()
            card_groups: "OrderedDict[tuple, list]" = OrderedDict()
            for item in items:
                entry = as_mapping(item)
                if entry is None:
                    continue
                kind = classify_event(entry)
                if kind == "goal":
                    goal = _goal_event(entry)
                    if goal.scorer_id is None and not goal.scorer_name:
                        continue
                    key = _event_key("goal", goal.minute, goal.scorer_id, goal.scorer_name, goal.is_own_goal)
                    goal_groups.setdefault(key, []).append(goal)
                elif kind == "card":
                    card = _card_event(entry)
                    if card is None or (card.player_id is None and not card.player_name):
                        continue
                    key = _event_key("card", card.minute, card.player_id, card.player_name, card.kind.value)
                    card_groups.setdefault(key, []).append(card)
            _merge_multiset(goals, goal_groups)
            _merge_multiset(cards, card_groups)

    goal_events = [event for group in goals.values() for event in group]
    card_events = [event for group in cards.values() for event in group]
    return goal_events, card_events


# =============================================================================
# LINEUPS
# =============================================================================

_STARTER_CONTAINER_RE = re.compile(r"^(starters|starting|startingxi|startinglineup|starting11)$", re.I)
_BENCH_CONTAINER_RE = re.compile(r"^(subs|bench|substitutes|benchplayers)$", re.I)

LINEUP_MARKERS = (
    ("isStarter",),
    ("starter",),
    ("isSubstitute",),
    ("timeSubbedOn",),
    ("timeSubbedOff",),
    ("subbedOutMinute",),
    ("substitutionEvents",),
    ("performance", "substitutionEvents"),
)


def _substitution_minutes(item: Mapping) -> tuple[Optional[int], Optional[int]]:
    sub_in = as_int(first_present(item, "timeSubbedOn", "subbedInMinute", "subInMinute"))
    sub_out = as_int(first_present(item, "timeSubbedOff", "subbedOutMinute", "subOutMinute"))
    events: Iterable = (
        as_sequence(item.get("substitutionEvents"))
        or as_sequence(get_path(item, "performance", "substitutionEvents"))
        or ()
    )
    for event in events:
        node = as_mapping(event)
        if node is None:
            continue
        kind = (as_str(node.get("type")) or "").lower()
        minute = as_int(first_present(node, "time", "minute"))
        if "out" in kind and sub_out is None:
            sub_out = minute
        elif "in" in kind and sub_in is None:
            sub_in = minute
    return sub_in, sub_out


def _lineup_entry(item: Mapping, container_starter: Optional[bool]) -> Optional[LineupEntry]:
    player_id, player_name = player_ref(item)
    if player_id is None and not player_name:
        return None
    is_starter = as_bool(first_present(item, "isStarter", "starter"))
    if is_starter is None and as_bool(item.get("isSubstitute")):
        is_starter = False
    if is_starter is None:
        is_starter = container_starter
    sub_in, sub_out = _substitution_minutes(item)
    return LineupEntry(
        player_id=player_id,
        player_name=player_name,
        is_starter=is_starter,
        sub_in_minute=sub_in,
        sub_out_minute=sub_out,
        minutes_played=as_int(first_present(item, "minutesPlayed", "playedMinutes", "minutes")),
    )


def extract_lineups(root: Any) -> list[LineupEntry]:
    """Snapshot every player row held by a starter/bench container or carrying lineup markers."""
    entries: "OrderedDict[str, LineupEntry]" = OrderedDict()
    for node in iter_mappings(root):
        for key, value in node.items():
            items = as_sequence(value)
            if not items:
                continue
            container_starter: Optional[bool] = None
            if isinstance(key, str) and _STARTER_CONTAINER_RE.match(key):
                container_starter = True
            elif isinstance(key, str) and _BENCH_CONTAINER_RE.match(key):
                container_starter = False
            for item in items:
                row = as_mapping(item)
                if row is None:
                    continue
                if container_starter is None and not has_marker(row, *LINEUP_MARKERS):
                    continue
                entry = _lineup_entry(row, container_starter)
                if entry is None:
                    continue
                entries.setdefault(_player_key(entry.player_id, entry.player_name), entry)
    return list(entries.values())


# =============================================================================
# ENTRY POINT
# =============================================================================


def normalize_match_data(root: Any) -> MatchData:
    """Assemble MatchData from any decoded FotMob document (API or page blob)."""
    fields = locate_fields(root, MATCH_FIELD_RULES)
    goal_events, card_events = extract_events(root)
    data = MatchData(
        league_id=fields["league_id"],
        league_name=fields["league_name"],
        kickoff_utc=fields["kickoff_text"] or fields["kickoff_epoch"],
        title=fields["title"] or fields["title_fallback"],
        player_of_the_match=explicit_player_of_the_match(root),
        goal_events=goal_events,
        card_events=card_events,
        player_ratings=extract_rating_rows(root),
        lineups=extract_lineups(root),
    )
    logger.debug(
        "[EXTRACT] Normalized league=%s kickoff=%s ratings=%d goals=%d cards=%d lineup=%d",
        data.league_id, data.kickoff_utc, len(data.player_ratings),
        len(data.goal_events), len(data.card_events), len(data.lineups),
    )
    return data
