"""
Shared player name normalization and identity matching.

Single source of truth: the aggregator, the POTM check and discovery
MUST import from here so "José" from one payload variant and "jose"
from another compare equal everywhere.
"""

import unicodedata
from typing import Any, Optional

from matchfacts.etl.models import PlayerQuery
from matchfacts.etl.raw_value import as_int, as_str


def normalize_player_name(name: Optional[str]) -> str:
    """
    Normalize a player name for equality checks.

    Steps:
    1. Trim
    2. Unicode decomposition (NFKD) + strip combining marks
    3. Case fold
    4. Collapse internal whitespace

    Examples:
        "José Giménez"   -> "jose gimenez"
        "  Ødegaard "    -> "odegaard"
        "Kylian  MBAPPÉ" -> "kylian mbappe"
    """
    if not name:
        return ""

    name = name.strip()

    # Manual replacements for chars NFKD doesn't decompose (Nordic letters)
    name = (
        name.replace("ø", "o").replace("Ø", "O")
        .replace("æ", "ae").replace("Æ", "AE")
        .replace("ð", "d").replace("Ð", "D")
        .replace("ß", "ss")
    )
    name = unicodedata.normalize("NFKD", name)
    name = "".join(c for c in name if not unicodedata.combining(c))
    name = name.casefold()

    return " ".join(name.split())


def player_matches(query: PlayerQuery, candidate_id: Any = None, candidate_name: Any = None) -> bool:
    """
    Is this raw player reference the player we asked about?

    Ids decide whenever both sides carry one. Otherwise the normalized
    names must be equal; an empty name on either side never matches.
    """
    cand_id = as_int(candidate_id)
    if query.id is not None and cand_id is not None:
        return query.id == cand_id

    wanted = normalize_player_name(query.name)
    if not wanted:
        return False
    return wanted == normalize_player_name(as_str(candidate_name))
