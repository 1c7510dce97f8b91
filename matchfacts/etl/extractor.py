"""
Tiered extraction engine for FotMob match data.

Tiers, attempted in order until one returns usable data:

1. structured        : GET {api}/matchDetails?matchId={id}
2. embedded_document : match page HTML -> <script id="__NEXT_DATA__"> blob,
                       normalized across the entire decoded graph
3. regex_fallback    : last-ditch player-of-the-match scrape of raw text

Tier selection is driven only by the previous tier raising FetchError or
ParseError. Tiers are never blended: whichever tier first returns data
wins in full. When every tier fails the result carries
source="unavailable" and the collected errors instead of raising.
"""

import json
import logging
import re
from typing import Any, Optional

from bs4 import BeautifulSoup

from matchfacts.config import Settings, get_settings
from matchfacts.etl.exceptions import FetchError, ParseError
from matchfacts.etl.fetcher import ResilientFetcher
from matchfacts.etl.models import (
    ExtractionResult,
    ExtractionSource,
    MatchData,
    PlayerOfTheMatch,
    PotmBasis,
    ResolvedMatch,
)
from matchfacts.etl.normalizer import normalize_match_data
from matchfacts.etl.raw_value import RawKind, kind_of
from matchfacts.etl.renderer import PageRenderer
from matchfacts.telemetry import record_tier_outcome

logger = logging.getLogger(__name__)

NEXT_DATA_ID = "__NEXT_DATA__"
MAX_ERROR_LENGTH = 200

# =============================================================================
# REGEX TIER PATTERNS
# =============================================================================

_POTM_JSON_RE = re.compile(r'"(?:playerOfTheMatch|manOfTheMatch)"\s*:\s*\{', re.I)
_JSON_ID_RE = re.compile(r'"(?:id|playerId)"\s*:\s*"?(\d{1,12})')
_JSON_NAME_RE = re.compile(r'"(?:fullName|name|playerName)"\s*:\s*"([^"\\]{2,80})"')
_JSON_RATING_RE = re.compile(r'"(?:rating|num)"\s*:\s*"?(\d{1,2}(?:\.\d{1,2})?)')

POTM_LABEL_PATTERNS = [
    re.compile(r"player of the match", re.I),
    re.compile(r"man of the match", re.I),
    re.compile(r"jugador(?:a)? del partido", re.I),  # ES
    re.compile(r"joueur du match", re.I),  # FR
]
_TEXT_RATING_RE = re.compile(r"\b(\d{1,2}\.\d)\b")
_JSON_WINDOW = 800


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def extract_next_data(soup: BeautifulSoup) -> Any:
    """
    Decode the __NEXT_DATA__ hydration blob of a page.

    Raises:
        ParseError: no container, or the container does not decode.
    """
    script = soup.find("script", id=NEXT_DATA_ID)
    if script is None or not script.string:
        raise ParseError(ExtractionSource.EMBEDDED_DOCUMENT.value, "no __NEXT_DATA__ container")
    try:
        return json.loads(script.string)
    except ValueError as e:
        raise ParseError(ExtractionSource.EMBEDDED_DOCUMENT.value, f"blob decode failed: {str(e)[:100]}") from e


def extract_ld_json(soup: BeautifulSoup) -> list:
    """All decodable application/ld+json blobs (schema.org SportsEvent etc.)."""
    blobs = []
    for script in soup.find_all("script", type="application/ld+json"):
        if not script.string:
            continue
        try:
            blobs.append(json.loads(script.string))
        except ValueError:
            logger.debug("[EXTRACT] Skipping undecodable ld+json blob")
    return blobs


def page_title(soup: BeautifulSoup) -> Optional[str]:
    if soup.title and soup.title.string:
        return soup.title.string.strip() or None
    return None


def _potm_from_json_fragment(text: str) -> Optional[PlayerOfTheMatch]:
    hit = _POTM_JSON_RE.search(text)
    if not hit:
        return None
    window = text[hit.end(): hit.end() + _JSON_WINDOW]
    id_hit = _JSON_ID_RE.search(window)
    name_hit = _JSON_NAME_RE.search(window)
    if not id_hit and not name_hit:
        return None
    rating_hit = _JSON_RATING_RE.search(window)
    return PlayerOfTheMatch(
        id=int(id_hit.group(1)) if id_hit else None,
        name=name_hit.group(1).strip() if name_hit else None,
        rating=float(rating_hit.group(1)) if rating_hit else None,
        by=PotmBasis.EXPLICIT,
    )


def _potm_from_label(text: str) -> Optional[PlayerOfTheMatch]:
    for pattern in POTM_LABEL_PATTERNS:
        hit = pattern.search(text)
        if not hit:
            continue
        following = text[hit.end(): hit.end() + 200]
        for line in following.splitlines():
            candidate = line.strip(" :-–\t")
            if candidate and not candidate[0].isdigit():
                rating_hit = _TEXT_RATING_RE.search(following)
                return PlayerOfTheMatch(
                    name=candidate[:80],
                    rating=float(rating_hit.group(1)) if rating_hit else None,
                    by=PotmBasis.EXPLICIT,
                )
    return None


def extract_potm_from_text(html: str) -> Optional[PlayerOfTheMatch]:
    """
    Player of the match straight from raw page text.

    Tries an inline JSON fragment first (carries the id), then the
    visible label text in EN/ES/FR.
    """
    if not html:
        return None
    found = _potm_from_json_fragment(html)
    if found is not None:
        return found
    text = parse_html(html).get_text("\n")
    return _potm_from_label(text)


def _error_text(tier: ExtractionSource, error: Exception) -> str:
    return f"{tier.value}: {str(error)[:MAX_ERROR_LENGTH]}"


class MatchExtractor:
    """Runs the tier chain for one resolved match."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        settings: Optional[Settings] = None,
        renderer: Optional[PageRenderer] = None,
    ):
        self._fetcher = fetcher
        self._settings = settings or get_settings()
        self._renderer = renderer

    def structured_url(self, match_id: int) -> str:
        return f"{self._settings.FOTMOB_API_BASE}/matchDetails?matchId={match_id}"

    # -----------------------------------------------------------------
    # Tiers
    # -----------------------------------------------------------------

    async def structured_tier(self, match_id: int) -> MatchData:
        """
        Primary endpoint. Success = fetch OK and a non-empty JSON container;
        missing fields are tolerated downstream.
        """
        payload = await self._fetcher.fetch_json(self.structured_url(match_id))
        if kind_of(payload) not in (RawKind.MAPPING, RawKind.SEQUENCE) or not payload:
            raise ParseError(ExtractionSource.STRUCTURED.value, "empty or non-object payload")
        return normalize_match_data(payload)

    def embedded_tier(self, html: str) -> MatchData:
        """Normalize the page's hydration blob (plus any ld+json as additive enrichment)."""
        soup = parse_html(html)
        next_data = extract_next_data(soup)
        root = [next_data, *extract_ld_json(soup)]
        data = normalize_match_data(root)
        if data.title is None:
            data.title = page_title(soup)
        return data

    def regex_tier(self, html: str) -> MatchData:
        """Degraded MatchData with only player-of-the-match populated."""
        potm = extract_potm_from_text(html)
        if potm is None:
            raise ParseError(ExtractionSource.REGEX_FALLBACK.value, "no player-of-the-match pattern in page")
        return MatchData(player_of_the_match=potm)

    # -----------------------------------------------------------------
    # Page source
    # -----------------------------------------------------------------

    async def _page_html(self, resolved: ResolvedMatch) -> str:
        """HTML fetched during resolution, else a static fetch, else the renderer."""
        if resolved.html:
            return resolved.html
        try:
            page = await self._fetcher.fetch_text(resolved.final_url)
            return page.text
        except FetchError:
            if self._renderer is None:
                raise
            logger.info("[EXTRACT] Static fetch blocked for %s, using renderer", resolved.final_url)
            try:
                rendered = await self._renderer.render(resolved.final_url)
            except Exception as e:
                raise FetchError(resolved.final_url, reason=f"renderer failed: {str(e)[:100]}") from e
            return rendered.html

    # -----------------------------------------------------------------
    # Orchestration
    # -----------------------------------------------------------------

    async def extract(self, resolved: ResolvedMatch) -> ExtractionResult:
        match_id = resolved.match_id
        errors: list[str] = []

        try:
            data = await self.structured_tier(match_id)
            record_tier_outcome(ExtractionSource.STRUCTURED.value, "ok")
            return ExtractionResult(match_id, ExtractionSource.STRUCTURED, data, errors)
        except (FetchError, ParseError) as e:
            outcome = "fetch_error" if isinstance(e, FetchError) else "parse_error"
            record_tier_outcome(ExtractionSource.STRUCTURED.value, outcome)
            errors.append(_error_text(ExtractionSource.STRUCTURED, e))
            logger.info("[EXTRACT] Structured tier failed for match %d, falling back: %s", match_id, e)

        try:
            html = await self._page_html(resolved)
        except FetchError as e:
            errors.append(_error_text(ExtractionSource.EMBEDDED_DOCUMENT, e))
            record_tier_outcome(ExtractionSource.EMBEDDED_DOCUMENT.value, "fetch_error")
            logger.error("[EXTRACT] All tiers exhausted for match %d: page unavailable", match_id)
            return ExtractionResult(match_id, ExtractionSource.UNAVAILABLE, MatchData(), errors)

        try:
            data = self.embedded_tier(html)
            record_tier_outcome(ExtractionSource.EMBEDDED_DOCUMENT.value, "ok")
            return ExtractionResult(match_id, ExtractionSource.EMBEDDED_DOCUMENT, data, errors)
        except ParseError as e:
            record_tier_outcome(ExtractionSource.EMBEDDED_DOCUMENT.value, "parse_error")
            errors.append(_error_text(ExtractionSource.EMBEDDED_DOCUMENT, e))
            logger.info("[EXTRACT] Embedded tier failed for match %d: %s", match_id, e)

        try:
            data = self.regex_tier(html)
            record_tier_outcome(ExtractionSource.REGEX_FALLBACK.value, "ok")
            return ExtractionResult(match_id, ExtractionSource.REGEX_FALLBACK, data, errors)
        except ParseError as e:
            record_tier_outcome(ExtractionSource.REGEX_FALLBACK.value, "not_found")
            errors.append(_error_text(ExtractionSource.REGEX_FALLBACK, e))

        logger.error("[EXTRACT] All tiers exhausted for match %d: %s", match_id, "; ".join(errors))
        return ExtractionResult(match_id, ExtractionSource.UNAVAILABLE, MatchData(), errors)
