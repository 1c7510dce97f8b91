"""
Match identity resolution: opaque FotMob reference -> numeric match id.

Order of attempts:
1. Parse the id out of the reference itself (`/match/<id>`, a `#<id>`
   fragment on `/matches/<slug>/<token>` URLs, or a bare id). No network.
2. Fetch the reference and parse the final URL after redirects.
3. Scan the fetched HTML for an embedded `"matchId": <id>` field, then
   for any bare `/match/<id>` occurrence.

The page fetched in step 2 is handed back so the extraction engine
never downloads it twice.
"""

import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlparse

from matchfacts.config import Settings, get_settings
from matchfacts.etl.exceptions import FetchError, ResolutionError
from matchfacts.etl.fetcher import ResilientFetcher
from matchfacts.etl.models import ResolvedMatch

logger = logging.getLogger(__name__)

MATCH_PATH_RE = re.compile(r"/match/(\d{5,12})(?:\D|$)")
FRAGMENT_ID_RE = re.compile(r"^(\d{5,12})$")
BARE_ID_RE = re.compile(r"^\s*(\d{5,12})\s*$")
EMBEDDED_ID_RE = re.compile(r'"matchId"\s*:\s*"?(\d{5,12})')


def parse_match_id(reference: str) -> Optional[int]:
    """
    Match id from the shape of the reference alone, or None.

    Handles `https://www.fotmob.com/match/4506300`,
    `https://www.fotmob.com/matches/arsenal-vs-chelsea/2tk9mx#4506300`
    and a bare `4506300`.
    """
    if not reference:
        return None
    bare = BARE_ID_RE.match(reference)
    if bare:
        return int(bare.group(1))

    parsed = urlparse(reference.strip())
    path_hit = MATCH_PATH_RE.search(parsed.path)
    if path_hit:
        return int(path_hit.group(1))
    fragment_hit = FRAGMENT_ID_RE.match(parsed.fragment or "")
    if fragment_hit:
        return int(fragment_hit.group(1))
    return None


def scan_text_for_match_id(text: str) -> Optional[int]:
    """Embedded matchId field first, then any /match/<id> path in the text."""
    if not text:
        return None
    embedded = EMBEDDED_ID_RE.search(text)
    if embedded:
        return int(embedded.group(1))
    bare_path = MATCH_PATH_RE.search(text)
    if bare_path:
        return int(bare_path.group(1))
    return None


class MatchResolver:
    def __init__(self, fetcher: ResilientFetcher, settings: Optional[Settings] = None):
        self._fetcher = fetcher
        self._settings = settings or get_settings()

    def canonical_url(self, match_id: int) -> str:
        return f"{self._settings.FOTMOB_BASE_URL}/match/{match_id}"

    def _absolute(self, reference: str) -> str:
        if urlparse(reference).scheme:
            return reference
        return urljoin(self._settings.FOTMOB_BASE_URL + "/", reference.lstrip("/"))

    async def resolve(self, reference: str) -> ResolvedMatch:
        """
        Resolve a reference to a ResolvedMatch.

        Raises:
            ResolutionError: when no strategy yields an id.
        """
        reference = (reference or "").strip()
        if not reference:
            raise ResolutionError(reference, "Empty match reference")

        match_id = parse_match_id(reference)
        if match_id is not None:
            url = reference if urlparse(reference).scheme else self.canonical_url(match_id)
            logger.debug("[RESOLVE] %s -> %d (from reference)", reference, match_id)
            return ResolvedMatch(match_id=match_id, final_url=url)

        try:
            page = await self._fetcher.fetch_text(self._absolute(reference))
        except FetchError as e:
            logger.warning("[RESOLVE] Could not fetch %s: %s", reference, e)
            raise ResolutionError(reference, f"Could not resolve matchId from matchUrl ({e})") from e

        match_id = parse_match_id(page.final_url)
        if match_id is None:
            match_id = scan_text_for_match_id(page.text)

        if match_id is None:
            logger.info("[RESOLVE] No match id found for %s", reference)
            raise ResolutionError(reference)

        logger.debug("[RESOLVE] %s -> %d (after fetch, final=%s)", reference, match_id, page.final_url)
        return ResolvedMatch(match_id=match_id, final_url=page.final_url, html=page.text)
