"""
Player match discovery: FotMob player URL -> candidate match URLs.

Strategy:
1. Parse `/players/<id>/<slug>` for the player id and a display name
2. Fetch the player page, find the first `/teams/<id>/...` link
3. Fetch `<base>/teams/<id>/fixtures/<slug>` and collect match anchors
   in both formats: `/match/<digits>` and `/matches/<slug>/<token>`

Pages are fetched statically first; the renderer (when configured) is
the fallback for blocked fetches or anchor-less static pages. Missing
ids/links are recorded in `debug.errors`, never raised.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Optional
from urllib.parse import quote, unquote, urlparse

from matchfacts.config import Settings, get_settings
from matchfacts.etl.exceptions import FetchError
from matchfacts.etl.extractor import parse_html
from matchfacts.etl.fetcher import ResilientFetcher
from matchfacts.etl.renderer import PageRenderer
from matchfacts.jobs.batch import BatchOrchestrator

logger = logging.getLogger(__name__)

TEAM_HREF_RE = re.compile(r"^/teams/(\d+)(?:/|$)", re.I)
MATCH_ANCHOR_RE = re.compile(r"/match/\d{5,12}(?:#\d+)?|/matches/[\w-]+/[\w]+(?:#\d+)?")
MAX_DEBUG_ERRORS = 6


@dataclass
class DiscoveryDebug:
    player_id: Optional[int] = None
    team_id: Optional[int] = None
    team_slug: Optional[str] = None
    anchors_fetched: int = 0
    used_fixtures_url: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        if len(self.errors) < MAX_DEBUG_ERRORS:
            self.errors.append(message[:200])


@dataclass
class PlayerMatches:
    player_url: str
    player_id: Optional[int]
    player_name: Optional[str]
    match_urls: list[str] = field(default_factory=list)
    debug: DiscoveryDebug = field(default_factory=DiscoveryDebug)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_player_url(url: str) -> tuple[Optional[int], Optional[str]]:
    """
    (player_id, player_name) from `/players/<id>/<slug>`; the name is the
    de-hyphenated slug. Either part is None when missing.
    """
    parts = [p for p in urlparse(url or "").path.split("/") if p]
    if len(parts) < 2 or parts[0] != "players":
        return None, None
    player_id = int(parts[1]) if parts[1].isdigit() else None
    slug = unquote(parts[2]).replace("-", " ").strip() if len(parts) > 2 else ""
    return player_id, slug or None


def find_team_href(html: str) -> Optional[str]:
    for anchor in parse_html(html).find_all("a", href=True):
        href = anchor["href"]
        path = urlparse(href).path if urlparse(href).scheme else href
        if TEAM_HREF_RE.match(path):
            return path
    return None


def normalize_team_href(href: str) -> tuple[Optional[int], str]:
    """
    `/teams/8634/overview/barcelona` or `/teams/8634/barcelona`
    -> (8634, "barcelona"); slug defaults to "team".
    """
    parts = [p for p in href.split("?")[0].split("/") if p]
    team_id = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else None
    rest = [p for p in parts[2:] if p != "overview"]
    slug = "-".join(rest) if rest else ""
    return team_id, slug or "team"


def collect_match_anchors(html: str, base_url: str) -> list[str]:
    """
    Absolute match URLs, first-seen order. Scans the raw markup so both
    rendered hrefs and hydration `pageUrl` fields are picked up.
    """
    seen: dict[str, None] = {}
    for hit in MATCH_ANCHOR_RE.finditer(html or ""):
        seen.setdefault(base_url + hit.group(0), None)
    return list(seen)


class PlayerDiscovery:
    def __init__(
        self,
        fetcher: ResilientFetcher,
        renderer: Optional[PageRenderer] = None,
        settings: Optional[Settings] = None,
    ):
        self._fetcher = fetcher
        self._renderer = renderer
        self._settings = settings or get_settings()

    def fixtures_url(self, team_id: int, team_slug: str) -> str:
        return f"{self._settings.FOTMOB_BASE_URL}/teams/{team_id}/fixtures/{quote(team_slug)}"

    async def _render(self, url: str, scrolls: int) -> str:
        try:
            page = await self._renderer.render(url, scrolls=scrolls)
        except Exception as e:
            raise FetchError(url, reason=f"renderer failed: {str(e)[:100]}") from e
        return page.html

    async def _page(self, url: str, scrolls: int = 0) -> str:
        try:
            return (await self._fetcher.fetch_text(url)).text
        except FetchError:
            if self._renderer is None:
                raise
            logger.info("[DISCOVER] Static fetch blocked for %s, using renderer", url)
            return await self._render(url, scrolls)

    async def discover(self, player_url: str, cap: int = 0) -> PlayerMatches:
        """Candidate match URLs for one player, capped at `cap` when > 0."""
        player_id, player_name = parse_player_url(player_url)
        result = PlayerMatches(player_url=player_url, player_id=player_id, player_name=player_name)
        debug = result.debug
        debug.player_id = player_id

        if player_id is None:
            debug.add_error("Could not parse player_id from URL")
            return result

        try:
            team_href = find_team_href(await self._page(player_url))
        except FetchError as e:
            debug.add_error(str(e))
            team_href = None
        if team_href is None:
            debug.add_error("Could not find team link on player page")
            return result

        team_id, team_slug = normalize_team_href(team_href)
        debug.team_id = team_id
        debug.team_slug = team_slug
        if team_id is None:
            debug.add_error("Failed to parse team_id")
            return result

        fixtures_url = self.fixtures_url(team_id, team_slug)
        debug.used_fixtures_url = fixtures_url
        scrolls = self._settings.DISCOVER_MAX_SCROLLS
        base = self._settings.FOTMOB_BASE_URL
        try:
            links = collect_match_anchors(await self._page(fixtures_url, scrolls), base)
            if not links and self._renderer is not None:
                logger.info("[DISCOVER] No anchors in static fixtures page, rendering %s", fixtures_url)
                links = collect_match_anchors(await self._render(fixtures_url, scrolls), base)
        except FetchError as e:
            debug.add_error(str(e))
            links = []

        debug.anchors_fetched = len(links)
        result.match_urls = links[:cap] if cap > 0 else links
        logger.info("[DISCOVER] player %s: %d anchors (team %s)", player_id, len(links), team_id)
        return result

    async def discover_many(self, player_urls: list[str], cap: int = 0) -> dict[str, Any]:
        """
        Raises:
            ValueError: empty url list.
        """
        orchestrator = BatchOrchestrator(
            concurrency=self._settings.BATCH_CONCURRENCY,
            failure_cap=self._settings.BATCH_FAILURE_CAP,
            deadline_seconds=self._settings.BATCH_DEADLINE_SECONDS,
            name="discover",
        )
        batch = await orchestrator.run(player_urls, lambda url: self.discover(url, cap))
        return {
            "ok": True,
            "players": [player.to_dict() for player in batch.values()],
            "failures": [f.to_dict() for f in batch.failures],
        }
