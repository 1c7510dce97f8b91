"""
Wiring for the extraction pipeline.

One Pipeline per process (built in the FastAPI lifespan); it owns the
shared fetcher and the optional browser renderer.
"""

import logging
from typing import Optional

import httpx

from matchfacts.config import GateConfig, Settings, get_settings
from matchfacts.etl.extractor import MatchExtractor
from matchfacts.etl.fetcher import ResilientFetcher
from matchfacts.etl.match_resolver import MatchResolver
from matchfacts.etl.renderer import PageRenderer, PlaywrightRenderer
from matchfacts.gate import SeasonGate
from matchfacts.services.calendar import CalendarDiscovery
from matchfacts.services.check import MatchChecker
from matchfacts.services.discovery import PlayerDiscovery
from matchfacts.services.probe import AnchorProber
from matchfacts.services.season_report import SeasonReport

logger = logging.getLogger(__name__)


class Pipeline:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        renderer: Optional[PageRenderer] = None,
        gate_config: Optional[GateConfig] = None,
    ):
        self.settings = settings or get_settings()
        if renderer is None and self.settings.RENDERER_ENABLED:
            renderer = PlaywrightRenderer(self.settings)
        self.renderer = renderer
        self.gate_config = gate_config or GateConfig.from_settings(self.settings)

        self.fetcher = ResilientFetcher(self.settings, client=client)
        self.gate = SeasonGate(self.gate_config)
        self.resolver = MatchResolver(self.fetcher, self.settings)
        self.extractor = MatchExtractor(self.fetcher, self.settings, renderer=self.renderer)
        self.checker = MatchChecker(
            self.resolver, self.extractor, self.gate, error_cap=self.settings.BATCH_FAILURE_CAP,
        )
        self.calendar = CalendarDiscovery(self.fetcher, self.gate_config, self.settings)
        self.discovery = PlayerDiscovery(self.fetcher, self.renderer, self.settings)
        self.prober = AnchorProber(self.extractor, self.gate, self.settings)
        self.season_report = SeasonReport(self.discovery, self.checker, self.settings)

        logger.info(
            "Pipeline ready: season %s, leagues %s, renderer=%s",
            self.gate_config.season_label,
            sorted(self.gate_config.allowed_league_ids),
            type(self.renderer).__name__ if self.renderer else "none",
        )

    async def close(self) -> None:
        await self.fetcher.close()
        if self.renderer is not None:
            await self.renderer.close()
