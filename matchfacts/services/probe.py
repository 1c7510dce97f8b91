"""Anchor probing: validate opportunistically discovered match ids via the structured endpoint."""

import logging
from typing import Any, Iterable, Optional

from matchfacts.config import Settings, get_settings
from matchfacts.etl.extractor import MatchExtractor
from matchfacts.gate import SeasonGate
from matchfacts.jobs.batch import BatchOrchestrator
from matchfacts.services.check import format_utc

logger = logging.getLogger(__name__)


class AnchorProber:
    def __init__(
        self,
        extractor: MatchExtractor,
        gate: SeasonGate,
        settings: Optional[Settings] = None,
    ):
        self._extractor = extractor
        self._gate = gate
        self._settings = settings or get_settings()

    async def _probe(self, match_id: int) -> dict[str, Any]:
        data = await self._extractor.structured_tier(match_id)
        return {
            "match_id": match_id,
            "league_id": data.league_id,
            "kickoff": format_utc(data.kickoff_utc),
            "league_allowed": self._gate.league_allowed(data.league_id),
            "within_season": self._gate.within_season(data.kickoff_utc),
        }

    async def probe(self, match_ids: Iterable[int]) -> dict[str, Any]:
        """
        One unit per id; the politeness delay separates probes on the
        same worker.

        Raises:
            ValueError: no ids.
        """
        orchestrator = BatchOrchestrator(
            concurrency=self._settings.BATCH_CONCURRENCY,
            failure_cap=self._settings.BATCH_FAILURE_CAP,
            deadline_seconds=self._settings.BATCH_DEADLINE_SECONDS,
            name="probe",
            unit_delay=self._settings.PROBE_DELAY_SECONDS,
        )
        batch = await orchestrator.run(match_ids, self._probe)
        return {
            "probes": batch.values(),
            "failures": [f.to_dict() for f in batch.failures],
        }
