"""Shared fixtures: FotMob-shaped payloads and offline fetcher wiring."""

import json

import httpx
import pytest

from matchfacts.config import Settings
from matchfacts.etl.fetcher import ResilientFetcher

SAKA = 961995
ODEGAARD = 534670
TROSSARD = 300
CAICEDO = 100
FOFANA = 200


def build_match_payload() -> dict:
    """
    matchDetails-like document. The Saka goal (eventId 101) is repeated in
    the header goal list to exercise cross-array de-duplication.
    """
    return {
        "general": {
            "matchId": "4506300",
            "matchName": "Arsenal vs Chelsea",
            "leagueId": 47,
            "leagueName": "Premier League",
            "matchTimeUTCDate": "2025-08-16T14:00:00.000Z",
        },
        "header": {
            "events": {
                "homeTeamGoals": {
                    "Saka": [
                        {"time": 12, "type": "Goal", "playerId": SAKA, "nameStr": "Bukayo Saka", "eventId": 101},
                    ],
                },
            },
        },
        "content": {
            "matchFacts": {
                "playerOfTheMatch": {
                    "id": SAKA,
                    "name": {"fullName": "Bukayo Saka"},
                    "rating": {"num": "8.9"},
                },
                "events": {
                    "events": [
                        {
                            "time": 12, "type": "Goal", "playerId": SAKA, "nameStr": "Bukayo Saka",
                            "eventId": 101, "assistInput": "Martin Ødegaard", "assistPlayerId": ODEGAARD,
                        },
                        {"time": 30, "type": "Card", "card": "Yellow", "playerId": CAICEDO,
                         "nameStr": "Moisés Caicedo", "eventId": 102},
                        {"time": 55, "type": "Card", "card": "YellowRed", "playerId": CAICEDO,
                         "nameStr": "Moisés Caicedo", "eventId": 103},
                        {"time": 60, "type": "Goal", "playerId": FOFANA, "nameStr": "Wesley Fofana",
                         "ownGoal": True, "eventId": 104},
                        {"time": 77, "type": "Goal", "playerId": SAKA, "nameStr": "Bukayo Saka",
                         "isPenalty": True, "eventId": 105},
                        {"time": 85, "type": "Substitution", "eventId": 106},
                    ],
                },
            },
            "lineup": {
                "homeTeam": {
                    "starters": [
                        {"id": SAKA, "name": "Bukayo Saka", "performance": {
                            "rating": 8.9,
                            "substitutionEvents": [{"time": 85, "type": "subOut"}],
                        }},
                        {"id": ODEGAARD, "name": "Martin Ødegaard", "performance": {"rating": 7.6}},
                    ],
                    "subs": [
                        {"id": TROSSARD, "name": "Leandro Trossard", "performance": {
                            "rating": 6.8,
                            "substitutionEvents": [{"time": 85, "type": "subIn"}],
                        }},
                    ],
                },
                "awayTeam": {
                    "starters": [
                        {"id": CAICEDO, "name": "Moisés Caicedo", "performance": {"rating": 6.1}},
                        {"id": FOFANA, "name": "Wesley Fofana", "performance": {"rating": 6.0}},
                    ],
                },
            },
        },
    }


def next_data_page(payload: dict, title: str = "Arsenal vs Chelsea - FotMob") -> str:
    blob = json.dumps({"props": {"pageProps": payload}, "page": "/match/[id]"})
    return (
        f"<html><head><title>{title}</title></head><body>"
        f'<div id="__next"></div>'
        f'<script id="__NEXT_DATA__" type="application/json">{blob}</script>'
        f"</body></html>"
    )


@pytest.fixture
def match_payload() -> dict:
    return build_match_payload()


@pytest.fixture
def settings() -> Settings:
    return Settings(PROBE_DELAY_SECONDS=0, BATCH_DEADLINE_SECONDS=30)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_fetcher(settings, sleeper):
    """Build a ResilientFetcher over an httpx.MockTransport handler (no network)."""

    def _make(handler) -> ResilientFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        return ResilientFetcher(settings, client=client, sleep=sleeper)

    return _make
