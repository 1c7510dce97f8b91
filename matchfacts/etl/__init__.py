"""ETL module: fetching, identity resolution, tiered extraction and normalization."""

from matchfacts.etl.exceptions import FetchError, MatchfactsError, ParseError, ResolutionError
from matchfacts.etl.extractor import MatchExtractor
from matchfacts.etl.fetcher import ResilientFetcher
from matchfacts.etl.match_resolver import MatchResolver
from matchfacts.etl.models import ExtractionSource, MatchData, PlayerQuery

__all__ = [
    "MatchfactsError",
    "FetchError",
    "ResolutionError",
    "ParseError",
    "ResilientFetcher",
    "MatchResolver",
    "MatchExtractor",
    "ExtractionSource",
    "MatchData",
    "PlayerQuery",
]
