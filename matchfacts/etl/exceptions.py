"""Exception taxonomy for the extraction pipeline."""

from typing import Optional


class MatchfactsError(Exception):
    """Base class for all pipeline errors."""


class FetchError(MatchfactsError):
    """Terminal network/HTTP failure after the fetcher exhausted its retries."""

    def __init__(self, url: str, status: Optional[int] = None, snippet: str = "", reason: str = ""):
        self.url = url
        self.status = status
        self.snippet = snippet
        self.reason = reason
        if status is not None:
            message = f"HTTP {status} for {url}"
        else:
            message = f"{reason or 'fetch failed'} for {url}"
        if snippet:
            message += f" :: {snippet}"
        super().__init__(message)


class ResolutionError(MatchfactsError):
    """A match reference could not be mapped to a numeric match id."""

    def __init__(self, reference: str, reason: str = "Could not resolve matchId from matchUrl"):
        self.reference = reference
        self.reason = reason
        super().__init__(f"{reason}: {reference}")


class ParseError(MatchfactsError):
    """A tier's payload could not be decoded; triggers fallthrough to the next tier."""

    def __init__(self, tier: str, reason: str):
        self.tier = tier
        self.reason = reason
        super().__init__(f"[{tier}] {reason}")
