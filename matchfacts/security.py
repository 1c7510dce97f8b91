"""Security middleware: rate limiting and API key authentication."""

import logging
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address

from matchfacts.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Rate limiter using client IP
limiter = Limiter(key_func=get_remote_address)

# API Key header for extraction endpoints
api_key_header = APIKeyHeader(name=settings.API_KEY_HEADER, auto_error=False)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> bool:
    """
    Verify API key for the extraction endpoints.

    Empty API_KEY allows all requests (local development).
    """
    expected = get_settings().API_KEY
    if not expected:
        return True

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key. Provide it via X-API-Key header.",
        )

    if api_key != expected:
        logger.warning("Invalid API key attempt from request")
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True
