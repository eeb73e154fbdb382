"""
Shared aiohttp session for metadata and JWKS fetches.
"""

from typing import Callable

import aiohttp

from config.settings import VerifierConfig

SessionFactory = Callable[[], aiohttp.ClientSession]


def create_http_session(config: VerifierConfig) -> aiohttp.ClientSession:
    """Create a pooled HTTP session with conservative defaults.

    - Bounded connection pool with DNS caching
    - Total timeout per request from config.http_timeout
    - Browser-style User-Agent on every request
    - trust_env=False so proxy variables and .netrc are never picked up

    Must be called from a running event loop.
    """
    connector = aiohttp.TCPConnector(
        limit=20,
        limit_per_host=10,
        ttl_dns_cache=300,
    )
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=config.http_timeout),
        headers={"User-Agent": config.user_agent},
        trust_env=False,
        raise_for_status=False,
    )
