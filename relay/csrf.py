"""
Anti-forgery token discovery
"""

import asyncio
from typing import Mapping, Optional

import aiohttp
from yarl import URL

from config import RELAY_CONFIG
from core.logging_config import get_logger

from .headers import merge_headers

logger = get_logger(__name__)


class CsrfTokenDiscovery:
    """
    Asks a server for its CSRF token using the ``X-CSRF-Token: Fetch`` convention.

    The target URL is asked first, then the origin root. Not finding a token
    is not an error; the request simply goes out without one.
    """

    def __init__(self,
                 header_name: str = RELAY_CONFIG["csrf_header"],
                 fetch_value: str = RELAY_CONFIG["csrf_fetch_value"],
                 fetch_headers: Optional[Mapping[str, str]] = None):
        self.header_name = header_name
        self.fetch_value = fetch_value
        self.fetch_headers = merge_headers(
            {header_name: fetch_value},
            RELAY_CONFIG["csrf_fetch_headers"] if fetch_headers is None else fetch_headers,
        )

    async def request_token(self, session: aiohttp.ClientSession, url: str) -> Optional[str]:
        """GET ``url`` and return the token header of the response, if any"""
        try:
            async with session.get(url, headers=self.fetch_headers) as response:
                token = response.headers.get(self.header_name)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"CSRF token request failed for {url}: {e}")
            return None
        if not token or token == self.fetch_value:
            return None
        return token

    async def discover(self, session: aiohttp.ClientSession, url: str) -> Optional[str]:
        token = await self.request_token(session, url)
        if token:
            return token

        origin_root = str(URL(url).origin()) + "/"
        if origin_root != url:
            token = await self.request_token(session, origin_root)
            if token:
                logger.debug(f"CSRF token found at origin {origin_root}")
                return token

        logger.warning(f"CSRF token unavailable for {url}; sending request without it")
        return None
