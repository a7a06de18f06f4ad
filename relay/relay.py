"""
Authenticated request relay

Performs HTTP requests on behalf of UI clients, carrying the host's ambient
cookies and a discovered CSRF token.
"""

import asyncio
import json
import os
import time
from typing import Any, Mapping, Optional

import aiohttp
from yarl import URL

from config import RELAY_CONFIG
from core.logging_config import get_logger, log_api_call

from .csrf import CsrfTokenDiscovery
from .exceptions import RelayError, RelayTransportError, UnexpectedStatusError
from .headers import merge_headers

logger = get_logger(__name__)


class AuthenticatedRequestRelay:
    """
    Relays one request per ``perform`` call.

    All requests share a single aiohttp session so cookies set by one
    response are sent with the next. The relay never retries and never
    touches the state store.
    """

    def __init__(self,
                 cookie_file: Optional[str] = RELAY_CONFIG["cookie_file"],
                 csrf: Optional[CsrfTokenDiscovery] = None,
                 default_headers: Optional[Mapping[str, str]] = None):
        self.cookie_file = cookie_file or None
        self.csrf = csrf or CsrfTokenDiscovery()
        self.default_headers = default_headers or RELAY_CONFIG["default_headers"]
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # unsafe: also keep cookies for IP-address hosts such as 127.0.0.1
            jar = aiohttp.CookieJar(unsafe=True)
            if self.cookie_file and os.path.exists(self.cookie_file):
                try:
                    jar.load(self.cookie_file)
                    logger.debug(f"Loaded relay cookies from {self.cookie_file}")
                except (OSError, EOFError, ValueError) as e:
                    logger.warning(f"Could not load relay cookies from {self.cookie_file}: {e}")
            self._session = aiohttp.ClientSession(cookie_jar=jar)
        return self._session

    async def perform(self, url: str, method: str = "GET", body: Any = None,
                      headers: Optional[Mapping[str, str]] = None) -> str:
        """
        Send a request and return the response body as text.

        Args:
            url: Absolute target URL
            method: HTTP method, case-insensitive
            body: JSON-serializable payload, sent only when not None
            headers: Caller headers; they override the defaults

        Raises:
            UnexpectedStatusError: The target answered with a non-2xx status
            RelayTransportError: The target could not be reached
            RelayError: The URL or body is not usable
        """
        method = (method or "GET").upper()
        try:
            target = URL(url)
            absolute = target.is_absolute() and bool(target.host)
        except (TypeError, ValueError) as e:
            raise RelayError(f"Relay URL is malformed: {url}") from e
        if not absolute:
            raise RelayError(f"Relay URL must be absolute: {url}")

        request_headers = merge_headers(headers, self.default_headers)
        session = self._get_session()

        if method == "POST":
            token = await self.csrf.discover(session, url)
            if token:
                request_headers[self.csrf.header_name] = token

        data = None
        if body is not None:
            try:
                data = json.dumps(body)
            except (TypeError, ValueError) as e:
                raise RelayError(f"Request body is not JSON-serializable: {e}") from e

        start_time = time.monotonic()
        try:
            async with session.request(method, url, headers=request_headers, data=data) as response:
                text = await response.text(errors="replace")
                log_api_call(logger, "relay", target.path or "/", response.status,
                             (time.monotonic() - start_time) * 1000, method=method)

                if not 200 <= response.status < 300:
                    raise UnexpectedStatusError(response.status, response.reason, text)
                return text

        except aiohttp.ClientError as e:
            raise RelayTransportError(f"Request to {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise RelayTransportError(f"Request to {url} timed out") from e

    async def close(self):
        """Close the shared session, persisting cookies if configured"""
        if self._session is None or self._session.closed:
            return
        if self.cookie_file:
            try:
                self._session.cookie_jar.save(self.cookie_file)
            except OSError as e:
                logger.warning(f"Could not save relay cookies to {self.cookie_file}: {e}")
        await self._session.close()
        self._session = None
