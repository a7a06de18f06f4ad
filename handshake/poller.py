"""
Backend client for the handshake poll and device-token revocation
"""

import asyncio
import time

import aiohttp

from config import BACKEND_BASE_URL, HANDSHAKE_CONFIG
from core.logging_config import get_logger, log_api_call

from .exceptions import HandshakeStatusError, HandshakeTransportError, RevocationError
from .models import HandshakePollResult, PollStatus

logger = get_logger(__name__)

HTTP_READY = 200
HTTP_PENDING = 202


class HandshakePoller:
    """Performs one handshake round-trip and classifies the answer"""

    def __init__(self,
                 base_url: str = BACKEND_BASE_URL,
                 poll_endpoint: str = HANDSHAKE_CONFIG["poll_endpoint"],
                 revoke_endpoint: str = HANDSHAKE_CONFIG["revoke_endpoint"]):
        self.base_url = base_url.rstrip("/")
        self.poll_url = f"{self.base_url}{poll_endpoint}"
        self.revoke_url = f"{self.base_url}{revoke_endpoint}"

    async def poll(self, session_id: str) -> HandshakePollResult:
        """
        Ask the backend whether the session's installation has completed.

        Returns:
            READY with the issued credential, or PENDING

        Raises:
            HandshakeStatusError: Any status other than 200/202
            HandshakeTransportError: Network failure or malformed success body
        """
        start_time = time.monotonic()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.poll_url, json={"sessionId": session_id}) as response:
                    log_api_call(logger, "backend", "handshake/poll", response.status,
                                 (time.monotonic() - start_time) * 1000)

                    if response.status == HTTP_PENDING:
                        return HandshakePollResult(PollStatus.PENDING)

                    if response.status != HTTP_READY:
                        raise HandshakeStatusError(response.status)

                    data = await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise HandshakeTransportError(f"Handshake poll failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise HandshakeTransportError("Handshake poll timed out") from e
        except ValueError as e:
            raise HandshakeTransportError("Malformed handshake response") from e

        if not isinstance(data, dict) or not isinstance(data.get("deviceToken"), str) or not data["deviceToken"]:
            raise HandshakeTransportError("Handshake response is missing deviceToken")

        return HandshakePollResult(
            PollStatus.READY,
            device_token=data["deviceToken"],
            expiration=data.get("expiration"),
        )

    async def revoke(self, device_token: str) -> None:
        """
        Revoke a device token on the backend.

        Raises:
            RevocationError: Non-success status or network failure
        """
        headers = {"Authorization": f"Bearer {device_token}"}
        start_time = time.monotonic()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.delete(self.revoke_url, headers=headers) as response:
                    log_api_call(logger, "backend", "auth/token", response.status,
                                 (time.monotonic() - start_time) * 1000, method="DELETE")
                    if not 200 <= response.status < 300:
                        raise RevocationError(
                            f"Failed to revoke device token: {response.reason}",
                            {"status": response.status},
                        )
        except aiohttp.ClientError as e:
            raise RevocationError(f"Failed to revoke device token: {e}") from e
        except asyncio.TimeoutError as e:
            raise RevocationError("Token revocation timed out") from e
