"""
Dispatches UI messages to the connect flow and the request relay
"""

import asyncio
from typing import Any, Dict, Set

from core.logging_config import get_logger, log_error_with_context
from handshake import ConnectFlowController, RevocationError
from relay import AuthenticatedRequestRelay, RelayError
from security import sanitize_error_message

logger = get_logger(__name__)


class MessageTypes:
    """Message types accepted from UI clients"""
    GITHUB_CONNECT_START = "GITHUB_CONNECT_START"
    GITHUB_CONNECT_GET_STATE = "GITHUB_CONNECT_GET_STATE"
    GITHUB_DISCONNECT = "GITHUB_DISCONNECT"
    FETCH_DATA = "FETCH_DATA"


class MessageRouter:
    """
    Turns one inbound message into one reply.

    ``GITHUB_CONNECT_START`` answers before the flow has done anything;
    progress reaches the UI through status broadcasts instead.
    """

    def __init__(self, controller: ConnectFlowController, relay: AuthenticatedRequestRelay):
        self.controller = controller
        self.relay = relay
        self._background: Set[asyncio.Task] = set()
        self._handlers = {
            MessageTypes.GITHUB_CONNECT_START: self._handle_connect_start,
            MessageTypes.GITHUB_CONNECT_GET_STATE: self._handle_get_state,
            MessageTypes.GITHUB_DISCONNECT: self._handle_disconnect,
            MessageTypes.FETCH_DATA: self._handle_fetch_data,
        }

    async def handle(self, message: Dict[str, Any]) -> Dict[str, Any]:
        message_type = message.get("type")
        handler = self._handlers.get(message_type)
        if handler is None:
            logger.debug(f"Unknown message type: {message_type}")
            return {"ok": False, "error": f"Unknown message type: {message_type}"}
        return await handler(message)

    async def _handle_connect_start(self, message: Dict[str, Any]) -> Dict[str, Any]:
        task = asyncio.create_task(self.controller.start(), name="github-connect-start")
        self._background.add(task)
        task.add_done_callback(self._on_start_done)
        return {"started": True}

    def _on_start_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log_error_with_context(logger, error, "connect_start")

    async def _handle_get_state(self, message: Dict[str, Any]) -> Dict[str, Any]:
        state = await self.controller.get_state()
        credential = await self.controller.get_credential()
        return {"ok": True, "state": state.to_dict(), "connected": credential is not None}

    async def _handle_disconnect(self, message: Dict[str, Any]) -> Dict[str, Any]:
        try:
            await self.controller.disconnect()
        except RevocationError as e:
            return {"ok": False, "error": sanitize_error_message(e)}
        return {"ok": True}

    async def _handle_fetch_data(self, message: Dict[str, Any]) -> Dict[str, Any]:
        url = message.get("url")
        if not isinstance(url, str) or not url:
            return {"ok": False, "error": "FETCH_DATA requires a url"}

        headers = message.get("headers")
        if headers is not None and not isinstance(headers, dict):
            return {"ok": False, "error": "FETCH_DATA headers must be an object"}

        try:
            data = await self.relay.perform(
                url,
                method=message.get("method") or "GET",
                body=message.get("body"),
                headers=headers,
            )
        except RelayError as e:
            logger.info(f"Relayed request failed: {e}")
            return {"ok": False, "error": str(e)}
        return {"ok": True, "data": data}

    async def shutdown(self) -> None:
        """Wait for connect flows that are still starting"""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
