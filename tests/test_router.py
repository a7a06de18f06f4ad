"""Tests for UI message routing."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from handshake import ConnectState, ConnectStatus, CredentialRecord, RevocationError
from messaging import MessageRouter
from relay import AuthenticatedRequestRelay, RelayTransportError, UnexpectedStatusError


@pytest.fixture
def controller():
    controller = MagicMock()
    controller.start = AsyncMock(return_value=ConnectState(status=ConnectStatus.WAITING_FOR_INSTALL))
    controller.get_state = AsyncMock(return_value=ConnectState(status=ConnectStatus.POLLING, session_id="s1",
                                                               poll_attempt=4))
    controller.disconnect = AsyncMock(return_value=ConnectState())
    controller.get_credential = AsyncMock(return_value=None)
    return controller


@pytest.fixture
def relay():
    relay = MagicMock()
    relay.perform = AsyncMock(return_value='{"items": []}')
    return relay


@pytest.fixture
def router(controller, relay):
    return MessageRouter(controller, relay)


class TestMessageRouter:

    async def test_connect_start_replies_immediately(self, router, controller):
        reply = await router.handle({"type": "GITHUB_CONNECT_START"})

        assert reply == {"started": True}
        await router.shutdown()
        controller.start.assert_awaited_once()

    async def test_connect_start_failure_is_logged_not_raised(self, router, controller):
        controller.start.side_effect = RuntimeError("store unavailable")

        assert await router.handle({"type": "GITHUB_CONNECT_START"}) == {"started": True}
        await router.shutdown()

    async def test_fetch_data_success(self, router, relay):
        reply = await router.handle({
            "type": "FETCH_DATA",
            "url": "https://example.test/api",
            "method": "post",
            "body": {"a": 1},
            "headers": {"Accept": "text/plain"},
        })

        assert reply == {"ok": True, "data": '{"items": []}'}
        relay.perform.assert_awaited_once_with(
            "https://example.test/api", method="post", body={"a": 1}, headers={"Accept": "text/plain"},
        )

    async def test_fetch_data_defaults_to_get(self, router, relay):
        await router.handle({"type": "FETCH_DATA", "url": "https://example.test/api"})

        relay.perform.assert_awaited_once_with("https://example.test/api", method="GET", body=None, headers=None)

    async def test_fetch_data_status_error(self, router, relay):
        relay.perform.side_effect = UnexpectedStatusError(403, "Forbidden", "denied")

        reply = await router.handle({"type": "FETCH_DATA", "url": "https://example.test/api"})

        assert reply == {"ok": False, "error": "HTTP 403: Forbidden - denied"}

    async def test_fetch_data_transport_error(self, router, relay):
        relay.perform.side_effect = RelayTransportError("Request to https://example.test/api failed")

        reply = await router.handle({"type": "FETCH_DATA", "url": "https://example.test/api"})

        assert reply["ok"] is False
        assert "failed" in reply["error"]

    async def test_fetch_data_malformed_url(self, controller):
        relay = AuthenticatedRequestRelay(cookie_file="")
        try:
            reply = await MessageRouter(controller, relay).handle({"type": "FETCH_DATA", "url": "http://[::1"})
        finally:
            await relay.close()

        assert reply["ok"] is False
        assert "malformed" in reply["error"]

    async def test_fetch_data_requires_url(self, router, relay):
        reply = await router.handle({"type": "FETCH_DATA"})

        assert reply["ok"] is False
        relay.perform.assert_not_awaited()

    async def test_get_state(self, router):
        reply = await router.handle({"type": "GITHUB_CONNECT_GET_STATE"})

        assert reply == {
            "ok": True,
            "state": {"status": "polling", "sessionId": "s1", "pollAttempt": 4, "timestamps": {}},
            "connected": False,
        }

    async def test_get_state_reports_usable_credential(self, router, controller):
        controller.get_state.return_value = ConnectState(status=ConnectStatus.CONNECTED)
        controller.get_credential.return_value = CredentialRecord("gho_" + "a" * 36, None)

        reply = await router.handle({"type": "GITHUB_CONNECT_GET_STATE"})

        assert reply["connected"] is True
        controller.get_credential.assert_awaited_once()

    async def test_disconnect(self, router, controller):
        assert await router.handle({"type": "GITHUB_DISCONNECT"}) == {"ok": True}
        controller.disconnect.assert_awaited_once()

    async def test_disconnect_revocation_failure(self, router, controller):
        controller.disconnect.side_effect = RevocationError("Failed to revoke device token: Unauthorized")

        reply = await router.handle({"type": "GITHUB_DISCONNECT"})

        assert reply == {"ok": False, "error": "Failed to revoke device token: Unauthorized"}

    async def test_unknown_type(self, router):
        reply = await router.handle({"type": "SOMETHING_ELSE"})

        assert reply == {"ok": False, "error": "Unknown message type: SOMETHING_ELSE"}
