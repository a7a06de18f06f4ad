"""
Connect-flow state machine: idle -> starting -> waiting-for-install -> polling -> connected | error
"""

import asyncio
import webbrowser
from typing import Callable, Optional

from config import HANDSHAKE_CONFIG, get_install_url
from core.logging_config import get_logger
from security import is_token_expired, is_valid_token_format

from .exceptions import RevocationError
from .models import ConnectState, ConnectStatus, CredentialRecord, now_ms
from .poller import HandshakePoller
from .scheduler import PollScheduler
from .session_id import generate_session_id
from .state import ConnectStateRepository

logger = get_logger(__name__)


def open_in_browser(url: str) -> bool:
    """Open ``url`` in a new tab of the platform browser"""
    return webbrowser.open_new_tab(url)


class ConnectFlowController:
    """
    Owns the connect flow.

    There is one flow per host. Its only identity is the stored session id,
    so calling ``start()`` again supersedes whatever session came before; the
    old poll loop notices on its next attempt and exits without an error.
    """

    def __init__(self,
                 repository: ConnectStateRepository,
                 scheduler: PollScheduler,
                 poller: Optional[HandshakePoller] = None,
                 open_tab: Optional[Callable[[str], bool]] = None,
                 install_url: Callable[[str], str] = get_install_url,
                 session_id_factory: Callable[[], str] = generate_session_id):
        self.repository = repository
        self.scheduler = scheduler
        self.poller = poller or scheduler.poller
        if open_tab is None:
            open_tab = open_in_browser if HANDSHAKE_CONFIG["open_browser"] else None
        self.open_tab = open_tab
        self.install_url = install_url
        self.session_id_factory = session_id_factory

    async def start(self) -> ConnectState:
        """Begin a new session and hand it to the poll loop"""
        logger.info("Starting GitHub connect flow")
        session_id = self.session_id_factory()

        await self.repository.update_state({
            "status": ConnectStatus.STARTING,
            "session_id": session_id,
            "poll_attempt": 0,
            "timestamps": {"started_at": now_ms()},
            "last_error": None,
        })

        url = self.install_url(session_id)
        await self._open_install_page(url)

        state = await self.repository.update_state({"status": ConnectStatus.WAITING_FOR_INSTALL},
                                                   expected_session_id=session_id)
        if state is None:
            # Another start() took over while the install page was opening
            return await self.repository.read_state()

        self.scheduler.schedule(session_id, start_attempt=0)
        return state

    async def _open_install_page(self, url: str) -> None:
        if self.open_tab is None:
            logger.info(f"Open this URL to install the GitHub App: {url}")
            return
        try:
            opened = await asyncio.to_thread(self.open_tab, url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open browser ({e}); install the GitHub App at: {url}")
            return
        if opened is False:
            logger.warning(f"No browser available; install the GitHub App at: {url}")

    async def resume(self) -> bool:
        """
        Re-arm the poll loop for a session left mid-flight by a previous process.

        Returns:
            True if a loop was scheduled
        """
        state = await self.repository.read_state()
        if not state.is_resumable:
            logger.debug(f"Nothing to resume (status={state.status.value})")
            return False

        next_attempt = state.poll_attempt + 1
        logger.info(f"Resuming polling for session {state.session_id[:8]} at attempt {next_attempt}")
        self.scheduler.schedule(state.session_id, start_attempt=next_attempt)
        return True

    async def get_state(self) -> ConnectState:
        return await self.repository.read_state()

    async def get_credential(self) -> Optional[CredentialRecord]:
        """
        Return the stored credential if it is still usable.

        Malformed or expired records are removed from the store.
        """
        record = await self.repository.read_credential()
        if record is None:
            return None

        if not is_valid_token_format(record.device_token):
            logger.warning("Stored device token has an invalid format; clearing it")
            await self.repository.remove_credential()
            return None

        if record.device_token_expiry and is_token_expired(record.device_token_expiry):
            logger.info("Stored device token expired; clearing it")
            await self.repository.remove_credential()
            return None

        return record

    async def disconnect(self) -> ConnectState:
        """
        Revoke the device token and forget it.

        The local credential is removed even when the backend refuses the
        revocation; the error is re-raised afterwards so the caller can tell.
        """
        record = await self.repository.read_credential()
        revocation_error: Optional[RevocationError] = None

        if record is not None and record.device_token:
            try:
                await self.poller.revoke(record.device_token)
            except RevocationError as e:
                logger.warning(f"Token revocation failed: {e}")
                revocation_error = e

        await self.repository.remove_credential()
        state = await self.repository.reset_state()
        logger.info("Disconnected from GitHub")

        if revocation_error is not None:
            raise revocation_error
        return state
