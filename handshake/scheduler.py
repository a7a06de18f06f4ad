"""
Poll loop driving the handshake to a terminal state
"""

import asyncio
from typing import Awaitable, Callable, Dict

from config import HANDSHAKE_CONFIG
from core.logging_config import get_logger, log_error_with_context
from security import mask_token, sanitize_error_message

from .exceptions import HandshakeError
from .models import (
    ConnectStatus, CredentialRecord, HandshakePollResult, PollOutcome,
    TIMEOUT_ERROR_TEMPLATE, now_ms,
)
from .poller import HandshakePoller
from .state import ConnectStateRepository

logger = get_logger(__name__)


class PollScheduler:
    """
    Runs at most one in-process poll loop per session.

    The loop keeps no state of its own between attempts: before every attempt
    it re-reads the stored session id and stops quietly if another session
    has taken over. Its progress lives in the stored ``pollAttempt`` so a
    restarted host can pick up where the old one stopped (see ResumeGuard).
    """

    def __init__(self,
                 repository: ConnectStateRepository,
                 poller: HandshakePoller,
                 interval_seconds: float = HANDSHAKE_CONFIG["poll_interval_seconds"],
                 max_attempt: int = HANDSHAKE_CONFIG["max_attempt"],
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.repository = repository
        self.poller = poller
        self.interval_seconds = interval_seconds
        self.max_attempt = max_attempt
        self._sleep = sleep
        self._tasks: Dict[str, asyncio.Task] = {}

    def schedule(self, session_id: str, start_attempt: int = 0) -> asyncio.Task:
        """
        Start the poll loop for ``session_id`` in the background.

        Returns the already running task if this session has one.
        """
        existing = self._tasks.get(session_id)
        if existing is not None and not existing.done():
            logger.debug(f"Poll loop already running for session {session_id[:8]}")
            return existing

        task = asyncio.create_task(self.run(session_id, start_attempt),
                                   name=f"handshake-poll-{session_id[:8]}")
        self._tasks[session_id] = task
        task.add_done_callback(lambda t: self._on_task_done(session_id, t))
        return task

    def _on_task_done(self, session_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log_error_with_context(logger, error, "poll_loop", session=session_id[:8])

    @property
    def active_sessions(self):
        return [sid for sid, task in self._tasks.items() if not task.done()]

    async def shutdown(self) -> None:
        """Cancel running loops; their sessions resume on the next host start"""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run(self, session_id: str, start_attempt: int = 0) -> PollOutcome:
        """Poll until connected, failed, timed out or superseded"""
        logger.info(f"Polling handshake for session {session_id[:8]}, starting at attempt {start_attempt}")

        state = await self.repository.update_state({"status": ConnectStatus.POLLING},
                                                   expected_session_id=session_id)
        if state is None:
            return self._superseded(session_id)

        for attempt in range(start_attempt, self.max_attempt + 1):
            logger.debug(f"Poll attempt {attempt}/{self.max_attempt}")

            current = await self.repository.read_state()
            if current.session_id != session_id:
                return self._superseded(session_id)

            try:
                result = await self.poller.poll(session_id)
            except HandshakeError as e:
                log_error_with_context(logger, e, "handshake_poll", attempt=attempt)
                await self.repository.update_state(
                    {"last_error": sanitize_error_message(e), "status": ConnectStatus.ERROR},
                    expected_session_id=session_id,
                )
                return PollOutcome.ERROR

            if result.is_ready:
                return await self._complete(session_id, attempt, result)

            if await self.repository.update_state({"poll_attempt": attempt},
                                                  expected_session_id=session_id) is None:
                return self._superseded(session_id)

            if attempt < self.max_attempt:
                await self._sleep(self.interval_seconds)

        logger.error("Handshake polling timed out")
        await self.repository.update_state(
            {"last_error": TIMEOUT_ERROR_TEMPLATE.format(max_attempt=self.max_attempt),
             "status": ConnectStatus.ERROR},
            expected_session_id=session_id,
        )
        return PollOutcome.TIMED_OUT

    async def _complete(self, session_id: str, attempt: int, result: HandshakePollResult) -> PollOutcome:
        current = await self.repository.read_state()
        if current.session_id != session_id:
            logger.warning("Credential issued for a superseded session; discarding it")
            return PollOutcome.SUPERSEDED

        await self.repository.write_credential(CredentialRecord(
            device_token=result.device_token,
            device_token_expiry=result.expiration,
        ))

        seen_at = now_ms()
        await self.repository.update_state(
            {
                "status": ConnectStatus.CONNECTED,
                "poll_attempt": attempt,
                "timestamps": {"callback_seen_at": seen_at, "connected_at": seen_at},
            },
            expected_session_id=session_id,
        )
        logger.info(f"Handshake complete after {attempt + 1} attempt(s)", extra={
            "extra_data": {"device_token": mask_token(result.device_token)}
        })
        return PollOutcome.CONNECTED

    def _superseded(self, session_id: str) -> PollOutcome:
        logger.info(f"Session {session_id[:8]} superseded; stopping poll loop")
        return PollOutcome.SUPERSEDED
