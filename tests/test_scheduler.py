"""Tests for the handshake poll loop."""

import asyncio

from handshake import ConnectStatus, HandshakeStatusError, HandshakeTransportError, PollOutcome, PollScheduler

from conftest import VALID_TOKEN, ScriptedPoller, no_sleep, ready_result

SESSION = "a" * 64


async def _seed(repository, session_id=SESSION, status=ConnectStatus.WAITING_FOR_INSTALL, poll_attempt=0):
    await repository.update_state({
        "status": status,
        "session_id": session_id,
        "poll_attempt": poll_attempt,
        "timestamps": {"started_at": 1000},
    })


class TestPollLoop:

    async def test_connects_after_five_pending_attempts(self, repository, store):
        await _seed(repository)
        poller = ScriptedPoller(pending_count=5, final=ready_result())
        scheduler = PollScheduler(repository, poller, interval_seconds=2.0, max_attempt=60, sleep=no_sleep)

        outcome = await scheduler.run(SESSION)

        assert outcome is PollOutcome.CONNECTED
        assert len(poller.calls) == 6
        state = await repository.read_state()
        assert state.status is ConnectStatus.CONNECTED
        assert state.poll_attempt == 5
        assert state.timestamps.connected_at is not None
        assert state.timestamps.callback_seen_at == state.timestamps.connected_at
        assert state.timestamps.started_at == 1000
        assert store.snapshot()["credentialRecord"] == {
            "deviceToken": VALID_TOKEN,
            "deviceTokenExpiry": "2099-01-01T00:00:00Z",
            "selectedRepo": None,
            "branch": "main",
        }

    async def test_times_out_after_sixty_one_attempts(self, repository):
        await _seed(repository)
        poller = ScriptedPoller(pending_count=1000)
        sleeps = []

        async def record_sleep(seconds):
            sleeps.append(seconds)

        scheduler = PollScheduler(repository, poller, interval_seconds=2.0, max_attempt=60, sleep=record_sleep)

        outcome = await scheduler.run(SESSION)

        assert outcome is PollOutcome.TIMED_OUT
        assert len(poller.calls) == 61
        assert len(sleeps) == 60
        state = await repository.read_state()
        assert state.status is ConnectStatus.ERROR
        assert state.last_error == "Polling timed out after 60 attempts"
        assert state.poll_attempt == 60

    async def test_unexpected_status_ends_in_error(self, repository, store):
        await _seed(repository)
        poller = ScriptedPoller(pending_count=2, final=HandshakeStatusError(500))
        scheduler = PollScheduler(repository, poller, max_attempt=60, sleep=no_sleep)

        outcome = await scheduler.run(SESSION)

        assert outcome is PollOutcome.ERROR
        state = await repository.read_state()
        assert state.status is ConnectStatus.ERROR
        assert state.last_error == "Unexpected status 500"
        assert "credentialRecord" not in store.snapshot()

    async def test_transport_error_ends_in_error(self, repository):
        await _seed(repository)
        poller = ScriptedPoller(pending_count=0, final=HandshakeTransportError("connection refused"))
        scheduler = PollScheduler(repository, poller, max_attempt=60, sleep=no_sleep)

        assert await scheduler.run(SESSION) is PollOutcome.ERROR
        assert (await repository.read_state()).last_error == "connection refused"

    async def test_superseded_session_stops_quietly(self, repository, store):
        await _seed(repository)

        async def start_new_session(call_count):
            if call_count == 3:
                await repository.update_state({
                    "status": ConnectStatus.WAITING_FOR_INSTALL,
                    "session_id": "b" * 64,
                    "poll_attempt": 0,
                })

        poller = ScriptedPoller(pending_count=1000, on_poll=start_new_session)
        scheduler = PollScheduler(repository, poller, max_attempt=60, sleep=no_sleep)

        outcome = await scheduler.run(SESSION)

        assert outcome is PollOutcome.SUPERSEDED
        assert len(poller.calls) == 3
        state = await repository.read_state()
        assert state.session_id == "b" * 64
        assert state.status is ConnectStatus.WAITING_FOR_INSTALL
        assert state.last_error is None
        assert state.poll_attempt == 0
        assert "credentialRecord" not in store.snapshot()

    async def test_ready_for_superseded_session_discards_credential(self, repository, store):
        await _seed(repository)

        async def start_new_session(call_count):
            await repository.update_state({"session_id": "c" * 64})

        poller = ScriptedPoller(pending_count=0, final=ready_result(), on_poll=start_new_session)
        scheduler = PollScheduler(repository, poller, max_attempt=60, sleep=no_sleep)

        assert await scheduler.run(SESSION) is PollOutcome.SUPERSEDED
        assert "credentialRecord" not in store.snapshot()

    async def test_resumes_at_given_attempt(self, repository):
        await _seed(repository, status=ConnectStatus.POLLING, poll_attempt=10)
        poller = ScriptedPoller(pending_count=0, final=ready_result())
        scheduler = PollScheduler(repository, poller, max_attempt=60, sleep=no_sleep)

        await scheduler.run(SESSION, start_attempt=11)

        state = await repository.read_state()
        assert state.status is ConnectStatus.CONNECTED
        assert state.poll_attempt == 11

    async def test_broadcasts_every_transition(self, repository, broadcasts):
        await _seed(repository)
        poller = ScriptedPoller(pending_count=1, final=ready_result())
        scheduler = PollScheduler(repository, poller, max_attempt=60, sleep=no_sleep)

        await scheduler.run(SESSION)

        statuses = [payload["status"] for payload in broadcasts]
        assert statuses == ["waiting-for-install", "polling", "polling", "connected"]
        assert all("deviceToken" not in payload for payload in broadcasts)


class TestSchedule:

    async def test_schedule_is_deduplicated_per_session(self, repository):
        await _seed(repository)
        release = asyncio.Event()

        async def wait_for_release(call_count):
            await release.wait()

        poller = ScriptedPoller(pending_count=0, final=ready_result(), on_poll=wait_for_release)
        scheduler = PollScheduler(repository, poller, max_attempt=60, sleep=no_sleep)

        first = scheduler.schedule(SESSION)
        second = scheduler.schedule(SESSION, start_attempt=5)
        assert first is second
        assert scheduler.active_sessions == [SESSION]

        release.set()
        assert await first is PollOutcome.CONNECTED
        await asyncio.sleep(0)
        assert scheduler.active_sessions == []

    async def test_shutdown_cancels_running_loops(self, repository):
        await _seed(repository)

        async def hang(call_count):
            await asyncio.Event().wait()

        poller = ScriptedPoller(pending_count=1000, on_poll=hang)
        scheduler = PollScheduler(repository, poller, max_attempt=60, sleep=no_sleep)

        task = scheduler.schedule(SESSION)
        await asyncio.sleep(0.01)
        await scheduler.shutdown()

        assert task.cancelled()
        state = await repository.read_state()
        assert state.is_resumable
