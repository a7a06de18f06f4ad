#!/usr/bin/env python3
"""
Background host - Runs the GitHub connect flow and the request relay behind a local message surface
"""

import asyncio
import signal
import sys
from typing import Optional

from config import HANDSHAKE_CONFIG, LOGGING_CONFIG, SERVER_CONFIG, STORAGE_CONFIG
from core.logging_config import setup_logging, get_logger
from core.config_validator import validate_startup_config, ConfigValidationError
from events import event_bus, EventBus, EventTypes
from handshake import (
    ConnectFlowController, ConnectStateRepository, HandshakePoller, PollScheduler, ResumeGuard,
)
from messaging import MessageRouter, MessageWebSocketServer
from relay import AuthenticatedRequestRelay
from storage import JsonFileStateStore, StateStore


class BackgroundHost:
    """
    Wires the store, connect flow, relay and message surface together.

    The host may be stopped at any moment; everything needed to continue a
    handshake lives in the store and is picked up by ``ResumeGuard`` on the
    next ``start()``.
    """

    def __init__(self,
                 store: Optional[StateStore] = None,
                 bus: Optional[EventBus] = None,
                 poller: Optional[HandshakePoller] = None,
                 relay: Optional[AuthenticatedRequestRelay] = None,
                 host: str = SERVER_CONFIG["host"],
                 port: int = SERVER_CONFIG["port"]):
        self.logger = get_logger(__name__)
        self.bus = bus or event_bus

        self.store = store or JsonFileStateStore(STORAGE_CONFIG["path"])
        self.repository = ConnectStateRepository(
            self.store,
            self.bus,
            state_key=STORAGE_CONFIG["connect_state_key"],
            credential_key=STORAGE_CONFIG["credential_key"],
        )
        self.poller = poller or HandshakePoller()
        self.scheduler = PollScheduler(
            self.repository,
            self.poller,
            interval_seconds=HANDSHAKE_CONFIG["poll_interval_seconds"],
            max_attempt=HANDSHAKE_CONFIG["max_attempt"],
        )
        self.controller = ConnectFlowController(self.repository, self.scheduler, self.poller)
        self.resume_guard = ResumeGuard(self.controller)

        self.relay = relay or AuthenticatedRequestRelay()
        self.router = MessageRouter(self.controller, self.relay)
        self.server = MessageWebSocketServer(self.router, host=host, port=port, bus=self.bus)

        self.running = False
        self._stop_event: Optional[asyncio.Event] = None

    async def start(self):
        """Bring the message surface up and resume any interrupted handshake"""
        self.logger.info("Starting background host")
        await self.server.start()

        resumed = await self.resume_guard.on_startup()
        self.running = True
        self.bus.emit(EventTypes.SYSTEM_START, {"resumed_handshake": resumed}, source="BackgroundHost")

        self.logger.info("Host ready", extra={"extra_data": {
            "ws_url": f"ws://{self.server.host}:{self.server.port}",
            "resumed_handshake": resumed,
        }})

    async def run_forever(self):
        """Run until ``request_stop()`` is called"""
        self._stop_event = asyncio.Event()
        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.stop()

    def request_stop(self):
        if self._stop_event is not None:
            self._stop_event.set()

    async def stop(self):
        """Stop the host; in-flight handshakes resume on the next start"""
        if not self.running:
            return
        self.logger.info("Stopping background host")
        self.running = False

        try:
            await self.server.stop()
        except Exception as e:
            self.logger.error(f"Error stopping message server: {e}", exc_info=True)

        await self.router.shutdown()
        await self.scheduler.shutdown()

        try:
            await self.relay.close()
        except Exception as e:
            self.logger.error(f"Error closing request relay: {e}", exc_info=True)

        self.bus.emit(EventTypes.SYSTEM_STOP, {}, source="BackgroundHost")
        self.logger.info("Background host stopped")


async def _run_host():
    host = BackgroundHost()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, host.request_stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers; Ctrl+C still raises
            pass
    await host.run_forever()


def main():
    setup_logging(LOGGING_CONFIG)
    logger = get_logger(__name__)

    try:
        validate_startup_config()
    except ConfigValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        sys.exit(1)

    logger.info("Starting background host application")
    try:
        asyncio.run(_run_host())
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    except Exception as e:
        logger.error("Background host failed", exc_info=True, extra={
            "extra_data": {"error_type": type(e).__name__, "error_message": str(e)}
        })
        sys.exit(1)


if __name__ == "__main__":
    main()
