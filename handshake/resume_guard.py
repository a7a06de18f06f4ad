"""
Re-arms the handshake after the host process is recreated
"""

from core.logging_config import get_logger

from .controller import ConnectFlowController

logger = get_logger(__name__)


class ResumeGuard:
    """Runs on every host start and install event"""

    def __init__(self, controller: ConnectFlowController):
        self.controller = controller

    async def on_startup(self) -> bool:
        logger.debug("Host started; checking for an interrupted handshake")
        return await self.controller.resume()

    async def on_installed(self) -> bool:
        logger.debug("Host installed or updated; checking for an interrupted handshake")
        return await self.controller.resume()
