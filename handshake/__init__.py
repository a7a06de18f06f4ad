"""
GitHub connect handshake: session ids, polling, state machine and recovery
"""

from .models import (
    ConnectState, ConnectStatus, ConnectTimestamps, CredentialRecord,
    HandshakePollResult, PollStatus, PollOutcome,
)
from .exceptions import HandshakeError, HandshakeStatusError, HandshakeTransportError, RevocationError
from .session_id import generate_session_id
from .state import ConnectStateRepository
from .poller import HandshakePoller
from .scheduler import PollScheduler
from .controller import ConnectFlowController
from .resume_guard import ResumeGuard

__all__ = [
    "ConnectState",
    "ConnectStatus",
    "ConnectTimestamps",
    "CredentialRecord",
    "HandshakePollResult",
    "PollStatus",
    "PollOutcome",
    "HandshakeError",
    "HandshakeStatusError",
    "HandshakeTransportError",
    "RevocationError",
    "generate_session_id",
    "ConnectStateRepository",
    "HandshakePoller",
    "PollScheduler",
    "ConnectFlowController",
    "ResumeGuard",
]
