"""
Data models for the connect handshake
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Any, Optional

from config import DEFAULT_BRANCH


class ConnectStatus(Enum):
    """States of the connect flow, in happy-path order"""
    IDLE = "idle"
    STARTING = "starting"
    WAITING_FOR_INSTALL = "waiting-for-install"
    POLLING = "polling"
    CONNECTED = "connected"
    ERROR = "error"


# A session in one of these states still has a poll loop to run
RESUMABLE_STATUSES = (ConnectStatus.WAITING_FOR_INSTALL, ConnectStatus.POLLING)

TIMESTAMP_FIELDS = {
    "started_at": "startedAt",
    "callback_seen_at": "callbackSeenAt",
    "connected_at": "connectedAt",
}


def now_ms() -> int:
    """Current epoch time in milliseconds"""
    return int(time.time() * 1000)


@dataclass
class ConnectTimestamps:
    """Epoch-millisecond marks for one session; once set they are never cleared"""
    started_at: Optional[int] = None
    callback_seen_at: Optional[int] = None
    connected_at: Optional[int] = None

    def merged(self, marks: Dict[str, Optional[int]]) -> 'ConnectTimestamps':
        updates = {name: value for name, value in marks.items() if value is not None}
        return replace(self, **updates)

    def to_dict(self) -> Dict[str, int]:
        return {
            camel: getattr(self, name)
            for name, camel in TIMESTAMP_FIELDS.items()
            if getattr(self, name) is not None
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ConnectTimestamps':
        data = data or {}
        return cls(**{name: data.get(camel) for name, camel in TIMESTAMP_FIELDS.items()})


@dataclass
class ConnectState:
    """The single live connect-flow record, stored under the connect state key"""
    status: ConnectStatus = ConnectStatus.IDLE
    session_id: Optional[str] = None
    poll_attempt: int = 0
    last_error: Optional[str] = None
    timestamps: ConnectTimestamps = field(default_factory=ConnectTimestamps)
    # Fields written by other components, carried through every merge untouched
    extra: Dict[str, Any] = field(default_factory=dict)

    def merged(self, updates: Dict[str, Any]) -> 'ConnectState':
        """
        Apply a partial update.

        ``timestamps`` in ``updates`` is a dict of marks added to the existing
        ones. A new ``session_id`` starts a fresh set of marks. A key present
        with value None clears that field.
        """
        updates = dict(updates)
        marks = updates.pop("timestamps", None) or {}

        new_session = "session_id" in updates and updates["session_id"] != self.session_id
        base_timestamps = ConnectTimestamps() if new_session else self.timestamps

        if "status" in updates and not isinstance(updates["status"], ConnectStatus):
            updates["status"] = ConnectStatus(updates["status"])

        return replace(self, timestamps=base_timestamps.merged(marks), **updates)

    @property
    def is_resumable(self) -> bool:
        return self.status in RESUMABLE_STATUSES and bool(self.session_id)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["status"] = self.status.value
        data["pollAttempt"] = self.poll_attempt
        data["timestamps"] = self.timestamps.to_dict()
        if self.session_id is not None:
            data["sessionId"] = self.session_id
        if self.last_error is not None:
            data["lastError"] = self.last_error
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ConnectState':
        if not data:
            return cls()
        known = {"status", "sessionId", "pollAttempt", "lastError", "timestamps"}
        return cls(
            status=ConnectStatus(data.get("status", ConnectStatus.IDLE.value)),
            session_id=data.get("sessionId"),
            poll_attempt=int(data.get("pollAttempt") or 0),
            last_error=data.get("lastError"),
            timestamps=ConnectTimestamps.from_dict(data.get("timestamps")),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class CredentialRecord:
    """Long-lived device credential issued by a completed handshake"""
    device_token: str
    device_token_expiry: Optional[Any] = None
    selected_repo: Optional[Any] = None
    branch: str = DEFAULT_BRANCH

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceToken": self.device_token,
            "deviceTokenExpiry": self.device_token_expiry,
            "selectedRepo": self.selected_repo,
            "branch": self.branch,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CredentialRecord':
        return cls(
            device_token=data.get("deviceToken", ""),
            device_token_expiry=data.get("deviceTokenExpiry"),
            selected_repo=data.get("selectedRepo"),
            branch=data.get("branch") or DEFAULT_BRANCH,
        )


class PollStatus(Enum):
    """Classification of one handshake round-trip"""
    READY = "ready"
    PENDING = "pending"


@dataclass
class HandshakePollResult:
    """Successful outcome of one handshake round-trip"""
    status: PollStatus
    device_token: Optional[str] = None
    expiration: Optional[Any] = None

    @property
    def is_ready(self) -> bool:
        return self.status is PollStatus.READY


class PollOutcome(Enum):
    """How a poll loop ended"""
    CONNECTED = "connected"
    ERROR = "error"
    TIMED_OUT = "timed_out"
    SUPERSEDED = "superseded"


TIMEOUT_ERROR_TEMPLATE = "Polling timed out after {max_attempt} attempts"
