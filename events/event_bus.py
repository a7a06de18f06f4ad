"""
In-process event bus for connect-state broadcasts and host lifecycle events
"""

import time
import uuid
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, Any, List, Callable, Optional

from core.logging_config import get_logger

logger = get_logger(__name__)

WILDCARD = "*"

Listener = Callable[['SystemEvent'], None]


@dataclass
class SystemEvent:
    """One emitted event; ``data`` is handed to listeners as-is"""
    type: str
    data: Dict[str, Any]
    source: str = "system"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "source": self.source,
            "timestamp": self.timestamp,
        }


class EventBus:
    """
    Best-effort event bus.

    Listeners run inline on ``emit`` in the caller's event loop, so a
    listener that needs to do I/O must schedule it rather than await it.
    An event nobody listens to is dropped, and a listener that raises is
    logged and skipped; ``emit`` itself never fails.
    """

    def __init__(self, max_history: int = 200):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._history: deque = deque(maxlen=max_history)
        self._counts: Counter = Counter()
        self.delivery_failures = 0

    def emit(self, event_type: str, data: Dict[str, Any], source: Optional[str] = None) -> SystemEvent:
        """Deliver an event to its type's listeners, then to wildcard listeners"""
        event = SystemEvent(event_type, data, source or "system")
        self._counts[event_type] += 1
        self._history.append(event)

        targets = self._listeners.get(event_type, []) + self._listeners.get(WILDCARD, [])
        if not targets:
            logger.debug(f"No listener for {event_type}; event dropped")

        for listener in targets:
            try:
                listener(event)
            except Exception as e:
                self.delivery_failures += 1
                logger.debug(f"Listener {getattr(listener, '__qualname__', listener)} failed on {event_type}: {e}")

        return event

    def on(self, event_type: str, callback: Listener) -> Callable[[], None]:
        """
        Register a listener for one event type.

        Returns:
            A function that removes the listener again
        """
        self._listeners[event_type].append(callback)
        return lambda: self.off(event_type, callback)

    def on_all(self, callback: Listener) -> Callable[[], None]:
        """Register a listener for every event type"""
        return self.on(WILDCARD, callback)

    def off(self, event_type: str, callback: Listener) -> None:
        listeners = self._listeners.get(event_type)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def get_stats(self) -> Dict[str, Any]:
        """Counters for diagnostics"""
        return {
            "total_events": sum(self._counts.values()),
            "event_counts": dict(self._counts),
            "history_size": len(self._history),
            "delivery_failures": self.delivery_failures,
            "listener_counts": {t: len(ls) for t, ls in self._listeners.items() if ls},
        }

    def get_recent_events(self, count: int = 50, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        events = list(self._history)
        if event_type:
            events = [e for e in events if e.type == event_type]
        return [e.to_dict() for e in events[-count:]]


# Shared bus used when no explicit bus is injected
event_bus = EventBus()


class EventTypes:
    # Full ConnectState after every connect-flow transition
    GITHUB_CONNECT_STATUS = "GITHUB_CONNECT_STATUS"

    SYSTEM_START = "host.start"
    SYSTEM_STOP = "host.stop"

    WEBSOCKET_CLIENT_CONNECT = "ui.client_connect"
    WEBSOCKET_CLIENT_DISCONNECT = "ui.client_disconnect"
