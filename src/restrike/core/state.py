"""
reStrike State Management

Centralized runtime state: listener status, datagram statistics and the
most recent decoded events.
"""

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, List, Optional

logger = logging.getLogger(__name__)

# Number of decoded events kept for the UI
EVENT_HISTORY_SIZE = 50


@dataclass
class PacketStats:
    """Datagram counters for the receive loop."""
    total_received: int = 0
    bytes_received: int = 0
    decoded: int = 0
    non_utf8: int = 0
    invalid: int = 0
    unmatched: int = 0
    handled: int = 0
    last_stream: Optional[str] = None
    last_packet_time: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_received": self.total_received,
            "bytes_received": self.bytes_received,
            "decoded": self.decoded,
            "non_utf8": self.non_utf8,
            "invalid": self.invalid,
            "unmatched": self.unmatched,
            "handled": self.handled,
            "last_stream": self.last_stream,
            "last_packet_time": self.last_packet_time.isoformat() if self.last_packet_time else None,
        }


class SystemState:
    """
    Global system state with thread-safe updates and change notifications.
    """

    def __init__(self, history_size: int = EVENT_HISTORY_SIZE):
        self._lock = threading.RLock()
        self._stats = PacketStats()
        self._listener_state = "UNBOUND"
        self._definitions_loaded = 0
        self._simulator_running = False
        self._last_event: Optional[dict] = None
        self._events: Deque[dict] = deque(maxlen=history_size)
        self._listeners: List[Callable[[], None]] = []

    @property
    def stats(self) -> PacketStats:
        """Get a copy of the packet statistics."""
        with self._lock:
            return PacketStats(**vars(self._stats))

    @property
    def listener_state(self) -> str:
        with self._lock:
            return self._listener_state

    @listener_state.setter
    def listener_state(self, value: str) -> None:
        with self._lock:
            changed = value != self._listener_state
            self._listener_state = value
        if changed:
            self._notify_listeners()

    @property
    def definitions_loaded(self) -> int:
        with self._lock:
            return self._definitions_loaded

    @definitions_loaded.setter
    def definitions_loaded(self, value: int) -> None:
        with self._lock:
            self._definitions_loaded = value
        self._notify_listeners()

    @property
    def simulator_running(self) -> bool:
        with self._lock:
            return self._simulator_running

    @simulator_running.setter
    def simulator_running(self, value: bool) -> None:
        with self._lock:
            self._simulator_running = value
        self._notify_listeners()

    @property
    def last_event(self) -> Optional[dict]:
        with self._lock:
            return self._last_event

    def recent_events(self) -> List[dict]:
        """Get the most recent decoded events, oldest first."""
        with self._lock:
            return list(self._events)

    def record_datagram(self, size: int) -> None:
        """Count a received datagram."""
        with self._lock:
            self._stats.total_received += 1
            self._stats.bytes_received += size
            self._stats.last_packet_time = datetime.now()

    def record_non_utf8(self) -> None:
        with self._lock:
            self._stats.non_utf8 += 1

    def record_invalid(self) -> None:
        with self._lock:
            self._stats.invalid += 1

    def record_decoded(self, stream: str) -> None:
        with self._lock:
            self._stats.decoded += 1
            self._stats.last_stream = stream

    def record_unmatched(self) -> None:
        with self._lock:
            self._stats.unmatched += 1

    def record_event(self, event: dict) -> None:
        """Store a decoded event and notify listeners."""
        with self._lock:
            self._stats.handled += 1
            self._last_event = event
            self._events.append(event)
        self._notify_listeners()

    def reset_stats(self) -> None:
        """Clear counters and event history."""
        with self._lock:
            self._stats = PacketStats()
            self._last_event = None
            self._events.clear()
        self._notify_listeners()

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Add a state change listener."""
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        """Remove a state change listener."""
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify_listeners(self) -> None:
        """Notify all listeners of state change."""
        with self._lock:
            listeners = self._listeners.copy()
        for callback in listeners:
            try:
                callback()
            except Exception as e:
                logger.error(f"State listener error: {e}")

    def to_dict(self) -> dict:
        """Get full system state as dictionary."""
        with self._lock:
            return {
                "listener_state": self._listener_state,
                "definitions_loaded": self._definitions_loaded,
                "simulator_running": self._simulator_running,
                "stats": self._stats.to_dict(),
                "last_event": self._last_event,
            }

    def to_json(self) -> str:
        """Get full system state as JSON."""
        return json.dumps(self.to_dict())


# Global state instance
state = SystemState()
