"""
PSS Message Dispatcher

Validates parsed messages against the loaded protocol definitions and
routes them to the handler for their stream code.

The definition only decides whether a stream is known at all; argument
shape is the handler's business. Handlers never raise: a malformed field
is ignored and the message still counts as handled.
"""

import json
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from .events import (
    BreakTime,
    Challenge,
    ClockUpdate,
    Event,
    HitLevel,
    InjuryTime,
    MatchWinner,
    PointScored,
    ScoreUpdate,
    WarningsUpdate,
    WinnerRounds,
)
from .message import UdpMessage
from .table import DefinitionTable, TableSnapshot

logger = logging.getLogger(__name__)

POINT_TYPES = {
    "1": "Punch point",
    "2": "Body point",
    "3": "Head point",
    "4": "Technical body point",
    "5": "Technical head point",
}
UNKNOWN_POINT_TYPE = "Unknown point type"

INJURY_ATHLETES = {
    "ij1": "Athlete 1",
    "ij2": "Athlete 2",
    "ij0": "Unidentified athlete",
}

CHALLENGERS = {
    "ch0": "Referee",
    "ch1": "Athlete 1",
    "ch2": "Athlete 2",
}

# Hit levels arrive as a single unsigned byte
MAX_HIT_LEVEL = 255

SCORE_PREFIX = "s"


def _athlete(stream: str) -> int:
    return 1 if stream.endswith("1") else 2


def _format_arguments(arguments: List[str]) -> str:
    """Render arguments for logs as a list of double-quoted strings."""
    return json.dumps(arguments, ensure_ascii=False)


def _argument(message: UdpMessage, index: int, default: Optional[str] = None) -> Optional[str]:
    if index < len(message.arguments):
        return message.arguments[index]
    return default


def handle_points(message: UdpMessage) -> Optional[Event]:
    point_type = _argument(message, 0)
    if point_type is None:
        return None
    athlete = _athlete(message.stream)
    point_name = POINT_TYPES.get(point_type, UNKNOWN_POINT_TYPE)
    logger.info(f"Athlete {athlete} scored: {point_name}")
    return PointScored(athlete=athlete, point_type=point_type, point_name=point_name)


def handle_hit_level(message: UdpMessage) -> Optional[Event]:
    level_str = _argument(message, 0)
    if level_str is None:
        return None
    digits = level_str[1:] if level_str.startswith("+") else level_str
    if not (digits.isascii() and digits.isdigit()):
        return None
    level = int(digits)
    if level > MAX_HIT_LEVEL:
        return None
    athlete = _athlete(message.stream)
    logger.info(f"Athlete {athlete} hit level: {level}")
    return HitLevel(athlete=athlete, level=level)


def handle_warnings(message: UdpMessage) -> Optional[Event]:
    logger.info(f"Warnings/Gam-jeom update: {message.raw}")
    return WarningsUpdate(raw=message.raw)


def handle_injury(message: UdpMessage) -> Optional[Event]:
    time = _argument(message, 0)
    if time is None:
        return None
    athlete = INJURY_ATHLETES.get(message.stream, "Unknown")
    logger.info(f"Injury time for {athlete}: {time}")
    return InjuryTime(athlete=athlete, time=time)


def handle_challenge(message: UdpMessage) -> Optional[Event]:
    challenger = CHALLENGERS.get(message.stream, "Unknown")
    logger.info(f"Challenge from {challenger}: {_format_arguments(message.arguments)}")
    return Challenge(challenger=challenger, arguments=list(message.arguments))


def handle_break(message: UdpMessage) -> Optional[Event]:
    time = _argument(message, 0)
    if time is None:
        return None
    logger.info(f"Break time: {time}")
    return BreakTime(time=time)


def handle_winner_rounds(message: UdpMessage) -> Optional[Event]:
    logger.info(f"Winner rounds update: {message.raw}")
    return WinnerRounds(raw=message.raw)


def handle_winner(message: UdpMessage) -> Optional[Event]:
    name = _argument(message, 0)
    if name is None:
        return None
    classification = _argument(message, 1, "")
    logger.info(f"Winner: {name} {classification}")
    return MatchWinner(name=name, classification=classification)


def handle_clock(message: UdpMessage) -> Optional[Event]:
    time = _argument(message, 0)
    if time is None:
        return None
    action = _argument(message, 1, "")
    logger.info(f"Clock: {time} {action}")
    return ClockUpdate(time=time, action=action)


def handle_score(message: UdpMessage) -> Optional[Event]:
    logger.info(f"Score update {message.stream}: {_format_arguments(message.arguments)}")
    return ScoreUpdate(stream=message.stream, arguments=list(message.arguments))


Handler = Callable[[UdpMessage], Optional[Event]]

STREAM_HANDLERS: Dict[str, Handler] = {
    "pt1": handle_points,
    "pt2": handle_points,
    "hl1": handle_hit_level,
    "hl2": handle_hit_level,
    "wg1": handle_warnings,
    "wg2": handle_warnings,
    "ij1": handle_injury,
    "ij2": handle_injury,
    "ij0": handle_injury,
    "ch0": handle_challenge,
    "ch1": handle_challenge,
    "ch2": handle_challenge,
    "brk": handle_break,
    "wrd": handle_winner_rounds,
    "wmh": handle_winner,
    "clk": handle_clock,
}


def get_handler(stream: str) -> Optional[Handler]:
    """Look up the handler for a stream code, falling back to scores."""
    handler = STREAM_HANDLERS.get(stream)
    if handler is None and stream.startswith(SCORE_PREFIX):
        handler = handle_score
    return handler


class Dispatcher:
    """
    Routes messages to stream handlers and forwards the resulting events
    to registered listeners.
    """

    def __init__(self, table: DefinitionTable, listeners: Iterable[Callable[[Event], None]] = ()):
        self.table = table
        self._lock = threading.Lock()
        self._listeners: List[Callable[[Event], None]] = list(listeners)

    def add_listener(self, callback: Callable[[Event], None]) -> None:
        """Add an event listener."""
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Event], None]) -> None:
        """Remove an event listener."""
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def is_known(self, stream: str) -> bool:
        """Check whether any loaded definition recognizes a stream code."""
        return self.table.snapshot().find(stream) is not None

    def dispatch(self, message: UdpMessage, snapshot: Optional[TableSnapshot] = None) -> Optional[Event]:
        """
        Dispatch one message.

        Args:
            message: Parsed datagram
            snapshot: Table view to match against. Callers that already
                read the table for this message pass the same view here.

        Returns:
            The decoded event, or None if the stream is unknown, unhandled
            or its arguments were unusable
        """
        if snapshot is None:
            snapshot = self.table.snapshot()
        definition = snapshot.find(message.stream)
        if definition is None:
            logger.debug(f"No protocol definition found for stream: {message.stream}")
            return None

        logger.debug(f"Message matches protocol definition for stream: {message.stream}")
        logger.info(f"Processing {message.stream} message with {len(message.arguments)} arguments")

        handler = get_handler(message.stream)
        if handler is None:
            logger.debug(f"Unhandled stream type: {message.stream}")
            return None

        event = handler(message)
        if event is not None:
            self._notify_listeners(event)
        return event

    def _notify_listeners(self, event: Event) -> None:
        with self._lock:
            listeners = self._listeners.copy()
        for callback in listeners:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event listener error: {e}")
