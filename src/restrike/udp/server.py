"""
PSS UDP Listener

Receives datagrams from the PSS scoring console and runs them through
the message parser and the dispatcher, one at a time, in arrival order.

Listener States:
    UNBOUND -> BOUND -> LISTENING -> (RECEIVING <-> DISPATCHING) -> ...
    FAILED is reached only when the socket itself becomes unusable.

Bad datagrams (non-UTF8, unparseable, unknown stream) are logged and
dropped. A single failed receive is logged and the loop keeps going.
"""

import errno
import logging
import socket
import threading
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from ..config import Config
from ..core.state import SystemState, state as global_state
from ..errors import BindError, InvalidFormat, ListenerError
from ..protocol.dispatcher import Dispatcher
from ..protocol.events import Event
from ..protocol.message import decode_datagram, parse_udp_message
from ..protocol.table import DefinitionTable

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 6000
DEFAULT_BUFFER_SIZE = 1024

# How often the loop wakes up to check its stop event (seconds)
POLL_INTERVAL = 0.5

# errno values meaning the socket is gone for good
FATAL_ERRNOS = {errno.EBADF, errno.ENOTSOCK}


class ListenerState(Enum):
    UNBOUND = "UNBOUND"
    BOUND = "BOUND"
    LISTENING = "LISTENING"
    RECEIVING = "RECEIVING"
    DISPATCHING = "DISPATCHING"
    FAILED = "FAILED"


_TRANSIENT_STATES = (ListenerState.RECEIVING, ListenerState.DISPATCHING)


class UdpServer:
    """
    UDP receive loop for PSS telemetry.

    The definition table is injected so that a reload entry point (web
    API, config change) can swap it while the loop is running.
    """

    def __init__(
        self,
        table: Optional[DefinitionTable] = None,
        dispatcher: Optional[Dispatcher] = None,
        stats: Optional[SystemState] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self.table = table if table is not None else DefinitionTable()
        self.dispatcher = dispatcher if dispatcher is not None else Dispatcher(self.table)
        self.stats = stats if stats is not None else global_state
        self.buffer_size = buffer_size

        self._socket: Optional[socket.socket] = None
        self._state = ListenerState.UNBOUND

    @property
    def state(self) -> ListenerState:
        """Current listener state."""
        return self._state

    def _set_state(self, value: ListenerState) -> None:
        self._state = value
        if value not in _TRANSIENT_STATES:
            self.stats.listener_state = value.value

    @property
    def server_address(self) -> Optional[Tuple[str, int]]:
        """Address the socket is bound to, or None when unbound."""
        if self._socket is None:
            return None
        return self._socket.getsockname()

    def bind(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> Tuple[str, int]:
        """
        Bind the UDP socket.

        Args:
            host: Interface to bind ("0.0.0.0" for all)
            port: UDP port (0 picks a free port)

        Returns:
            The bound address

        Raises:
            BindError: if the socket cannot be created or bound
        """
        sock = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.bind((host, port))
        except OSError as e:
            if sock is not None:
                sock.close()
            self._set_state(ListenerState.FAILED)
            raise BindError((host, port), e) from e

        sock.settimeout(POLL_INTERVAL)
        self._socket = sock
        self._set_state(ListenerState.BOUND)
        address = sock.getsockname()
        logger.info(f"UDP server bound to {address[0]}:{address[1]}")
        return address

    def load_protocol_definitions(self, content: Union[str, bytes]) -> int:
        """Load definitions from schema text. Failure leaves the table as is."""
        count = self.table.load(content)
        self.stats.definitions_loaded = count
        return count

    def load_protocol_file(self, path: Union[str, Path, None] = None) -> int:
        """Load definitions from a schema file (bundled schema by default)."""
        count = self.table.load_file(path)
        self.stats.definitions_loaded = count
        return count

    def handle_datagram(self, data: bytes, addr=None) -> Optional[Event]:
        """
        Decode, parse and dispatch one datagram.

        Never raises; every failure is logged and the datagram dropped.

        Returns:
            The decoded event, or None if the datagram produced none
        """
        self.stats.record_datagram(len(data))

        try:
            text = decode_datagram(data)
        except InvalidFormat:
            logger.warning(f"Received non-UTF8 data from {addr}")
            self.stats.record_non_utf8()
            return None

        logger.debug(f"Received UDP message from {addr}: {text}")

        try:
            message = parse_udp_message(text)
        except InvalidFormat as e:
            logger.warning(f"Failed to parse message from {addr}: {e}")
            self.stats.record_invalid()
            return None

        self.stats.record_decoded(message.stream)
        snapshot = self.dispatcher.table.snapshot()
        if snapshot.find(message.stream) is None:
            self.stats.record_unmatched()

        logger.debug(f"Handling message: {message} from {addr}")
        try:
            event = self.dispatcher.dispatch(message, snapshot)
        except Exception as e:
            logger.error(f"Handler error for stream {message.stream}: {e}")
            return None

        if event is not None:
            self.stats.record_event(event.to_dict())
        return event

    def _is_fatal(self, sock: socket.socket, error: OSError) -> bool:
        if sock.fileno() == -1:
            return True
        return error.errno in FATAL_ERRNOS

    def serve_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Run the receive loop.

        Args:
            stop_event: Optional event a supervisor sets to end the loop

        Raises:
            ListenerError: if the socket is not bound or becomes unusable
        """
        sock = self._socket
        if sock is None:
            self._set_state(ListenerState.FAILED)
            raise ListenerError("UDP server is not bound")

        logger.info("Starting UDP server listening loop")
        self._set_state(ListenerState.LISTENING)

        while stop_event is None or not stop_event.is_set():
            try:
                data, addr = sock.recvfrom(self.buffer_size)
            except socket.timeout:
                continue
            except OSError as e:
                if self._is_fatal(sock, e):
                    self._set_state(ListenerState.FAILED)
                    logger.error(f"UDP socket failed: {e}")
                    raise ListenerError(f"UDP socket failed: {e}") from e
                logger.error(f"Error receiving UDP data: {e}")
                continue

            self._set_state(ListenerState.DISPATCHING)
            self.handle_datagram(data, addr)
            self._set_state(ListenerState.RECEIVING)

        self._set_state(ListenerState.LISTENING)
        logger.info("UDP server listening loop stopped")

    def close(self) -> None:
        """Close the socket."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None
            logger.info("UDP server closed")
        if self._state is not ListenerState.FAILED:
            self._set_state(ListenerState.UNBOUND)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def start_udp_server(
    config: Config,
    table: Optional[DefinitionTable] = None,
    dispatcher: Optional[Dispatcher] = None,
    stats: Optional[SystemState] = None,
    stop_event: Optional[threading.Event] = None,
) -> None:
    """
    Bind, load the protocol schema and serve until stopped.

    Raises:
        BindError: if the port cannot be bound
        ListenerError: if the socket fails while serving
    """
    server = UdpServer(table=table, dispatcher=dispatcher, stats=stats, buffer_size=config.udp.buffer_size)
    server.bind(config.udp.host, config.udp.port)
    server.load_protocol_file(config.udp.protocol_file or None)

    logger.info(f"UDP server starting on port {config.udp.port}")
    try:
        server.serve_forever(stop_event)
    finally:
        server.close()
