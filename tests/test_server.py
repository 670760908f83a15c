import errno
import logging
import socket
import threading
import time

import pytest

from restrike.config import Config
from restrike.errors import BindError, ListenerError
from restrike.protocol.definitions import parse_protocol_definitions
from restrike.protocol.events import HitLevel, PointScored
from restrike.protocol.table import DefinitionTable
from restrike.simulator.fake_console import UdpSender
from restrike.udp.server import ListenerState, UdpServer, start_udp_server


def wait_for(condition, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def server(stats):
    server = UdpServer(stats=stats)
    yield server
    server.close()


@pytest.fixture
def running(server):
    """ Bound, loaded and listening server on a free loopback port.
    """

    server.bind("127.0.0.1", 0)
    server.load_protocol_file()

    stop_event = threading.Event()
    thread = threading.Thread(target=server.serve_forever, args=(stop_event,), daemon=True)
    thread.start()
    assert wait_for(lambda: server.state is not ListenerState.BOUND)

    yield server

    stop_event.set()
    thread.join(timeout=2.0)


class SwappingTable(DefinitionTable):
    """ Replaces its contents right after the first read, as a reload racing
        the listener would.
    """

    def __init__(self, definitions, replacement):
        super().__init__(definitions)
        self.replacement = replacement
        self.reads = 0

    def snapshot(self):
        current = super().snapshot()
        self.reads += 1
        if self.reads == 1:
            self.replace(self.replacement)
        return current


class FlakySocket:
    """ Stands in for a socket whose first receive fails transiently.
    """

    def __init__(self, stop_event):
        self.stop_event = stop_event
        self.calls = 0

    def recvfrom(self, size):
        self.calls += 1
        if self.calls == 1:
            raise OSError(errno.ECONNREFUSED, "Connection refused")
        self.stop_event.set()
        return b"pt1;1;", ("127.0.0.1", 5000)

    def fileno(self):
        return 3

    def close(self):
        pass


def test_initial_state(server):

    assert server.state is ListenerState.UNBOUND
    assert server.server_address is None
    assert len(server.table) == 0


def test_bind(server, stats):

    host, port = server.bind("127.0.0.1", 0)
    assert host == "127.0.0.1"
    assert port > 0
    assert server.server_address == (host, port)
    assert server.state is ListenerState.BOUND
    assert stats.listener_state == "BOUND"


def test_bind_failure(stats):

    blocker = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    blocker.bind(("127.0.0.1", 0))
    port = blocker.getsockname()[1]

    server = UdpServer(stats=stats)
    try:
        with pytest.raises(BindError) as info:
            server.bind("127.0.0.1", port)
        assert info.value.address == ("127.0.0.1", port)
        assert server.state is ListenerState.FAILED
        assert stats.listener_state == "FAILED"
    finally:
        blocker.close()


def test_serve_without_bind(server):

    with pytest.raises(ListenerError):
        server.serve_forever()
    assert server.state is ListenerState.FAILED


def test_load_definitions(server, stats, schema_text):

    assert server.load_protocol_definitions(schema_text) == 2
    assert stats.definitions_loaded == 2

    # A document that cannot be used at all is not fatal
    assert server.load_protocol_definitions(b"\xff") == 2
    assert server.load_protocol_file("/nonexistent/schema.txt") == 2


def test_handle_datagram(server, stats):

    server.load_protocol_file()

    event = server.handle_datagram(b"pt1;3;", ("10.0.0.5", 6000))
    assert event == PointScored(athlete=1, point_type="3", point_name="Head point")

    assert server.handle_datagram(b"zz9;1;") is None
    assert server.handle_datagram(b"") is None
    assert server.handle_datagram(b"\xff\xfe\xfd") is None
    assert server.handle_datagram(b"hl1;abc;") is None

    counters = stats.stats
    assert counters.total_received == 5
    assert counters.bytes_received == 6 + 6 + 0 + 3 + 8
    assert counters.non_utf8 == 1
    assert counters.invalid == 1
    assert counters.decoded == 3
    assert counters.unmatched == 1
    assert counters.handled == 1
    assert counters.last_stream == "hl1"
    assert stats.last_event["type"] == "PointScored"


def test_bad_datagrams_logged(server, caplog):

    server.load_protocol_file()

    with caplog.at_level(logging.WARNING):
        server.handle_datagram(b"", ("10.0.0.5", 6000))
        server.handle_datagram(b"\xff", ("10.0.0.5", 6000))

    assert "Failed to parse message from ('10.0.0.5', 6000): Empty message" in caplog.text
    assert "Received non-UTF8 data from ('10.0.0.5', 6000)" in caplog.text


def test_receive_loop(running, stats):

    address = running.server_address
    events = []
    running.dispatcher.add_listener(events.append)

    with UdpSender(*address) as sender:
        sender.send("")
        sender.send("hl2;75;")
        sender.send("zz9;1;")
        sender.send("pt1;3;")

    assert wait_for(lambda: len(events) == 2)
    assert events == [HitLevel(athlete=2, level=75), PointScored(athlete=1, point_type="3", point_name="Head point")]
    assert wait_for(lambda: stats.stats.total_received == 4)
    assert stats.stats.invalid == 1
    assert stats.stats.unmatched == 1
    assert stats.listener_state == "LISTENING"


def test_reload_while_listening(running):

    address = running.server_address
    events = []
    running.dispatcher.add_listener(events.append)

    running.load_protocol_definitions("""
MAIN_STREAMS:
  hl1;  Hit level athlete 1
""")

    with UdpSender(*address) as sender:
        sender.send("pt1;3;")
        sender.send("hl1;20;")

    assert wait_for(lambda: len(events) == 1)
    assert events == [HitLevel(athlete=1, level=20)]


def test_truncated_datagram(stats):

    server = UdpServer(stats=stats, buffer_size=8)
    server.bind("127.0.0.1", 0)
    server.load_protocol_file()
    events = []
    server.dispatcher.add_listener(events.append)

    stop_event = threading.Event()
    thread = threading.Thread(target=server.serve_forever, args=(stop_event,), daemon=True)
    thread.start()

    try:
        with UdpSender(*server.server_address) as sender:
            sender.send("wmh;KIM Minjun;PTF;")

        assert wait_for(lambda: len(events) == 1)
        assert events[0].name == "KIM"
    finally:
        stop_event.set()
        thread.join(timeout=2.0)
        server.close()


def test_transient_receive_error(server, caplog):

    server.load_protocol_file()
    stop_event = threading.Event()
    server._socket = FlakySocket(stop_event)

    with caplog.at_level(logging.ERROR):
        server.serve_forever(stop_event)

    assert server._socket.calls == 2
    assert "Error receiving UDP data" in caplog.text
    assert server.stats.stats.handled == 1
    assert server.state is ListenerState.LISTENING


def test_socket_failure_is_fatal(server):

    server.bind("127.0.0.1", 0)
    errors = []

    def serve():
        try:
            server.serve_forever()
        except ListenerError as e:
            errors.append(e)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    assert wait_for(lambda: server.state is ListenerState.LISTENING)

    server.close()
    thread.join(timeout=3.0)

    assert not thread.is_alive()
    assert len(errors) == 1
    assert server.state is ListenerState.FAILED


def test_start_udp_server(stats):

    config = Config()
    config.udp.host = "127.0.0.1"
    config.udp.port = 0

    stop_event = threading.Event()
    thread = threading.Thread(
        target=start_udp_server,
        args=(config,),
        kwargs={"stats": stats, "stop_event": stop_event},
        daemon=True,
    )
    thread.start()

    assert wait_for(lambda: stats.listener_state == "LISTENING")
    assert stats.definitions_loaded == 10

    stop_event.set()
    thread.join(timeout=2.0)

    assert not thread.is_alive()
    assert stats.listener_state == "UNBOUND"


def test_one_table_read_per_datagram(stats, schema_text):
    """ A reload landing mid-datagram must not split the match check and
        the routing across two tables.
    """

    points = parse_protocol_definitions(schema_text)
    clock = parse_protocol_definitions("""
MAIN_STREAMS:
  clk;  Round clock
""")

    table = SwappingTable(points, clock)
    server = UdpServer(table=table, stats=stats)

    event = server.handle_datagram(b"pt1;3;")
    assert event == PointScored(athlete=1, point_type="3", point_name="Head point")
    assert table.reads == 1
    assert stats.stats.unmatched == 0
    assert stats.stats.handled == 1

    # The reload did happen; the next datagram sees the new table
    assert server.handle_datagram(b"pt1;3;") is None
    assert stats.stats.unmatched == 1
    assert stats.stats.handled == 1


def test_one_table_read_for_unknown_stream(stats, schema_text):

    clock = parse_protocol_definitions("""
MAIN_STREAMS:
  clk;  Round clock
""")

    table = SwappingTable(clock, parse_protocol_definitions(schema_text))
    server = UdpServer(table=table, stats=stats)

    assert server.handle_datagram(b"pt1;3;") is None
    assert table.reads == 1
    assert stats.stats.unmatched == 1
    assert stats.stats.handled == 0
