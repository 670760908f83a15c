"""reStrike UDP Transport"""

from .server import UdpServer, ListenerState, start_udp_server

__all__ = ["UdpServer", "ListenerState", "start_udp_server"]
