"""reStrike PSS Protocol Layer"""

from .definitions import ProtocolDefinition, parse_protocol_definitions, parse_protocol_section, load_protocol_file
from .message import UdpMessage, parse_udp_message, decode_datagram, FIELD_SEPARATOR
from .table import DefinitionTable, TableSnapshot
from .dispatcher import Dispatcher, STREAM_HANDLERS

__all__ = [
    "ProtocolDefinition",
    "parse_protocol_definitions",
    "parse_protocol_section",
    "load_protocol_file",
    "UdpMessage",
    "parse_udp_message",
    "decode_datagram",
    "FIELD_SEPARATOR",
    "DefinitionTable",
    "TableSnapshot",
    "Dispatcher",
    "STREAM_HANDLERS",
]
