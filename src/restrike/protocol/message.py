"""
PSS UDP Message Parser

Decodes single datagrams sent by the PSS scoring console.

Wire Format:
- ASCII/UTF-8 text, fields separated by ';'
- <stream>;<arg1>;<arg2>;...;   (trailing separator optional)
- Empty fields are dropped, so "pt1;3;" carries the single argument "3"

The parser knows nothing about which streams exist. Validation against
the loaded protocol definitions happens in the dispatcher.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from ..errors import InvalidFormat

logger = logging.getLogger(__name__)

# Field delimiter, shared with the protocol grammar
FIELD_SEPARATOR = ";"


@dataclass
class UdpMessage:
    """One decoded datagram."""
    stream: str
    arguments: List[str] = field(default_factory=list)
    raw: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "stream": self.stream,
            "arguments": list(self.arguments),
            "raw": self.raw,
        }


def decode_datagram(data: bytes) -> str:
    """
    Decode datagram bytes as strict UTF-8.

    Raises:
        InvalidFormat: if the payload is not valid UTF-8
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidFormat(f"Non-UTF8 payload: {e}") from e


def parse_udp_message(message: str) -> UdpMessage:
    """
    Parse one datagram's text into a UdpMessage.

    Args:
        message: Datagram text, e.g. "hl1;75;"

    Returns:
        UdpMessage with the stream code and its non-empty arguments

    Raises:
        InvalidFormat: if the text is empty or has no stream code

    Splitting is purely delimiter based. "wg1;1;wg2;2;" is stream "wg1"
    with arguments ["1", "wg2", "2"]; embedded stream codes are not
    parsed out.
    """
    text = message.strip()
    if not text:
        raise InvalidFormat("Empty message")

    parts = text.split(FIELD_SEPARATOR)
    stream = parts[0]
    if not stream:
        raise InvalidFormat("No stream specified")

    arguments = [part for part in parts[1:] if part]

    return UdpMessage(stream=stream, arguments=arguments, raw=text)
