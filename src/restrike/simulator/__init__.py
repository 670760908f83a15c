"""reStrike PSS Console Simulator"""

from .fake_console import MatchSimulator, UdpSender, build_datagram

__all__ = ["MatchSimulator", "UdpSender", "build_datagram"]
