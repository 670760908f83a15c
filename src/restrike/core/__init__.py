"""reStrike Core Components"""

from .state import PacketStats, SystemState, state

__all__ = ["PacketStats", "SystemState", "state"]
