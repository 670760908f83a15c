"""
PSS Match Events

Typed events produced by the dispatcher for downstream consumers
(web UI, clip triggers).
"""

from dataclasses import asdict, dataclass, field
from typing import List, Union


@dataclass
class PssEvent:
    """Base class for decoded events."""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["type"] = type(self).__name__
        return data


@dataclass
class PointScored(PssEvent):
    athlete: int
    point_type: str
    point_name: str


@dataclass
class HitLevel(PssEvent):
    athlete: int
    level: int


@dataclass
class WarningsUpdate(PssEvent):
    raw: str


@dataclass
class InjuryTime(PssEvent):
    athlete: str  # "Athlete 1", "Athlete 2" or "Unidentified athlete"
    time: str


@dataclass
class Challenge(PssEvent):
    challenger: str  # "Referee", "Athlete 1" or "Athlete 2"
    arguments: List[str] = field(default_factory=list)


@dataclass
class BreakTime(PssEvent):
    time: str


@dataclass
class WinnerRounds(PssEvent):
    raw: str


@dataclass
class MatchWinner(PssEvent):
    name: str
    classification: str = ""


@dataclass
class ClockUpdate(PssEvent):
    time: str
    action: str = ""


@dataclass
class ScoreUpdate(PssEvent):
    stream: str
    arguments: List[str] = field(default_factory=list)


Event = Union[
    PointScored,
    HitLevel,
    WarningsUpdate,
    InjuryTime,
    Challenge,
    BreakTime,
    WinnerRounds,
    MatchWinner,
    ClockUpdate,
    ScoreUpdate,
]
