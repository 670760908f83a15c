"""
Fake PSS Console for Testing

Simulates the UDP output of a PSS scoring console so the ingest path can
be exercised without hardware.
"""

import random
import socket
import threading
import time
import logging
from typing import Callable, List, Optional

from ..protocol.message import FIELD_SEPARATOR

logger = logging.getLogger(__name__)

# Per-second probabilities of match actions
POINT_CHANCE = 0.08
WARNING_CHANCE = 0.01
INJURY_CHANCE = 0.003
CHALLENGE_CHANCE = 0.004

# Point codes weighted towards body kicks and punches
POINT_WEIGHTS = {"1": 4, "2": 6, "3": 3, "4": 1, "5": 1}
POINT_VALUES = {"1": 1, "2": 2, "3": 3, "4": 4, "5": 5}

CLASSIFICATIONS = ("PTF", "PTG", "GDP", "SUP")

# Per-round score streams (s11..s23) exist for three rounds only
MAX_ROUNDS = 3


def build_datagram(stream: str, *arguments) -> str:
    """Build a wire datagram, e.g. build_datagram("pt1", 3) -> "pt1;3;"."""
    fields = [stream] + [str(argument) for argument in arguments]
    return FIELD_SEPARATOR.join(fields) + FIELD_SEPARATOR


def format_clock(seconds: int) -> str:
    """Format seconds as m:ss, the PSS clock notation."""
    return f"{seconds // 60}:{seconds % 60:02d}"


class MatchSimulator:
    """
    Simulates a taekwondo match for testing.

    Generates PSS datagrams including:
    - Round clock countdown (clk)
    - Random points with hit levels (pt1/pt2, hl1/hl2)
    - Score totals (sc1/sc2)
    - Warnings (wg1), injury time (ij1/ij2) and challenges (ch0-ch2)
    - Break time between rounds (brk) and round winners (wrd)
    - The match winner (wmh)
    """

    def __init__(
        self,
        round_seconds: int = 120,
        rounds: int = 3,
        break_seconds: int = 60,
        speed_multiplier: float = 10.0,
        athletes: tuple = ("KIM Minjun", "JONES Ada"),
    ):
        self.round_seconds = round_seconds
        if rounds > MAX_ROUNDS:
            logger.warning(f"SIM: {rounds} rounds requested, PSS scores at most {MAX_ROUNDS}")
            rounds = MAX_ROUNDS
        self.rounds = rounds
        self.break_seconds = break_seconds
        self.speed_multiplier = speed_multiplier
        self.athletes = athletes

        self.reset_state()

        # Simulation control
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._on_datagram: Optional[Callable[[str], None]] = None

    def reset_state(self) -> None:
        """Put the match back to the start of round 1."""
        self.round = 1
        self.clock_seconds = self.round_seconds
        self.break_remaining = 0
        self.scores = [0, 0]
        self.round_scores: List[List[int]] = [[0, 0] for _ in range(self.rounds)]
        self.round_winners = [0] * self.rounds
        self.warnings = [0, 0]
        self.finished = False

    @property
    def in_break(self) -> bool:
        return self.break_remaining > 0

    def _score(self, athlete: int) -> List[str]:
        point = random.choices(list(POINT_WEIGHTS), weights=list(POINT_WEIGHTS.values()))[0]
        value = POINT_VALUES[point]
        self.scores[athlete - 1] += value
        self.round_scores[self.round - 1][athlete - 1] += value
        logger.info(f"SIM: Athlete {athlete} scores {value} ({self.scores[0]}-{self.scores[1]})")

        datagrams = []
        if point in ("2", "3", "4", "5"):
            datagrams.append(build_datagram(f"hl{athlete}", random.randint(20, 100)))
        datagrams.append(build_datagram(f"pt{athlete}", point))
        datagrams.append(build_datagram(f"s{athlete}{self.round}", self.round_scores[self.round - 1][athlete - 1]))
        datagrams.append(build_datagram(f"sc{athlete}", self.scores[athlete - 1]))
        return datagrams

    def _round_winners_datagram(self) -> str:
        arguments = []
        for index, winner in enumerate(self.round_winners, start=1):
            arguments.extend([f"rd{index}", winner])
        return build_datagram("wrd", *arguments)

    def _end_round(self) -> List[str]:
        home, away = self.round_scores[self.round - 1]
        winner = 1 if home > away else 2 if away > home else random.choice((1, 2))
        self.round_winners[self.round - 1] = winner
        logger.info(f"SIM: Round {self.round} won by athlete {winner}")

        datagrams = [build_datagram("clk", format_clock(0), "stop"), self._round_winners_datagram()]

        wins = [self.round_winners.count(1), self.round_winners.count(2)]
        needed = self.rounds // 2 + 1
        if max(wins) >= needed or self.round >= self.rounds:
            match_winner = 1 if wins[0] > wins[1] else 2
            self.finished = True
            datagrams.append(build_datagram("wmh", self.athletes[match_winner - 1], random.choice(CLASSIFICATIONS)))
            logger.info(f"SIM: Match won by {self.athletes[match_winner - 1]}")
        else:
            self.break_remaining = self.break_seconds
        return datagrams

    def tick(self) -> List[str]:
        """
        Advance simulation by one second (match time).

        Returns:
            Datagrams the console would send during that second
        """
        if self.finished:
            return []

        if self.in_break:
            self.break_remaining -= 1
            if self.break_remaining > 0:
                return [build_datagram("brk", format_clock(self.break_remaining))]
            self.round += 1
            self.clock_seconds = self.round_seconds
            logger.info(f"SIM: Round {self.round}")
            return [build_datagram("brk", format_clock(0), "stop"), build_datagram("clk", format_clock(self.clock_seconds), "start")]

        datagrams = []
        self.clock_seconds -= 1
        datagrams.append(build_datagram("clk", format_clock(self.clock_seconds)))

        for athlete in (1, 2):
            if random.random() < POINT_CHANCE:
                datagrams.extend(self._score(athlete))

        if random.random() < WARNING_CHANCE:
            self.warnings[random.randint(0, 1)] += 1
            datagrams.append(build_datagram("wg1", self.warnings[0], "wg2", self.warnings[1]))

        if random.random() < INJURY_CHANCE:
            datagrams.append(build_datagram(f"ij{random.randint(0, 2)}", format_clock(60), "show"))

        if random.random() < CHALLENGE_CHANCE:
            datagrams.append(build_datagram(f"ch{random.randint(0, 2)}", random.choice((1, 0))))

        if self.clock_seconds <= 0:
            datagrams.extend(self._end_round())

        return datagrams

    def set_on_datagram(self, callback: Callable[[str], None]) -> None:
        """Set callback for generated datagrams."""
        self._on_datagram = callback

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start simulation in background thread."""
        if self._running:
            return

        self._running = True
        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        logger.info("Match simulation started")

    def stop(self) -> None:
        """Stop simulation."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        logger.info("Match simulation stopped")

    def reset(self) -> None:
        """Reset match to initial state."""
        self.reset_state()
        logger.info("Match simulation reset")

    def _run_loop(self) -> None:
        """Main simulation loop."""
        tick_interval = 1.0 / self.speed_multiplier

        while self._running and not self.finished:
            for datagram in self.tick():
                if self._on_datagram:
                    try:
                        self._on_datagram(datagram)
                    except Exception as e:
                        logger.error(f"Datagram callback error: {e}")

            time.sleep(tick_interval)

        self._running = False


class UdpSender:
    """
    Sends simulated datagrams to a reStrike UDP listener.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 6000):
        self.host = host
        self.port = port
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def send(self, datagram: str) -> int:
        """Send one datagram, returning the number of bytes sent."""
        sent = self._socket.sendto(datagram.encode("utf-8"), (self.host, self.port))
        logger.debug(f"SIM TX {self.host}:{self.port}: {datagram}")
        return sent

    def close(self) -> None:
        self._socket.close()

    # Context manager support
    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
