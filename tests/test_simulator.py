import logging
import random

from restrike.protocol.message import parse_udp_message
from restrike.simulator.fake_console import MatchSimulator, build_datagram, format_clock


def test_build_datagram():

    assert build_datagram("pt1", 3) == "pt1;3;"
    assert build_datagram("ch0") == "ch0;"
    assert build_datagram("wg1", 1, "wg2", 2) == "wg1;1;wg2;2;"


def test_format_clock():

    assert format_clock(120) == "2:00"
    assert format_clock(59) == "0:59"
    assert format_clock(0) == "0:00"


def test_full_match_is_decodable(dispatcher):
    """ Every datagram the simulator produces over a whole match must be
        known to the bundled schema and parse cleanly.
    """

    random.seed(4)
    simulator = MatchSimulator(round_seconds=30, rounds=3, break_seconds=5)

    datagrams = []
    for _ in range(1000):
        datagrams.extend(simulator.tick())
        if simulator.finished:
            break

    assert simulator.finished
    assert simulator.tick() == []

    streams = set()
    for datagram in datagrams:
        message = parse_udp_message(datagram)
        assert dispatcher.is_known(message.stream), datagram
        streams.add(message.stream)

    assert {"clk", "wrd", "wmh"} <= streams
    assert sum(simulator.scores) == sum(sum(scores) for scores in simulator.round_scores)
    assert datagrams[-1].startswith("wmh;")


def test_break_between_rounds():

    random.seed(1)
    simulator = MatchSimulator(round_seconds=2, rounds=3, break_seconds=3)

    simulator.tick()
    last = simulator.tick()
    assert "clk;0:00;stop;" in last
    assert simulator.round_winners[0] in (1, 2)

    if not simulator.finished:
        assert simulator.in_break
        assert simulator.tick() == ["brk;0:02;"]
        assert simulator.tick() == ["brk;0:01;"]
        assert simulator.tick() == ["brk;0:00;stop;", "clk;0:02;start;"]
        assert simulator.round == 2


def test_reset():

    simulator = MatchSimulator(round_seconds=10)
    for _ in range(5):
        simulator.tick()

    simulator.reset()
    assert simulator.round == 1
    assert simulator.clock_seconds == 10
    assert simulator.scores == [0, 0]
    assert not simulator.finished


def test_rounds_capped_to_score_streams(dispatcher, caplog):

    random.seed(7)
    with caplog.at_level(logging.WARNING):
        simulator = MatchSimulator(round_seconds=5, rounds=5, break_seconds=1)

    assert simulator.rounds == 3
    assert "5 rounds requested" in caplog.text

    for _ in range(200):
        for datagram in simulator.tick():
            assert dispatcher.is_known(parse_udp_message(datagram).stream), datagram
        if simulator.finished:
            break

    assert simulator.finished
