import pytest

from restrike.core.state import SystemState
from restrike.protocol.dispatcher import Dispatcher
from restrike.protocol.table import DefinitionTable


POINTS_AND_HITLEVEL = """
# POINTS
# Stream broadcasted when points are added.

MAIN_STREAMS:
  pt1;  Main stream for athlete 1
  pt2;  Main stream for athlete 2

REQUIRED_ARGUMENTS:
  1;  Punch point
  2;  Body point

EXAMPLES:
  pt1;1;
  pt2;2;

---

# HITLEVEL
# Stream broadcasted when hit happens.

MAIN_STREAMS:
  hl1;  Main stream for athlete 1
  hl2;  Main stream for athlete 2

REQUIRED_ARGUMENTS:
  50;  Hit Level value (from 1 to 100)

EXAMPLES:
  hl1;50;
"""


@pytest.fixture
def schema_text():
    return POINTS_AND_HITLEVEL


@pytest.fixture
def table(schema_text):
    table = DefinitionTable()
    table.load(schema_text)
    return table


@pytest.fixture
def bundled_table():
    table = DefinitionTable()
    table.load_file()
    return table


@pytest.fixture
def dispatcher(bundled_table):
    return Dispatcher(bundled_table)


@pytest.fixture
def stats():
    return SystemState()
