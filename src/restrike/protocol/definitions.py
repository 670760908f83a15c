"""
PSS Protocol Definition Grammar

Parses the block-structured schema document describing which stream
codes the console emits and which arguments they carry.

Document Format:
- Sections are separated by a line containing only '---'
- Lines starting with '#' are comments; blank lines are skipped
- Headers MAIN_STREAMS:, REQUIRED_ARGUMENTS:, OPTIONAL_ARGUMENTS: and
  EXAMPLES: select the collection that following lines populate
- Stream and argument lines keep only the token before the first ';'
  (the rest is a human readable description)
- Example lines are kept whole

Example section:

    # POINTS
    MAIN_STREAMS:
      pt1;  Main stream for athlete 1
      pt2;  Main stream for athlete 2
    REQUIRED_ARGUMENTS:
      1;  Punch point
    EXAMPLES:
      pt1;1;

Loading is best effort: a broken section is skipped and the rest of the
document still loads.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from ..errors import ParseError
from .message import FIELD_SEPARATOR

logger = logging.getLogger(__name__)

COMMENT_MARKER = "#"

MAIN_STREAMS = "MAIN_STREAMS:"
REQUIRED_ARGUMENTS = "REQUIRED_ARGUMENTS:"
OPTIONAL_ARGUMENTS = "OPTIONAL_ARGUMENTS:"
EXAMPLES = "EXAMPLES:"

HEADERS = (MAIN_STREAMS, REQUIRED_ARGUMENTS, OPTIONAL_ARGUMENTS, EXAMPLES)

# Section delimiter: '---' alone on its line
_SECTION_SPLIT = re.compile(r"^[ \t]*---[ \t]*$", re.MULTILINE)

# Bundled schema shipped with the package
SCHEMA_FILENAME = "pss_schema.txt"


@dataclass(frozen=True)
class ProtocolDefinition:
    """One protocol family parsed from a schema section."""
    main_streams: Tuple[str, ...]
    required_arguments: Tuple[str, ...] = ()
    optional_arguments: Tuple[str, ...] = ()
    examples: Tuple[str, ...] = ()
    name: str = ""

    @property
    def key(self) -> Optional[str]:
        """Canonical table key: the first main stream, cut at ';'."""
        if not self.main_streams:
            return None
        return self.main_streams[0].split(FIELD_SEPARATOR)[0]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "main_streams": list(self.main_streams),
            "required_arguments": list(self.required_arguments),
            "optional_arguments": list(self.optional_arguments),
            "examples": list(self.examples),
        }


def _leading_token(line: str) -> str:
    return line.split(FIELD_SEPARATOR, 1)[0].strip()


def parse_protocol_section(section: str) -> ProtocolDefinition:
    """
    Parse a single schema section.

    Args:
        section: Text between two '---' delimiters

    Returns:
        ProtocolDefinition (main_streams may be empty)

    Raises:
        ParseError: if a MAIN_STREAMS line carries no stream code
    """
    collections = {header: [] for header in HEADERS}
    current = None
    name = ""

    for line in section.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith(COMMENT_MARKER):
            if not name and current is None:
                name = line.lstrip(COMMENT_MARKER).strip()
            continue

        if line in HEADERS:
            current = line
            continue

        if current is None:
            # Text before the first header
            continue

        if current == EXAMPLES:
            collections[EXAMPLES].append(line)
            continue

        token = _leading_token(line)
        if current == MAIN_STREAMS and not token:
            raise ParseError(f"Empty stream code in line '{line}'")
        collections[current].append(token)

    return ProtocolDefinition(
        main_streams=tuple(collections[MAIN_STREAMS]),
        required_arguments=tuple(collections[REQUIRED_ARGUMENTS]),
        optional_arguments=tuple(collections[OPTIONAL_ARGUMENTS]),
        examples=tuple(collections[EXAMPLES]),
        name=name,
    )


def parse_protocol_definitions(content: Union[str, bytes]) -> Dict[str, ProtocolDefinition]:
    """
    Parse a whole schema document into a key -> definition mapping.

    Args:
        content: Schema document text (bytes are decoded as UTF-8)

    Returns:
        Dictionary keyed by each family's canonical key. Sections without
        main streams contribute nothing. Empty input yields an empty dict.

    Raises:
        ParseError: if the document is not text at all
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Protocol document is not valid UTF-8: {e}") from e
    if not isinstance(content, str):
        raise ParseError(f"Protocol document must be text, got {type(content).__name__}")

    definitions: Dict[str, ProtocolDefinition] = {}

    for index, section in enumerate(_SECTION_SPLIT.split(content)):
        try:
            definition = parse_protocol_section(section)
        except ParseError as e:
            logger.warning(f"Skipping protocol section {index}: {e}")
            continue

        key = definition.key
        if key is None:
            continue
        if key in definitions:
            logger.warning(f"Protocol section {index} redefines '{key}'")
        definitions[key] = definition

    return definitions


def default_schema_path() -> Path:
    """Path of the schema document bundled with the package."""
    return Path(__file__).parent / SCHEMA_FILENAME


def load_protocol_file(path: Union[str, Path, None] = None) -> Dict[str, ProtocolDefinition]:
    """
    Read and parse a schema document from disk.

    Args:
        path: Schema file. Defaults to the bundled PSS schema.

    Raises:
        ParseError: if the file cannot be read or is not UTF-8 text
    """
    path = Path(path) if path else default_schema_path()
    try:
        content = path.read_bytes()
    except OSError as e:
        raise ParseError(f"Cannot read protocol file {path}: {e}") from e

    definitions = parse_protocol_definitions(content)
    logger.debug(f"Parsed {len(definitions)} protocol definitions from {path}")
    return definitions
