"""
Protocol Definition Table

Live mapping of stream codes to protocol definitions, shared between the
UDP receive loop and whatever triggers reloads (startup, web API).

Readers take an immutable snapshot; a reload builds a new snapshot and
swaps the reference under the lock. A reader sees the whole old table
or the whole new one, never a mix.
"""

import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Union

from ..errors import ParseError
from .definitions import ProtocolDefinition, load_protocol_file, parse_protocol_definitions

logger = logging.getLogger(__name__)


class TableSnapshot:
    """
    Immutable view of the definition table at one point in time.

    Holds the canonical key -> definition map and an inverted index from
    every individual stream code to its owning definition.
    """

    def __init__(self, definitions: Optional[Mapping[str, ProtocolDefinition]] = None):
        definitions = dict(definitions or {})
        streams: Dict[str, ProtocolDefinition] = {}

        for key, definition in definitions.items():
            for stream in definition.main_streams:
                owner = streams.get(stream)
                if owner is not None and owner is not definition:
                    logger.warning(
                        f"Stream '{stream}' claimed by '{owner.key}' and '{key}', keeping '{owner.key}'"
                    )
                    continue
                streams[stream] = definition

        self._definitions = MappingProxyType(definitions)
        self._streams = MappingProxyType(streams)

    def find(self, stream: str) -> Optional[ProtocolDefinition]:
        """Return the definition whose main streams include this code."""
        return self._streams.get(stream)

    def get(self, key: str) -> Optional[ProtocolDefinition]:
        """Return the definition stored under a canonical key."""
        return self._definitions.get(key)

    def keys(self):
        return self._definitions.keys()

    def items(self):
        return self._definitions.items()

    @property
    def streams(self) -> Mapping[str, ProtocolDefinition]:
        return self._streams

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {key: definition.to_dict() for key, definition in self._definitions.items()}


class DefinitionTable:
    """
    Thread-safe, swappable protocol definition table.

    Constructed once at startup and handed to the UDP server and to any
    reload entry point.
    """

    def __init__(self, definitions: Optional[Mapping[str, ProtocolDefinition]] = None):
        self._lock = threading.Lock()
        self._snapshot = TableSnapshot(definitions)

    def snapshot(self) -> TableSnapshot:
        """Get the current table snapshot."""
        with self._lock:
            return self._snapshot

    def replace(self, definitions: Mapping[str, ProtocolDefinition]) -> int:
        """
        Atomically replace the whole table.

        Returns:
            Number of definitions now loaded
        """
        snapshot = TableSnapshot(definitions)
        with self._lock:
            self._snapshot = snapshot
        logger.info(f"Loaded {len(snapshot)} protocol definitions")
        return len(snapshot)

    def load(self, content: Union[str, bytes]) -> int:
        """
        Parse a schema document and replace the table with it.

        A document that cannot be parsed at all leaves the current table
        in place.

        Returns:
            Number of definitions in effect after the call
        """
        try:
            definitions = parse_protocol_definitions(content)
        except ParseError as e:
            logger.error(f"Failed to load protocol definitions: {e}")
            return len(self.snapshot())
        return self.replace(definitions)

    def load_file(self, path: Union[str, Path, None] = None) -> int:
        """Load the table from a schema file (bundled schema by default)."""
        try:
            definitions = load_protocol_file(path)
        except ParseError as e:
            logger.error(f"Failed to load protocol definitions: {e}")
            return len(self.snapshot())
        return self.replace(definitions)

    def __len__(self) -> int:
        return len(self.snapshot())
