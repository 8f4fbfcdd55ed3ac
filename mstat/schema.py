"""
Schema registry - the ordered field list a log is created with.

A Schema is a plain immutable value. The header codec embeds it in new files
and the record codec compiles it into a fixed record layout, so nothing in the
package depends on a process-wide field table.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Iterator

from mstat.spec import DEFAULT_FIELD_FORMAT, DEFAULT_FIELD_NAMES, FIELD_FORMATS


@dataclass(frozen=True)
class Schema:
    """Ordered, unique field names. Order is record layout and header order."""

    names: tuple[str, ...]

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for name in self.names:
            if not name:
                raise ValueError("Field name cannot be empty")
            if name in seen:
                raise ValueError(f"Duplicate field name: {name!r}")
            seen.add(name)

    @classmethod
    def of(cls, names: Iterable[str]) -> Schema:
        return cls(tuple(names))

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def index(self, name: str) -> int:
        return self.names.index(name)

    @property
    def record_format(self) -> str:
        """struct format string of one record laid out in this schema's order."""
        return "<" + "".join(FIELD_FORMATS.get(n, DEFAULT_FIELD_FORMAT) for n in self.names)

    @property
    def record_size(self) -> int:
        return struct.calcsize(self.record_format)

    def encoded_names(self) -> list[bytes]:
        return [n.encode("utf-8") for n in self.names]


DEFAULT_SCHEMA = Schema(DEFAULT_FIELD_NAMES)
