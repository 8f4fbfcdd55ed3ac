"""
MSTAT Record codec - fixed-width samples stored back-to-back after the header.

The layout of a record is compiled from a Schema, so readers decode a file in
the order its own header declares. There is no record count on disk: readers
call read_record() until EndOfStream.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import BinaryIO, Iterator

from mstat.errors import EndOfStream
from mstat.header import write_fully
from mstat.schema import DEFAULT_SCHEMA, Schema


@dataclass
class Record:
    """One memory sample. Metric values are byte counts."""

    pid: int = 0
    timestamp: float = 0.0
    rss: int = 0
    pss: int = 0
    pss_anon: int = 0
    pss_file: int = 0
    pss_shmem: int = 0
    shared_clean: int = 0
    shared_dirty: int = 0
    private_clean: int = 0
    private_dirty: int = 0
    referenced: int = 0
    anonymous: int = 0
    lazy_free: int = 0
    anon_huge_pages: int = 0
    shmem_pmd_mapped: int = 0
    file_pmd_mapped: int = 0
    shared_hugetlb: int = 0
    private_hugetlb: int = 0
    swap: int = 0
    swap_pss: int = 0
    locked: int = 0
    # Values of stored fields this build has no attribute for
    extra: dict[str, int] = field(default_factory=dict)
    # Names decoded from a file; None for a record built in memory
    present: frozenset | None = field(default=None, compare=False, repr=False)

    def has(self, name: str) -> bool:
        if self.present is not None:
            return name in self.present
        return name in RECORD_ATTRIBUTES or name in self.extra

    def get(self, name: str) -> int | float:
        if name in RECORD_ATTRIBUTES:
            return getattr(self, name)
        return self.extra.get(name, 0)

    def set(self, name: str, value: int | float) -> None:
        if name in RECORD_ATTRIBUTES:
            setattr(self, name, value)
        else:
            self.extra[name] = int(value)
        if self.present is not None and name not in self.present:
            self.present = self.present | {name}


RECORD_ATTRIBUTES = frozenset(
    f.name for f in dataclass_fields(Record) if f.name not in ("extra", "present")
)


class RecordCodec:
    """Packs and unpacks records laid out in a given schema's order."""

    def __init__(self, schema: Schema = DEFAULT_SCHEMA) -> None:
        self.schema = schema
        self._struct = struct.Struct(schema.record_format)
        self._present = frozenset(schema.names)

    @property
    def size(self) -> int:
        return self._struct.size

    def pack(self, record: Record) -> bytes:
        try:
            return self._struct.pack(*(record.get(name) for name in self.schema))
        except struct.error as e:
            raise ValueError(f"Record does not fit the schema layout: {e}") from e

    def unpack(self, data: bytes) -> Record:
        record = Record(present=self._present)
        for name, value in zip(self.schema, self._struct.unpack(data)):
            record.set(name, value)
        return record

    def __repr__(self) -> str:
        return f"RecordCodec(fields={len(self.schema)}, size={self.size})"


DEFAULT_CODEC = RecordCodec(DEFAULT_SCHEMA)


def write_record(sink: BinaryIO, record: Record, codec: RecordCodec | None = None) -> None:
    """
    Append one record at the sink's position.

    Raises OSError on a failed or short write. A partial record may be left
    at the tail; there is no rollback.
    """
    codec = codec or DEFAULT_CODEC
    write_fully(sink, codec.pack(record))


def read_record(source: BinaryIO, codec: RecordCodec | None = None) -> Record:
    """
    Decode the record at the source's position.

    Raises EndOfStream when no complete record is left. An incomplete tail
    is not consumed, so a reader following a live file can retry later.
    """
    codec = codec or DEFAULT_CODEC
    start = source.tell()
    data = source.read(codec.size)
    if data is None or len(data) < codec.size:
        if data:
            source.seek(start)
        raise EndOfStream(f"No complete record at offset {start}")
    return codec.unpack(data)


def iterate(source: BinaryIO, codec: RecordCodec | None = None) -> Iterator[Record]:
    """Yield records from the current position until the stream is exhausted."""
    while True:
        try:
            record = read_record(source, codec)
        except EndOfStream:
            return
        yield record
