"""
MSTAT Header codec - magic check, field count, end-of-header, field table.

Readers never move the caller's cursor to peek at the header: every read goes
through a StreamView, which reads at absolute offsets (``os.pread`` for real
files, the buffer itself for in-memory streams).
"""

from __future__ import annotations

import io
import logging
import os
import struct
from dataclasses import dataclass
from typing import BinaryIO

from mstat.errors import AllocationError, FormatError
from mstat.schema import DEFAULT_SCHEMA, Schema
from mstat.spec import (
    END_OF_HEADER_OFFSET,
    FIELD_COUNT_OFFSET,
    HEADER_PREFIX_SIZE,
    LENGTH_PREFIX_SIZE,
    MAGIC,
    MAGIC_SLOT_SIZE,
    MAX_FIELDS,
    U32,
)

logger = logging.getLogger(__name__)

MAGIC_SLOT = MAGIC.ljust(MAGIC_SLOT_SIZE, b"\0")

# Largest single positional read
READ_CHUNK = 1 << 16


@dataclass(frozen=True)
class Header:
    """Decoded header of an mstat file."""

    field_count: int
    end_of_header: int
    schema: Schema

    @property
    def fields(self) -> list[str]:
        return list(self.schema.names)


class StreamView:
    """Read-only positional access to a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes at ``offset``. Short at end of stream."""
        stream = self._stream
        if hasattr(stream, "getbuffer"):
            with stream.getbuffer() as buf:
                return bytes(buf[offset:offset + size])

        fd = self._fileno()
        if fd is not None:
            # Pending writes of this handle must reach the fd first
            stream.flush()
            chunks = []
            while size > 0:
                chunk = os.pread(fd, min(size, READ_CHUNK), offset)
                if not chunk:
                    break
                chunks.append(chunk)
                offset += len(chunk)
                size -= len(chunk)
            return b"".join(chunks)

        pos = stream.tell()
        try:
            stream.seek(offset)
            return stream.read(size)
        finally:
            stream.seek(pos)

    def size(self) -> int:
        stream = self._stream
        if hasattr(stream, "getbuffer"):
            with stream.getbuffer() as buf:
                return len(buf)

        fd = self._fileno()
        if fd is not None:
            stream.flush()
            return os.fstat(fd).st_size

        pos = stream.tell()
        try:
            return stream.seek(0, io.SEEK_END)
        finally:
            stream.seek(pos)

    def _fileno(self) -> int | None:
        if not hasattr(os, "pread"):
            return None
        try:
            return self._stream.fileno()
        except (AttributeError, io.UnsupportedOperation):
            return None


def write_fully(sink: BinaryIO, data: bytes) -> None:
    written = sink.write(data)
    if written is not None and written != len(data):
        raise OSError(f"Short write: {written} of {len(data)} bytes")


def _read_u32(view: StreamView, offset: int) -> int:
    data = view.read_at(offset, LENGTH_PREFIX_SIZE)
    if len(data) < LENGTH_PREFIX_SIZE:
        raise FormatError(f"Header truncated at offset {offset:#x}")
    return struct.unpack(U32, data)[0]


def encode_header(schema: Schema = DEFAULT_SCHEMA) -> bytes:
    """Serialize the full header region for ``schema``."""
    if len(schema) > MAX_FIELDS:
        raise ValueError(f"Too many fields: {len(schema)} (max {MAX_FIELDS})")

    table = bytearray()
    for raw in schema.encoded_names():
        table += struct.pack(U32, len(raw))
        table += raw

    prefix = bytearray(HEADER_PREFIX_SIZE)
    prefix[:MAGIC_SLOT_SIZE] = MAGIC_SLOT
    # End of header is fixed here, once, from the table just built
    struct.pack_into(U32, prefix, FIELD_COUNT_OFFSET, len(schema))
    struct.pack_into(U32, prefix, END_OF_HEADER_OFFSET, HEADER_PREFIX_SIZE + len(table))
    return bytes(prefix + table)


def write_header(sink: BinaryIO, schema: Schema = DEFAULT_SCHEMA) -> Header:
    """
    Write the header at offset 0 and leave the stream at end-of-header.

    Raises OSError if the write fails; the partial file must then be
    treated as corrupt.
    """
    data = encode_header(schema)
    sink.seek(0)
    write_fully(sink, data)
    logger.debug("wrote header fields=%d end_of_header=%d", len(schema), len(data))
    return Header(field_count=len(schema), end_of_header=len(data), schema=schema)


def check_header(source: BinaryIO) -> bool:
    """True if the stream starts with the mstat magic. The field table is not checked."""
    return StreamView(source).read_at(0, MAGIC_SLOT_SIZE) == MAGIC_SLOT


def field_count(source: BinaryIO) -> int:
    return _read_u32(StreamView(source), FIELD_COUNT_OFFSET)


def end_of_header(source: BinaryIO) -> int:
    return _read_u32(StreamView(source), END_OF_HEADER_OFFSET)


def _read_table(view: StreamView) -> tuple[list[str], int]:
    count = _read_u32(view, FIELD_COUNT_OFFSET)
    size = view.size()
    # Each entry needs at least its length prefix
    if count > MAX_FIELDS or HEADER_PREFIX_SIZE + count * LENGTH_PREFIX_SIZE > size:
        raise AllocationError(f"Cannot allocate a field table of {count} entries")

    names: list[str] = []
    offset = HEADER_PREFIX_SIZE
    for i in range(count):
        length = _read_u32(view, offset)
        offset += LENGTH_PREFIX_SIZE
        if offset + length > size:
            raise AllocationError(f"Cannot allocate field name {i} of {length} bytes")
        raw = view.read_at(offset, length)
        if len(raw) < length:
            raise FormatError(f"Field table truncated at entry {i}")
        offset += length
        try:
            names.append(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise FormatError(f"Field {i} is not valid UTF-8") from e
    return names, offset


def read_fields(source: BinaryIO) -> list[str]:
    """Field names stored in the header, in schema order."""
    names, _ = _read_table(StreamView(source))
    return names


def read_header(source: BinaryIO) -> Header:
    """Read and cross-check the whole header."""
    view = StreamView(source)
    if view.read_at(0, MAGIC_SLOT_SIZE) != MAGIC_SLOT:
        raise FormatError("Bad magic")

    names, table_end = _read_table(view)
    eoh = _read_u32(view, END_OF_HEADER_OFFSET)
    if eoh != table_end:
        raise FormatError(f"End-of-header {eoh} does not match field table end {table_end}")
    try:
        schema = Schema(tuple(names))
    except ValueError as e:
        raise FormatError(str(e)) from e
    return Header(field_count=len(names), end_of_header=eoh, schema=schema)
