"""
MSTAT file session - open or create a log, rewind, iterate, append.

Usage:
    # Sampler side
    with MstatFile.open("1234.mstat") as log:
        log.write(Record(pid=1234, timestamp=0.5, rss=4096))

    # Reader side
    with MstatFile.open("1234.mstat", readonly=True) as log:
        print(log.fields)
        for record in log:
            ...

A session owns one handle. Reads advance from the data region start
(rewind); writes always append at end of file.
"""

from __future__ import annotations

import builtins
import io
import logging
import os
from pathlib import Path
from typing import BinaryIO, Iterator

from mstat.errors import FormatError
from mstat.header import Header, check_header, read_header, write_header
from mstat.record import Record, RecordCodec, iterate, read_record, write_record
from mstat.schema import DEFAULT_SCHEMA, Schema

logger = logging.getLogger(__name__)

# Keep builtins reference so the 'open' classmethod doesn't shadow
builtins_open = builtins.open


class MstatFile:
    """An open mstat log."""

    def __init__(self, handle: BinaryIO, header: Header, path: str | Path | None = None,
                 readonly: bool = False) -> None:
        self._handle = handle
        self._header = header
        self._codec = RecordCodec(header.schema)
        self._readonly = readonly
        self._closed = False
        self.path = Path(path) if path is not None else None

    # -- construction ------------------------------------------------------

    @staticmethod
    def is_mstat(path: str | Path) -> bool:
        """Fast check if a file is an mstat log. Reads only the magic slot."""
        with builtins_open(path, "rb") as f:
            return check_header(f)

    @classmethod
    def open(cls, path: str | Path, readonly: bool = False) -> MstatFile:
        """
        Open ``path``, creating it with a fresh header if it does not exist.

        Raises FormatError if an existing file is not an mstat log. The
        file is left untouched in that case.
        """
        path = Path(path)
        if not path.exists():
            if readonly:
                raise FileNotFoundError(path)
            return cls.create(path)

        handle = builtins_open(path, "rb" if readonly else "r+b")
        try:
            if not check_header(handle):
                raise FormatError(f"{path} is not an mstat database")
            header = read_header(handle)
        except BaseException:
            handle.close()
            raise

        session = cls(handle, header, path, readonly=readonly)
        session.rewind()
        logger.debug("opened %s fields=%d readonly=%s", path, header.field_count, readonly)
        return session

    @classmethod
    def create(cls, path: str | Path, schema: Schema = DEFAULT_SCHEMA,
               clobber: bool = False) -> MstatFile:
        """Create a new log with ``schema``. An existing file is an error unless ``clobber``."""
        path = Path(path)
        handle = builtins_open(path, "w+b" if clobber else "x+b")
        try:
            header = write_header(handle, schema)
            handle.flush()
        except BaseException:
            handle.close()
            raise

        logger.debug("created %s fields=%d", path, header.field_count)
        return cls(handle, header, path)

    @classmethod
    def from_stream(cls, handle: BinaryIO, create: bool = False,
                    schema: Schema = DEFAULT_SCHEMA) -> MstatFile:
        """Wrap an already open binary stream (e.g. io.BytesIO)."""
        if create:
            header = write_header(handle, schema)
        else:
            if not check_header(handle):
                raise FormatError("stream is not an mstat database")
            header = read_header(handle)
        session = cls(handle, header)
        session.rewind()
        return session

    # -- header --------------------------------------------------------------

    @property
    def header(self) -> Header:
        return self._header

    @property
    def schema(self) -> Schema:
        return self._header.schema

    @property
    def fields(self) -> list[str]:
        return self._header.fields

    @property
    def field_count(self) -> int:
        return self._header.field_count

    @property
    def codec(self) -> RecordCodec:
        return self._codec

    @property
    def closed(self) -> bool:
        return self._closed

    # -- reading -------------------------------------------------------------

    def rewind(self) -> int:
        """Seek to the first record. Returns the data region offset."""
        self._check_open()
        return self._handle.seek(self._header.end_of_header)

    def read_record(self) -> Record:
        """Next record. Raises EndOfStream once the file is exhausted."""
        self._check_open()
        return read_record(self._handle, self._codec)

    def iterate(self) -> Iterator[Record]:
        """Records from the current position to end of file."""
        self._check_open()
        return iterate(self._handle, self._codec)

    def __iter__(self) -> Iterator[Record]:
        self.rewind()
        return self.iterate()

    def count_records(self) -> int:
        """Scan the whole file, then rewind."""
        total = sum(1 for _ in self)
        self.rewind()
        return total

    # -- writing -------------------------------------------------------------

    def write(self, record: Record) -> None:
        """Append a record at end of file."""
        self._check_open()
        if self._readonly:
            raise io.UnsupportedOperation("session is read-only")
        self._handle.seek(0, os.SEEK_END)
        write_record(self._handle, record, self._codec)

    def flush(self) -> None:
        """Push buffered records to the OS so concurrent readers see them."""
        if not self._closed:
            self._handle.flush()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if not self._readonly:
                self._handle.flush()
        finally:
            self._handle.close()

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Cannot use a closed mstat session")

    def __enter__(self) -> MstatFile:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"MstatFile(path={str(self.path)!r}, fields={self.field_count}, {state})"
