"""Exceptions raised by the mstat format and tools.

I/O failures are not wrapped: they surface as the builtin ``OSError``.
"""

from __future__ import annotations


class MstatError(Exception):
    """Base class for mstat errors."""


class FormatError(MstatError, ValueError):
    """The file is not an mstat database, or its header is inconsistent."""


class AllocationError(MstatError, MemoryError):
    """The header asks for a field table that cannot be allocated."""


class EndOfStream(MstatError, EOFError):
    """No complete record is left. This is the normal stop signal for readers."""


class ProcessLost(MstatError):
    """The sampled process is gone or its memory accounting is unreadable."""


class InvalidFieldError(MstatError, KeyError):
    """A requested field is not present in the file's schema."""

    def __init__(self, name: str, available: list[str] | tuple[str, ...] = ()) -> None:
        super().__init__(name)
        self.name = name
        self.available = list(available)

    def __str__(self) -> str:
        return f"Invalid field: '{self.name}'"


class EmptyLogError(MstatError):
    """The log holds a header but no records."""
