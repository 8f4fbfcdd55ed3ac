"""
Field accessor - look record values up by symbolic name or by id.

Lookups never raise for an unknown field. They return MISSING, a value that
compares unequal to every Integer, so "not found" cannot be mistaken for a
genuine maximum count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Union

from mstat.record import Record
from mstat.spec import DEFAULT_FIELD_NAMES

logger = logging.getLogger(__name__)

MISSING_VALUE = 2**64 - 1


class FieldId(IntEnum):
    PID = 0
    TIMESTAMP = 1
    RSS = 2
    PSS = 3
    PSS_ANON = 4
    PSS_FILE = 5
    PSS_SHMEM = 6
    SHARED_CLEAN = 7
    SHARED_DIRTY = 8
    PRIVATE_CLEAN = 9
    PRIVATE_DIRTY = 10
    REFERENCED = 11
    ANONYMOUS = 12
    LAZY_FREE = 13
    ANON_HUGE_PAGES = 14
    SHMEM_PMD_MAPPED = 15
    FILE_PMD_MAPPED = 16
    SHARED_HUGETLB = 17
    PRIVATE_HUGETLB = 18
    SWAP = 19
    SWAP_PSS = 20
    LOCKED = 21

    @property
    def field_name(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Integer:
    value: int


@dataclass(frozen=True)
class Real:
    value: float


@dataclass(frozen=True)
class Missing:
    value: int = MISSING_VALUE

    def __bool__(self) -> bool:
        return False


MISSING = Missing()

FieldValue = Union[Integer, Real, Missing]

_IDS_BY_NAME = {fid.field_name: fid for fid in FieldId}

if tuple(_IDS_BY_NAME) != DEFAULT_FIELD_NAMES:
    raise RuntimeError("FieldId order must match the default schema")


def id_of(name: str) -> FieldId | None:
    return _IDS_BY_NAME.get(name)


def is_valid_field(names: Iterable[str], candidate: str) -> bool:
    """Exact, case-sensitive membership test against a file's stored names."""
    for name in names:
        if name == candidate:
            return True
    return False


def get_field_by_id(record: Record, field_id: int) -> FieldValue:
    try:
        fid = FieldId(field_id)
    except ValueError:
        logger.warning("unknown field id: %r", field_id)
        return MISSING

    if not record.has(fid.field_name):
        return MISSING
    value = getattr(record, fid.field_name)
    if fid is FieldId.TIMESTAMP:
        return Real(float(value))
    return Integer(int(value))


def get_field_by_name(record: Record, name: str) -> FieldValue:
    """
    Value of ``name`` in ``record``.

    Built-in names go through get_field_by_id. Other names are looked up
    among the extra fields decoded from the file's own schema. A name the
    record was not decoded with yields MISSING, never a zero.
    """
    fid = _IDS_BY_NAME.get(name)
    if fid is not None:
        return get_field_by_id(record, fid)
    if name in record.extra:
        return Integer(record.extra[name])
    logger.debug("unknown field name: %r", name)
    return MISSING
