"""CSV export of an mstat log, one row per record, columns in stored field order."""

from __future__ import annotations

import csv
import logging
from typing import Sequence, TextIO

from mstat.errors import InvalidFieldError
from mstat.fields import Missing, Real, get_field_by_name, is_valid_field
from mstat.session import MstatFile

logger = logging.getLogger(__name__)


def format_value(value) -> str:
    if isinstance(value, Missing):
        return ""
    if isinstance(value, Real):
        return f"{value.value:f}"
    return str(value.value)


def export_csv(log: MstatFile, out: TextIO, fields: Sequence[str] | None = None) -> int:
    """Write ``log`` as CSV to ``out``. Returns the number of data rows."""
    stored = log.fields
    columns = list(fields) if fields else stored
    for name in columns:
        if not is_valid_field(stored, name):
            raise InvalidFieldError(name, stored)

    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(columns)
    rows = 0
    for record in log:
        writer.writerow([format_value(get_field_by_name(record, name)) for name in columns])
        rows += 1
    logger.debug("exported %d rows from %s", rows, log.path)
    return rows
