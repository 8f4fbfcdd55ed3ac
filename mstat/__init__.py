"""mstat - sample process memory usage into a self-describing binary log."""

from mstat.errors import AllocationError, EndOfStream, FormatError, MstatError
from mstat.fields import (
    MISSING,
    FieldId,
    Integer,
    Missing,
    Real,
    get_field_by_id,
    get_field_by_name,
    is_valid_field,
)
from mstat.header import check_header, field_count, read_fields, read_header, write_header
from mstat.record import Record, RecordCodec, iterate, read_record, write_record
from mstat.schema import DEFAULT_SCHEMA, Schema
from mstat.session import MstatFile

__version__ = "1.0.0"

open = MstatFile.open
