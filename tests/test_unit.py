"""
Unit Tests - Test individual components in isolation.
"""

import io
import logging
import struct

import pytest

from mstat.errors import AllocationError, EndOfStream, FormatError
from mstat.fields import (
    MISSING,
    MISSING_VALUE,
    FieldId,
    Integer,
    Missing,
    Real,
    get_field_by_id,
    get_field_by_name,
    id_of,
    is_valid_field,
)
from mstat.header import (
    check_header,
    encode_header,
    end_of_header,
    field_count,
    read_fields,
    read_header,
    write_header,
)
from mstat.record import DEFAULT_CODEC, Record, RecordCodec, iterate, read_record, write_record
from mstat.schema import DEFAULT_SCHEMA, Schema
from mstat.spec import (
    DEFAULT_FIELD_NAMES,
    END_OF_HEADER_OFFSET,
    FIELD_COUNT_OFFSET,
    HEADER_PREFIX_SIZE,
    MAGIC,
    SMAPS_KEYS,
)


def _sample_record(**overrides):
    values = dict(
        pid=1234,
        timestamp=12.345678901234,
        rss=5242880,
        pss=4194304,
        pss_anon=3072000,
        swap=65536,
        locked=2**64 - 2,
    )
    values.update(overrides)
    return Record(**values)


# =============================================================================
# Format constants
# =============================================================================

class TestFormatConstants:

    def test_magic(self):
        assert MAGIC == b"MSTAT"

    def test_header_slots(self):
        assert FIELD_COUNT_OFFSET == 0x08
        assert END_OF_HEADER_OFFSET == 0x0C
        assert HEADER_PREFIX_SIZE == 0x10

    def test_default_field_order(self):
        assert DEFAULT_FIELD_NAMES[:4] == ("pid", "timestamp", "rss", "pss")
        assert DEFAULT_FIELD_NAMES[-1] == "locked"
        assert len(DEFAULT_FIELD_NAMES) == 22

    def test_every_smaps_key_maps_to_a_metric(self):
        assert set(SMAPS_KEYS.values()) == set(DEFAULT_FIELD_NAMES[2:])


# =============================================================================
# Schema
# =============================================================================

class TestSchema:

    def test_default_schema(self):
        assert DEFAULT_SCHEMA.names == DEFAULT_FIELD_NAMES
        assert len(DEFAULT_SCHEMA) == 22
        assert "pss" in DEFAULT_SCHEMA
        assert DEFAULT_SCHEMA.index("timestamp") == 1

    def test_record_layout(self):
        assert DEFAULT_SCHEMA.record_format == "<id" + "Q" * 20
        assert DEFAULT_SCHEMA.record_size == 4 + 8 + 20 * 8

    def test_unknown_names_are_u64(self):
        schema = Schema(("pid", "gpu_mem"))
        assert schema.record_format == "<iQ"

    def test_rejects_duplicates(self):
        with pytest.raises(ValueError, match="Duplicate"):
            Schema(("pid", "rss", "pid"))

    def test_rejects_empty_name(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            Schema(("pid", ""))

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            DEFAULT_SCHEMA.names = ("pid",)


# =============================================================================
# Header codec
# =============================================================================

class TestHeader:

    def test_prefix_layout(self):
        data = encode_header()
        assert data[:8] == b"MSTAT\0\0\0"
        count, eoh = struct.unpack("<II", data[8:16])
        assert count == 22
        assert eoh == len(data)

    def test_end_of_header_follows_table(self):
        data = encode_header()
        expected = HEADER_PREFIX_SIZE + sum(4 + len(n) for n in DEFAULT_FIELD_NAMES)
        assert len(data) == expected
        assert struct.unpack("<I", data[12:16])[0] == expected

    def test_table_entries_are_length_prefixed(self):
        data = encode_header()
        length = struct.unpack("<I", data[16:20])[0]
        assert length == 3
        assert data[20:23] == b"pid"

    def test_write_header_positions_stream(self):
        buf = io.BytesIO()
        header = write_header(buf)
        assert buf.tell() == header.end_of_header
        assert header.field_count == 22
        assert header.fields == list(DEFAULT_FIELD_NAMES)

    def test_schema_fidelity(self):
        buf = io.BytesIO()
        write_header(buf)
        assert read_fields(buf) == list(DEFAULT_FIELD_NAMES)
        assert field_count(buf) == 22

    def test_check_header(self):
        buf = io.BytesIO()
        write_header(buf)
        assert check_header(buf) is True

    def test_check_header_rejects_foreign_bytes(self):
        assert check_header(io.BytesIO(b"\x7fELF\x02\x01\x01\x00" + b"\0" * 32)) is False
        assert check_header(io.BytesIO(b"MSTAX\0\0\0" + b"\0" * 8)) is False
        assert check_header(io.BytesIO(b"")) is False

    def test_peeks_do_not_move_cursor(self):
        buf = io.BytesIO()
        write_header(buf)
        buf.seek(0, io.SEEK_END)
        buf.write(b"\xff" * 40)
        buf.seek(333)

        check_header(buf)
        field_count(buf)
        end_of_header(buf)
        read_fields(buf)
        read_header(buf)
        assert buf.tell() == 333

    def test_check_header_ignores_table(self):
        data = bytearray(encode_header())
        data[16:20] = struct.pack("<I", 0xFFFFFF)
        buf = io.BytesIO(bytes(data))
        assert check_header(buf) is True
        with pytest.raises(AllocationError):
            read_fields(buf)

    def test_implausible_count_raises_allocation_error(self):
        data = bytearray(encode_header())
        data[8:12] = struct.pack("<I", 0xFFFFFFFF)
        with pytest.raises(AllocationError):
            read_fields(io.BytesIO(bytes(data)))

    def test_truncated_table_is_reported(self):
        data = b"MSTAT\0\0\0" + struct.pack("<II", 2, 0)
        data += struct.pack("<I", 3) + b"pid" + b"\x05\x00"
        with pytest.raises(FormatError, match="truncated"):
            read_fields(io.BytesIO(data))

    def test_name_longer_than_file(self):
        data = b"MSTAT\0\0\0" + struct.pack("<II", 2, 0)
        data += struct.pack("<I", 3) + b"pid" + struct.pack("<I", 50) + b"ab"
        with pytest.raises(AllocationError, match="field name 1"):
            read_fields(io.BytesIO(data))

    def test_short_prefix(self):
        with pytest.raises(FormatError, match="truncated"):
            field_count(io.BytesIO(b"MSTAT\0\0\0\x01"))

    def test_read_header_cross_checks_end_of_header(self):
        data = bytearray(encode_header())
        data[12:16] = struct.pack("<I", 999)
        with pytest.raises(FormatError, match="does not match"):
            read_header(io.BytesIO(bytes(data)))

    def test_read_header_rejects_duplicate_names(self):
        buf = io.BytesIO(encode_header(Schema(("pid", "rss"))).replace(b"rss", b"pid"))
        with pytest.raises(FormatError, match="Duplicate"):
            read_header(buf)

    def test_custom_schema(self):
        schema = Schema(("pid", "timestamp", "rss", "gpu_mem"))
        buf = io.BytesIO()
        header = write_header(buf, schema)
        assert read_header(buf) == header
        assert read_fields(buf) == ["pid", "timestamp", "rss", "gpu_mem"]

    def test_failed_write_raises_oserror(self):
        class ShortSink(io.BytesIO):
            def write(self, data):
                super().write(data[:5])
                return 5

        with pytest.raises(OSError, match="Short write"):
            write_header(ShortSink())


# =============================================================================
# Record codec
# =============================================================================

class TestRecord:

    def test_round_trip(self):
        buf = io.BytesIO()
        record = _sample_record()
        write_record(buf, record)
        buf.seek(0)
        assert read_record(buf) == record

    def test_timestamp_bits_preserved(self):
        buf = io.BytesIO()
        ts = 0.1 + 0.2
        write_record(buf, Record(timestamp=ts))
        buf.seek(0)
        got = read_record(buf).timestamp
        assert struct.pack("<d", got) == struct.pack("<d", ts)

    def test_fixed_width(self):
        buf = io.BytesIO()
        write_record(buf, Record())
        assert len(buf.getvalue()) == DEFAULT_CODEC.size == 172

    def test_layout_is_schema_order(self):
        data = DEFAULT_CODEC.pack(Record(pid=7, timestamp=1.5, rss=99))
        pid, ts, rss = struct.unpack("<idQ", data[:20])
        assert (pid, ts, rss) == (7, 1.5, 99)

    def test_end_of_stream(self):
        with pytest.raises(EndOfStream):
            read_record(io.BytesIO())

    def test_short_tail_is_not_consumed(self):
        buf = io.BytesIO(DEFAULT_CODEC.pack(Record(pid=1)) + b"\x01" * 10)
        assert read_record(buf).pid == 1
        with pytest.raises(EndOfStream):
            read_record(buf)
        assert buf.tell() == DEFAULT_CODEC.size

    def test_iterate_stops_cleanly(self):
        buf = io.BytesIO()
        for i in range(3):
            write_record(buf, Record(pid=i))
        buf.write(b"\0" * 7)
        buf.seek(0)
        assert [r.pid for r in iterate(buf)] == [0, 1, 2]

    def test_any_bit_pattern_accepted(self):
        buf = io.BytesIO(b"\xff" * DEFAULT_CODEC.size)
        record = read_record(buf)
        assert record.pid == -1
        assert record.rss == 2**64 - 1

    def test_value_out_of_range(self):
        with pytest.raises(ValueError, match="does not fit"):
            DEFAULT_CODEC.pack(Record(rss=-1))

    def test_decode_follows_stored_order(self):
        schema = Schema(("timestamp", "rss", "pid"))
        codec = RecordCodec(schema)
        data = struct.pack("<dQi", 2.5, 4096, 77)
        record = codec.unpack(data)
        assert (record.pid, record.timestamp, record.rss) == (77, 2.5, 4096)

    def test_unknown_stored_fields_go_to_extra(self):
        codec = RecordCodec(Schema(("pid", "timestamp", "gpu_mem")))
        record = Record(pid=3, timestamp=1.0, extra={"gpu_mem": 123})
        back = codec.unpack(codec.pack(record))
        assert back == record
        assert back.extra == {"gpu_mem": 123}

    def test_failed_write_raises_oserror(self):
        class ShortSink(io.BytesIO):
            def write(self, data):
                return 0

        with pytest.raises(OSError):
            write_record(ShortSink(), Record())


# =============================================================================
# Field accessor
# =============================================================================

class TestFields:

    def test_field_ids_follow_default_schema(self):
        assert [fid.field_name for fid in FieldId] == list(DEFAULT_FIELD_NAMES)
        assert id_of("pss") is FieldId.PSS
        assert id_of("nope") is None

    @pytest.mark.parametrize("name", DEFAULT_FIELD_NAMES)
    def test_name_id_consistency(self, name):
        record = _sample_record()
        assert get_field_by_name(record, name) == get_field_by_id(record, id_of(name))

    def test_timestamp_is_real(self):
        value = get_field_by_id(_sample_record(), FieldId.TIMESTAMP)
        assert value == Real(12.345678901234)

    def test_pid_is_integer(self):
        assert get_field_by_name(_sample_record(), "pid") == Integer(1234)

    def test_pss_lookup(self):
        assert get_field_by_name(Record(pss=4096), "pss") == Integer(4096)

    def test_unknown_name_is_missing(self):
        value = get_field_by_name(_sample_record(), "not_a_field")
        assert value is MISSING
        assert isinstance(value, Missing)
        assert value.value == MISSING_VALUE
        assert not value

    def test_unknown_id_is_missing_with_diagnostic(self, caplog):
        with caplog.at_level(logging.WARNING, logger="mstat.fields"):
            assert get_field_by_id(_sample_record(), 99) is MISSING
        assert "unknown field id" in caplog.text

    def test_missing_never_equals_max_integer(self):
        assert MISSING != Integer(MISSING_VALUE)
        record = Record(rss=MISSING_VALUE)
        assert get_field_by_name(record, "rss") == Integer(MISSING_VALUE)

    def test_extra_field_lookup(self):
        record = Record(extra={"gpu_mem": 8})
        assert get_field_by_name(record, "gpu_mem") == Integer(8)

    def test_is_valid_field(self):
        names = list(DEFAULT_FIELD_NAMES)
        assert is_valid_field(names, "pss")
        assert not is_valid_field(names, "PSS")
        assert not is_valid_field(names, "ps")
        assert not is_valid_field([], "pss")

    def test_field_absent_from_stored_schema_is_missing(self):
        codec = RecordCodec(Schema(("pid", "timestamp", "rss")))
        record = codec.unpack(codec.pack(Record(pid=4, timestamp=1.0, rss=0)))
        assert get_field_by_name(record, "rss") == Integer(0)
        assert get_field_by_name(record, "pss") is MISSING
        assert get_field_by_id(record, FieldId.SWAP) is MISSING

    def test_in_memory_record_has_every_builtin(self):
        record = Record()
        assert record.has("locked")
        assert not record.has("gpu_mem")
        assert get_field_by_name(record, "locked") == Integer(0)
