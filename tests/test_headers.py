import datetime
import struct
import zipfile
import zlib

import pytest

from lazyzip import consts
from lazyzip.base import Processor
from lazyzip.entry import Checksum, SourceKind, make_entry
from lazyzip.headers import (
    FieldKind,
    central_directory_header,
    central_directory_header_length,
    data_descriptor,
    data_descriptor_length,
    end_of_central_directory,
    end_of_central_directory_length,
    local_file_header,
    local_file_header_length,
    needs_zip64,
    sentinel,
    zip64_extra_field,
    zip64_extra_field_length,
)

SPEC_NAME = b"APPNOTE.TXT"
SPEC_DATE = datetime.datetime(2019, 4, 26, 2, 0)


def from_hex(text):
    return bytes.fromhex(text.replace(" ", ""))


@pytest.fixture
def streamed_entry():
    # size and crc unknown until the data has been streamed
    return make_entry(SPEC_NAME, SPEC_DATE, content=iter([]))


@pytest.fixture
def finalized_entry(streamed_entry):
    return streamed_entry.finalized(Checksum(crc=0x12345678, size=0x10203040))


def sized_entry(size, crc=0, name=b"big.bin"):
    return make_entry(name, SPEC_DATE, kind=SourceKind.STREAM, size=size, crc=crc)


def test_structs():
    assert zipfile.sizeEndCentDir == consts.CD_END_STRUCT.size
    assert zipfile.sizeCentralDir == consts.CDLF_STRUCT.size
    assert zipfile.sizeFileHeader == consts.LF_STRUCT.size
    assert zipfile.sizeEndCentDir64 == consts.CD_END_STRUCT64.size
    assert zipfile.sizeEndCentDir64Locator == consts.CD_LOC64_STRUCT.size
    assert consts.LF_MAGIC == zipfile.stringFileHeader
    assert consts.CDFH_MAGIC == zipfile.stringCentralDir
    assert consts.CD_END_MAGIC == zipfile.stringEndArchive
    assert consts.CD_END_MAGIC64 == zipfile.stringEndArchive64
    assert consts.CD_LOC64_MAGIC == zipfile.stringEndArchive64Locator


def test_local_file_header_golden(streamed_entry):
    expected = from_hex(
        "504b0304 2d00 0800 0000 0010 9a4e 00000000 ffffffff ffffffff 0b00 0000"
    ) + SPEC_NAME
    assert local_file_header(streamed_entry) == expected
    assert local_file_header_length(streamed_entry) == len(expected)


def test_data_descriptor_golden(finalized_entry):
    expected = from_hex("504b0708 78563412 40302010 40302010")
    assert data_descriptor(finalized_entry) == expected
    assert data_descriptor_length(finalized_entry) == len(expected)


def test_central_directory_header_golden(finalized_entry):
    expected = from_hex(
        "504b0102 2d03 2d00 0800 0000 0010 9a4e 78563412 40302010 40302010"
        "0b00 0000 0000 0000 0000 00000000 04030201"
    ) + SPEC_NAME
    assert central_directory_header(finalized_entry, 0x01020304) == expected
    assert central_directory_header_length(finalized_entry, 0x01020304) == len(expected)


def test_zip64_extra_field_golden():
    entry = sized_entry(0x0102030405)
    expected = from_hex(
        "0100 1800 0504030201000000 0504030201000000 0e0d0c0b0a000000"
    )
    assert zip64_extra_field(entry, 0x0a0b0c0d0e) == expected
    assert zip64_extra_field_length(entry, 0x0a0b0c0d0e) == len(expected)


def test_zip64_extra_field_only_includes_overflowing_values():
    small = sized_entry(0x10203040)
    big = sized_entry(0x0102030405)
    assert zip64_extra_field(small, 0x0a0b0c0d0e) == from_hex("0100 0800 0e0d0c0b0a000000")
    assert zip64_extra_field(big, 0x01020304) == from_hex(
        "0100 1000 0504030201000000 0504030201000000")
    assert zip64_extra_field(small, 0x01020304) == b""
    assert zip64_extra_field_length(small, 0x01020304) == 0


def test_needs_zip64_thresholds():
    assert not needs_zip64(0xfffffffe, FieldKind.CENTRAL_SIZE)
    assert needs_zip64(0xffffffff, FieldKind.CENTRAL_SIZE)
    assert needs_zip64(0xffffffff, FieldKind.CENTRAL_OFFSET)
    assert needs_zip64(0xffffffff, FieldKind.CENTRAL_DIR_SIZE)
    assert not needs_zip64(0xfffe, FieldKind.TOTAL_ENTRIES)
    assert needs_zip64(0xffff, FieldKind.TOTAL_ENTRIES)
    assert needs_zip64(None, FieldKind.LOCAL_SIZE)
    with pytest.raises(ValueError):
        needs_zip64(None, FieldKind.CENTRAL_OFFSET)


def test_sentinel():
    assert sentinel(12, FieldKind.CENTRAL_SIZE) == 12
    assert sentinel(1 << 40, FieldKind.CENTRAL_SIZE) == 0xffffffff
    assert sentinel(0x10000, FieldKind.TOTAL_ENTRIES) == 0xffff
    assert sentinel(None, FieldKind.LOCAL_SIZE) == 0xffffffff


def test_size_at_32bit_limit_uses_zip64():
    entry = sized_entry(0xffffffff, crc=0xdeadbeef)
    zip64_extra = from_hex("0100 1000 ffffffff00000000 ffffffff00000000")

    header = local_file_header(entry)
    fields = consts.LF_TUPLE(*consts.LF_STRUCT.unpack(header[:consts.LF_STRUCT.size]))
    assert fields.version == consts.ZIP64_VERSION
    assert fields.flags == 0
    assert fields.crc == 0xdeadbeef
    assert fields.comp_size == fields.uncomp_size == 0xffffffff
    assert fields.extra_len == len(zip64_extra)
    assert header.endswith(entry.name + zip64_extra)
    assert local_file_header_length(entry) == len(header)

    cdfh = central_directory_header(entry, 0)
    fields = consts.CDLF_TUPLE(*consts.CDLF_STRUCT.unpack(cdfh[:consts.CDLF_STRUCT.size]))
    assert fields.version_ndd == consts.ZIP64_VERSION
    assert fields.comp_size == fields.uncomp_size == 0xffffffff
    assert fields.offset == 0
    assert cdfh.endswith(entry.name + zip64_extra)


def test_size_below_32bit_limit_stays_zip32():
    entry = sized_entry(0xfffffffe, crc=0xdeadbeef)

    header = local_file_header(entry)
    fields = consts.LF_TUPLE(*consts.LF_STRUCT.unpack(header[:consts.LF_STRUCT.size]))
    assert fields.version == consts.ZIP32_VERSION
    assert fields.comp_size == fields.uncomp_size == 0xfffffffe
    assert fields.extra_len == 0
    assert len(header) == consts.LF_STRUCT.size + len(entry.name)

    cdfh = central_directory_header(entry, 0)
    fields = consts.CDLF_TUPLE(*consts.CDLF_STRUCT.unpack(cdfh[:consts.CDLF_STRUCT.size]))
    assert fields.version_ndd == consts.ZIP32_VERSION
    assert fields.uncomp_size == 0xfffffffe
    assert fields.extra_len == 0


def test_offset_at_32bit_limit_uses_zip64():
    entry = sized_entry(10)
    cdfh = central_directory_header(entry, 0xffffffff)
    fields = consts.CDLF_TUPLE(*consts.CDLF_STRUCT.unpack(cdfh[:consts.CDLF_STRUCT.size]))
    assert fields.offset == 0xffffffff
    assert fields.uncomp_size == 10
    assert cdfh.endswith(from_hex("0100 0800 ffffffff00000000"))


def test_known_entry_header_carries_crc_and_size():
    entry = make_entry(b"hello.txt", SPEC_DATE, content=b"hello")
    assert not entry.deferred
    fields = consts.LF_TUPLE(*consts.LF_STRUCT.unpack(local_file_header(entry)[:30]))
    assert fields.flags == 0
    assert fields.crc == zlib.crc32(b"hello")
    assert fields.comp_size == fields.uncomp_size == 5
    assert data_descriptor_length(entry) == 0


def test_data_descriptor_zip64():
    entry = sized_entry(None)._replace(size=1 << 32, crc=0xcafe)
    descriptor = data_descriptor(entry)
    assert descriptor[:4] == consts.DD_MAGIC
    assert consts.DD_STRUCT64.unpack(descriptor[4:]) == (0xcafe, 1 << 32, 1 << 32)
    assert data_descriptor_length(entry) == len(descriptor) == 24


def test_encoders_need_final_values(streamed_entry):
    with pytest.raises(ValueError):
        data_descriptor(streamed_entry)
    with pytest.raises(ValueError):
        central_directory_header(streamed_entry, 0)


def test_empty_end_record_matches_zipfile(tmp_path):
    path = tmp_path / "empty.zip"
    with zipfile.ZipFile(path, "w"):
        pass
    assert end_of_central_directory(0, 0, 0) == path.read_bytes()
    assert end_of_central_directory_length(0, 0, 0) == 22


def test_end_records_zip64_for_entry_count():
    records = end_of_central_directory(0xffff, 100, 200)
    assert len(records) == end_of_central_directory_length(0xffff, 100, 200) == 98

    cdend64 = consts.CD_END_TUPLE64(*consts.CD_END_STRUCT64.unpack(records[:56]))
    assert cdend64.signature == consts.CD_END_MAGIC64
    assert cdend64.zip64_eocd_size == 44
    assert cdend64.total_entries == cdend64.disk_entries == 0xffff
    assert (cdend64.cd_size, cdend64.cd_offset) == (100, 200)

    locator = consts.CD_LOC64_TUPLE(*consts.CD_LOC64_STRUCT.unpack(records[56:76]))
    assert locator.signature == consts.CD_LOC64_MAGIC
    assert locator.offset == 300
    assert locator.disk_count == 1

    cdend = consts.CD_END_TUPLE(*consts.CD_END_STRUCT.unpack(records[76:]))
    assert cdend.total_entries == 0xffff
    # fields that fit keep their value
    assert (cdend.cd_size, cdend.cd_offset) == (100, 200)


def test_end_records_zip64_for_offset():
    records = end_of_central_directory(3, 150, 1 << 33)
    cdend = consts.CD_END_TUPLE(*consts.CD_END_STRUCT.unpack(records[-22:]))
    assert cdend.total_entries == 3
    assert cdend.cd_offset == 0xffffffff
    assert records.startswith(consts.CD_END_MAGIC64)


def test_end_records_zip32():
    records = end_of_central_directory(0xfffe, 100, 0xfffffffe)
    assert len(records) == end_of_central_directory_length(0xfffe, 100, 0xfffffffe) == 22
    assert struct.unpack("<H", records[10:12]) == (0xfffe,)


def test_processor_ignores_chunk_boundaries():
    payload = bytes(range(256)) * 41
    expected = Checksum(crc=zlib.crc32(payload), size=len(payload))
    for step in (1, 7, 256, 4096, len(payload)):
        pcs = Processor()
        out = b"".join(pcs.process(payload[i:i + step]) for i in range(0, len(payload), step))
        assert out == payload
        assert pcs.state() == expected


def test_processor_empty():
    assert Processor().state() == Checksum(crc=0, size=0)
