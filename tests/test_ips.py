"""Tests for the IPS decoder/applier."""

from __future__ import annotations

import pytest

from autopatcher.core.ips import (
    FillRecord,
    TruncateRecord,
    WriteRecord,
    apply_patch,
    parse_patch,
)
from autopatcher.errors import PatchFormatError

ZEROS = bytes(8)


class TestRecords:
    def test_empty_patch_is_identity(self, build_ips) -> None:
        source = b"\x01\x02\x03\x04"
        assert apply_patch(source, build_ips()) == source

    def test_write_record(self, build_ips, write_record) -> None:
        patch = build_ips(write_record(0, b"\xAA\xBB\xCC\xDD"))
        assert apply_patch(ZEROS, patch) == b"\xAA\xBB\xCC\xDD\x00\x00\x00\x00"

    def test_fill_record(self, build_ips, fill_record) -> None:
        patch = build_ips(fill_record(4, 3, 0xFF))
        assert apply_patch(ZEROS, patch) == b"\x00\x00\x00\x00\xFF\xFF\xFF\x00"

    def test_later_record_wins_on_overlap(self, build_ips, write_record, fill_record) -> None:
        patch = build_ips(fill_record(0, 4, 0x11), write_record(2, b"\x22\x22"))
        assert apply_patch(ZEROS, patch) == b"\x11\x11\x22\x22\x00\x00\x00\x00"

    def test_write_past_end_grows_with_zero_gap(self, build_ips, write_record) -> None:
        patch = build_ips(write_record(10, b"\x01\x02"))
        result = apply_patch(ZEROS, patch)
        assert len(result) == 12
        assert result[8:10] == b"\x00\x00"
        assert result[10:] == b"\x01\x02"

    def test_fill_past_end_grows(self, build_ips, fill_record) -> None:
        result = apply_patch(b"\x01\x02", build_ips(fill_record(4, 2, 0x7F)))
        assert result == b"\x01\x02\x00\x00\x7F\x7F"

    def test_source_is_not_modified(self, build_ips, write_record) -> None:
        source = bytes(4)
        apply_patch(source, build_ips(write_record(0, b"\xFF")))
        assert source == bytes(4)


class TestTruncation:
    def test_truncates_to_length(self, build_ips) -> None:
        patch = build_ips(tail=b"\x00\x00\x02")
        assert apply_patch(b"\x01\x02\x03\x04", patch) == b"\x01\x02"

    def test_pads_to_length(self, build_ips) -> None:
        patch = build_ips(tail=b"\x00\x00\x06")
        assert apply_patch(b"\x01\x02", patch) == b"\x01\x02\x00\x00\x00\x00"

    def test_short_tail_is_ignored(self, build_ips) -> None:
        patch = build_ips(tail=b"\x00\x01")
        assert apply_patch(b"\x01\x02\x03", patch) == b"\x01\x02\x03"

    def test_truncate_applies_after_records(self, build_ips, write_record) -> None:
        patch = build_ips(write_record(6, b"\xEE\xEE"), tail=b"\x00\x00\x04")
        assert apply_patch(ZEROS, patch) == bytes(4)

    def test_truncate_record_is_last(self, build_ips, write_record) -> None:
        program = parse_patch(build_ips(write_record(0, b"\x01"), tail=b"\x00\x01\x00"))
        assert program.records == (WriteRecord(0, b"\x01"), TruncateRecord(256))
        assert program.truncate_length == 256


class TestParsing:
    def test_record_types(self, build_ips, write_record, fill_record) -> None:
        program = parse_patch(build_ips(write_record(0x123456, b"ab"), fill_record(1, 5, 9)))
        assert program.records == (WriteRecord(0x123456, b"ab"), FillRecord(1, 5, 9))
        assert program.truncate_length is None

    def test_deterministic(self, build_ips, write_record, fill_record) -> None:
        patch = build_ips(write_record(3, b"xyz"), fill_record(0, 2, 1), tail=b"\x00\x00\x05")
        assert apply_patch(ZEROS, patch) == apply_patch(ZEROS, patch)

    @pytest.mark.parametrize(
        "patch",
        [
            b"",
            b"PATC",
            b"IPS32EOF",
            b"patch" + b"EOF",
        ],
    )
    def test_bad_header(self, patch: bytes) -> None:
        with pytest.raises(PatchFormatError):
            apply_patch(ZEROS, patch)

    def test_missing_sentinel(self, write_record) -> None:
        with pytest.raises(PatchFormatError, match="EOF"):
            apply_patch(ZEROS, b"PATCH" + write_record(0, b"\x01"))

    def test_header_only(self) -> None:
        with pytest.raises(PatchFormatError):
            apply_patch(ZEROS, b"PATCH")

    def test_write_data_truncated(self) -> None:
        # Claims 4 bytes of data, only 2 present, no sentinel
        patch = b"PATCH" + b"\x00\x00\x00" + b"\x00\x04" + b"\xAA\xBB"
        with pytest.raises(PatchFormatError):
            apply_patch(ZEROS, patch)

    def test_rle_body_truncated(self) -> None:
        patch = b"PATCH" + b"\x00\x00\x01" + b"\x00\x00" + b"\x00"
        with pytest.raises(PatchFormatError):
            apply_patch(ZEROS, patch)

    def test_record_header_truncated(self) -> None:
        patch = b"PATCH" + b"\x00\x00\x01" + b"\x00"
        with pytest.raises(PatchFormatError):
            apply_patch(ZEROS, patch)
