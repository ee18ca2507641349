"""IPS patch decoder/applier — pure functions over bytes, no I/O.

Format::

    "PATCH"
    record*            offset:u24be  size:u16be  data[size]
                       offset:u24be  0:u16be     count:u16be  value:u8   (RLE)
    "EOF"
    [truncate:u24be]   optional; anything after it is ignored

Every record is decoded before any byte is written, so a malformed patch
never yields partial output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from autopatcher.errors import PatchFormatError

MAGIC = b"PATCH"
SENTINEL = b"EOF"

_OFFSET_SIZE = 3
_LENGTH_SIZE = 2


@dataclass(frozen=True)
class WriteRecord:
    offset: int
    data: bytes

    @property
    def end(self) -> int:
        return self.offset + len(self.data)


@dataclass(frozen=True)
class FillRecord:
    """Run-length record: ``length`` copies of ``value`` at ``offset``."""

    offset: int
    length: int
    value: int

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class TruncateRecord:
    """Resize the output to exactly ``length`` bytes (truncate or zero-pad)."""

    length: int


PatchRecord = Union[WriteRecord, FillRecord, TruncateRecord]


class _Reader:
    """Bounds-checked cursor over the patch bytes."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self.pos

    def peek(self, size: int) -> bytes:
        return self._data[self.pos : self.pos + size]

    def read(self, size: int, what: str) -> bytes:
        if self.remaining < size:
            raise PatchFormatError(
                f"Unexpected end of patch reading {what} at 0x{self.pos:X} "
                f"(need {size} byte(s), {self.remaining} left)"
            )
        chunk = self._data[self.pos : self.pos + size]
        self.pos += size
        return chunk

    def read_int(self, size: int, what: str) -> int:
        return int.from_bytes(self.read(size, what), "big")


@dataclass(frozen=True)
class PatchProgram:
    """Decoded patch: records in stream order, optional trailing truncate."""

    records: tuple[PatchRecord, ...] = ()

    @property
    def truncate_length(self) -> int | None:
        if self.records and isinstance(self.records[-1], TruncateRecord):
            return self.records[-1].length
        return None

    def apply(self, source: bytes) -> bytes:
        """Return a patched copy of *source*; later records win on overlap."""
        out = bytearray(source)
        for record in self.records:
            if isinstance(record, TruncateRecord):
                if record.length < len(out):
                    del out[record.length :]
                else:
                    out.extend(bytes(record.length - len(out)))
                continue
            if record.end > len(out):
                out.extend(bytes(record.end - len(out)))
            if isinstance(record, WriteRecord):
                out[record.offset : record.end] = record.data
            else:
                out[record.offset : record.end] = bytes((record.value,)) * record.length
        return bytes(out)


def parse_patch(patch: bytes) -> PatchProgram:
    """Decode IPS bytes into a ``PatchProgram``. Raises ``PatchFormatError``."""
    if not patch.startswith(MAGIC):
        raise PatchFormatError("Missing IPS header (expected 'PATCH')")

    reader = _Reader(patch)
    reader.pos = len(MAGIC)
    records: list[PatchRecord] = []

    while True:
        if reader.remaining < _OFFSET_SIZE:
            raise PatchFormatError("Patch ended without 'EOF' marker")
        if reader.peek(_OFFSET_SIZE) == SENTINEL:
            reader.pos += _OFFSET_SIZE
            break

        offset = reader.read_int(_OFFSET_SIZE, "record offset")
        size = reader.read_int(_LENGTH_SIZE, "record size")
        if size:
            records.append(WriteRecord(offset, reader.read(size, "record data")))
        else:
            count = reader.read_int(_LENGTH_SIZE, "RLE count")
            value = reader.read(1, "RLE value")[0]
            records.append(FillRecord(offset, count, value))

    if reader.remaining >= _OFFSET_SIZE:
        records.append(TruncateRecord(reader.read_int(_OFFSET_SIZE, "truncate length")))

    return PatchProgram(tuple(records))


def apply_patch(source: bytes, patch: bytes) -> bytes:
    """Decode *patch* and apply it to *source*."""
    return parse_patch(patch).apply(source)
