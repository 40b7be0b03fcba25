"""Little-endian, least-significant-bit-first bit reading and writing."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional, Union

__all__ = [
    "BitstreamOverflowError",
    "BitCoord",
    "CoordVector",
    "BitAngleVector",
    "BitReader",
    "BitWriter",
]

COORD_INTEGER_BITS = 14
COORD_FRACTIONAL_BITS = 5


class BitstreamOverflowError(ValueError):
    """Raised when a read runs past the end of a bit stream."""


@dataclass(frozen=True)
class BitCoord:
    """One component of a bit-packed coordinate, kept in its raw form."""

    exists: bool = False
    has_int: bool = False
    has_frac: bool = False
    sign: bool = False
    int_value: int = 0
    frac_value: int = 0


@dataclass(frozen=True)
class CoordVector:
    """Three bit-packed coordinates."""

    x: BitCoord = field(default_factory=BitCoord)
    y: BitCoord = field(default_factory=BitCoord)
    z: BitCoord = field(default_factory=BitCoord)


@dataclass(frozen=True)
class BitAngleVector:
    """Three fixed-width angle components of ``bits`` bits each."""

    x: int = 0
    y: int = 0
    z: int = 0
    bits: int = 0


def _encode(text: Union[str, bytes]) -> bytes:
    if isinstance(text, bytes):
        return text
    return text.encode("utf-8", "surrogateescape")


class BitReader:
    """Reads bit fields from a byte buffer, up to ``bitsize`` bits."""

    def __init__(self, data: bytes, bitsize: Optional[int] = None) -> None:
        self.data = bytes(data)
        available = len(self.data) * 8
        if bitsize is None:
            bitsize = available
        if bitsize < 0 or bitsize > available:
            raise ValueError(f"bit size {bitsize} does not fit in {len(self.data)} bytes")
        self.bitsize = bitsize
        self.bitoffset = 0

    def bits_left(self) -> int:
        return self.bitsize - self.bitoffset

    def _take(self, bits: int) -> int:
        if bits < 0:
            raise ValueError("bit count must not be negative")
        if bits > self.bits_left():
            raise BitstreamOverflowError(
                f"read of {bits} bits with only {self.bits_left()} left"
            )
        if bits == 0:
            return 0
        start = self.bitoffset >> 3
        shift = self.bitoffset & 7
        end = (self.bitoffset + bits + 7) >> 3
        value = int.from_bytes(self.data[start:end], "little") >> shift
        self.bitoffset += bits
        return value & ((1 << bits) - 1)

    def advance(self, bits: int) -> None:
        if bits < 0 or bits > self.bits_left():
            raise BitstreamOverflowError(f"cannot advance {bits} bits")
        self.bitoffset += bits

    def read_bit(self) -> bool:
        return bool(self._take(1))

    def read_uint(self, bits: int) -> int:
        return self._take(bits)

    def read_sint(self, bits: int) -> int:
        value = self._take(bits)
        if bits and value >> (bits - 1):
            value -= 1 << bits
        return value

    def read_uint32(self) -> int:
        return self._take(32)

    def read_sint32(self) -> int:
        return self.read_sint(32)

    def read_float(self) -> float:
        return struct.unpack("<f", self._take(32).to_bytes(4, "little"))[0]

    def read_varuint32(self) -> int:
        result = 0
        for shift in range(0, 35, 7):
            byte = self._take(8)
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                break
        return result & 0xFFFFFFFF

    def read_cstring(self, max_length: Optional[int] = None) -> str:
        """Read a null-terminated string.

        At most ``max_length`` bytes are consumed, terminator included; a string
        that reaches that limit without a terminator is returned truncated.
        """
        out = bytearray()
        while max_length is None or len(out) < max_length:
            byte = self._take(8)
            if byte == 0:
                break
            out.append(byte)
        return out.decode("utf-8", "surrogateescape")

    def read_fixed_string(self, length: int) -> bytes:
        return self._take(length * 8).to_bytes(length, "little")

    def read_bitvector(self, bits: int) -> BitAngleVector:
        x = self._take(bits)
        y = self._take(bits)
        z = self._take(bits)
        return BitAngleVector(x, y, z, bits)

    def _read_coord(self) -> BitCoord:
        has_int = self.read_bit()
        has_frac = self.read_bit()
        sign = False
        int_value = frac_value = 0
        if has_int or has_frac:
            sign = self.read_bit()
            if has_int:
                int_value = self._take(COORD_INTEGER_BITS)
            if has_frac:
                frac_value = self._take(COORD_FRACTIONAL_BITS)
        return BitCoord(True, has_int, has_frac, sign, int_value, frac_value)

    def read_coordvector(self) -> CoordVector:
        flags = (self.read_bit(), self.read_bit(), self.read_bit())
        coords = [self._read_coord() if present else BitCoord() for present in flags]
        return CoordVector(*coords)

    def fork_and_advance(self, bits: int) -> "BitReader":
        """Return a reader over the next ``bits`` bits and skip them here."""
        if bits < 0 or bits > self.bits_left():
            raise BitstreamOverflowError(f"cannot fork {bits} bits")
        fork = BitReader(self.data, self.bitoffset + bits)
        fork.bitoffset = self.bitoffset
        self.bitoffset += bits
        return fork


class BitWriter:
    """Appends bit fields to a growing byte buffer."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.bitoffset = 0

    def write_uint(self, value: int, bits: int) -> None:
        if bits < 0:
            raise ValueError("bit count must not be negative")
        if bits == 0:
            return
        value &= (1 << bits) - 1
        index = self.bitoffset >> 3
        shift = self.bitoffset & 7
        chunk = value << shift
        if shift:
            chunk |= self._buffer[index]
        nbytes = (shift + bits + 7) >> 3
        self._buffer[index:] = chunk.to_bytes(nbytes, "little")
        self.bitoffset += bits

    def write_bit(self, value: bool) -> None:
        self.write_uint(1 if value else 0, 1)

    def write_sint(self, value: int, bits: int) -> None:
        self.write_uint(value, bits)

    def write_uint32(self, value: int) -> None:
        self.write_uint(value, 32)

    def write_sint32(self, value: int) -> None:
        self.write_uint(value, 32)

    def write_float(self, value: float) -> None:
        self.write_uint(int.from_bytes(struct.pack("<f", value), "little"), 32)

    def write_varuint32(self, value: int) -> None:
        value &= 0xFFFFFFFF
        while value >= 0x80:
            self.write_uint((value & 0x7F) | 0x80, 8)
            value >>= 7
        self.write_uint(value, 8)

    def write_cstring(self, text: Union[str, bytes]) -> None:
        raw = _encode(text) + b"\x00"
        self.write_uint(int.from_bytes(raw, "little"), len(raw) * 8)

    def write_bytes(self, data: bytes, bits: int) -> None:
        """Write the first ``bits`` bits of ``data``."""
        needed = (bits + 7) >> 3
        if needed > len(data):
            raise ValueError(f"{bits} bits requested from {len(data)} bytes")
        self.write_uint(int.from_bytes(data[:needed], "little"), bits)

    def write_bitvector(self, vector: BitAngleVector) -> None:
        self.write_uint(vector.x, vector.bits)
        self.write_uint(vector.y, vector.bits)
        self.write_uint(vector.z, vector.bits)

    def _write_coord(self, coord: BitCoord) -> None:
        self.write_bit(coord.has_int)
        self.write_bit(coord.has_frac)
        if coord.has_int or coord.has_frac:
            self.write_bit(coord.sign)
            if coord.has_int:
                self.write_uint(coord.int_value, COORD_INTEGER_BITS)
            if coord.has_frac:
                self.write_uint(coord.frac_value, COORD_FRACTIONAL_BITS)

    def write_coordvector(self, vector: CoordVector) -> None:
        components = (vector.x, vector.y, vector.z)
        for coord in components:
            self.write_bit(coord.exists)
        for coord in components:
            if coord.exists:
                self._write_coord(coord)

    def write_bitstream(self, reader: BitReader) -> None:
        """Write the unread bits of ``reader``; the reader is left untouched."""
        copy = BitReader(reader.data, reader.bitsize)
        copy.bitoffset = reader.bitoffset
        bits = copy.bits_left()
        self.write_uint(copy.read_uint(bits), bits)

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)