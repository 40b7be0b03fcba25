import random
import struct

import pytest

from demogobbler.bitio import (
    BitAngleVector,
    BitCoord,
    BitReader,
    BitstreamOverflowError,
    BitWriter,
    CoordVector,
)


def _read_unsigned(num, bits, offset):
    data = ((num << offset) & (2**64 - 1)).to_bytes(8, "little")
    reader = BitReader(data, 64)
    leading = reader.read_uint(offset) if offset else 0
    return leading, reader.read_uint(bits)


@pytest.mark.parametrize(
    "num, bits, offset",
    [(1, 64, 0), (1, 32, 0), (1, 32, 1), (128, 32, 1), (1, 5, 0)],
)
def test_unsigned_reads(num, bits, offset):
    assert _read_unsigned(num, bits, offset) == (0, num)


@pytest.mark.parametrize("num", [-2147483648, 0, 2147483647])
def test_signed64_reads(num):
    data = struct.pack("<q", num) + bytes(8)
    reader = BitReader(data, 16 * 8)
    assert reader.read_sint(64) == num


def test_aligned_cstring():
    text = "this is a wonderful string."
    raw = text.encode() + b"\x00"
    reader = BitReader(raw, len(raw) * 8)
    assert reader.read_cstring(80) == text
    assert reader.bits_left() == 0


def test_cstring_truncated_by_max_length():
    reader = BitReader(b"abcdef\x00")
    assert reader.read_cstring(3) == "abc"
    assert reader.bitoffset == 24


def test_bit_round_trip():
    rng = random.Random(0)
    values = [rng.random() < 0.5 for _ in range(8192)]
    writer = BitWriter()
    for value in values:
        writer.write_bit(value)
    reader = BitReader(writer.to_bytes(), 8192)
    assert [reader.read_bit() for _ in range(8192)] == values


def test_bits_round_trip():
    rng = random.Random(0)
    total = 32768
    items = []
    used = 0
    while True:
        bits = rng.randrange(8) + 1
        used += bits
        if used > total:
            break
        items.append((bits, rng.randrange(1 << bits)))
    writer = BitWriter()
    for bits, value in items:
        writer.write_bytes(value.to_bytes(8, "little"), bits)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert [reader.read_uint(bits) for bits, _ in items] == [v for _, v in items]


def test_varuint_round_trip():
    rng = random.Random(0)
    values = [rng.randrange(1 << 30) for _ in range(1000)]
    writer = BitWriter()
    for value in values:
        writer.write_varuint32(value)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert [reader.read_varuint32() for _ in values] == values


def test_varuint_encoding_is_fixed():
    writer = BitWriter()
    writer.write_varuint32(300)
    assert writer.to_bytes() == b"\xac\x02"


def test_bitvector_round_trip():
    rng = random.Random(0)
    vectors = []
    used = 0
    while True:
        bits = rng.randrange(31) + 1
        used += bits * 3
        if used > 100000:
            break
        vectors.append(
            BitAngleVector(
                rng.randrange(1 << bits), rng.randrange(1 << bits), rng.randrange(1 << bits), bits
            )
        )
    writer = BitWriter()
    for vec in vectors:
        writer.write_bitvector(vec)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert [reader.read_bitvector(vec.bits) for vec in vectors] == vectors


def _random_coord(rng):
    if rng.randrange(3) == 0:
        return BitCoord()
    has_frac = rng.randrange(3) != 0
    has_int = rng.randrange(3) != 0
    return BitCoord(
        exists=True,
        has_int=has_int,
        has_frac=has_frac,
        sign=(has_int or has_frac) and rng.random() < 0.5,
        int_value=rng.randrange(1 << 14) if has_int else 0,
        frac_value=rng.randrange(1 << 5) if has_frac else 0,
    )


def test_coordvector_round_trip():
    rng = random.Random(0)
    vectors = [
        CoordVector(_random_coord(rng), _random_coord(rng), _random_coord(rng))
        for _ in range(100)
    ]
    writer = BitWriter()
    for vec in vectors:
        writer.write_coordvector(vec)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert [reader.read_coordvector() for _ in vectors] == vectors
    assert reader.bits_left() == 0


def test_uint_round_trip():
    writer = BitWriter()
    writer.write_uint(0b10101, 5)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert reader.read_uint(5) == 0b10101


def test_sint_round_trip():
    writer = BitWriter()
    writer.write_sint(-1, 5)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert reader.read_sint(5) == -1


def test_sint32_round_trip():
    writer = BitWriter()
    writer.write_sint32(-1)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert reader.read_sint32() == -1


def test_cstring_round_trip():
    text = "The quick brown fox something something something."
    writer = BitWriter()
    writer.write_bit(True)
    writer.write_cstring(text)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert reader.read_bit() is True
    assert reader.read_cstring(80) == text


def test_uint32_round_trip():
    writer = BitWriter()
    writer.write_uint32(0b101010)
    reader = BitReader(writer.to_bytes(), writer.bitoffset)
    assert reader.read_uint32() == 0b101010


def test_bitstream_copy():
    size = 1024
    data = bytes(i % 256 for i in range(size))
    source = BitReader(data, size * 8 - 31)
    writer = BitWriter()
    writer.write_bitstream(source)
    assert writer.bitoffset == size * 8 - 31
    assert source.bitoffset == 0
    copy = BitReader(writer.to_bytes(), writer.bitoffset)
    assert copy.read_uint(copy.bitsize) == source.read_uint(source.bitsize)


def test_bitstream_copy_from_unaligned_offset():
    source = BitReader(b"\xff\x0f", 16)
    source.advance(3)
    writer = BitWriter()
    writer.write_bit(False)
    writer.write_bitstream(source)
    assert writer.bitoffset == 14
    assert writer.to_bytes() == b"\xfe\x03"


def test_bit_order_is_lsb_first():
    writer = BitWriter()
    writer.write_bit(True)
    writer.write_uint(0, 3)
    writer.write_uint(0b1111, 4)
    assert writer.to_bytes() == b"\xf1"


def test_float_encoding():
    writer = BitWriter()
    writer.write_float(1.5)
    assert writer.to_bytes() == b"\x00\x00\xc0\x3f"
    assert BitReader(writer.to_bytes()).read_float() == 1.5


def test_fixed_string():
    reader = BitReader(b"abcd\x00")
    assert reader.read_fixed_string(4) == b"abcd"
    assert reader.bits_left() == 8


def test_fork_and_advance():
    reader = BitReader(b"\x12\x34\x56")
    reader.advance(4)
    fork = reader.fork_and_advance(12)
    assert reader.bitoffset == 16
    assert fork.bits_left() == 12
    assert fork.read_uint(12) == 0x341


def test_overflow_on_read():
    reader = BitReader(b"\x01", 5)
    reader.read_uint(4)
    with pytest.raises(BitstreamOverflowError):
        reader.read_uint(2)


def test_overflow_on_fork():
    reader = BitReader(b"\x01\x02")
    with pytest.raises(BitstreamOverflowError):
        reader.fork_and_advance(17)


def test_unterminated_cstring_overflows():
    reader = BitReader(b"abc")
    with pytest.raises(BitstreamOverflowError):
        reader.read_cstring()


def test_bitsize_larger_than_data_rejected():
    with pytest.raises(ValueError):
        BitReader(b"\x00", 9)


def test_write_bytes_too_short_rejected():
    with pytest.raises(ValueError):
        BitWriter().write_bytes(b"\x00", 9)