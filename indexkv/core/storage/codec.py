import math
import struct
from datetime import date, datetime, timedelta, timezone
from typing import Any

from indexkv.core.errors import CorruptEncoding, UnsupportedKeyType

Key = int | float | str | date | datetime | tuple | list
"""
Application-level key: a number, a text, a date or datetime, or an
array (tuple or list) of keys nested arbitrarily.
"""


class KeyCodec:
    """
    Order-preserving codec between application keys and the byte
    strings stored in the backend.

    For any two supported keys k1 and k2, comparing encode(k1) with
    encode(k2) as raw bytes gives the same answer as comparing k1 with
    k2 under the cross-type total order:

        numbers < texts < dates < arrays

    Every encoding starts with a one-byte type tag, so keys of different
    types never need a native comparison to be ordered.

    Grammar:
        number    = 0x10 double remainder
        double    = nearest IEEE-754 binary64, big-endian, sign bit flipped
                    for positive values, all bits inverted for negative ones
        remainder = 0x02                          exact
                  | 0x03 len magnitude            integer above the double
                  | 0x01 (0xFF - len) ~magnitude  integer below the double
        text      = 0x20 utf8 0x00                NUL escaped as 0x00 0xFF
        date      = 0x30 double remainder variant microseconds since epoch
        array     = 0x40 key* 0x00

    The remainder keeps integers that do not fit a double exact, so that
    1, 1.0 and 2**80 + 1 all order correctly against each other. Numbers
    compare by value: 1 and 1.0 share the same encoding and integral
    values decode as int.

    This layout is the on-disk key format: changing a tag or a marker
    makes existing stores unreadable.
    """
    END = 0x00
    ESCAPE = 0xFF

    NUMBER = 0x10
    TEXT = 0x20
    DATE = 0x30
    ARRAY = 0x40

    BELOW = 0x01
    EXACT = 0x02
    ABOVE = 0x03

    DATE_ONLY = 0x01
    NAIVE_DATETIME = 0x02
    AWARE_DATETIME = 0x03

    SIGN_BIT: int = 1 << 63
    ALL_BITS: int = (1 << 64) - 1
    DAY_MICROS: int = 86_400_000_000

    EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
    NAIVE_EPOCH = datetime(1970, 1, 1)
    EPOCH_DATE = date(1970, 1, 1)
    MICROSECOND = timedelta(microseconds=1)

    @classmethod
    def encode(cls, key: Key) -> bytes:
        out = bytearray()
        cls._write(out, key, key)
        return bytes(out)

    @classmethod
    def decode(cls, data: bytes) -> Any:
        data = bytes(data)
        if not data:
            raise CorruptEncoding(data, 0, "empty key")

        key, pos = cls._read(data, 0)
        if pos != len(data):
            raise CorruptEncoding(data, pos, "trailing bytes after key")

        return key

    @classmethod
    def _write(cls, out: bytearray, value: Any, root: Any) -> None:
        # bool is an int subclass but True == 1 would make it ambiguous
        if isinstance(value, bool):
            raise UnsupportedKeyType(root, "booleans cannot be used as keys")

        if isinstance(value, (int, float)):
            out.append(cls.NUMBER)
            out += cls._number_body(value, root)
        elif isinstance(value, str):
            try:
                raw = value.encode("utf-8")
            except UnicodeEncodeError as ex:
                raise UnsupportedKeyType(root, "text is not valid unicode") from ex
            out.append(cls.TEXT)
            out += raw.replace(b"\x00", b"\x00\xff")
            out.append(cls.END)
        elif isinstance(value, datetime):
            if value.utcoffset() is None:
                variant = cls.NAIVE_DATETIME
                micros = (value - cls.NAIVE_EPOCH) // cls.MICROSECOND
            else:
                variant = cls.AWARE_DATETIME
                micros = (value - cls.EPOCH) // cls.MICROSECOND
            out.append(cls.DATE)
            out += cls._number_body(micros, root)
            out.append(variant)
        elif isinstance(value, date):
            micros = (value - cls.EPOCH_DATE).days * cls.DAY_MICROS
            out.append(cls.DATE)
            out += cls._number_body(micros, root)
            out.append(cls.DATE_ONLY)
        elif isinstance(value, (tuple, list)):
            out.append(cls.ARRAY)
            for item in value:
                cls._write(out, item, root)
            out.append(cls.END)
        else:
            raise UnsupportedKeyType(
                root, f"type '{type(value).__name__}' is not supported"
            )

    @classmethod
    def _number_body(cls, value: int | float, root: Any) -> bytes:
        if isinstance(value, float):
            if math.isnan(value):
                raise UnsupportedKeyType(root, "NaN has no ordering")
            approx = value
            remainder = 0
        else:
            try:
                approx = float(value)
            except OverflowError as ex:
                raise UnsupportedKeyType(root, "integer is too large") from ex
            remainder = value - int(approx)

        if approx == 0.0:
            approx = 0.0    # -0.0 == 0.0

        bits = struct.unpack(">Q", struct.pack(">d", approx))[0]
        if bits & cls.SIGN_BIT:
            bits ^= cls.ALL_BITS
        else:
            bits |= cls.SIGN_BIT
        body = bits.to_bytes(8, "big")

        if remainder == 0:
            return body + bytes([cls.EXACT])

        size = (abs(remainder).bit_length() + 7) // 8
        magnitude = abs(remainder).to_bytes(size, "big")
        if remainder > 0:
            return body + bytes([cls.ABOVE, size]) + magnitude

        inverted = bytes(b ^ 0xFF for b in magnitude)
        return body + bytes([cls.BELOW, 0xFF - size]) + inverted

    @classmethod
    def _read(cls, data: bytes, pos: int) -> tuple[Any, int]:
        tag = data[pos]
        pos += 1

        if tag == cls.NUMBER:
            return cls._read_number(data, pos)

        if tag == cls.TEXT:
            return cls._read_text(data, pos)

        if tag == cls.DATE:
            return cls._read_date(data, pos)

        if tag == cls.ARRAY:
            items = []
            while True:
                if pos >= len(data):
                    raise CorruptEncoding(data, pos, "unterminated array")
                if data[pos] == cls.END:
                    return tuple(items), pos + 1
                item, pos = cls._read(data, pos)
                items.append(item)

        raise CorruptEncoding(data, pos - 1, f"unknown type tag 0x{tag:02x}")

    @classmethod
    def _read_number(cls, data: bytes, pos: int) -> tuple[int | float, int]:
        if pos + 9 > len(data):
            raise CorruptEncoding(data, pos, "truncated number")

        bits = int.from_bytes(data[pos:pos + 8], "big")
        if bits & cls.SIGN_BIT:
            bits ^= cls.SIGN_BIT
        else:
            bits ^= cls.ALL_BITS
        approx = struct.unpack(">d", bits.to_bytes(8, "big"))[0]
        if math.isnan(approx):
            raise CorruptEncoding(data, pos, "NaN is not a valid number")

        marker = data[pos + 8]
        pos += 9
        integral = math.isfinite(approx) and approx.is_integer()

        if marker == cls.EXACT:
            return (int(approx) if integral else approx), pos

        if marker not in (cls.ABOVE, cls.BELOW):
            raise CorruptEncoding(data, pos - 1, f"unknown number marker 0x{marker:02x}")

        if not integral:
            raise CorruptEncoding(data, pos - 1, "remainder on a non-integral number")

        if pos >= len(data):
            raise CorruptEncoding(data, pos, "truncated remainder")

        size = data[pos] if marker == cls.ABOVE else 0xFF - data[pos]
        pos += 1
        if size == 0 or pos + size > len(data):
            raise CorruptEncoding(data, pos - 1, "invalid remainder length")

        raw = data[pos:pos + size]
        if marker == cls.BELOW:
            raw = bytes(b ^ 0xFF for b in raw)
        if raw[0] == 0:
            raise CorruptEncoding(data, pos, "non-canonical remainder")

        magnitude = int.from_bytes(raw, "big")
        if marker == cls.BELOW:
            magnitude = -magnitude

        value = int(approx) + magnitude
        # the double must be the one the integer rounds to
        try:
            canonical = float(value) == approx
        except OverflowError:
            canonical = False
        if not canonical:
            raise CorruptEncoding(data, pos, "non-canonical remainder")

        return value, pos + size

    @classmethod
    def _read_text(cls, data: bytes, pos: int) -> tuple[str, int]:
        start = pos
        chunks: list[bytes] = []

        while True:
            end = data.find(b"\x00", pos)
            if end < 0:
                raise CorruptEncoding(data, start, "unterminated text")

            chunks.append(data[pos:end])
            if data[end + 1:end + 2] == b"\xff":
                chunks.append(b"\x00")
                pos = end + 2
            else:
                pos = end + 1
                break

        try:
            return b"".join(chunks).decode("utf-8"), pos
        except UnicodeDecodeError as ex:
            raise CorruptEncoding(data, start, f"invalid utf-8 text: {ex.reason}") from ex

    @classmethod
    def _read_date(cls, data: bytes, pos: int) -> tuple[date | datetime, int]:
        start = pos
        micros, pos = cls._read_number(data, pos)
        if not isinstance(micros, int):
            raise CorruptEncoding(data, start, "date instant is not an integer")

        if pos >= len(data):
            raise CorruptEncoding(data, pos, "missing date variant")

        variant = data[pos]
        pos += 1

        days, rest = divmod(micros, cls.DAY_MICROS)
        if variant == cls.DATE_ONLY and rest:
            raise CorruptEncoding(data, start, "date is not at midnight")

        try:
            if variant == cls.DATE_ONLY:
                return cls.EPOCH_DATE + timedelta(days=days), pos

            if variant == cls.NAIVE_DATETIME:
                return cls.NAIVE_EPOCH + micros * cls.MICROSECOND, pos

            if variant == cls.AWARE_DATETIME:
                return cls.EPOCH + micros * cls.MICROSECOND, pos
        except OverflowError as ex:
            raise CorruptEncoding(data, start, "date out of range") from ex

        raise CorruptEncoding(data, pos - 1, f"unknown date variant 0x{variant:02x}")
