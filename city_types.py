#!/usr/bin/env python3
"""
TheoTown City Save Editor - Type Codec
======================================

Decodes and encodes single scalar values of the binary field stream.

Every field in the decompressed body looks like:

    [name_len 1B] [name bytes] [type_tag 1B] [value bytes]

The type tag decides how many value bytes follow and how to read them.

Type Tags:
---------
| Tag  | Name          | Width               | Python value |
|------|---------------|---------------------|--------------|
| 0x07 | DOUBLE        | 8 bytes BE IEEE-754 | float        |
| 0x08 | INT32         | 4 bytes BE signed   | int          |
| 0x0E | INT16         | 2 bytes BE unsigned | int          |
| 0x0F | INT8          | 1 byte unsigned     | int          |
| 0x10 | DOUBLE_LEGACY | 8 bytes BE IEEE-754 | float        |
| 0x11 | BOOL_TRUE     | 0 bytes (tag only)  | True         |
| 0x12 | BOOL_FALSE    | 0 bytes (tag only)  | False        |
| 0x16 | STRING        | 2B BE length + UTF-8| str          |

Booleans are zero-width: the tag byte itself carries the value, so a boolean
write changes the tag rather than appending a value byte.
"""

import math
import struct
from enum import IntEnum

from city_errors import (
    DecodeError, FieldTypeMismatch, LengthOverflow, NotFinite, OutOfRange,
    TruncatedValue, UnsupportedTag,
)


# =============================================================================
# Type Tag Table
# =============================================================================

class FieldType(IntEnum):
    """Type tags of the binary field stream"""
    DOUBLE = 0x07
    INT32 = 0x08
    INT16 = 0x0E
    INT8 = 0x0F
    DOUBLE_LEGACY = 0x10
    BOOL_TRUE = 0x11
    BOOL_FALSE = 0x12
    STRING = 0x16


# struct format per fixed-width tag
STRUCT_FORMATS = {
    FieldType.DOUBLE: '>d',
    FieldType.INT32: '>i',
    FieldType.INT16: '>H',
    FieldType.INT8: '>B',
    FieldType.DOUBLE_LEGACY: '>d',
}

# Representable range per integer tag
INT_RANGES = {
    FieldType.INT32: (-0x80000000, 0x7FFFFFFF),
    FieldType.INT16: (0, 0xFFFF),
    FieldType.INT8: (0, 0xFF),
}

DOUBLE_TAGS = (FieldType.DOUBLE, FieldType.DOUBLE_LEGACY)
BOOL_TAGS = (FieldType.BOOL_TRUE, FieldType.BOOL_FALSE)

# String length prefix is a big-endian uint16
STRING_LENGTH_FORMAT = '>H'
STRING_LENGTH_SIZE = 2
STRING_MAX_BYTES = 0xFFFF

KNOWN_TAGS = frozenset(int(t) for t in FieldType)


# =============================================================================
# Tag Helpers
# =============================================================================

def is_known_tag(tag: int) -> bool:
    return tag in KNOWN_TAGS


def _check_tag(tag: int, offset: int = None) -> FieldType:
    if not is_known_tag(tag):
        raise UnsupportedTag(tag, offset)
    return FieldType(tag)


def type_name(tag: int) -> str:
    """
    Look up the display name of a type tag.

    Returns:
        Tag name, or hex representation if unknown
    """
    if is_known_tag(tag):
        return FieldType(tag).name
    return f"Unknown_0x{tag:02X}"


def is_zero_width(tag: int) -> bool:
    """True for tags whose value is the tag byte itself (booleans)"""
    return tag in BOOL_TAGS


def bool_tag(value: bool) -> FieldType:
    return FieldType.BOOL_TRUE if value else FieldType.BOOL_FALSE


def fixed_width(tag: int) -> int:
    """
    Width in bytes of a fixed-size value.

    Raises:
        UnsupportedTag: tag is unknown
        FieldTypeMismatch: tag is variable-width (STRING)
    """
    tag = _check_tag(tag)
    if tag in BOOL_TAGS:
        return 0
    if tag == FieldType.STRING:
        raise FieldTypeMismatch("STRING values have no fixed width")
    return struct.calcsize(STRUCT_FORMATS[tag])


def value_size(tag: int, data: bytes, offset: int = 0) -> int:
    """
    Number of value bytes stored at offset for the given tag, including the
    length prefix for strings.
    """
    tag = _check_tag(tag, offset)
    if tag != FieldType.STRING:
        return fixed_width(tag)
    _require(tag, data, offset, STRING_LENGTH_SIZE)
    (length,) = struct.unpack_from(STRING_LENGTH_FORMAT, data, offset)
    return STRING_LENGTH_SIZE + length


def _require(tag: int, data: bytes, offset: int, needed: int):
    available = max(0, len(data) - offset)
    if offset < 0 or available < needed:
        raise TruncatedValue(tag, offset, needed, available)


# =============================================================================
# Decode
# =============================================================================

def decode(tag: int, data: bytes, offset: int = 0):
    """
    Decode the value of a field.

    Args:
        tag: Type tag byte
        data: Buffer holding the value bytes
        offset: Start of the value bytes (ignored for booleans)

    Returns:
        float, int, bool or str depending on the tag

    Raises:
        UnsupportedTag, TruncatedValue, DecodeError
    """
    tag = _check_tag(tag, offset)

    if tag == FieldType.BOOL_TRUE:
        return True
    if tag == FieldType.BOOL_FALSE:
        return False

    if tag == FieldType.STRING:
        size = value_size(tag, data, offset)
        _require(tag, data, offset, size)
        raw = bytes(data[offset + STRING_LENGTH_SIZE:offset + size])
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid UTF-8 in string at offset 0x{offset:04X}: {e}") from e

    fmt = STRUCT_FORMATS[tag]
    _require(tag, data, offset, struct.calcsize(fmt))
    return struct.unpack_from(fmt, data, offset)[0]


# =============================================================================
# Encode
# =============================================================================

def encode(tag: int, value) -> bytes:
    """
    Encode a value into the wire bytes that follow the tag.

    Zero-width tags encode to b'' when value agrees with the tag.

    Raises:
        UnsupportedTag: unknown tag
        FieldTypeMismatch: value has the wrong Python type for the tag
        OutOfRange: integer outside the tag's range, or boolean/tag disagreement
        NotFinite: NaN/infinity for a double tag
        LengthOverflow: string longer than 65535 UTF-8 bytes
    """
    tag = _check_tag(tag)

    if tag in BOOL_TAGS:
        if not isinstance(value, bool):
            raise FieldTypeMismatch(f"{tag.name} expects a bool, got {type(value).__name__}")
        if bool_tag(value) != tag:
            raise OutOfRange(f"{value} cannot be stored under tag {tag.name}")
        return b''

    if tag == FieldType.STRING:
        if not isinstance(value, str):
            raise FieldTypeMismatch(f"STRING expects a str, got {type(value).__name__}")
        raw = value.encode('utf-8')
        if len(raw) > STRING_MAX_BYTES:
            raise LengthOverflow(len(raw), STRING_MAX_BYTES)
        return struct.pack(STRING_LENGTH_FORMAT, len(raw)) + raw

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FieldTypeMismatch(f"{tag.name} expects a number, got {type(value).__name__}")

    if tag in DOUBLE_TAGS:
        try:
            value = float(value)
        except OverflowError as e:
            raise OutOfRange(f"{tag.name} cannot hold {value}") from e
        if not math.isfinite(value):
            raise NotFinite(f"{tag.name} cannot hold non-finite value {value}")
        return struct.pack(STRUCT_FORMATS[tag], value)

    if isinstance(value, float):
        if not math.isfinite(value):
            raise NotFinite(f"{tag.name} cannot hold non-finite value {value}")
        if not value.is_integer():
            raise FieldTypeMismatch(f"{tag.name} expects an integer, got {value}")
        value = int(value)

    low, high = INT_RANGES[tag]
    if not low <= value <= high:
        raise OutOfRange(f"{tag.name} value {value} outside [{low}, {high}]")
    return struct.pack(STRUCT_FORMATS[tag], value)
