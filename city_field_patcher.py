#!/usr/bin/env python3
"""
TheoTown City Save Editor - Field Patcher
=========================================

Rewrites the value of a located field.

Fixed-width values (numbers, booleans) are patched in place. Booleans change
the tag byte at type_offset, never a value byte.

Strings are stored as:

    [0x16] [length 2B BE] [UTF-8 bytes]

A string of the same byte length is overwritten in place and the same buffer
is returned. Any other length rebuilds the buffer:

    result = data[:value_offset] + new_length + new_bytes + data[old_end:]

Every descriptor located after the edit point is then shifted by
(new_length - old_length); callers must re-scan before touching other fields.
"""

import struct

from city_errors import FieldTypeMismatch, LengthOverflow, TruncatedValue
from city_field_locator import FieldDescriptor
from city_types import (
    BOOL_TAGS, STRING_LENGTH_FORMAT, STRING_LENGTH_SIZE, STRING_MAX_BYTES,
    FieldType, bool_tag, encode, fixed_width,
)


def write_fixed(data: bytearray, field: FieldDescriptor, value) -> None:
    """
    Overwrite a fixed-width field in place.

    Args:
        data: Decompressed body (modified in place)
        field: Descriptor from find_field
        value: New value, already clamped to the field's policy

    Raises:
        FieldTypeMismatch: field is a STRING, or value type does not fit
        EncodeError: value not representable by the tag
    """
    tag = data[field.type_offset]

    if tag in BOOL_TAGS:
        if not isinstance(value, bool):
            raise FieldTypeMismatch(f"{field.name!r} is boolean, got {type(value).__name__}")
        data[field.type_offset] = bool_tag(value)
        return

    if tag == FieldType.STRING:
        raise FieldTypeMismatch(f"{field.name!r} is a STRING, use write_string")

    width = fixed_width(tag)
    encoded = encode(tag, value)
    if field.value_offset + width > len(data):
        raise TruncatedValue(tag, field.value_offset, width, len(data) - field.value_offset)
    data[field.value_offset:field.value_offset + width] = encoded


def write_string(data: bytearray, field: FieldDescriptor, text: str,
                 max_length: int = STRING_MAX_BYTES) -> bytearray:
    """
    Replace a string field's value.

    Args:
        data: Decompressed body
        field: Descriptor from find_field
        text: New string
        max_length: Maximum UTF-8 byte length accepted (capped at 65535)

    Returns:
        The same buffer if the byte length is unchanged, otherwise a new
        buffer that replaces the caller's handle.

    Raises:
        FieldTypeMismatch: field is not a STRING or text is not a str
        LengthOverflow: text too long
        TruncatedValue: existing value runs past the end of the buffer
    """
    tag = data[field.type_offset]
    if tag != FieldType.STRING:
        raise FieldTypeMismatch(f"{field.name!r} is not a STRING (tag 0x{tag:02X})")
    if not isinstance(text, str):
        raise FieldTypeMismatch(f"{field.name!r} expects a str, got {type(text).__name__}")

    offset = field.value_offset
    if offset + STRING_LENGTH_SIZE > len(data):
        raise TruncatedValue(tag, offset, STRING_LENGTH_SIZE, len(data) - offset)
    (old_length,) = struct.unpack_from(STRING_LENGTH_FORMAT, data, offset)
    old_end = offset + STRING_LENGTH_SIZE + old_length
    if old_end > len(data):
        raise TruncatedValue(tag, offset, STRING_LENGTH_SIZE + old_length, len(data) - offset)

    new_bytes = text.encode('utf-8')
    limit = min(max_length, STRING_MAX_BYTES)
    if len(new_bytes) > limit:
        raise LengthOverflow(len(new_bytes), limit)

    if len(new_bytes) == old_length:
        data[offset + STRING_LENGTH_SIZE:old_end] = new_bytes
        return data

    result = bytearray()
    result.extend(data[:offset])
    result.extend(struct.pack(STRING_LENGTH_FORMAT, len(new_bytes)))
    result.extend(new_bytes)
    result.extend(data[old_end:])
    return result


def write_value(data: bytearray, field: FieldDescriptor, value, max_length: int = STRING_MAX_BYTES) -> bytearray:
    """Dispatch on the field's tag; always returns the buffer to keep using."""
    if data[field.type_offset] == FieldType.STRING:
        return write_string(data, field, value, max_length)
    write_fixed(data, field, value)
    return data
