#!/usr/bin/env python3
"""
TheoTown City Save Editor - Field Locator
=========================================

Finds named fields in the decompressed body of a .city file.

The body is an undelimited stream, so fields are located by pattern:

    [len(name) 1B] [name ASCII] [type_tag 1B] [value ...]
     ^name_offset               ^type_offset   ^value_offset

value_offset == type_offset for booleans (the tag is the value),
type_offset + 1 for everything else.

The first match in the buffer wins. Descriptors are only valid until the next
write that changes the buffer length; re-scan after every string write.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from city_errors import FieldNotFound
from city_types import is_zero_width, type_name


@dataclass(frozen=True)
class FieldDescriptor:
    """Byte offsets of one located field"""
    name: str
    name_offset: int
    type_offset: int
    type: int
    value_offset: int

    def __repr__(self):
        return (f"FieldDescriptor({self.name!r}, name=0x{self.name_offset:04X}, "
                f"type=0x{self.type_offset:04X} ({type_name(self.type)}), "
                f"value=0x{self.value_offset:04X})")


def _name_pattern(name: str) -> bytes:
    try:
        raw = name.encode('ascii')
    except UnicodeEncodeError as e:
        raise ValueError(f"Field name must be ASCII: {name!r}") from e
    if not 1 <= len(raw) <= 255:
        raise ValueError(f"Field name must be 1-255 bytes, got {len(raw)}")
    return bytes([len(raw)]) + raw


def _descriptor_at(data: bytes, name: str, name_offset: int, name_length: int) -> FieldDescriptor:
    type_offset = name_offset + 1 + name_length
    tag = data[type_offset]
    value_offset = type_offset if is_zero_width(tag) else type_offset + 1
    return FieldDescriptor(
        name=name,
        name_offset=name_offset,
        type_offset=type_offset,
        type=tag,
        value_offset=value_offset,
    )


def _iter_matches(data: bytes, name: str):
    pattern = _name_pattern(name)
    name_length = len(pattern) - 1
    # Leave room for the length prefix and the type tag after the name
    limit = len(data) - name_length - 2

    pos = data.find(pattern, 0)
    while pos != -1 and pos < limit:
        yield pos, name_length
        pos = data.find(pattern, pos + 1)


def find_field(data: bytes, name: str) -> Optional[FieldDescriptor]:
    """
    Find the first occurrence of a field.

    Args:
        data: Decompressed body
        name: Wire name (ASCII, 1-255 bytes)

    Returns:
        FieldDescriptor, or None if the field is not present
    """
    for pos, name_length in _iter_matches(data, name):
        return _descriptor_at(data, name, pos, name_length)
    return None


def require_field(data: bytes, name: str) -> FieldDescriptor:
    """Like find_field but raises FieldNotFound when absent."""
    field = find_field(data, name)
    if field is None:
        raise FieldNotFound(name)
    return field


def count_field_occurrences(data: bytes, name: str) -> int:
    """Number of places the name pattern matches (first one is authoritative)."""
    return sum(1 for _ in _iter_matches(data, name))


def find_all_fields(data: bytes, name_table: Iterable[Tuple[str, str]]) -> Dict[str, Optional[FieldDescriptor]]:
    """
    Locate every field of a name table.

    Args:
        data: Decompressed body
        name_table: (logical_key, wire_name) pairs

    Returns:
        Dict of logical_key -> FieldDescriptor, or None when absent
    """
    return {key: find_field(data, name) for key, name in name_table}
