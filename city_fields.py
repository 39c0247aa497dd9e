#!/usr/bin/env python3
"""
TheoTown City Save Editor - Logical Fields
==========================================

Reads and writes the city values the editor cares about, on top of the
locator, type codec and patcher.

Field Table:
-----------
| Key          | Wire name              | Tags accepted        | Write policy            |
|--------------|------------------------|----------------------|-------------------------|
| ESTATE       | estate                 | 0x07, 0x10, 0x08     | >= 0, finite, int32 max |
| RANK         | rank lvl               | 0x0E, 0x0F           | clamp [0, rank_max]     |
| UBER         | uber                   | 0x11, 0x12           | tag toggle              |
| GAMEMODE     | gamemode               | 0x16                 | string rebuild          |
| DSA_SUPPLIES | _dsarocketprocentage   | 0x0E, 0x0F           | clamp [0, supplies_max] |
| NAME         | name                   | 0x16                 | string rebuild          |

Money and rank have been stored with different tags across game versions, so
every read/write branches on the tag actually present in the buffer.
"""

import json
import math
from dataclasses import dataclass, fields as dataclass_fields
from typing import Dict, Optional, Tuple

from city_errors import FieldTypeMismatch, NotFinite, OutOfRange, UnsupportedTag
from city_field_locator import FieldDescriptor, find_all_fields
from city_field_patcher import write_fixed, write_string
from city_types import (
    BOOL_TAGS, DOUBLE_TAGS, INT_RANGES, FieldType, decode, is_known_tag, type_name,
)


# =============================================================================
# Defaults
# =============================================================================

FIELD_NAMES = (
    ('ESTATE', 'estate'),
    ('RANK', 'rank lvl'),
    ('UBER', 'uber'),
    ('GAMEMODE', 'gamemode'),
    ('DSA_SUPPLIES', '_dsarocketprocentage'),
    ('NAME', 'name'),
)

GAMEMODES = ('EASY', 'NORMAL', 'HARD', 'SANDBOX')

MAX_RANK = 64
MAX_DSA_SUPPLIES = 32767
MAX_STRING_LENGTH = 255
ESTATE_WARN_ABOVE = 1000000000
ESTATE_MAX_INT = 0x7FFFFFFF

ESTATE_TAGS = DOUBLE_TAGS + (FieldType.INT32,)
SMALL_INT_TAGS = (FieldType.INT16, FieldType.INT8)


@dataclass(frozen=True)
class FieldConfig:
    """Immutable field table and limits"""
    field_names: Tuple[Tuple[str, str], ...] = FIELD_NAMES
    rank_max: int = MAX_RANK
    supplies_max: int = MAX_DSA_SUPPLIES
    string_max_length: int = MAX_STRING_LENGTH
    estate_warn_above: float = ESTATE_WARN_ABOVE

    def wire_name(self, key: str) -> str:
        for logical_key, name in self.field_names:
            if logical_key == key:
                return name
        raise KeyError(key)

    @classmethod
    def from_dict(cls, values: dict) -> 'FieldConfig':
        known = {f.name for f in dataclass_fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        values = dict(values)
        if 'field_names' in values:
            names = values['field_names']
            if isinstance(names, dict):
                names = names.items()
            values['field_names'] = tuple((str(k), str(v)) for k, v in names)
        return cls(**values)

    @classmethod
    def from_json(cls, path: str) -> 'FieldConfig':
        """Load overrides from a JSON object file, e.g. {"rank_max": 80}"""
        with open(path, 'r', encoding='utf-8') as f:
            values = json.load(f)
        if not isinstance(values, dict):
            raise ValueError(f"Config file must hold a JSON object: {path}")
        return cls.from_dict(values)


def _expect_tag(data: bytes, field: FieldDescriptor, allowed: tuple) -> int:
    tag = data[field.type_offset]
    if not is_known_tag(tag):
        raise UnsupportedTag(tag, field.type_offset)
    if tag not in allowed:
        expected = ', '.join(type_name(t) for t in allowed)
        raise FieldTypeMismatch(
            f"{field.name!r} has tag {type_name(tag)}, expected one of: {expected}")
    return tag


def _clamp_int(value, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FieldTypeMismatch(f"Expected a number, got {type(value).__name__}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise NotFinite(f"Cannot store non-finite value {value}")
        value = int(value)
    return max(low, min(high, value))


class CityFields:
    """Logical field access driven by a FieldConfig"""

    def __init__(self, config: FieldConfig = None):
        self.config = config if config is not None else FieldConfig()

    def find_all(self, data: bytes) -> Dict[str, Optional[FieldDescriptor]]:
        return find_all_fields(data, self.config.field_names)

    # -------------------------------------------------------------------------
    # Estate (money)
    # -------------------------------------------------------------------------

    def read_estate(self, data: bytes, field: FieldDescriptor):
        tag = _expect_tag(data, field, ESTATE_TAGS)
        return decode(tag, data, field.value_offset)

    def write_estate(self, data: bytearray, field: FieldDescriptor, value) -> None:
        """
        Write money. Negative values clamp to 0; an INT32 field rejects
        anything above 2147483647 with OutOfRange, a double field accepts it.
        """
        tag = _expect_tag(data, field, ESTATE_TAGS)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise FieldTypeMismatch(f"Money must be a number, got {type(value).__name__}")
        if isinstance(value, float) and not math.isfinite(value):
            raise NotFinite(f"Money cannot be {value}")

        if tag in DOUBLE_TAGS:
            try:
                value = max(0.0, float(value))
            except OverflowError as e:
                raise OutOfRange(f"Money is too large for {type_name(tag)}") from e
        else:
            value = max(0, int(value))
        write_fixed(data, field, value)

    # -------------------------------------------------------------------------
    # Rank / DSA supplies (small integers)
    # -------------------------------------------------------------------------

    def _write_small_int(self, data: bytearray, field: FieldDescriptor, value, cap: int) -> int:
        tag = _expect_tag(data, field, SMALL_INT_TAGS)
        high = min(cap, INT_RANGES[tag][1])
        value = _clamp_int(value, 0, high)
        write_fixed(data, field, value)
        return value

    def read_rank(self, data: bytes, field: FieldDescriptor) -> int:
        tag = _expect_tag(data, field, SMALL_INT_TAGS)
        return decode(tag, data, field.value_offset)

    def write_rank(self, data: bytearray, field: FieldDescriptor, value) -> int:
        """Clamp to [0, rank_max] and write; returns the value stored."""
        return self._write_small_int(data, field, value, self.config.rank_max)

    def read_supplies(self, data: bytes, field: FieldDescriptor) -> int:
        tag = _expect_tag(data, field, SMALL_INT_TAGS)
        return decode(tag, data, field.value_offset)

    def write_supplies(self, data: bytearray, field: FieldDescriptor, value) -> int:
        """Clamp to [0, supplies_max] and write; returns the value stored."""
        return self._write_small_int(data, field, value, self.config.supplies_max)

    # -------------------------------------------------------------------------
    # Uber mode
    # -------------------------------------------------------------------------

    def read_uber(self, data: bytes, field: FieldDescriptor) -> bool:
        # The live tag byte, so a toggle through this descriptor is visible
        tag = _expect_tag(data, field, BOOL_TAGS)
        return decode(tag, data, field.value_offset)

    def write_uber(self, data: bytearray, field: FieldDescriptor, value: bool) -> None:
        _expect_tag(data, field, BOOL_TAGS)
        write_fixed(data, field, bool(value))

    # -------------------------------------------------------------------------
    # Strings (gamemode, city name)
    # -------------------------------------------------------------------------

    def read_gamemode(self, data: bytes, field: FieldDescriptor) -> str:
        _expect_tag(data, field, (FieldType.STRING,))
        return decode(FieldType.STRING, data, field.value_offset)

    def write_gamemode(self, data: bytearray, field: FieldDescriptor, value: str) -> bytearray:
        """Unknown gamemodes are written as-is; the validator flags them."""
        return write_string(data, field, value, self.config.string_max_length)

    def read_name(self, data: bytes, field: FieldDescriptor) -> str:
        _expect_tag(data, field, (FieldType.STRING,))
        return decode(FieldType.STRING, data, field.value_offset)

    def write_name(self, data: bytearray, field: FieldDescriptor, value: str) -> bytearray:
        return write_string(data, field, value, self.config.string_max_length)

    # -------------------------------------------------------------------------

    def read_field(self, key: str, data: bytes, field: FieldDescriptor):
        """Read one logical field by key."""
        readers = {
            'ESTATE': self.read_estate,
            'RANK': self.read_rank,
            'UBER': self.read_uber,
            'GAMEMODE': self.read_gamemode,
            'DSA_SUPPLIES': self.read_supplies,
            'NAME': self.read_name,
        }
        if key not in readers:
            raise KeyError(f"No reader for field key {key!r}")
        return readers[key](data, field)

    def read_all(self, data: bytes, fields: Dict[str, Optional[FieldDescriptor]]) -> Dict[str, object]:
        """
        Read every located field; absent fields map to None.

        Decode errors propagate so a corrupted field is never shown as a default.
        """
        return {key: None if field is None else self.read_field(key, data, field)
                for key, field in fields.items()}
