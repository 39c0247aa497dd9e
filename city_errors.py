#!/usr/bin/env python3
"""
TheoTown City Save Editor - Error Types
=======================================

Every field operation either returns a concrete value or raises one of these.

Taxonomy:
---------
| Error              | Raised when                                          |
|--------------------|------------------------------------------------------|
| FieldNotFound      | Field name does not occur in the buffer              |
| UnsupportedTag     | Byte at the type offset is not a known type tag      |
| TruncatedValue     | Buffer ends before the value's bytes do              |
| FieldTypeMismatch  | Operation does not fit the field's actual tag        |
| OutOfRange         | Value cannot be represented by the wire type         |
| NotFinite          | NaN or infinity written to a double field            |
| LengthOverflow     | String too long for its length prefix / cap          |
| ContainerError     | Envelope (header length, JSON, gzip) is malformed    |
"""


class CityFieldError(Exception):
    """Base class for all binary field errors"""


class FieldNotFound(CityFieldError, LookupError):
    """Field absent from the buffer (save predates the feature)"""

    def __init__(self, name: str):
        super().__init__(f"Field not found: {name!r}")
        self.name = name


class DecodeError(CityFieldError, ValueError):
    """Bytes at a field's offsets cannot be decoded"""


class UnsupportedTag(DecodeError):
    def __init__(self, tag: int, offset: int = None):
        where = f" at offset 0x{offset:04X}" if offset is not None else ""
        super().__init__(f"Unsupported type tag 0x{tag:02X}{where}")
        self.tag = tag
        self.offset = offset


class TruncatedValue(DecodeError):
    def __init__(self, tag: int, offset: int, needed: int, available: int):
        super().__init__(
            f"Value for tag 0x{tag:02X} at offset 0x{offset:04X} needs {needed} bytes, "
            f"only {available} available")
        self.tag = tag
        self.offset = offset
        self.needed = needed
        self.available = available


class FieldTypeMismatch(CityFieldError, TypeError):
    """Caller asked for an operation the field's tag does not support"""


class EncodeError(CityFieldError, ValueError):
    """Value rejected before any bytes were written"""


class OutOfRange(EncodeError):
    pass


class NotFinite(EncodeError):
    pass


class LengthOverflow(EncodeError):
    def __init__(self, length: int, limit: int):
        super().__init__(f"Encoded length {length} exceeds limit {limit}")
        self.length = length
        self.limit = limit


class ContainerError(ValueError):
    """Malformed .city envelope"""
