#!/usr/bin/env python3
"""
TheoTown City Save Editor - Container Codec
===========================================

Splits and joins the .city envelope.

File Structure:
--------------
| Offset       | Size          | Content                          |
|--------------|---------------|----------------------------------|
| 0x0000       | 2 bytes       | Header length (uint16 BE)        |
| 0x0002       | header length | UTF-8 JSON header                |
| 2 + hdr_len  | rest of file  | gzip-compressed binary body      |

The JSON header mirrors a few values of the binary body (money, rank lvl,
uber, gamemode, name). Keeping the two in sync is the editor's job; this
module only frames bytes.
"""

import copy
import gzip
import json
import struct
import time
import zlib
from dataclasses import dataclass, field
from typing import Optional, Tuple

from city_errors import ContainerError


HEADER_LENGTH_FORMAT = '>H'
HEADER_LENGTH_SIZE = 2
HEADER_MAX_BYTES = 0xFFFF

GZIP_MAGIC = b'\x1f\x8b'


@dataclass
class CityFile:
    """Parsed .city file: JSON header + decompressed body"""
    header: dict
    body: bytearray
    original_header: dict = field(default=None, repr=False)
    original_body: bytes = field(default=None, repr=False)

    def __post_init__(self):
        if self.original_header is None:
            self.original_header = copy.deepcopy(self.header)
        if self.original_body is None:
            self.original_body = bytes(self.body)


# =============================================================================
# Compression
# =============================================================================

def decompress_body(payload: bytes) -> bytearray:
    """
    Decompress the binary body.

    gzip is what the game writes; a bare zlib stream is accepted as well.
    """
    try:
        if payload[:2] == GZIP_MAGIC:
            return bytearray(gzip.decompress(payload))
        return bytearray(zlib.decompress(payload))
    except (OSError, EOFError, zlib.error) as e:
        raise ContainerError(f"Error decompressing city body: {e}") from e


def compress_body(body: bytes) -> bytes:
    # mtime=0 keeps output reproducible for identical bodies
    return gzip.compress(bytes(body), mtime=0)


# =============================================================================
# Envelope
# =============================================================================

def split_container(data: bytes) -> Tuple[bytes, bytes]:
    """
    Split a .city file into raw header bytes and compressed payload.

    Returns:
        (header_bytes, payload)
    """
    if len(data) < HEADER_LENGTH_SIZE:
        raise ContainerError(f"File too short: {len(data)} bytes")

    (header_length,) = struct.unpack_from(HEADER_LENGTH_FORMAT, data, 0)
    header_end = HEADER_LENGTH_SIZE + header_length
    if header_end > len(data):
        raise ContainerError(
            f"Header length {header_length} runs past end of file ({len(data)} bytes)")

    return bytes(data[HEADER_LENGTH_SIZE:header_end]), bytes(data[header_end:])


def decode_header(header_bytes: bytes) -> dict:
    try:
        header = json.loads(header_bytes.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ContainerError(f"Invalid JSON header: {e}") from e
    if not isinstance(header, dict):
        raise ContainerError("JSON header is not an object")
    return header


def encode_header(header: dict) -> bytes:
    header_bytes = json.dumps(header, ensure_ascii=False, separators=(',', ':')).encode('utf-8')
    if len(header_bytes) > HEADER_MAX_BYTES:
        raise ContainerError(f"Header too long: {len(header_bytes)} bytes (max {HEADER_MAX_BYTES})")
    return header_bytes


def parse_city(data: bytes) -> CityFile:
    """
    Parse a complete .city file.

    Raises:
        ContainerError: bad length prefix, JSON or compressed body
    """
    header_bytes, payload = split_container(data)
    header = decode_header(header_bytes)
    body = decompress_body(payload)
    return CityFile(header=header, body=body)


def build_city(header: dict, body: bytes) -> bytes:
    """Frame header + gzip(body) into .city bytes."""
    header_bytes = encode_header(header)
    output = bytearray()
    output.extend(struct.pack(HEADER_LENGTH_FORMAT, len(header_bytes)))
    output.extend(header_bytes)
    output.extend(compress_body(body))
    return bytes(output)


def touch_header(header: dict, now_ms: Optional[int] = None) -> dict:
    """Stamp 'last modified' (epoch ms) and bump 'save counter', as the game does on save."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    header['last modified'] = now_ms
    header['save counter'] = (header.get('save counter') or 0) + 1
    return header


def file_info(header: dict) -> dict:
    """Summary of the header values shown by the tools"""
    info = header.get('info')
    playtime = info.get('playtime', 0) if isinstance(info, dict) else 0
    return {
        'name': header.get('name') or '(Unnamed)',
        'size': f"{header.get('width')}x{header.get('height')}",
        'gamemode': header.get('gamemode') or 'UNKNOWN',
        'version': header.get('version') or 'Unknown',
        'money': header.get('money') or 0,
        'population': header.get('habitants') or 0,
        'rank': header.get('rank lvl') or 0,
        'uber': header.get('uber') is True,
        'playtime': playtime or 0,
        'saves': header.get('save counter') or 0,
        'last_modified': header.get('last modified'),
    }
