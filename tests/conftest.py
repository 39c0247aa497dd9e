import struct

import pytest

from city_container import build_city


def field_bytes(name: str, tag: int, value: bytes = b'') -> bytes:
    """[len][name][tag][value] as stored in a city body"""
    raw = name.encode('ascii')
    return bytes([len(raw)]) + raw + bytes([tag]) + value


def string_value(text: str) -> bytes:
    raw = text.encode('utf-8')
    return struct.pack('>H', len(raw)) + raw


def make_body(estate_tag=0x07, estate=250000.0, rank_tag=0x0E, rank=12,
              uber=False, gamemode='NORMAL', supplies=1200, name='Alfa') -> bytearray:
    """A body holding every table field with filler between them."""
    if estate_tag in (0x07, 0x10):
        estate_value = struct.pack('>d', estate)
    else:
        estate_value = struct.pack('>i', estate)
    rank_value = struct.pack('>H', rank) if rank_tag == 0x0E else struct.pack('>B', rank)

    body = bytearray(b'\x00' * 16)
    body += field_bytes('name', 0x16, string_value(name))
    body += b'\x00' * 8
    body += field_bytes('estate', estate_tag, estate_value)
    body += b'\x00' * 8
    body += field_bytes('rank lvl', rank_tag, rank_value)
    body += b'\x00' * 8
    body += field_bytes('uber', 0x11 if uber else 0x12)
    body += b'\x00' * 8
    body += field_bytes('gamemode', 0x16, string_value(gamemode))
    body += b'\x00' * 8
    body += field_bytes('_dsarocketprocentage', 0x0E, struct.pack('>H', supplies))
    body += b'\x00' * 16
    return body


@pytest.fixture
def body() -> bytearray:
    return make_body()


@pytest.fixture
def header() -> dict:
    return {
        'name': 'Alfa',
        'width': 128,
        'height': 128,
        'gamemode': 'NORMAL',
        'version': '1.12.34',
        'money': 250000,
        'rank lvl': 12,
        'uber': False,
        'habitants': 4200,
        'save counter': 7,
        'last modified': 1700000000000,
        'info': {'playtime': 3600},
    }


@pytest.fixture
def city_bytes(header, body) -> bytes:
    return build_city(header, body)
