import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'tools'))

from city_pack import pack_city, validate_city_file  # noqa: E402
from city_unpack import describe_field, unpack_city  # noqa: E402

from conftest import make_body  # noqa: E402


def test_unpack_then_pack(tmp_path, city_bytes, header, body):
    src = tmp_path / 'Alfa.city'
    src.write_bytes(city_bytes)

    result = unpack_city(str(src), str(tmp_path / 'out'))
    assert result['success']
    assert result['body_size'] == len(body)
    with open(result['header_path'], encoding='utf-8') as f:
        assert json.load(f) == header

    packed = tmp_path / 'packed.city'
    info = pack_city(result['header_path'], result['body_path'], str(packed))
    assert packed.read_bytes() == city_bytes
    assert validate_city_file(str(packed), info['header'], info['body'])['valid']


def test_pack_with_touch(tmp_path, header, body):
    header_path = tmp_path / 'h.json'
    header_path.write_text(json.dumps(header), encoding='utf-8')
    body_path = tmp_path / 'b.bin'
    body_path.write_bytes(bytes(body))

    info = pack_city(str(header_path), str(body_path), str(tmp_path / 'x.city'), touch=True)
    assert info['header']['save counter'] == 8


def test_validate_detects_mismatch(tmp_path, city_bytes, header):
    path = tmp_path / 'Alfa.city'
    path.write_bytes(city_bytes)
    result = validate_city_file(str(path), header, bytes(make_body(rank=13)))
    assert not result['valid']
    assert result['header_matches']
    assert not result['body_matches']


def test_unpack_errors(tmp_path):
    assert not unpack_city(str(tmp_path / 'missing.city'))['success']
    bad = tmp_path / 'bad.city'
    bad.write_bytes(b'\x00\x02{}garbage')
    result = unpack_city(str(bad))
    assert not result['success']
    assert 'decompressing' in result['error']


def test_describe_field(body):
    assert 'INT16' in describe_field(body, 'rank lvl')
    assert "'NORMAL'" in describe_field(body, 'gamemode')
    assert 'not present' in describe_field(body, 'population')
