import struct

import pytest

from city_errors import FieldTypeMismatch, LengthOverflow, OutOfRange, TruncatedValue
from city_field_locator import find_all_fields, find_field
from city_field_patcher import write_fixed, write_string, write_value
from city_fields import FIELD_NAMES
from city_types import decode

from conftest import field_bytes, make_body, string_value


def name_then_gamemode() -> bytearray:
    """'name' = "Foo" with its value at offset 50, 'gamemode' 10 bytes after it"""
    data = bytearray(b'\x00' * 44)
    data += field_bytes('name', 0x16, string_value('Foo'))
    data += b'\x00' * 10
    data += field_bytes('gamemode', 0x16, string_value('EASY'))
    data += b'\x00' * 8
    return data


def test_write_fixed_in_place():
    data = make_body()
    length = len(data)
    field = find_field(data, 'rank lvl')
    write_fixed(data, field, 40)
    assert len(data) == length
    assert decode(field.type, data, field.value_offset) == 40


def test_write_fixed_is_idempotent():
    data = make_body(estate_tag=0x08, estate=100)
    field = find_field(data, 'estate')
    write_fixed(data, field, 777)
    once = bytes(data)
    write_fixed(data, field, 777)
    assert bytes(data) == once


def test_write_fixed_boolean_changes_tag_only():
    data = make_body(uber=False)
    length = len(data)
    field = find_field(data, 'uber')
    write_fixed(data, field, True)
    assert data[field.type_offset] == 0x11
    assert len(data) == length
    assert find_field(data, 'uber').type == 0x11


def test_write_fixed_leaves_other_descriptors_valid():
    data = make_body()
    before = find_all_fields(data, FIELD_NAMES)
    write_fixed(data, before['ESTATE'], 99.5)
    write_fixed(data, before['UBER'], True)
    after = find_all_fields(data, FIELD_NAMES)
    for key in before:
        assert before[key].value_offset == after[key].value_offset


def test_write_fixed_rejects_strings_and_bad_values():
    data = make_body()
    with pytest.raises(FieldTypeMismatch):
        write_fixed(data, find_field(data, 'name'), 'Beta')
    with pytest.raises(FieldTypeMismatch):
        write_fixed(data, find_field(data, 'uber'), 1)
    with pytest.raises(OutOfRange):
        write_fixed(data, find_field(data, 'rank lvl'), 70000)


def test_write_fixed_truncated_value():
    data = bytearray(b'\x00' * 4 + field_bytes('estate', 0x07, b'\x00' * 8))
    field = find_field(data, 'estate')
    del data[-4:]
    with pytest.raises(TruncatedValue):
        write_fixed(data, field, 1.0)


def test_same_length_string_returns_same_buffer():
    data = make_body(name='Alfa')
    field = find_field(data, 'name')
    result = write_string(data, field, 'Beta')
    assert result is data
    assert struct.unpack_from('>H', data, field.value_offset)[0] == 4
    assert bytes(data[field.value_offset + 2:field.value_offset + 6]) == b'Beta'


def test_grow_string_shifts_following_fields():
    data = name_then_gamemode()
    name_field = find_field(data, 'name')
    assert name_field.value_offset == 50
    gamemode_before = find_field(data, 'gamemode')

    result = write_string(data, name_field, 'LongerFoo')

    assert result is not data
    assert len(result) == len(data) + 6
    gamemode_after = find_field(result, 'gamemode')
    assert gamemode_after.value_offset == gamemode_before.value_offset + 6
    assert decode(0x16, result, gamemode_after.value_offset) == 'EASY'
    assert decode(0x16, result, find_field(result, 'name').value_offset) == 'LongerFoo'


def test_shrink_string_offset_shift_law():
    data = make_body(name='Springfield')
    before = find_all_fields(data, FIELD_NAMES)
    edit_point = before['NAME'].value_offset
    result = write_string(data, before['NAME'], 'Oz')
    delta = len('Oz') - len('Springfield')
    after = find_all_fields(result, FIELD_NAMES)

    assert len(result) == len(data) + delta
    for key, field in before.items():
        if field.value_offset > edit_point:
            assert after[key].value_offset == field.value_offset + delta
            assert after[key].name_offset == field.name_offset + delta
        else:
            assert after[key] == field


def test_string_round_trip_after_rescan():
    data = make_body(gamemode='NORMAL')
    result = write_string(data, find_field(data, 'gamemode'), 'SANDBOX')
    field = find_field(result, 'gamemode')
    assert decode(field.type, result, field.value_offset) == 'SANDBOX'


def test_write_string_limits():
    data = make_body()
    field = find_field(data, 'name')
    with pytest.raises(LengthOverflow):
        write_string(data, field, 'x' * 256, max_length=255)
    with pytest.raises(LengthOverflow):
        write_string(data, field, 'x' * 65536, max_length=100000)


def test_write_string_type_mismatch():
    data = make_body()
    with pytest.raises(FieldTypeMismatch):
        write_string(data, find_field(data, 'estate'), 'lots')
    with pytest.raises(FieldTypeMismatch):
        write_string(data, find_field(data, 'name'), 42)


def test_write_value_dispatches():
    data = make_body()
    result = write_value(data, find_field(data, 'name'), 'Gamma City')
    assert len(result) == len(data) + 6
    same = write_value(result, find_field(result, 'rank lvl'), 3)
    assert same is result
