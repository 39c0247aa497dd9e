from city_errors import FieldTypeMismatch, UnsupportedTag
from city_fields import CityFields, FieldConfig
from city_validator import check_numeric_field, quick_check, validate

from conftest import field_bytes, make_body, string_value


def run(header, body, config=None):
    codec = CityFields(config)
    fields = codec.find_all(body)
    values = codec.read_all(body, fields)
    return validate(header, body, fields, values, codec.config)


def test_clean_city_is_valid(header):
    result = run(header, make_body())
    assert result == {'valid': True, 'errors': [], 'warnings': []}


def test_missing_structure():
    assert validate(None, b'x', {}, {})['errors'] == ['Invalid city data structure']
    assert validate({'name': 'a'}, b'', {}, {})['errors'] == ['Missing or empty binary data']


def test_empty_and_long_names(header):
    header['name'] = '   '
    assert 'City name cannot be empty' in run(header, make_body())['errors']
    header['name'] = 'x' * 300
    result = run(header, make_body())
    assert not result['valid']
    assert 'too long' in result['errors'][0]


def test_unknown_gamemode_warns(header):
    header['gamemode'] = 'NIGHTMARE'
    result = run(header, make_body(gamemode='NIGHTMARE'))
    assert result['valid']
    assert any('NIGHTMARE' in w for w in result['warnings'])


def test_binary_range_errors(header):
    config = FieldConfig(rank_max=10)
    result = run(header, make_body(rank=20), config)
    assert not result['valid']
    assert 'Rank Level: Value 20 exceeds maximum (10)' in result['errors']


def test_high_money_warns(header):
    result = run(header, make_body(estate=2000000000.0))
    assert result['valid']
    assert any('High value' in w for w in result['warnings'])


def test_missing_gamemode_warns(header):
    body = bytearray(b'\x00' * 4 + field_bytes('uber', 0x12) + b'\x00' * 4)
    result = run(header, body)
    assert 'Some fields not found in binary: GAMEMODE' in result['warnings']


def test_duplicate_field_warns(header):
    body = make_body() + field_bytes('estate', 0x07, b'\x00' * 8) + b'\x00' * 4
    result = run(header, body)
    assert any("'estate' occurs 2 times" in w for w in result['warnings'])


def test_check_numeric_field():
    assert check_numeric_field('ESTATE', 10) == {}
    assert 'error' in check_numeric_field('ESTATE', -1)
    assert 'error' in check_numeric_field('ESTATE', 3000000000)
    assert 'error' in check_numeric_field('RANK', float('nan'))
    assert check_numeric_field('UBER', True) == {}


def test_quick_check():
    assert quick_check('NAME', 'Rome')['valid']
    assert quick_check('NAME', ' ') == {'valid': False, 'message': 'Name cannot be empty'}
    assert quick_check('RANK', 'abc') == {'valid': False, 'message': 'Must be a number'}
    assert quick_check('RANK', '65') == {'valid': False, 'message': 'Max: 64'}
    assert quick_check('DSA_SUPPLIES', -1) == {'valid': False, 'message': 'Min: 0'}
    assert quick_check('GAMEMODE', 'anything')['valid']


def test_name_length_counts_utf8_bytes(header):
    # 200 characters, 400 bytes
    header['name'] = 'é' * 200
    result = run(header, make_body())
    assert not result['valid']
    assert 'UTF-8 bytes' in result['errors'][0]
    assert quick_check('NAME', 'é' * 200) == {'valid': False, 'message': 'Max 255 bytes'}
    assert quick_check('NAME', 'é' * 127)['valid']


def test_field_errors_are_reported(header):
    body = make_body()
    codec = CityFields()
    fields = codec.find_all(body)
    field_errors = {
        'ESTATE': UnsupportedTag(0x09, fields['ESTATE'].type_offset),
        'RANK': FieldTypeMismatch("'rank lvl' has tag STRING"),
    }
    result = validate(header, body, fields, {}, codec.config, field_errors=field_errors)
    assert not result['valid']
    assert result['errors'] == [f"ESTATE: {field_errors['ESTATE']}"]
    assert "RANK: 'rank lvl' has tag STRING" in result['warnings']
