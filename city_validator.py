#!/usr/bin/env python3
"""
TheoTown City Save Editor - Validator
=====================================

Checks city data before it is written back to disk.

Errors block the save; warnings are reported and the save proceeds.

| Check                               | Result  |
|-------------------------------------|---------|
| Missing header / empty body         | error   |
| Empty or over-long city name        | error   |
| Money/rank/supplies outside limits  | error   |
| Money above estate_warn_above       | warning |
| Unknown gamemode (header or binary) | warning |
| GAMEMODE not found in binary        | warning |
| Table field occurs more than once   | warning |
| Field bytes cannot be decoded       | error   |
| Field has an unexpected type tag    | warning |
"""

import math
from typing import Dict, Optional

from city_errors import DecodeError
from city_field_locator import FieldDescriptor, count_field_occurrences
from city_fields import ESTATE_MAX_INT, GAMEMODES, FieldConfig


CRITICAL_FIELDS = ('GAMEMODE',)


def constraints(config: FieldConfig) -> dict:
    """Per-field limits derived from the config"""
    return {
        'ESTATE': {'min': 0, 'max': ESTATE_MAX_INT,
                   'warn_above': config.estate_warn_above, 'name': 'Money (Estate)'},
        'RANK': {'min': 0, 'max': config.rank_max, 'name': 'Rank Level'},
        'DSA_SUPPLIES': {'min': 0, 'max': config.supplies_max, 'name': 'DSA Supplies'},
        'NAME': {'min_length': 1, 'max_length': config.string_max_length, 'name': 'City Name'},
    }


def check_numeric_field(key: str, value, config: FieldConfig = None) -> dict:
    """
    Check one numeric value against its limits.

    Returns:
        {} when fine, otherwise a dict with 'error' or 'warning'
    """
    config = config if config is not None else FieldConfig()
    constraint = constraints(config).get(key)
    if constraint is None or 'max' not in constraint:
        return {}

    display_name = constraint['name']
    if isinstance(value, bool) or not isinstance(value, (int, float)) or \
            (isinstance(value, float) and not math.isfinite(value)):
        return {'error': f"{display_name}: Invalid number value"}

    if value < constraint['min']:
        return {'error': f"{display_name}: Value {value} is below minimum ({constraint['min']})"}
    if value > constraint['max']:
        return {'error': f"{display_name}: Value {value} exceeds maximum ({constraint['max']})"}
    warn_above = constraint.get('warn_above')
    if warn_above is not None and value > warn_above:
        return {'warning': f"{display_name}: High value ({value:,}) may cause game issues"}
    return {}


def quick_check(key: str, value, config: FieldConfig = None) -> dict:
    """
    Single-field check for input as typed by a user.

    Returns:
        {'valid': bool, 'message': str}
    """
    config = config if config is not None else FieldConfig()
    constraint = constraints(config).get(key)
    if constraint is None:
        return {'valid': True, 'message': ''}

    if key == 'NAME':
        if value is None or len(str(value).strip()) < constraint['min_length']:
            return {'valid': False, 'message': 'Name cannot be empty'}
        if len(str(value).encode('utf-8')) > constraint['max_length']:
            return {'valid': False, 'message': f"Max {constraint['max_length']} bytes"}
        return {'valid': True, 'message': ''}

    try:
        number = float(value)
    except (TypeError, ValueError):
        return {'valid': False, 'message': 'Must be a number'}
    if not math.isfinite(number):
        return {'valid': False, 'message': 'Must be a number'}
    if number < constraint['min']:
        return {'valid': False, 'message': f"Min: {constraint['min']}"}
    if number > constraint['max']:
        return {'valid': False, 'message': f"Max: {constraint['max']:,}"}
    return {'valid': True, 'message': ''}


def check_binary_integrity(data: bytes, fields: Optional[Dict[str, Optional[FieldDescriptor]]],
                           config: FieldConfig) -> list:
    """Warnings about missing critical fields and duplicated field names."""
    warnings = []
    if fields is None:
        return ['Could not verify binary field locations']

    missing = [key for key in CRITICAL_FIELDS if fields.get(key) is None]
    if missing:
        warnings.append(f"Some fields not found in binary: {', '.join(missing)}")

    for key, name in config.field_names:
        if fields.get(key) is None:
            continue
        count = count_field_occurrences(data, name)
        if count > 1:
            warnings.append(
                f"Field '{name}' occurs {count} times in binary; only the first occurrence is edited")
    return warnings


def validate(header: Optional[dict], body: Optional[bytes],
             fields: Optional[Dict[str, Optional[FieldDescriptor]]],
             values: Optional[Dict[str, object]],
             config: FieldConfig = None,
             field_errors: Optional[Dict[str, Exception]] = None) -> dict:
    """
    Validate a city before saving.

    Args:
        header: Parsed JSON header
        body: Decompressed binary body
        fields: Descriptors from CityFields.find_all
        values: Decoded binary values keyed like fields (None when absent)
        config: Limits to check against
        field_errors: Exceptions raised while reading fields, keyed like fields.
            Undecodable bytes are errors, an unexpected tag is a warning.

    Returns:
        {'valid': bool, 'errors': [...], 'warnings': [...]}
    """
    config = config if config is not None else FieldConfig()
    errors = []
    warnings = []

    if not isinstance(header, dict):
        errors.append('Invalid city data structure')
        return {'valid': False, 'errors': errors, 'warnings': warnings}
    if not body:
        errors.append('Missing or empty binary data')
        return {'valid': False, 'errors': errors, 'warnings': warnings}

    name = header.get('name')
    if not isinstance(name, str) or not name.strip():
        errors.append('City name cannot be empty')
    elif len(name.encode('utf-8')) > config.string_max_length:
        errors.append(f"City name too long (max {config.string_max_length} UTF-8 bytes)")

    gamemode = header.get('gamemode')
    if gamemode and gamemode not in GAMEMODES:
        warnings.append(f'Unknown gamemode "{gamemode}" - may cause issues')

    values = values or {}
    binary_gamemode = values.get('GAMEMODE')
    if binary_gamemode is not None and binary_gamemode not in GAMEMODES and binary_gamemode != gamemode:
        warnings.append(f'Unknown binary gamemode "{binary_gamemode}" - may cause issues')

    for key in ('ESTATE', 'RANK', 'DSA_SUPPLIES'):
        value = values.get(key)
        if value is None:
            continue
        result = check_numeric_field(key, value, config)
        if 'error' in result:
            errors.append(result['error'])
        if 'warning' in result:
            warnings.append(result['warning'])

    for key, error in (field_errors or {}).items():
        message = f"{key}: {error}"
        if isinstance(error, DecodeError):
            errors.append(message)
        else:
            warnings.append(message)

    warnings.extend(check_binary_integrity(body, fields, config))

    return {
        'valid': len(errors) == 0,
        'errors': errors,
        'warnings': warnings,
    }
