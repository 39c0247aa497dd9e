#!/usr/bin/env python3
"""
TheoTown City Save Editor
=========================

Edits money, rank, uber mode, difficulty, DSA supplies and the city name of a
TheoTown .city save.

Each value lives in two places:
  - the JSON header (money, rank lvl, uber, gamemode, name)
  - the gzip-compressed binary body (estate, rank lvl, uber, gamemode, name,
    _dsarocketprocentage)

Both are updated together. Binary fields that a save does not contain are
reported and skipped; older saves simply predate the feature.

String writes change the body length, so every field is re-located after
every edit.

Usage:
------
    python city_editor.py MyCity.city --info
    python city_editor.py MyCity.city --money 5000000 --rank 40 -o MyCity_edited.city
    python city_editor.py MyCity.city --name "New Rome" --gamemode SANDBOX --uber on
    python city_editor.py MyCity.city --info --json
"""

import argparse
import json
import os
import sys
from typing import Dict, Optional

from city_container import CityFile, build_city, file_info, parse_city, touch_header
from city_errors import CityFieldError, ContainerError
from city_field_locator import FieldDescriptor
from city_fields import CityFields, FieldConfig
from city_types import type_name
from city_validator import validate


class SaveBlocked(Exception):
    """Validation reported errors; the file was not written"""

    def __init__(self, result: dict):
        super().__init__('; '.join(result['errors']))
        self.result = result


class CityEditor:
    """Owns one loaded city: header, body buffer and its field descriptors."""

    def __init__(self, config: FieldConfig = None, verbose: bool = False):
        self.codec = CityFields(config)
        self.verbose = verbose
        self.city: Optional[CityFile] = None
        self.file_name: Optional[str] = None
        self.fields: Dict[str, Optional[FieldDescriptor]] = {}
        self.has_changes = False

    @property
    def config(self) -> FieldConfig:
        return self.codec.config

    # -------------------------------------------------------------------------
    # Load / save
    # -------------------------------------------------------------------------

    def load(self, path: str) -> dict:
        with open(path, 'rb') as f:
            data = f.read()
        return self.load_bytes(data, os.path.basename(path))

    def load_bytes(self, data: bytes, file_name: str = 'city.city') -> dict:
        self.city = parse_city(data)
        self.file_name = file_name
        self.has_changes = False
        self.rescan()
        if self.verbose:
            print(f"Loaded {file_name}: header {len(json.dumps(self.city.header))} chars, "
                  f"body {len(self.city.body)} bytes")
        return self.values()

    def save_bytes(self, touch: bool = True, force: bool = False) -> bytes:
        """
        Validate and serialize.

        Raises:
            SaveBlocked: validation found errors (unless force)
        """
        self._require_city()
        result = self.validate()
        if not result['valid'] and not force:
            raise SaveBlocked(result)
        if touch:
            touch_header(self.city.header)
        output = build_city(self.city.header, self.city.body)
        self.has_changes = False
        return output

    def save(self, path: str, touch: bool = True, force: bool = False) -> int:
        output = self.save_bytes(touch=touch, force=force)
        with open(path, 'wb') as f:
            f.write(output)
        return len(output)

    def reset(self):
        """Restore the header and body as they were loaded."""
        self._require_city()
        self.city.header = json.loads(json.dumps(self.city.original_header))
        self.city.body = bytearray(self.city.original_body)
        self.rescan()
        self.has_changes = False

    def rescan(self):
        self.fields = self.codec.find_all(self.city.body)
        if self.verbose:
            for key, field in self.fields.items():
                print(f"  {key:13s} {field if field is not None else 'not present'}")

    def _require_city(self):
        if self.city is None:
            raise RuntimeError("No city loaded")

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def _read_fields(self):
        """Decoded values and the exception of every field that failed to decode."""
        binary = {}
        failures = {}
        for key, field in self.fields.items():
            if field is None:
                binary[key] = None
                continue
            try:
                binary[key] = self.codec.read_field(key, self.city.body, field)
            except CityFieldError as e:
                binary[key] = None
                failures[key] = e
        return binary, failures

    def values(self) -> dict:
        """
        Decode every binary field.

        A field that fails to decode is reported under 'errors' and left as
        None in 'binary'; the other fields are still read.
        """
        self._require_city()
        binary, failures = self._read_fields()

        return {
            'file_name': self.file_name,
            'header': file_info(self.city.header),
            'binary': binary,
            'offsets': {key: None if field is None else field.value_offset
                        for key, field in self.fields.items()},
            'types': {key: None if field is None else type_name(field.type)
                      for key, field in self.fields.items()},
            'errors': {key: str(e) for key, e in failures.items()},
            'has_changes': self.has_changes,
        }

    def validate(self) -> dict:
        self._require_city()
        binary, failures = self._read_fields()
        return validate(self.city.header, self.city.body, self.fields, binary, self.config,
                        field_errors=failures)

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def _field(self, key: str) -> Optional[FieldDescriptor]:
        field = self.fields.get(key)
        if field is None:
            print(f"WARNING: '{self.config.wire_name(key)}' not present in this save, binary skipped")
        return field

    def set_money(self, value):
        self._require_city()
        field = self._field('ESTATE')
        if field is not None:
            self.codec.write_estate(self.city.body, field, value)
            stored = self.codec.read_estate(self.city.body, field)
            # Keep an integer header integer when the stored double is whole
            if isinstance(stored, float) and stored.is_integer() and (
                    isinstance(value, int) or isinstance(self.city.header.get('money'), int)):
                stored = int(stored)
            value = stored
        self.city.header['money'] = value
        self._after_write()

    def set_rank(self, value) -> int:
        self._require_city()
        value = max(0, min(self.config.rank_max, int(value)))
        field = self._field('RANK')
        if field is not None:
            value = self.codec.write_rank(self.city.body, field, value)
        self.city.header['rank lvl'] = value
        self._after_write()
        return value

    def set_supplies(self, value) -> Optional[int]:
        self._require_city()
        field = self._field('DSA_SUPPLIES')
        if field is None:
            return None
        value = self.codec.write_supplies(self.city.body, field, value)
        self._after_write()
        return value

    def set_uber(self, value: bool):
        self._require_city()
        field = self._field('UBER')
        if field is not None:
            self.codec.write_uber(self.city.body, field, bool(value))
        self.city.header['uber'] = bool(value)
        self._after_write()

    def toggle_uber(self) -> Optional[bool]:
        """Flip uber mode; returns the new value, None if the save has no uber field."""
        self._require_city()
        field = self._field('UBER')
        if field is None:
            return None
        new_value = not self.codec.read_uber(self.city.body, field)
        self.set_uber(new_value)
        return new_value

    def set_gamemode(self, value: str):
        self._require_city()
        field = self._field('GAMEMODE')
        if field is not None:
            self.city.body = self.codec.write_gamemode(self.city.body, field, value)
        self.city.header['gamemode'] = value
        self._after_write()

    def set_name(self, name: str):
        self._require_city()
        name = name.strip()
        if not name:
            raise ValueError("City name cannot be empty")
        field = self._field('NAME')
        if field is not None:
            self.city.body = self.codec.write_name(self.city.body, field, name)
        self.city.header['name'] = name
        self._after_write()

    def _after_write(self):
        # Offsets after a string edit are stale; re-locate everything
        self.rescan()
        self.has_changes = True


# =============================================================================
# Display
# =============================================================================

def print_values(values: dict):
    header = values['header']
    print("=" * 70)
    print(f"City: {header['name']}  ({values['file_name']})")
    print("=" * 70)
    print(f"  Size:        {header['size']}")
    print(f"  Version:     {header['version']}")
    print(f"  Gamemode:    {header['gamemode']}")
    print(f"  Money:       {header['money']}")
    print(f"  Rank:        {header['rank']}")
    print(f"  Uber:        {header['uber']}")
    print(f"  Population:  {header['population']}")
    print(f"  Saves:       {header['saves']}")
    print()
    print("Binary fields:")
    print("-" * 70)
    for key, value in values['binary'].items():
        offset = values['offsets'][key]
        if key in values['errors']:
            print(f"  {key:13s} ERROR: {values['errors'][key]}")
        elif offset is None:
            print(f"  {key:13s} (not present)")
        else:
            print(f"  {key:13s} {value!r:24s} {values['types'][key]:13s} @ 0x{offset:04X}")


def apply_edits(editor: CityEditor, args) -> int:
    """Apply CLI edits one at a time; returns the number of failed edits."""
    edits = []
    if args.money is not None:
        edits.append(('money', editor.set_money, args.money))
    if args.rank is not None:
        edits.append(('rank', editor.set_rank, args.rank))
    if args.supplies is not None:
        edits.append(('supplies', editor.set_supplies, args.supplies))
    if args.uber == 'toggle':
        edits.append(('uber', lambda _: editor.toggle_uber(), None))
    elif args.uber is not None:
        edits.append(('uber', editor.set_uber, args.uber == 'on'))
    if args.gamemode is not None:
        edits.append(('gamemode', editor.set_gamemode, args.gamemode))
    if args.name is not None:
        edits.append(('name', editor.set_name, args.name))

    failures = 0
    for label, setter, value in edits:
        try:
            setter(value)
            if value is not None:
                print(f"Set {label}: {value!r}")
            else:
                print(f"Toggled {label}")
        except (CityFieldError, ValueError) as e:
            print(f"ERROR: {label}: {e}")
            failures += 1
    return failures


def main():
    parser = argparse.ArgumentParser(
        description='TheoTown City Save Editor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s MyCity.city --info
  %(prog)s MyCity.city --money 5000000 --rank 40
  %(prog)s MyCity.city --name "New Rome" --gamemode SANDBOX -o out.city
  %(prog)s MyCity.city --uber toggle --config limits.json
        """)
    parser.add_argument('input', help='Input .city file')
    parser.add_argument('-o', '--output', help='Output file (default: input with .edited.city)')
    parser.add_argument('--info', '-i', action='store_true', help='Print header and binary fields')
    parser.add_argument('--json', action='store_true', help='Print --info as JSON')
    parser.add_argument('--money', type=float, help='Money (estate)')
    parser.add_argument('--rank', type=int, help='Rank level')
    parser.add_argument('--supplies', type=int, help='DSA rocket supplies')
    parser.add_argument('--uber', choices=['on', 'off', 'toggle'], help='Uber mode')
    parser.add_argument('--gamemode', help='Difficulty (EASY, NORMAL, HARD, SANDBOX)')
    parser.add_argument('--name', help='City name')
    parser.add_argument('--config', help='JSON file with field limit overrides')
    parser.add_argument('--force', action='store_true', help='Save even if validation reports errors')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')

    args = parser.parse_args()

    if not os.path.exists(args.input):
        print(f"ERROR: File not found: {args.input}")
        return 1

    try:
        config = FieldConfig.from_json(args.config) if args.config else FieldConfig()
    except (OSError, ValueError, TypeError) as e:
        print(f"ERROR: Could not load config {args.config}: {e}")
        return 1

    editor = CityEditor(config, verbose=args.verbose)
    try:
        values = editor.load(args.input)
    except ContainerError as e:
        print(f"ERROR: {e}")
        return 1

    if args.money is not None and args.money.is_integer():
        args.money = int(args.money)

    has_edits = any(v is not None for v in (
        args.money, args.rank, args.supplies, args.uber, args.gamemode, args.name))

    if args.info or not has_edits:
        if args.json:
            print(json.dumps(values, indent=2))
        else:
            print_values(values)
        if not has_edits:
            return 0
        print()

    failures = apply_edits(editor, args)

    result = editor.validate()
    for warning in result['warnings']:
        print(f"WARNING: {warning}")
    for error in result['errors']:
        print(f"ERROR: {error}")

    if args.output is None:
        base, ext = os.path.splitext(args.input)
        args.output = f"{base}.edited{ext or '.city'}"

    try:
        size = editor.save(args.output, force=args.force)
    except SaveBlocked:
        print("\nNot saved: fix the errors above or pass --force")
        return 1

    print(f"\nOutput: {args.output} ({size} bytes)")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
