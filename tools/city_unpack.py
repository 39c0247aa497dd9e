#!/usr/bin/env python3
"""
City Unpack - Extract header and body from TheoTown .city files
===============================================================

Writes the JSON header and the decompressed binary body to separate files so
they can be inspected or hand-edited.

Use city_pack.py to reassemble them into a .city file.

Output Files:
------------
| File                 | Content                              |
|----------------------|--------------------------------------|
| <stem>_header.json   | JSON header (pretty-printed)         |
| <stem>_body.bin      | Decompressed binary field stream     |

Usage:
------
    python city_unpack.py MyCity.city
    python city_unpack.py MyCity.city -o ./output/
    python city_unpack.py MyCity.city --fields
    python city_unpack.py MyCity.city --find "some field"
"""

import sys
import os
import json
import argparse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from city_container import split_container, decode_header, decompress_body
from city_errors import CityFieldError, ContainerError
from city_field_locator import find_field, count_field_occurrences
from city_fields import FIELD_NAMES
from city_types import decode, type_name, is_known_tag


def unpack_city(city_path: str, output_dir: str = None) -> dict:
    """
    Split a .city file into header JSON and decompressed body.

    Args:
        city_path: Path to the .city file
        output_dir: Directory for output files (defaults to the input's directory)

    Returns:
        Dictionary with paths, sizes and the decompressed body
    """
    if not os.path.exists(city_path):
        return {'success': False, 'error': f"File not found: {city_path}"}

    if output_dir is None:
        output_dir = os.path.dirname(os.path.abspath(city_path))
    os.makedirs(output_dir, exist_ok=True)

    with open(city_path, 'rb') as f:
        data = f.read()

    try:
        header_bytes, payload = split_container(data)
        header = decode_header(header_bytes)
        body = decompress_body(payload)
    except ContainerError as e:
        return {'success': False, 'error': str(e)}

    stem = os.path.splitext(os.path.basename(city_path))[0]
    header_path = os.path.join(output_dir, f"{stem}_header.json")
    body_path = os.path.join(output_dir, f"{stem}_body.bin")

    with open(header_path, 'w', encoding='utf-8') as f:
        json.dump(header, f, indent=2, ensure_ascii=False)
    with open(body_path, 'wb') as f:
        f.write(body)

    return {
        'success': True,
        'file_size': len(data),
        'header_size': len(header_bytes),
        'compressed_size': len(payload),
        'body_size': len(body),
        'header_path': header_path,
        'body_path': body_path,
        'body': body,
    }


def describe_field(body: bytes, name: str) -> str:
    """One line describing where a field is and what it holds."""
    field = find_field(body, name)
    if field is None:
        return f"  {name:22s} (not present)"

    if not is_known_tag(field.type):
        value = f"<unknown tag 0x{field.type:02X}>"
    else:
        try:
            value = repr(decode(field.type, body, field.value_offset))
        except CityFieldError as e:
            value = f"<{e}>"

    count = count_field_occurrences(body, name)
    dup = f"  [{count} occurrences]" if count > 1 else ""
    return (f"  {name:22s} {type_name(field.type):13s} "
            f"name@0x{field.name_offset:04X} value@0x{field.value_offset:04X}  {value}{dup}")


def main():
    parser = argparse.ArgumentParser(
        description='Extract header and body from TheoTown .city files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python city_unpack.py MyCity.city
  python city_unpack.py MyCity.city -o ./output/ --fields
  python city_unpack.py MyCity.city --find estate --find "rank lvl"
        """
    )
    parser.add_argument('input', help='Input .city file')
    parser.add_argument('-o', '--output-dir', default=None, help='Output directory')
    parser.add_argument('--fields', '-f', action='store_true',
                        help='Print the known field table found in the body')
    parser.add_argument('--find', action='append', default=[],
                        help='Locate an arbitrary field name (repeatable)')

    args = parser.parse_args()

    result = unpack_city(args.input, args.output_dir)
    if not result['success']:
        print(f"ERROR: {result['error']}")
        return 1

    print("=" * 70)
    print("City Unpack")
    print("=" * 70)
    print(f"Input:       {args.input} ({result['file_size']:,} bytes)")
    print(f"Header:      {result['header_size']:,} bytes -> {result['header_path']}")
    print(f"Body:        {result['compressed_size']:,} -> {result['body_size']:,} bytes -> {result['body_path']}")

    names = []
    if args.fields:
        names.extend(name for _, name in FIELD_NAMES)
    names.extend(args.find)

    if names:
        print("\nFields:")
        print("-" * 70)
        for name in names:
            try:
                print(describe_field(result['body'], name))
            except ValueError as e:
                print(f"  ERROR: {name!r}: {e}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
