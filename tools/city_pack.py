#!/usr/bin/env python3
"""
City Pack - Reassemble TheoTown .city files
===========================================

Takes a JSON header and a decompressed binary body (as written by
city_unpack.py) and builds a .city file:

    [header length 2B BE] [JSON header] [gzip(body)]

Usage:
------
    python city_pack.py MyCity_header.json MyCity_body.bin -o MyCity.city
    python city_pack.py MyCity_header.json MyCity_body.bin -o MyCity.city --touch
    python city_pack.py MyCity_header.json MyCity_body.bin -o MyCity.city --validate
"""

import sys
import os
import json
import argparse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from city_container import build_city, parse_city, touch_header
from city_errors import ContainerError


def pack_city(header_path: str, body_path: str, output_path: str, touch: bool = False) -> dict:
    """
    Build a .city file from header JSON and body files.

    Args:
        header_path: JSON header file
        body_path: Decompressed body file
        output_path: Output .city path
        touch: Update 'last modified' and 'save counter'

    Returns:
        Dictionary with sizes and the header/body used
    """
    with open(header_path, 'r', encoding='utf-8') as f:
        header = json.load(f)
    with open(body_path, 'rb') as f:
        body = f.read()

    if not isinstance(header, dict):
        raise ContainerError(f"Header file does not hold a JSON object: {header_path}")

    if touch:
        touch_header(header)

    output = build_city(header, body)
    with open(output_path, 'wb') as f:
        f.write(output)

    return {
        'header': header,
        'body': body,
        'total_size': len(output),
        'body_size': len(body),
    }


def validate_city_file(output_path: str, header: dict, body: bytes) -> dict:
    """Re-parse the written file and compare against the inputs."""
    with open(output_path, 'rb') as f:
        data = f.read()

    try:
        city = parse_city(data)
    except ContainerError as e:
        return {'valid': False, 'error': str(e)}

    header_ok = city.header == header
    body_ok = bytes(city.body) == bytes(body)
    if not body_ok:
        for i in range(min(len(city.body), len(body))):
            if city.body[i] != body[i]:
                print(f"  First diff at byte {i}: got 0x{city.body[i]:02X}, expected 0x{body[i]:02X}")
                break
        if len(city.body) != len(body):
            print(f"  Size mismatch: {len(city.body)} vs {len(body)}")

    return {
        'valid': header_ok and body_ok,
        'header_matches': header_ok,
        'body_matches': body_ok,
    }


def main():
    parser = argparse.ArgumentParser(
        description='City Pack - Reassemble TheoTown .city files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python city_pack.py MyCity_header.json MyCity_body.bin -o MyCity.city
  python city_pack.py MyCity_header.json MyCity_body.bin -o MyCity.city --touch --validate
        """
    )
    parser.add_argument('header', help='JSON header file')
    parser.add_argument('body', help='Decompressed body file')
    parser.add_argument('-o', '--output', required=True, help='Output .city file')
    parser.add_argument('--touch', action='store_true',
                        help="Update 'last modified' and 'save counter'")
    parser.add_argument('--validate', action='store_true',
                        help='Re-read the output and compare with the inputs')

    args = parser.parse_args()

    for path in (args.header, args.body):
        if not os.path.exists(path):
            print(f"ERROR: File not found: {path}")
            return 1

    try:
        results = pack_city(args.header, args.body, args.output, touch=args.touch)
    except (ContainerError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Output: {args.output} ({results['total_size']} bytes, body {results['body_size']} bytes)")

    if args.validate:
        validation = validate_city_file(args.output, results['header'], results['body'])
        if validation['valid']:
            print("VALIDATION PASSED: header and body match")
        else:
            print(f"VALIDATION FAILED: {validation.get('error', 'content mismatch')}")
        return 0 if validation['valid'] else 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
