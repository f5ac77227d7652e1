#!/usr/bin/env python3
"""
Build and encode a circuit shape from a JSON constraint system export.

Usage:
    python shape-from-json.py \
        --constraint-system <circuit.cs.json> \
        [--vk <circuit.vk.json>] \
        --k <log2 rows> \
        --output <circuit.shape.bin>
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from shape.circuit_shape import VerifyingKeyData, build_circuit_shape
from shape.constraint_system import ConstraintSystem
from shape.errors import ShapeError
from shape.serialize import serialize


def main():
    parser = argparse.ArgumentParser(
        description='Build the verifier-facing shape artifact of a circuit'
    )
    parser.add_argument(
        '--constraint-system',
        type=Path,
        required=True,
        help='Path to constraint system JSON'
    )
    parser.add_argument(
        '--vk',
        type=Path,
        default=None,
        help='Path to verifying key JSON (transcriptRepr/pinned, commitments)'
    )
    parser.add_argument(
        '--k',
        type=int,
        required=True,
        help='log2 of the number of rows'
    )
    parser.add_argument(
        '--output',
        type=Path,
        required=True,
        help='Output path for the flattened artifact'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log build details'
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if not args.constraint_system.exists():
        print(f"Error: Constraint system file not found: {args.constraint_system}", file=sys.stderr)
        sys.exit(1)
    if args.vk is not None and not args.vk.exists():
        print(f"Error: Verifying key file not found: {args.vk}", file=sys.stderr)
        sys.exit(1)

    print(f"Loading constraint system from {args.constraint_system}...")
    try:
        cs = ConstraintSystem.from_json(str(args.constraint_system))
        if args.vk is not None:
            with open(args.vk) as f:
                vk = VerifyingKeyData.from_dict(cs, json.load(f))
        else:
            vk = VerifyingKeyData(cs)

        shape = build_circuit_shape(args.k, vk)
        artifact = serialize(shape)
    except (ShapeError, KeyError, ValueError) as e:
        # Malformed JSON exports surface as KeyError or ValueError
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    data = artifact.to_bytes()
    with open(args.output, 'wb') as f:
        f.write(data)

    print(f"\n{'group':<32} {'elements':>8} {'bytes':>8}")
    for name, count, total in artifact.size_report():
        print(f"{name:<32} {count:>8} {total:>8}")
    print(f"\nWrote {len(data)} bytes to {args.output}")


if __name__ == '__main__':
    main()
