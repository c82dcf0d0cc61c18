"""Command-line interface."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

import numpy as np

from matrixtables.config import DEFAULT_VERSION, TEXT_FORMAT_TAG, WRITE_PROFILES
from matrixtables.errors import TableError
from matrixtables.facade import read_real_table, write_real_matrix
from matrixtables.logging_config import setup_logging

logger = logging.getLogger("matrixtables.cli")


def _cmd_sizes(args: argparse.Namespace) -> int:
    table = read_real_table(args.file, args.name)
    print(f"{table.rows} {table.cols}")
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    table = read_real_table(args.file, args.name)
    print(TEXT_FORMAT_TAG)
    print(f"double {args.name}({table.rows},{table.cols})")
    for row in table.to_matrix():
        print(" ".join(np.format_float_positional(v, precision=args.precision, trim="-") for v in row))
    return 0


def _cmd_convert(args: argparse.Namespace) -> int:
    table = read_real_table(args.source, args.name)
    target_name = args.target_name or args.name.split(".")[-1]
    ok = write_real_matrix(
        args.destination,
        target_name,
        table.to_matrix(),
        append=args.append,
        version=args.version,
    )
    if not ok:
        print(f'Cannot write "{target_name}" to "{args.destination}"', file=sys.stderr)
        return 1
    logger.info(f"Wrote {target_name} ({table.rows}x{table.cols}) to {args.destination}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="matrixtables", description="Inspect and convert lookup tables")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_sizes = sub.add_parser("sizes", help="Print the dimensions of a table")
    p_sizes.add_argument("file", help="MAT-file or #1 text file")
    p_sizes.add_argument("name", help="Table name (dotted for MAT-files)")
    p_sizes.set_defaults(func=_cmd_sizes)

    p_show = sub.add_parser("show", help="Print a table as a #1 text file")
    p_show.add_argument("file")
    p_show.add_argument("name")
    p_show.add_argument("--precision", type=int, default=None, help="Maximum number of digits after the point")
    p_show.set_defaults(func=_cmd_show)

    p_convert = sub.add_parser("convert", help="Copy a table into a MAT-file")
    p_convert.add_argument("source")
    p_convert.add_argument("name")
    p_convert.add_argument("destination", help="MAT-file to write")
    p_convert.add_argument("--target-name", default=None, help="Variable name in the destination (default: last path segment)")
    p_convert.add_argument("--version", choices=list(WRITE_PROFILES.keys()), default=DEFAULT_VERSION)
    p_convert.add_argument("--append", action="store_true", help="Add to an existing MAT-file")
    p_convert.set_defaults(func=_cmd_convert)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING, stream=sys.stderr)
    try:
        return args.func(args)
    except TableError as e:
        print(str(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
