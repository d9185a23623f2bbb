#!/usr/bin/env python3
"""Command-line entry point: print a report of a FAT12 image, or mount it."""

import argparse
import logging
import sys

from .exceptions import GeometryError, ResourceError
from .fat12 import Fat12Image, WalkOptions
from .report import print_report


def build_parser():
    parser = argparse.ArgumentParser(
        prog='fat12fs',
        description="Print the boot block, directory tree and README files of a FAT12 disk image.")
    parser.add_argument('image', help="path to the disk image")
    parser.add_argument('--deleted', action='store_true',
                        help="treat a leading 0xE5 name byte as a deleted entry")
    parser.add_argument('--max-depth', type=int, default=WalkOptions.max_depth,
                        help="deepest subdirectory level to enter (default: %(default)s)")
    parser.add_argument('--prefix', default=WalkOptions.extract_prefix,
                        help="print files whose name starts with this (default: %(default)s)")
    parser.add_argument('--mount', metavar='MOUNTPOINT',
                        help="mount the image read-only with FUSE instead of printing a report")
    parser.add_argument('-v', '--verbose', action='store_true', help="debug logging")
    return parser


def main(argv=None):
    """Command-line entry point"""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.mount:
        try:
            from .fusefs import mount
        except OSError as e:
            print(f"ERROR: FUSE is not available: {e}", file=sys.stderr)
            return 1
        try:
            mount(args.image, args.mount, foreground=True)
        except (ResourceError, GeometryError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        return 0

    options = WalkOptions(show_deleted=args.deleted, max_depth=args.max_depth,
                          extract_prefix=args.prefix)
    try:
        image = Fat12Image(args.image, options)
    except (ResourceError, GeometryError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    with image:
        print_report(image)
    return 0


if __name__ == '__main__':
    sys.exit(main())
