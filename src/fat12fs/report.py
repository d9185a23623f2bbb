"""
Text report of a FAT12 image: boot block, directory tree and README files.
"""

import string
import sys

from .fat12 import Diagnostic, decode_date, decode_time

INDENT = 3

_TEXT_BYTES = frozenset(string.printable.encode('ascii'))

_GEOMETRY_FIELDS = [
    ('Bytes per block', 'bytes_per_block'),
    ('Blocks per cluster', 'blocks_per_cluster'),
    ('Reserved blocks', 'reserved_blocks'),
    ('Number of FATs', 'fat_count'),
    ('Root directory entries', 'root_entry_count'),
    ('Logical blocks', 'total_logical_blocks'),
    ('Media descriptor', 'media_descriptor'),
    ('Blocks per FAT', 'blocks_per_fat'),
    ('Sectors per track', 'sectors_per_track'),
    ('Heads', 'head_count'),
    ('Hidden blocks', 'hidden_blocks'),
]


def is_ascii(data):
    """True when every byte is printable ASCII or whitespace"""
    return all(b in _TEXT_BYTES for b in data)


def format_geometry(geometry):
    return "\n".join(f"{label}: {getattr(geometry, field)}" for label, field in _GEOMETRY_FIELDS)


def format_record(record):
    pad = " " * (INDENT * record.depth)
    if record.kind == 'directory':
        title = f"Directory: {record.name}"
    else:
        title = f"File: {record.filename}"
    if record.deleted:
        title += " (deleted)"

    year, month, day = decode_date(record.date)
    hour, minute, second = decode_time(record.time)
    lines = [
        title,
        f"Date: {month:02d}\\{day:02d}\\{year:04d}",
        f"Time: {hour:02d}:{minute:02d}:{second:02d}",
        f"Size: {record.size}",
        f"Cluster Number: {record.starting_cluster}",
        f"Attribute: {record.attribute}",
    ]
    return "\n".join(pad + line for line in lines)


def format_content(record):
    if is_ascii(record.content):
        body = record.content.decode('ascii')
    else:
        body = f"binary content, {len(record.content)} bytes"
    return f"PRINTING: {record.filename}\n{body}"


def format_diagnostic(diagnostic):
    return " " * (INDENT * diagnostic.depth) + f"WARNING: {diagnostic.message}"


def print_report(image, file=None):
    """Print the boot block and the whole directory tree of an open image"""
    if file is None:
        file = sys.stdout
    print("Boot Block:", file=file)
    print(format_geometry(image.geometry), file=file)
    print("\n\nPrinting Directories:", file=file)

    for item in image.walk():
        print(file=file)
        if isinstance(item, Diagnostic):
            print(format_diagnostic(item), file=file)
            continue
        print(format_record(item), file=file)
        if item.content is not None:
            print(file=file)
            print(format_content(item), file=file)
