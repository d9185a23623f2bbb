#!/usr/bin/env python3
"""
FAT12 Image Reader
Read-only access to FAT12 disk images: boot block geometry, the packed
allocation table, cluster addressing and a depth-first directory walk.
"""

import logging
import struct
from dataclasses import dataclass
from datetime import datetime
from enum import IntFlag
from typing import Optional

from .exceptions import (
    ChainCycleError,
    Fat12Error,
    GeometryError,
    ResourceError,
    TruncatedReadError,
)

logger = logging.getLogger(__name__)

SLOT_SIZE = 32
END_OF_CHAIN = 0xFF8
SIZE_SENTINEL = 0xFFFFFFFF
LONG_NAME = 0x0F
DELETED_MARKER = 0xE5

BOOT_BLOCK_SIZE = 32
_BOOT_OFFSET = 0x0B
_BOOT_FORMAT = '<HBHBHHBHHHH'  # 0x0B-0x1D
_SLOT_FORMAT = '<8s3sB10sHHHI'


class Attribute(IntFlag):
    READ_ONLY = 0x01
    HIDDEN = 0x02
    SYSTEM = 0x04
    VOLUME_LABEL = 0x08
    DIRECTORY = 0x10
    ARCHIVE = 0x20


# Boot block
# ==========

@dataclass(frozen=True)
class Geometry:
    """Layout parameters decoded verbatim from the boot block"""

    bytes_per_block: int
    blocks_per_cluster: int
    reserved_blocks: int
    fat_count: int
    root_entry_count: int
    total_logical_blocks: int
    media_descriptor: int
    blocks_per_fat: int
    sectors_per_track: int
    head_count: int
    hidden_blocks: int

    @property
    def bytes_per_cluster(self):
        return self.bytes_per_block * self.blocks_per_cluster

    @property
    def usable(self):
        """False when no block or cluster could ever be addressed"""
        return self.bytes_per_block > 0 and self.blocks_per_cluster > 0


def decode_geometry(data):
    """Decode the first 32 bytes of an image. Short input is zero-padded."""
    block = bytes(data[:BOOT_BLOCK_SIZE]).ljust(BOOT_BLOCK_SIZE, b'\x00')
    return Geometry(*struct.unpack_from(_BOOT_FORMAT, block, _BOOT_OFFSET))


# Addressing
# ==========

def fat_offset(geometry):
    return (geometry.hidden_blocks + geometry.reserved_blocks) * geometry.bytes_per_block


def fat_size(geometry):
    return geometry.bytes_per_block * geometry.blocks_per_fat


def root_directory_offset(geometry):
    g = geometry
    return (g.hidden_blocks + g.reserved_blocks + g.fat_count * g.blocks_per_fat) * g.bytes_per_block


def root_directory_block_count(geometry):
    g = geometry
    return (g.root_entry_count * SLOT_SIZE + g.bytes_per_block - 1) // g.bytes_per_block


def data_region_offset(geometry):
    # Hidden blocks are not counted here, unlike the FAT and root offsets.
    g = geometry
    root_blocks = g.root_entry_count * SLOT_SIZE // g.bytes_per_block
    return (g.reserved_blocks + g.fat_count * g.blocks_per_fat + root_blocks) * g.bytes_per_block


def cluster_offset(geometry, cluster):
    """Byte offset of a data cluster; clusters 0 and 1 do not exist on disk"""
    if cluster < 2:
        raise ValueError(f"Invalid cluster: {cluster}")
    return data_region_offset(geometry) + (cluster - 2) * geometry.bytes_per_cluster


# Allocation table
# ================

def unpack_fat12(raw):
    """Unpack 12-bit little-endian FAT entries, two for every three bytes"""
    values = []
    length = len(raw)
    for i in range(0, length - 1, 3):
        values.append(((raw[i + 1] & 0x0F) << 8) | raw[i])
        if i + 2 < length:
            values.append((raw[i + 2] << 4) | ((raw[i + 1] & 0xF0) >> 4))
    return values


def pack_fat12(values):
    """Inverse of unpack_fat12. An odd count is padded with a zero entry."""
    raw = bytearray()
    for i in range(0, len(values), 2):
        first = values[i] & 0xFFF
        second = values[i + 1] & 0xFFF if i + 1 < len(values) else 0
        raw += bytes((first & 0xFF, (first >> 8) | ((second & 0x0F) << 4), second >> 4))
    return bytes(raw)


class FatTable:
    """The unpacked allocation table, indexed by cluster number"""

    def __init__(self, entries):
        self.entries = tuple(entries)

    @classmethod
    def from_bytes(cls, raw):
        return cls(unpack_fat12(raw))

    @classmethod
    def read(cls, fd, geometry):
        """Read the first FAT copy from an open image"""
        offset = fat_offset(geometry)
        size = fat_size(geometry)
        try:
            fd.seek(offset)
            raw = fd.read(size)
        except (MemoryError, OSError) as e:
            raise ResourceError(f"Failed to read FAT ({size} bytes at offset {offset}): {e}") from e

        if len(raw) != size:
            logger.warning("FAT region truncated: wanted %d bytes, got %d", size, len(raw))
        logger.debug("FAT at offset %d, %d bytes", offset, len(raw))
        try:
            return cls.from_bytes(raw)
        except MemoryError as e:
            raise ResourceError(f"Failed to allocate FAT table for {len(raw)} bytes") from e

    def __len__(self):
        return len(self.entries)

    def __getitem__(self, cluster):
        return self.entries[cluster]

    def next_cluster(self, cluster):
        """Cluster following `cluster` in its chain, or None at the end"""
        if cluster >= len(self.entries):
            logger.warning("Cluster %d is outside the FAT (%d entries)", cluster, len(self.entries))
            return None

        value = self.entries[cluster]
        if value == 0 or value >= END_OF_CHAIN:
            return None
        if value < 2:
            logger.warning("Cluster %d links to reserved cluster %d", cluster, value)
            return None
        return value


def walk_chain(table, start, detect_cycles=True):
    """
    Yield the clusters of the chain beginning at `start`.

    With detect_cycles a cluster reached twice raises ChainCycleError.
    Without it a looping chain is yielded forever.
    """
    seen = set()
    cluster = start if start >= 2 else None
    while cluster is not None:
        if detect_cycles:
            if cluster in seen:
                raise ChainCycleError(start, cluster)
            seen.add(cluster)
        yield cluster
        cluster = table.next_cluster(cluster)


# Directory entries
# =================

def decode_time(value):
    """Packed FAT time to (hour, minute, second)"""
    return (value >> 11) & 0x1F, (value >> 5) & 0x3F, (value & 0x1F) * 2


def decode_date(value):
    """Packed FAT date to (year, month, day)"""
    return ((value >> 9) & 0x7F) + 1980, (value >> 5) & 0x0F, value & 0x1F


def _trim(raw):
    return raw.split(b'\x00', 1)[0].decode('latin-1').rstrip()


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    extension: str
    attribute: int
    time: int
    date: int
    starting_cluster: int
    size: int
    deleted: bool = False

    @classmethod
    def from_slot(cls, slot, show_deleted=False):
        """Decode one 32-byte directory slot"""
        name, ext, attribute, _, time, date, cluster, size = struct.unpack(_SLOT_FORMAT, slot[:SLOT_SIZE])
        deleted = show_deleted and name[0] == DELETED_MARKER
        name = _trim(name)
        if deleted:
            name = '?' + name[1:]
        return cls(name, _trim(ext), attribute, time, date, cluster, size, deleted)

    @property
    def is_directory(self):
        return bool(self.attribute & Attribute.DIRECTORY)

    @property
    def flags(self):
        return Attribute(self.attribute & 0x3F)

    @property
    def filename(self):
        return f"{self.name}.{self.extension}" if self.extension else self.name

    @property
    def modified(self):
        """Timestamp as a datetime, or None when the packed fields are out of range"""
        try:
            return datetime(*decode_date(self.date), *decode_time(self.time))
        except ValueError:
            return None


def _slot_skipped(slot):
    return slot[11] == LONG_NAME or struct.unpack_from('<I', slot, 28)[0] == SIZE_SENTINEL


# Walk output
# ===========

@dataclass(frozen=True)
class Record:
    """One visited directory entry"""

    kind: str
    name: str
    extension: str
    attribute: int
    time: int
    date: int
    size: int
    starting_cluster: int
    depth: int
    deleted: bool = False
    content: Optional[bytes] = None

    @classmethod
    def from_entry(cls, kind, entry, depth, content=None):
        return cls(kind, entry.name, entry.extension, entry.attribute, entry.time, entry.date,
                   entry.size, entry.starting_cluster, depth, entry.deleted, content)

    @property
    def filename(self):
        return f"{self.name}.{self.extension}" if self.extension else self.name


@dataclass(frozen=True)
class Diagnostic:
    """A problem the walk recovered from"""

    depth: int
    message: str


@dataclass(frozen=True)
class WalkOptions:
    show_deleted: bool = False
    max_depth: int = 32
    extract_prefix: str = 'README'
    detect_cycles: bool = True


# Image
# =====

class Fat12Image:
    """A FAT12 disk image opened read-only"""

    def __init__(self, image_path, options=None):
        self.image_path = image_path
        self.options = options or WalkOptions()
        try:
            self.fd = open(image_path, 'rb')
        except OSError as e:
            raise ResourceError(f"Could not open image {image_path}: {e.strerror}") from e

        try:
            self.fd.seek(0)
            self.geometry = decode_geometry(self.fd.read(BOOT_BLOCK_SIZE))
            if not self.geometry.usable:
                raise GeometryError(
                    f"Unusable geometry in {image_path}: {self.geometry.bytes_per_block} bytes per block, "
                    f"{self.geometry.blocks_per_cluster} blocks per cluster")
            self.fat = FatTable.read(self.fd, self.geometry)
        except Fat12Error:
            self.fd.close()
            raise

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if self.fd:
            self.fd.close()
            self.fd = None

    def _read_at(self, offset, size):
        self.fd.seek(offset)
        data = self.fd.read(size)
        if len(data) != size:
            raise TruncatedReadError(offset, size, len(data))
        return data

    def read_cluster(self, cluster):
        """Read one whole cluster from the data region"""
        return self._read_at(cluster_offset(self.geometry, cluster), self.geometry.bytes_per_cluster)

    def chain(self, start):
        return walk_chain(self.fat, start, self.options.detect_cycles)

    def _root_slots(self):
        base = root_directory_offset(self.geometry)
        for i in range(self.geometry.root_entry_count):
            yield self._read_at(base + i * SLOT_SIZE, SLOT_SIZE)

    def _cluster_slots(self, start):
        for cluster in self.chain(start):
            data = self.read_cluster(cluster)
            for offset in range(0, len(data) - SLOT_SIZE + 1, SLOT_SIZE):
                yield data[offset:offset + SLOT_SIZE]

    def _scan(self, slots):
        for slot in slots:
            if slot[0] == 0x00:
                return
            if _slot_skipped(slot):
                continue
            yield DirectoryEntry.from_slot(slot, self.options.show_deleted)

    def list_directory(self, cluster=None):
        """Entries of the root (cluster None) or of a subdirectory, without . and .."""
        slots = self._root_slots() if cluster is None else self._cluster_slots(cluster)
        entries = []
        try:
            for entry in self._scan(slots):
                if entry.name not in ('.', '..'):
                    entries.append(entry)
        except (TruncatedReadError, ChainCycleError) as e:
            logger.warning("Listing of cluster %s stopped early: %s", cluster, e)
        return entries

    def lookup(self, path):
        """Resolve a /-separated path, ignoring case. The root resolves to None."""
        entry = None
        for part in [p for p in path.split('/') if p]:
            if entry is not None and not entry.is_directory:
                raise NotADirectoryError(path)
            cluster = None if entry is None else entry.starting_cluster
            for candidate in self.list_directory(cluster):
                if candidate.filename.upper() == part.upper():
                    entry = candidate
                    break
            else:
                raise FileNotFoundError(path)
        return entry

    def read_file(self, starting_cluster, size):
        """Complete file contents, following the chain and cut to `size`"""
        data = bytearray()
        for cluster in self.chain(starting_cluster):
            if len(data) >= size:
                break
            data.extend(self.read_cluster(cluster))
        return bytes(data[:size])

    def _extract_text(self, starting_cluster):
        # A zero byte ends the text, even mid-file.
        data = bytearray()
        try:
            for cluster in self.chain(starting_cluster):
                block = self.read_cluster(cluster)
                end = block.find(b'\x00')
                if end != -1:
                    data.extend(block[:end])
                    break
                data.extend(block)
        except (TruncatedReadError, ChainCycleError) as e:
            return bytes(data), e
        return bytes(data), None

    def walk(self):
        """
        Yield a Record for every entry in the image, depth first and in
        on-disk order, and a Diagnostic wherever part of the tree could
        not be read.
        """
        options = self.options
        entered = set()
        stack = [(self._scan(self._root_slots()), 0)]

        while stack:
            entries, depth = stack[-1]
            try:
                entry = next(entries)
            except StopIteration:
                stack.pop()
                continue
            except (TruncatedReadError, ChainCycleError) as e:
                stack.pop()
                yield Diagnostic(depth, f"Directory listing stopped: {e}")
                continue

            if entry.is_directory:
                yield Record.from_entry('directory', entry, depth)
                if depth > 0 and entry.name.startswith('.'):
                    continue
                if entry.deleted:
                    continue
                if depth + 1 > options.max_depth:
                    yield Diagnostic(depth + 1, f"Not entering {entry.filename}: depth limit {options.max_depth} reached")
                    continue

                cluster = entry.starting_cluster
                if cluster >= 2 and cluster in entered:
                    yield Diagnostic(depth + 1, f"Not entering {entry.filename}: cluster {cluster} was already walked")
                    continue
                entered.add(cluster)
                logger.debug("Entering %s at cluster %d, depth %d", entry.filename, cluster, depth + 1)
                stack.append((self._scan(self._cluster_slots(cluster)), depth + 1))
            else:
                content, problem = None, None
                if not entry.deleted and entry.name.startswith(options.extract_prefix):
                    content, problem = self._extract_text(entry.starting_cluster)
                yield Record.from_entry('file', entry, depth, content)
                if problem is not None:
                    yield Diagnostic(depth, f"Reading {entry.filename} stopped: {problem}")
