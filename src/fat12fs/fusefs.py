#!/usr/bin/env python3
"""
FAT12 FUSE Filesystem
Read-only FUSE filesystem for FAT12 disk images (.img, .ima floppy dumps)
"""

import os
import errno
import logging
import ctypes.util

from .exceptions import Fat12Error
from .fat12 import Attribute, Fat12Image

# Monkeypatch find_library to support fuse-t on macOS
_original_find_library = ctypes.util.find_library

def _find_library(name):
    if name == 'fuse':
        # Check for fuse-t
        if os.path.exists('/usr/local/lib/libfuse-t.dylib'):
            return '/usr/local/lib/libfuse-t.dylib'
    return _original_find_library(name)

ctypes.util.find_library = _find_library

from fuse import FUSE, FuseOSError, Operations

logger = logging.getLogger(__name__)


class Fat12FS(Operations):
    """FUSE filesystem for FAT12 disk images"""

    def __init__(self, image):
        self.image = image
        self._file_cache = {}  # (starting cluster, size) -> file data

    def _resolve(self, path):
        try:
            return self.image.lookup(path)
        except FileNotFoundError:
            raise FuseOSError(errno.ENOENT)
        except NotADirectoryError:
            raise FuseOSError(errno.ENOTDIR)

    def _read_file_data(self, entry):
        """Read complete file data by following the cluster chain"""
        key = (entry.starting_cluster, entry.size)
        if key in self._file_cache:
            return self._file_cache[key]

        try:
            data = self.image.read_file(entry.starting_cluster, entry.size)
        except Fat12Error as e:
            logger.warning("Failed to read %s: %s", entry.filename, e)
            raise FuseOSError(errno.EIO)

        self._file_cache[key] = data
        return data

    # FUSE Operations
    # ===============

    def getattr(self, path, fh=None):
        """Get file/directory attributes"""
        entry = self._resolve(path)
        if entry is None:
            return dict(st_mode=(0o40555), st_nlink=2)

        modified = entry.modified
        mtime = modified.timestamp() if modified else 0
        if entry.is_directory:
            return dict(st_mode=(0o40555), st_nlink=2, st_mtime=mtime)
        return dict(st_mode=(0o100444), st_nlink=1, st_size=entry.size, st_mtime=mtime)

    def readdir(self, path, fh):
        """List directory contents"""
        entry = self._resolve(path)
        if entry is not None and not entry.is_directory:
            raise FuseOSError(errno.ENOTDIR)

        cluster = None if entry is None else entry.starting_cluster
        names = [e.filename for e in self.image.list_directory(cluster)
                 if not e.attribute & Attribute.VOLUME_LABEL]
        return ['.', '..'] + names

    def read(self, path, length, offset, fh):
        """Read data from file"""
        entry = self._resolve(path)
        if entry is None or entry.is_directory:
            raise FuseOSError(errno.EISDIR)

        data = self._read_file_data(entry)
        return data[offset:offset + length]

    def destroy(self, path):
        """Clean up resources when unmounting"""
        self.image.close()


def mount(image_path: str, mount_point: str, foreground: bool = True):
    """Mount a FAT12 disk image"""
    if not os.path.exists(mount_point):
        os.makedirs(mount_point)

    filesystem = Fat12FS(Fat12Image(image_path))
    FUSE(filesystem, mount_point, nothreads=True, foreground=foreground, ro=True)
