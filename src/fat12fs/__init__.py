"""
FAT12 Image Reader
Reports the boot block, directory tree and README files of FAT12 disk images,
and mounts them read-only with FUSE.
"""

from .exceptions import (
    ChainCycleError,
    Fat12Error,
    GeometryError,
    ResourceError,
    TruncatedReadError,
)
from .fat12 import (
    Attribute,
    Diagnostic,
    DirectoryEntry,
    FatTable,
    Fat12Image,
    Geometry,
    Record,
    WalkOptions,
    decode_geometry,
    walk_chain,
)

__version__ = "0.1.0"
__all__ = [
    "Attribute", "ChainCycleError", "Diagnostic", "DirectoryEntry", "Fat12Error",
    "Fat12Image", "FatTable", "Geometry", "GeometryError", "Record", "ResourceError",
    "TruncatedReadError", "WalkOptions", "decode_geometry", "walk_chain",
]
