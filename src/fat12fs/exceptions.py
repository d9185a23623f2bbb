"""Errors raised while reading a FAT12 image."""


class Fat12Error(Exception):
    """Base class for all fat12fs errors"""


class ResourceError(Fat12Error):
    """The image or the FAT buffer could not be obtained. Fatal."""


class GeometryError(Fat12Error):
    """The boot block describes a geometry nothing can be read with. Fatal."""


class TruncatedReadError(Fat12Error):
    """Fewer bytes were available than a slot or cluster needs."""

    def __init__(self, offset, wanted, got):
        super().__init__(f"short read at offset {offset}: wanted {wanted} bytes, got {got}")
        self.offset = offset
        self.wanted = wanted
        self.got = got


class ChainCycleError(Fat12Error):
    """A FAT chain links back to a cluster it already visited."""

    def __init__(self, start, cluster):
        super().__init__(f"cluster chain starting at {start} loops back to cluster {cluster}")
        self.start = start
        self.cluster = cluster
