import struct

import pytest

from fat12fs.fat12 import pack_fat12

EOC = 0xFFF


def slot(name, ext='', attribute=0, time=0, date=0, cluster=0, size=0):
    """Build one 32-byte directory slot"""
    if isinstance(name, str):
        name = name.encode('latin-1')
    if isinstance(ext, str):
        ext = ext.encode('latin-1')
    return struct.pack('<8s3sB10sHHHI', name.ljust(8, b' '), ext.ljust(3, b' '),
                       attribute, bytes(10), time, date, cluster, size)


class ImageBuilder:
    """
    Synthetic FAT12 image. The defaults give 512-byte blocks, one block per
    cluster, the FAT in block 1, the root directory in block 2 and
    cluster n in block n + 1.
    """

    def __init__(self, total_blocks=16, **geometry):
        self.geometry = dict(
            bytes_per_block=512, blocks_per_cluster=1, reserved_blocks=1, fat_count=1,
            root_entry_count=16, total_logical_blocks=total_blocks, media_descriptor=0xF0,
            blocks_per_fat=1, sectors_per_track=18, head_count=2, hidden_blocks=0)
        self.geometry.update(geometry)
        self.data = bytearray(total_blocks * self.geometry['bytes_per_block'])
        self.fat = [0xFF0, EOC]
        self.root = []

    @property
    def cluster_size(self):
        return self.geometry['bytes_per_block'] * self.geometry['blocks_per_cluster']

    def cluster_offset(self, cluster):
        g = self.geometry
        data_start = (g['reserved_blocks'] + g['fat_count'] * g['blocks_per_fat']
                      + g['root_entry_count'] * 32 // g['bytes_per_block']) * g['bytes_per_block']
        return data_start + (cluster - 2) * self.cluster_size

    def set_fat(self, cluster, value):
        while len(self.fat) <= cluster:
            self.fat.append(0)
        self.fat[cluster] = value

    def chain(self, *clusters):
        for current, following in zip(clusters, clusters[1:]):
            self.set_fat(current, following)
        self.set_fat(clusters[-1], EOC)
        return self

    def add_root(self, *slots):
        self.root.extend(slots)
        return self

    def put_cluster(self, cluster, payload):
        offset = self.cluster_offset(cluster)
        self.data[offset:offset + len(payload)] = payload
        return self

    def build(self):
        g = self.geometry
        fields = [g[k] for k in ('bytes_per_block', 'blocks_per_cluster', 'reserved_blocks',
                                 'fat_count', 'root_entry_count', 'total_logical_blocks',
                                 'media_descriptor', 'blocks_per_fat', 'sectors_per_track',
                                 'head_count', 'hidden_blocks')]
        data = bytearray(self.data)
        data[0:3] = b'\xEB\x3C\x90'
        struct.pack_into('<HBHBHHBHHHH', data, 0x0B, *fields)

        bpb = g['bytes_per_block']
        fat_start = (g['hidden_blocks'] + g['reserved_blocks']) * bpb
        raw_fat = pack_fat12(self.fat)
        for copy in range(g['fat_count']):
            offset = fat_start + copy * g['blocks_per_fat'] * bpb
            data[offset:offset + len(raw_fat)] = raw_fat

        root_start = fat_start + g['fat_count'] * g['blocks_per_fat'] * bpb
        for i, raw in enumerate(self.root):
            data[root_start + i * 32:root_start + (i + 1) * 32] = raw
        return bytes(data)


@pytest.fixture
def builder():
    return ImageBuilder()


@pytest.fixture
def write_image(tmp_path):
    """Write image bytes (or a builder) to a file and return its path"""
    def write(image, name='disk.img'):
        if isinstance(image, ImageBuilder):
            image = image.build()
        path = tmp_path / name
        path.write_bytes(image)
        return str(path)
    return write
