import io

from fat12fs import Diagnostic, Fat12Image, Record
from fat12fs.report import format_diagnostic, format_geometry, format_record, is_ascii, print_report

from conftest import slot


def record(**fields):
    values = dict(kind='file', name='README', extension='TXT', attribute=0x20,
                  time=(13 << 11) | (5 << 5) | 20, date=((1998 - 1980) << 9) | (6 << 5) | 2,
                  size=11, starting_cluster=2, depth=0)
    values.update(fields)
    return Record(**values)


def test_is_ascii():
    assert is_ascii(b'Hello, world\r\n\tIndented')
    assert is_ascii(b'')
    assert not is_ascii(b'\x00\x01binary')
    assert not is_ascii('caf\xe9'.encode('latin-1'))


def test_format_file_record():
    assert format_record(record()).splitlines() == [
        'File: README.TXT',
        'Date: 06\\02\\1998',
        'Time: 13:05:40',
        'Size: 11',
        'Cluster Number: 2',
        'Attribute: 32',
    ]


def test_format_nested_directory_record():
    lines = format_record(record(kind='directory', name='GAMES', extension='', depth=2, deleted=True)).splitlines()
    assert lines[0] == '      Directory: GAMES (deleted)'
    assert all(line.startswith('      ') for line in lines)


def test_format_diagnostic():
    assert format_diagnostic(Diagnostic(1, 'Something broke')) == '   WARNING: Something broke'


def test_print_report(write_image, builder):
    builder.add_root(slot('README', cluster=2, size=11), slot('BIN', attribute=0x10, cluster=3))
    builder.chain(2).chain(3).chain(4)
    builder.put_cluster(2, b'HELLO WORLD\x00')
    builder.put_cluster(3, slot('README', 'EXE', cluster=4, size=4))
    builder.put_cluster(4, b'\x01\x02\x03\xff\x00')
    out = io.StringIO()

    with Fat12Image(write_image(builder)) as image:
        print_report(image, file=out)

    text = out.getvalue()
    assert text.startswith('Boot Block:\nBytes per block: 512\n')
    assert 'Root directory entries: 16' in text
    assert 'Printing Directories:' in text
    assert 'PRINTING: README\nHELLO WORLD\n' in text
    assert '   File: README.EXE' in text
    assert 'PRINTING: README.EXE\nbinary content, 4 bytes' in text


def test_geometry_labels_cover_all_fields(write_image, builder):
    with Fat12Image(write_image(builder)) as image:
        lines = format_geometry(image.geometry).splitlines()
    assert len(lines) == 11
    assert 'Media descriptor: 240' in lines
