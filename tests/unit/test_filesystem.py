"""
Unit tests for the file system collaborator.
"""
import os
import stat

from harbor.UTILS.filesystem import FileSystem


def test_write_creates_parents(tmp_path):
    target = tmp_path / '.deploy' / 'compose.generated.yml'
    FileSystem().write_file(str(target), b'version: "3.9"\n')
    assert target.read_bytes() == b'version: "3.9"\n'
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o644


def test_write_replaces_and_leaves_no_temp_files(tmp_path):
    target = tmp_path / 'out.yml'
    fs = FileSystem()
    fs.write_file(str(target), b'old')
    fs.write_file(str(target), b'new', mode=0o600)
    assert target.read_bytes() == b'new'
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o600
    assert os.listdir(tmp_path) == ['out.yml']


def test_read_and_exists(tmp_path):
    target = tmp_path / 'stack.yml'
    fs = FileSystem()
    assert not fs.exists(str(target))
    target.write_bytes(b'project: demo\n')
    assert fs.exists(str(target))
    assert fs.read_bytes(str(target)) == b'project: demo\n'
