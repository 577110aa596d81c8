import os
import stat

import pytest

from kmscrypt.errors import CryptIOError
from kmscrypt.sys.fs import atomic_write, read_file


def test_atomic_write_creates_file(tmp_path):
    target = tmp_path / "out.bin"
    atomic_write(str(target), b"payload")
    assert target.read_bytes() == b"payload"
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o600
    assert os.listdir(tmp_path) == ["out.bin"]


def test_atomic_write_failure_keeps_destination(tmp_path, monkeypatch):
    target = tmp_path / "out.bin"
    target.write_bytes(b"old")

    def broken_replace(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(CryptIOError) as excinfo:
        atomic_write(str(target), b"new")

    assert target.read_bytes() == b"old"
    assert os.listdir(tmp_path) == ["out.bin"]
    assert excinfo.value.context["path"] == str(target)


def test_atomic_write_missing_directory(tmp_path):
    with pytest.raises(CryptIOError):
        atomic_write(str(tmp_path / "no" / "such" / "dir.bin"), b"x")


def test_read_file_missing(tmp_path):
    with pytest.raises(CryptIOError):
        read_file(str(tmp_path / "missing"))
