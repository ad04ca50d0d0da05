import errno
import io
import threading

import pytest

from filedrop_backend.app.errors import FileTooLarge, UploadCancelled, WriteFailure
from filedrop_backend.app.storage import PathResolver
from filedrop_backend.app.writer import BatchWriter, FileStatus


class BrokenStream(io.RawIOBase):
    """Yields one chunk, then fails like a dying disk."""

    def __init__(self):
        self.calls = 0

    def read(self, size=-1):
        self.calls += 1
        if self.calls == 1:
            return b"partial"
        raise OSError(errno.EIO, "Input/output error")


@pytest.fixture
def resolver():
    return PathResolver()


@pytest.fixture
def writer(resolver):
    return BatchWriter(resolver, chunk_size=4, max_file_size=64)


def test_writes_bytes_and_creates_directories(writer, resolver, dest_root):
    target = resolver.resolve(dest_root, "sub/dir/a.bin")
    payload = bytes(range(50))

    outcome = writer.write(target, io.BytesIO(payload))

    assert outcome.status is FileStatus.UPLOADED
    assert outcome.bytes_written == len(payload)
    assert (dest_root / "sub" / "dir" / "a.bin").read_bytes() == payload


def test_empty_file_is_written(writer, resolver, dest_root):
    target = resolver.resolve(dest_root, "empty.txt")
    assert writer.write(target, io.BytesIO(b"")).status is FileStatus.UPLOADED
    assert (dest_root / "empty.txt").read_bytes() == b""


def test_existing_file_is_never_overwritten(writer, resolver, dest_root):
    (dest_root / "a.txt").write_bytes(b"original")
    target = resolver.resolve(dest_root, "a.txt")

    outcome = writer.write(target, io.BytesIO(b"replacement"))

    assert outcome.status is FileStatus.SKIPPED
    assert (dest_root / "a.txt").read_bytes() == b"original"


def test_oversized_file_is_removed(writer, resolver, dest_root):
    target = resolver.resolve(dest_root, "big.bin")
    with pytest.raises(FileTooLarge):
        writer.write(target, io.BytesIO(b"x" * 65))
    assert not (dest_root / "big.bin").exists()


def test_unlimited_size_when_limit_is_zero(resolver, dest_root):
    writer = BatchWriter(resolver, chunk_size=1024, max_file_size=0)
    target = resolver.resolve(dest_root, "big.bin")
    assert writer.write(target, io.BytesIO(b"x" * 10_000)).status is FileStatus.UPLOADED


def test_cancelled_write_removes_partial_file(writer, resolver, dest_root):
    cancel = threading.Event()
    cancel.set()
    target = resolver.resolve(dest_root, "a.txt")
    with pytest.raises(UploadCancelled):
        writer.write(target, io.BytesIO(b"data"), cancel)
    assert not (dest_root / "a.txt").exists()


def test_stream_error_becomes_write_failure(writer, resolver, dest_root):
    target = resolver.resolve(dest_root, "a.txt")
    with pytest.raises(WriteFailure) as excinfo:
        writer.write(target, BrokenStream())
    assert "Input/output error" in excinfo.value.reason
    assert not (dest_root / "a.txt").exists()


def test_directory_creation_failure(writer, resolver, dest_root):
    (dest_root / "blocker").write_bytes(b"i am a file")
    target = resolver.resolve(dest_root, "blocker/a.txt")
    with pytest.raises(WriteFailure) as excinfo:
        writer.write(target, io.BytesIO(b"data"))
    assert excinfo.value.reason.startswith("cannot create directory")
