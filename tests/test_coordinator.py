import io
import os

import pytest

from filedrop_backend.app.coordinator import IncomingFile, UploadCoordinator, UploadState
from filedrop_backend.app.destination import DestinationStore
from filedrop_backend.app.errors import ConfigurationError
from filedrop_backend.app.storage import PathResolver
from filedrop_backend.app.writer import BatchWriter


def make_coordinator(store, max_file_size=0):
    resolver = PathResolver()
    writer = BatchWriter(resolver, chunk_size=8, max_file_size=max_file_size)
    return UploadCoordinator(store, resolver, writer, max_workers=4)


def batch(*items):
    return [IncomingFile(index, path, io.BytesIO(data)) for index, (path, data) in enumerate(items)]


def test_scenario_then_resend(dest_root):
    store = DestinationStore(str(dest_root))
    files = [("x.txt", b"A"), ("sub/y.txt", b"B")]

    first = make_coordinator(store).run(batch(*files))
    assert first.uploaded == 2
    assert first.skipped == 0
    assert first.skipped_files == []
    assert (dest_root / "x.txt").read_bytes() == b"A"
    assert (dest_root / "sub" / "y.txt").read_bytes() == b"B"

    second = make_coordinator(store).run(batch(*files))
    assert second.uploaded == 0
    assert second.skipped == 2
    assert second.skipped_files == ["x.txt", "sub/y.txt"]


def test_unset_destination_fails_before_processing(tmp_path):
    coordinator = make_coordinator(DestinationStore())
    files = batch(("a.txt", b"data"))
    with pytest.raises(ConfigurationError):
        coordinator.run(files)
    assert coordinator.state is UploadState.IDLE
    assert list(tmp_path.iterdir()) == []


def test_deleted_destination_is_a_configuration_error(tmp_path):
    root = tmp_path / "gone"
    root.mkdir()
    store = DestinationStore(str(root))
    root.rmdir()
    with pytest.raises(ConfigurationError):
        make_coordinator(store).run(batch(("a.txt", b"data")))
    assert not root.exists()


def test_many_files_written_concurrently(dest_root):
    store = DestinationStore(str(dest_root))
    items = [(f"d{i % 5}/f{i}.bin", f"content-{i}".encode() * (i + 1)) for i in range(60)]

    result = make_coordinator(store).run(batch(*items))

    assert result.uploaded == 60
    assert result.total == 60
    for path, data in items:
        assert (dest_root / path).read_bytes() == data


def test_failures_are_reported_and_do_not_stop_siblings(dest_root):
    store = DestinationStore(str(dest_root))
    (dest_root / "blocker").write_bytes(b"file, not folder")
    (dest_root / "exists.txt").write_bytes(b"keep")

    result = make_coordinator(store, max_file_size=16).run(batch(
        ("ok.txt", b"fine"),
        ("../escape.txt", b"nope"),
        ("blocker/a.txt", b"nope"),
        ("exists.txt", b"new"),
        ("big.bin", b"x" * 17),
    ))

    assert result.uploaded == 1
    assert result.skipped_files == ["exists.txt"]
    assert [f.file for f in result.failed_files] == ["../escape.txt", "blocker/a.txt", "big.bin"]
    assert result.uploaded + result.skipped + result.failed == 5
    assert (dest_root / "exists.txt").read_bytes() == b"keep"
    assert not (dest_root.parent / "escape.txt").exists()
    assert not (dest_root / "big.bin").exists()


def test_duplicate_paths_in_one_batch(dest_root):
    store = DestinationStore(str(dest_root))
    result = make_coordinator(store).run(batch(("dup.txt", b"first"), ("dup.txt", b"second")))

    assert result.uploaded == 1
    assert result.skipped_files == ["dup.txt"]
    assert (dest_root / "dup.txt").read_bytes() in (b"first", b"second")


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_existing_symlink_is_skipped_not_followed(dest_root, tmp_path):
    outside = tmp_path / "outside.txt"
    outside.write_bytes(b"keep")
    os.symlink(outside, dest_root / "out.txt")
    os.symlink(tmp_path / "nowhere.txt", dest_root / "dangling.txt")

    result = make_coordinator(DestinationStore(str(dest_root))).run(
        batch(("out.txt", b"new"), ("dangling.txt", b"new"))
    )

    assert result.uploaded == 0
    assert result.failed == 0
    assert result.skipped_files == ["out.txt", "dangling.txt"]
    assert outside.read_bytes() == b"keep"
    assert not (tmp_path / "nowhere.txt").exists()


def test_oversized_part_flagged_by_reader_is_a_failure(dest_root):
    store = DestinationStore(str(dest_root))
    files = batch(("big.bin", b""), ("small.txt", b"ok"))
    files[0].too_large = True

    result = make_coordinator(store, max_file_size=10).run(files)

    assert result.uploaded == 1
    assert result.failed_files[0].file == "big.bin"
    assert "maximum size of 10 bytes" in result.failed_files[0].reason
    assert not (dest_root / "big.bin").exists()


def test_cancelled_batch_reports_no_uploads(dest_root):
    store = DestinationStore(str(dest_root))
    coordinator = make_coordinator(store)
    coordinator.cancel()

    result = coordinator.run(batch(("a.txt", b"data"), ("b/c.txt", b"data")))

    assert result.uploaded == 0
    assert result.failed == 2
    assert not (dest_root / "a.txt").exists()
    assert not (dest_root / "b" / "c.txt").exists()


def test_streams_closed_and_coordinator_single_use(dest_root):
    store = DestinationStore(str(dest_root))
    coordinator = make_coordinator(store)
    files = batch(("a.txt", b"1"), ("a.txt", b"2"), ("../bad", b"3"))

    coordinator.run(files)

    assert coordinator.state is UploadState.RESPONDED
    assert all(f.stream.closed for f in files)
    with pytest.raises(RuntimeError):
        coordinator.run([])


def test_empty_batch(dest_root):
    result = make_coordinator(DestinationStore(str(dest_root))).run([])
    assert result.total == 0
