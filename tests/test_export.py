from pathlib import Path

import numpy as np
import pytest

from core.errors import ExportWriteError
from core.export import (
    FolderFallback,
    LocalDirectorySink,
    epoch_filename,
    export_image,
    file_stem,
)


class FailingSink(LocalDirectorySink):
    def write(self, directory, filename, data):
        raise ExportWriteError("disk full")


def test_epoch_filename_is_one_based():
    assert epoch_filename("edf_epoch", 0) == "edf_epoch_1.png"
    assert epoch_filename("night", 41) == "night_42.png"


def test_file_stem_strips_last_extension():
    assert file_stem("001.edf") == "001"
    assert file_stem("a.b.edf") == "a.b"
    assert file_stem("noext") == "noext"


def test_local_sink_lists_only_files(tmp_path: Path):
    (tmp_path / "1.edf").write_bytes(b"")
    (tmp_path / "notes.txt").write_text("x")
    (tmp_path / "sub").mkdir()
    names = sorted(f.name for f in LocalDirectorySink().list_files(tmp_path))
    assert names == ["1.edf", "notes.txt"]


def test_get_or_create_subdirectory_is_idempotent(tmp_path: Path):
    sink = LocalDirectorySink()
    first = sink.get_or_create_subdirectory(tmp_path, "night")
    (first / "keep.png").write_bytes(b"x")
    second = sink.get_or_create_subdirectory(tmp_path, "night")
    assert first == second
    assert (second / "keep.png").exists()


def test_export_writes_into_directory(tmp_path: Path):
    result = export_image(b"png", "edf_epoch_1.png", directory=tmp_path, sink=LocalDirectorySink())
    assert not result.fell_back
    assert result.path == tmp_path / "edf_epoch_1.png"
    assert result.path.read_bytes() == b"png"


def test_export_overwrites_existing_file(tmp_path: Path):
    sink = LocalDirectorySink()
    export_image(b"old", "x.png", directory=tmp_path, sink=sink)
    export_image(b"new", "x.png", directory=tmp_path, sink=sink)
    assert (tmp_path / "x.png").read_bytes() == b"new"


def test_failed_write_uses_fallback(tmp_path: Path):
    saved = []
    result = export_image(
        b"png",
        "edf_epoch_3.png",
        directory=tmp_path,
        sink=FailingSink(),
        fallback=lambda name, data: saved.append((name, data)) or tmp_path / "fb" / name,
    )
    assert result.fell_back
    assert saved == [("edf_epoch_3.png", b"png")]
    assert result.reason == "disk full"


def test_failed_write_without_fallback_raises(tmp_path: Path):
    with pytest.raises(ExportWriteError):
        export_image(b"png", "x.png", directory=tmp_path, sink=FailingSink())


def test_no_directory_goes_straight_to_fallback(tmp_path: Path):
    fallback = FolderFallback(tmp_path / "downloads")
    result = export_image(b"a", "x.png", directory=None, sink=LocalDirectorySink(), fallback=fallback)
    assert result.fell_back
    assert result.path.read_bytes() == b"a"
    assert result.reason == "no target directory"
    with pytest.raises(ExportWriteError):
        export_image(b"a", "x.png", directory=None, sink=LocalDirectorySink())


def test_folder_fallback_never_overwrites(tmp_path: Path):
    fallback = FolderFallback(tmp_path)
    paths = [fallback("edf_epoch_1.png", bytes([i])) for i in range(3)]
    assert [p.name for p in paths] == ["edf_epoch_1.png", "edf_epoch_1 (1).png", "edf_epoch_1 (2).png"]
    assert paths[2].read_bytes() == b"\x02"


def test_encode_png_signature():
    pytest.importorskip("PySide6")
    from core.export import encode_png

    frame = np.zeros((8, 12, 3), dtype=np.uint8)
    frame[4, :] = 255
    data = encode_png(frame)
    assert data[:8] == b"\x89PNG\r\n\x1a\n"


def test_encode_png_rejects_bad_shape():
    pytest.importorskip("PySide6")
    from core.export import encode_png

    with pytest.raises(ValueError):
        encode_png(np.zeros((4, 4), dtype=np.uint8))
