from __future__ import annotations

import io

import pytest

from fleetdash.core.files import FileCatalog, clean_name
from fleetdash.errors import FileNotFoundInCatalogError, InvalidFileNameError


def test_clean_name_strips_directories():
    assert clean_name("../../etc/passwd") == "passwd"
    assert clean_name("dir\\fw.bin") == "fw.bin"
    with pytest.raises(InvalidFileNameError):
        clean_name("..")
    with pytest.raises(InvalidFileNameError):
        clean_name("")


def test_save_list_delete(tmp_path):
    catalog = FileCatalog(tmp_path / "uploads")

    record = catalog.save("fw-1.0.bin", io.BytesIO(b"\x00\x01"))

    assert record.url == "/files/fw-1.0.bin"
    assert (tmp_path / "uploads" / "fw-1.0.bin").read_bytes() == b"\x00\x01"
    assert [item.name for item in catalog.list_files()] == ["fw-1.0.bin"]

    assert catalog.delete("fw-1.0.bin") == "fw-1.0.bin"
    assert catalog.list_files() == []
    with pytest.raises(FileNotFoundInCatalogError):
        catalog.delete("fw-1.0.bin")


def test_load_existing(tmp_path):
    (tmp_path / "a.bin").write_bytes(b"a")
    (tmp_path / "b.bin").write_bytes(b"b")
    (tmp_path / "nested").mkdir()

    catalog = FileCatalog(tmp_path)

    assert catalog.load_existing() == 2
    assert [item.name for item in catalog.list_files()] == ["a.bin", "b.bin"]


def test_load_existing_missing_dir(tmp_path):
    assert FileCatalog(tmp_path / "missing").load_existing() == 0


def test_rename(tmp_path):
    catalog = FileCatalog(tmp_path)
    original = catalog.save("fw.bin", io.BytesIO(b"x"))

    renamed = catalog.rename("fw.bin", "sub/fw-2.bin")

    assert renamed.name == "fw-2.bin"
    assert renamed.url == "/files/fw-2.bin"
    assert renamed.upload_time == original.upload_time
    assert (tmp_path / "fw-2.bin").exists()
    assert not (tmp_path / "fw.bin").exists()
    assert catalog.get("fw.bin") is None


def test_rename_errors(tmp_path):
    catalog = FileCatalog(tmp_path)
    catalog.save("fw.bin", io.BytesIO(b"x"))

    with pytest.raises(FileNotFoundInCatalogError):
        catalog.rename("missing.bin", "new.bin")
    with pytest.raises(InvalidFileNameError):
        catalog.rename("fw.bin", "..")
