import io
import os
import zipfile

import pytest

from file_store import FileStore
from models import NotFound, ValidationError


def test_save_names_file_after_roll_number(file_store, upload_folder):
    link = file_store.save("101", "My Solution.PY", io.BytesIO(b"code"))

    assert link == "/uploads/101.py"
    with open(os.path.join(upload_folder, "101.py"), "rb") as f:
        assert f.read() == b"code"


def test_save_overwrites_previous_blob(file_store, upload_folder):
    file_store.save("101", "a.py", io.BytesIO(b"first"))
    file_store.save("101", "b.py", io.BytesIO(b"second"))

    with open(os.path.join(upload_folder, "101.py"), "rb") as f:
        assert f.read() == b"second"
    assert file_store.list() == ["101.py"]


def test_save_without_extension(file_store):
    assert file_store.save("101", "Makefile", io.BytesIO(b"all:")) == "/uploads/101"


@pytest.mark.parametrize("roll", ["../101", "10 1", "", "a/b"])
def test_unsafe_roll_numbers_rejected(file_store, roll):
    with pytest.raises(ValidationError):
        file_store.save(roll, "a.py", io.BytesIO(b"x"))


def test_reserved_name_rejected(file_store):
    with pytest.raises(ValidationError):
        file_store.save("data", "sheet.xlsx", io.BytesIO(b"x"))


def test_delete_is_best_effort(file_store):
    file_store.save("101", "a.py", io.BytesIO(b"x"))

    assert file_store.delete("/uploads/101.py") is True
    assert file_store.delete("/uploads/101.py") is False
    assert file_store.list() == []


def test_list_excludes_registry_status_and_archives(file_store, upload_folder, registry_file, status_file):
    for path in [registry_file, status_file, os.path.join(upload_folder, "old.zip"),
                 os.path.join(upload_folder, ".registry-tmp.xlsx")]:
        with open(path, "wb") as f:
            f.write(b"x")
    file_store.save("102", "b.c", io.BytesIO(b"b"))
    file_store.save("101", "a.py", io.BytesIO(b"a"))

    assert file_store.list() == ["101.py", "102.c"]


def test_path_for_rejects_registry_and_missing(file_store, registry_file):
    with open(registry_file, "wb") as f:
        f.write(b"x")
    with pytest.raises(NotFound):
        file_store.path_for("data.xlsx")
    with pytest.raises(NotFound):
        file_store.path_for("404.py")
    with pytest.raises(NotFound):
        file_store.path_for("../secret")


def test_build_archive(file_store):
    assert file_store.build_archive() is None

    file_store.save("101", "a.py", io.BytesIO(b"alpha"))
    file_store.save("102", "b.java", io.BytesIO(b"beta"))

    archive = file_store.build_archive()
    with zipfile.ZipFile(archive) as zf:
        assert sorted(zf.namelist()) == ["101.py", "102.java"]
        assert zf.read("101.py") == b"alpha"


def test_list_missing_folder(tmp_path):
    assert FileStore(str(tmp_path / "nope")).list() == []


def test_extension_kept_for_non_ascii_names(file_store):
    assert file_store.save("101", "फ़ाइल.py", io.BytesIO(b"x")) == "/uploads/101.py"


def test_zip_and_tmp_uploads_are_listed(file_store, status_file):
    with open(status_file + ".tmp", "wb") as f:
        f.write(b"x")
    file_store.save("101", "project.zip", io.BytesIO(b"zip"))
    file_store.save("102", "notes.tmp", io.BytesIO(b"tmp"))

    assert file_store.list() == ["101.zip", "102.tmp"]
