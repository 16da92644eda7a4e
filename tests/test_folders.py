"""Tests for the inbound -> treatment -> backup/failed file lifecycle."""

import os
from datetime import datetime

import pytest

from folder_ingest.exceptions import (
    ConfigurationError,
    FileConflictError,
    InvalidFileFormatError,
    InvalidFileNameError,
)
from folder_ingest.folders import FolderManager, append_timestamp, check_single_segment, sanitize_file_name
from folder_ingest.models import FolderKind, Outcome

NOW = datetime(2024, 1, 15, 10, 30, 0)


@pytest.fixture
def folders(config_store):
    return FolderManager(config_store, clock=lambda: NOW)


class TestFileNames:

    @pytest.mark.parametrize("name,expected", [
        ("report.csv", "report_2024-01-15_10-30-00.csv"),
        ("archive.tar.xml", "archive.tar_2024-01-15_10-30-00.xml"),
        ("noext", "noext_2024-01-15_10-30-00"),
        (".hidden", ".hidden_2024-01-15_10-30-00"),
        ("trailing.", "trailing._2024-01-15_10-30-00"),
    ])
    def test_append_timestamp(self, name, expected):
        assert append_timestamp(name, NOW) == expected

    def test_sanitize(self):
        assert sanitize_file_name('a:b*c?"d<e>f|g.csv') == "a_b_c__d_e_f_g.csv"
        assert sanitize_file_name("dir/sub\\x.csv") == "dir_sub_x.csv"

    @pytest.mark.parametrize("name", ["", "  ", ".", "..", "a/b.csv", "..\\b.csv", None])
    def test_single_segment_rejected(self, name):
        with pytest.raises(InvalidFileNameError):
            check_single_segment(name)

    def test_single_segment_accepted(self):
        assert check_single_segment("employees.csv") == "employees.csv"


class TestFolders:

    def test_folder_layout(self, folders, data_dir):
        paths = folders.ensure_folders("EMPLOYEES")
        assert paths[FolderKind.INBOUND] == data_dir / "DATA_IN"
        assert paths[FolderKind.FAILED] == data_dir / "DATA_FAILED"
        assert all(p.is_dir() for p in paths.values())

    def test_unknown_config(self, folders):
        with pytest.raises(ConfigurationError):
            folders.ensure_folders("UNKNOWN")

    def test_status_lists_all_folders(self, folders):
        folders.save_inbound("EMPLOYEES", b"id\n1\n", "a.csv")
        assert folders.folder_status("EMPLOYEES") == {
            "in": ["a.csv"], "treatment": [], "backup": [], "failed": [],
        }


class TestSaveInbound:

    def test_save(self, folders, data_dir):
        dest = folders.save_inbound("EMPLOYEES", b"id\n1\n", "employees.csv")
        assert dest == data_dir / "DATA_IN" / "employees.csv"
        assert dest.read_bytes() == b"id\n1\n"

    def test_conflict_never_overwrites(self, folders):
        """A second upload with the same name is refused."""
        folders.save_inbound("EMPLOYEES", b"first", "employees.csv")
        with pytest.raises(FileConflictError):
            folders.save_inbound("EMPLOYEES", b"second", "employees.csv")
        dest = folders.folder_path("EMPLOYEES", FolderKind.INBOUND) / "employees.csv"
        assert dest.read_bytes() == b"first"

    def test_empty_content(self, folders):
        with pytest.raises(InvalidFileFormatError, match="empty"):
            folders.save_inbound("EMPLOYEES", b"", "employees.csv")

    @pytest.mark.parametrize("name", ["notes.txt", "employees", "", "data.csv.bak"])
    def test_unsupported_extension(self, folders, name):
        with pytest.raises(InvalidFileFormatError, match="Unsupported file type"):
            folders.save_inbound("EMPLOYEES", b"x", name)

    def test_extension_case_insensitive(self, folders):
        assert folders.save_inbound("EMPLOYEES", b"<a/>", "DATA.XML").name == "DATA.XML"

    def test_name_is_sanitized(self, folders):
        """Separators cannot escape the inbound folder."""
        dest = folders.save_inbound("EMPLOYEES", b"x", "../../etc/passwd.csv")
        assert dest.parent == folders.folder_path("EMPLOYEES", FolderKind.INBOUND)
        assert dest.name == ".._.._etc_passwd.csv"


class TestDelete:

    def test_delete_one(self, folders):
        folders.save_inbound("EMPLOYEES", b"x", "a.csv")
        assert folders.delete_inbound("EMPLOYEES", "a.csv") is True
        assert folders.delete_inbound("EMPLOYEES", "a.csv") is False

    def test_delete_rejects_traversal(self, folders):
        with pytest.raises(InvalidFileNameError):
            folders.delete_inbound("EMPLOYEES", "../DATA_BACKUP/a.csv")

    def test_delete_all(self, folders):
        for name in ("a.csv", "b.xml"):
            folders.save_inbound("EMPLOYEES", b"x", name)
        assert folders.delete_all_inbound("EMPLOYEES") == ["a.csv", "b.xml"]
        assert folders.list_folder("EMPLOYEES", FolderKind.INBOUND) == []


class TestDequeueAndRelocate:

    def test_dequeue_oldest_first(self, folders):
        newer = folders.save_inbound("EMPLOYEES", b"x", "newer.csv")
        older = folders.save_inbound("EMPLOYEES", b"y", "older.csv")
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))

        first = folders.dequeue_one_to_treatment("EMPLOYEES")
        assert first.name == "older_2024-01-15_10-30-00.csv"
        assert first.parent == folders.folder_path("EMPLOYEES", FolderKind.TREATMENT)
        assert first.read_bytes() == b"y"

        second = folders.dequeue_one_to_treatment("EMPLOYEES")
        assert second.name == "newer_2024-01-15_10-30-00.csv"
        assert folders.dequeue_one_to_treatment("EMPLOYEES") is None

    def test_same_mtime_ordered_by_name(self, folders):
        for name in ("b.csv", "a.csv"):
            path = folders.save_inbound("EMPLOYEES", b"x", name)
            os.utime(path, (1_000_000, 1_000_000))
        assert folders.dequeue_one_to_treatment("EMPLOYEES").name.startswith("a_")

    def test_dequeue_ignores_directories(self, folders):
        (folders.ensure_folders("EMPLOYEES")[FolderKind.INBOUND] / "sub.csv").mkdir()
        assert folders.dequeue_one_to_treatment("EMPLOYEES") is None

    def test_relocate_success_and_failure(self, folders):
        folders.save_inbound("EMPLOYEES", b"x", "a.csv")
        folders.save_inbound("EMPLOYEES", b"y", "b.xml")
        ok = folders.relocate("EMPLOYEES", folders.dequeue_one_to_treatment("EMPLOYEES"), Outcome.SUCCESS)
        ko = folders.relocate("EMPLOYEES", folders.dequeue_one_to_treatment("EMPLOYEES"), "failure")

        status = folders.folder_status("EMPLOYEES")
        assert status["backup"] == [ok.name]
        assert status["failed"] == [ko.name]
        assert status["treatment"] == [] and status["in"] == []

    def test_relocate_overwrites(self, folders):
        backup = folders.ensure_folders("EMPLOYEES")[FolderKind.BACKUP]
        folders.save_inbound("EMPLOYEES", b"new", "a.csv")
        treatment_file = folders.dequeue_one_to_treatment("EMPLOYEES")
        (backup / treatment_file.name).write_bytes(b"old")

        target = folders.relocate("EMPLOYEES", treatment_file, Outcome.SUCCESS)
        assert target.read_bytes() == b"new"
