"""
Unit tests for archive.py - directory pack/unpack
"""
import gzip
import io
import os
import stat
import tarfile
from pathlib import Path

import pytest

from conftest import tree_contents
from ftr.errors import ArchiveError, UnsafeArchiveEntry, UnsupportedEntryType
from ftr.transfer.archive import archive_path_for, pack, unpack


def _write_tarball(path: Path, members) -> Path:
    """members: list of (TarInfo, bytes | None)"""
    with tarfile.open(path, "w:gz") as tar:
        for info, data in members:
            if data is not None:
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
            else:
                tar.addfile(info)
    return path


def _file_info(name: str) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = tarfile.REGTYPE
    info.mode = 0o644
    return info


class TestPack:
    """Tests for pack()"""

    def test_archive_lands_next_to_source(self, sample_tree):
        tarball = pack(sample_tree)
        assert tarball == sample_tree.parent / "project.tar.gz"
        assert tarball.is_file()
        assert archive_path_for(str(sample_tree) + os.sep) == tarball

    def test_entry_names_rooted_at_basename(self, sample_tree):
        tarball = pack(sample_tree)
        with tarfile.open(tarball, "r:gz") as tar:
            names = tar.getnames()
        assert "project" not in names
        assert names == [
            "project/README.md",
            "project/empty",
            "project/src",
            "project/src/main.py",
            "project/src/pkg",
            "project/src/pkg/data.bin",
        ]
        assert all("\\" not in n for n in names)

    def test_pack_is_deterministic(self, sample_tree):
        first = pack(sample_tree).read_bytes()
        archive_path_for(sample_tree).unlink()
        second = pack(sample_tree).read_bytes()
        assert first == second

    def test_gzip_header_mtime_is_zero(self, sample_tree):
        tarball = pack(sample_tree)
        with gzip.open(tarball) as gz:
            gz.read()
            assert gz.mtime == 0

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
    def test_symlinks_are_skipped(self, sample_tree, temp_dir):
        outside = temp_dir / "outside.txt"
        outside.write_text("secret")
        os.symlink(outside, sample_tree / "link.txt")
        os.symlink(sample_tree / "src", sample_tree / "dirlink")

        with tarfile.open(pack(sample_tree), "r:gz") as tar:
            names = tar.getnames()
            assert not any(m.issym() or m.islnk() for m in tar.getmembers())
        assert "project/link.txt" not in names
        assert not any(n.startswith("project/dirlink") for n in names)

    @pytest.mark.skipif(os.name != "posix", reason="posix permissions")
    def test_directory_modes_are_opened_up(self, sample_tree):
        locked = sample_tree / "locked"
        locked.mkdir()
        (locked / "f.txt").write_text("x")
        os.chmod(locked, 0o700)
        try:
            with tarfile.open(pack(sample_tree), "r:gz") as tar:
                info = tar.getmember("project/locked")
            assert info.isdir()
            assert info.mode & 0o755 == 0o755
        finally:
            os.chmod(locked, 0o755)

    def test_existing_archive_is_not_clobbered(self, sample_tree):
        existing = archive_path_for(sample_tree)
        existing.write_bytes(b"keep me")
        with pytest.raises(ArchiveError):
            pack(sample_tree)
        assert existing.read_bytes() == b"keep me"

    def test_not_a_directory(self, sample_file):
        with pytest.raises(ArchiveError):
            pack(sample_file)

    @pytest.mark.skipif(os.name != "posix", reason="posix filesystem root")
    def test_filesystem_root_has_no_archive_name(self):
        with pytest.raises(ArchiveError):
            pack("/")

    @pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs unreadable files")
    def test_unreadable_file_removes_partial_archive(self, sample_tree):
        secret = sample_tree / "secret.txt"
        secret.write_text("x")
        os.chmod(secret, 0)
        try:
            with pytest.raises(ArchiveError):
                pack(sample_tree)
            assert not archive_path_for(sample_tree).exists()
        finally:
            os.chmod(secret, stat.S_IRUSR | stat.S_IWUSR)


class TestUnpack:
    """Tests for unpack()"""

    def test_round_trip(self, sample_tree, temp_dir):
        dest = temp_dir / "dest"
        dest.mkdir()
        unpack(pack(sample_tree), dest)
        assert tree_contents(dest / "project") == tree_contents(sample_tree)

    def test_creates_missing_parents(self, temp_dir):
        tarball = _write_tarball(temp_dir / "t.tar.gz", [(_file_info("a/b/c.txt"), b"deep")])
        dest = temp_dir / "dest"
        dest.mkdir()
        unpack(tarball, dest)
        assert (dest / "a" / "b" / "c.txt").read_bytes() == b"deep"

    @pytest.mark.parametrize("name", ["../evil.txt", "a/../../evil.txt", "/tmp/evil.txt"])
    def test_traversal_is_rejected(self, temp_dir, name):
        tarball = _write_tarball(temp_dir / "t.tar.gz", [(_file_info(name), b"pwned")])
        dest = temp_dir / "dest"
        dest.mkdir()
        with pytest.raises(UnsafeArchiveEntry):
            unpack(tarball, dest)
        assert not (temp_dir / "evil.txt").exists()

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
    def test_existing_symlink_in_destination_is_not_followed(self, temp_dir):
        outside = temp_dir / "outside"
        outside.mkdir()
        dest = temp_dir / "dest"
        dest.mkdir()
        os.symlink(outside, dest / "project")
        tarball = _write_tarball(temp_dir / "t.tar.gz", [(_file_info("project/x.txt"), b"x")])
        with pytest.raises(UnsafeArchiveEntry):
            unpack(tarball, dest)
        assert list(outside.iterdir()) == []

    def test_symlink_entry_is_unsupported(self, temp_dir):
        link = tarfile.TarInfo("project/link")
        link.type = tarfile.SYMTYPE
        link.linkname = "/etc/passwd"
        tarball = _write_tarball(temp_dir / "t.tar.gz", [(link, None)])
        dest = temp_dir / "dest"
        dest.mkdir()
        with pytest.raises(UnsupportedEntryType) as exc:
            unpack(tarball, dest)
        assert exc.value.entry_type == tarfile.SYMTYPE
        assert not os.path.lexists(dest / "project" / "link")

    def test_existing_file_is_not_overwritten(self, temp_dir):
        dest = temp_dir / "dest"
        dest.mkdir()
        (dest / "a.txt").write_bytes(b"original")
        tarball = _write_tarball(temp_dir / "t.tar.gz", [(_file_info("a.txt"), b"new")])
        with pytest.raises(ArchiveError):
            unpack(tarball, dest)
        assert (dest / "a.txt").read_bytes() == b"original"

    def test_corrupt_stream(self, temp_dir):
        bogus = temp_dir / "bogus.tar.gz"
        bogus.write_bytes(b"this is not gzip")
        with pytest.raises(ArchiveError):
            unpack(bogus, temp_dir)
