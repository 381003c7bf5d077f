"""Tests for atomic file helpers."""

import os
import stat
from unittest.mock import patch

import pytest

from shared.storage import atomic_write_bytes, ensure_private_dir, remove_file, remove_stale_temp_files


class TestAtomicWriteBytes:
    def test_writes_content(self, tmp_path):
        target = tmp_path / "artifact.json"
        atomic_write_bytes(target, b'{"a":1}')
        assert target.read_bytes() == b'{"a":1}'

    def test_overwrites_existing_file(self, tmp_path):
        target = tmp_path / "artifact.json"
        atomic_write_bytes(target, b"original")
        atomic_write_bytes(target, b"updated")
        assert target.read_bytes() == b"updated"

    def test_file_is_owner_only(self, tmp_path):
        target = tmp_path / "artifact.json"
        atomic_write_bytes(target, b"x")
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left_after_success(self, tmp_path):
        atomic_write_bytes(tmp_path / "artifact.json", b"x", prefix=".artifact_")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["artifact.json"]

    def test_failed_rename_keeps_previous_content_and_cleans_up(self, tmp_path):
        target = tmp_path / "artifact.json"
        atomic_write_bytes(target, b"original")

        with (
            patch("shared.storage.Path.replace", side_effect=OSError("disk full")),
            pytest.raises(OSError, match="disk full"),
        ):
            atomic_write_bytes(target, b"updated")

        assert target.read_bytes() == b"original"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["artifact.json"]

    def test_failed_fsync_cleans_up(self, tmp_path):
        with (
            patch("shared.storage.os.fsync", side_effect=OSError("io error")),
            pytest.raises(OSError, match="io error"),
        ):
            atomic_write_bytes(tmp_path / "artifact.json", b"x")

        assert list(tmp_path.iterdir()) == []


class TestEnsurePrivateDir:
    def test_creates_nested_directory_with_owner_only_mode(self, tmp_path):
        directory = tmp_path / "var" / "cache"
        ensure_private_dir(directory)
        assert directory.is_dir()
        assert stat.S_IMODE(directory.stat().st_mode) == 0o700

    def test_tightens_existing_directory(self, tmp_path):
        directory = tmp_path / "cache"
        directory.mkdir(mode=0o755)
        ensure_private_dir(directory)
        assert stat.S_IMODE(directory.stat().st_mode) == 0o700


class TestRemoveFile:
    def test_removes_existing(self, tmp_path):
        target = tmp_path / "a.json"
        target.write_text("{}")
        assert remove_file(target) is True
        assert not target.exists()

    def test_missing_file_is_not_an_error(self, tmp_path):
        assert remove_file(tmp_path / "missing.json") is False


class TestRemoveStaleTempFiles:
    def test_removes_only_old_matching_files(self, tmp_path):
        old_tmp = tmp_path / ".artifact_old.tmp"
        fresh_tmp = tmp_path / ".artifact_fresh.tmp"
        artifact = tmp_path / "abc.json"
        for p in (old_tmp, fresh_tmp, artifact):
            p.write_text("x")
        os.utime(old_tmp, (1000, 1000))
        os.utime(artifact, (1000, 1000))

        removed = remove_stale_temp_files(tmp_path, prefix=".artifact_", older_than=300, now=fresh_tmp.stat().st_mtime)

        assert removed == 1
        assert not old_tmp.exists()
        assert fresh_tmp.exists()
        assert artifact.exists()
