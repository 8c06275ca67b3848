"""Tests for time-based backup forcing and the host backup naming scheme."""

import os
import time

import pytest

from savepolicy.host import naming
from savepolicy.policy.backup_throttle import (
    STATE_FRESH,
    STATE_NO_PRIOR_BACKUP,
    STATE_STALE,
    BackupThrottle,
)
from savepolicy.policy.errors import FilesystemError

NOW = 1_700_000_000.0


@pytest.fixture
def source(tmp_path):
    p = tmp_path / "report.txt"
    p.write_text("v1")
    return p


def make_backup(path, age, version=1):
    """Create a numbered backup of ``path`` whose mtime is ``age`` seconds before NOW."""
    backup = naming.numbered_backup_name(str(path), version)
    with open(backup, "w") as f:
        f.write("old")
    os.utime(backup, (NOW - age, NOW - age))
    return backup


def throttle_for(directory, interval=3600):
    return BackupThrottle(
        find_newest_backup=lambda p: naming.find_newest_backup(p, [str(directory)]),
        interval=interval,
        clock=lambda: NOW,
    )


class TestShouldForceBackup:
    def test_no_backup_returns_false(self, source, tmp_path):
        throttle = throttle_for(tmp_path)
        assert throttle.should_force_backup(str(source)) is False
        assert throttle.state(str(source)) == STATE_NO_PRIOR_BACKUP

    def test_stale_backup_forces(self, source, tmp_path):
        make_backup(source, age=3600 + 1)
        throttle = throttle_for(tmp_path)
        assert throttle.should_force_backup(str(source)) is True
        assert throttle.state(str(source)) == STATE_STALE

    def test_fresh_backup_does_not_force(self, source, tmp_path):
        make_backup(source, age=3600 - 1)
        throttle = throttle_for(tmp_path)
        assert throttle.should_force_backup(str(source)) is False
        assert throttle.state(str(source)) == STATE_FRESH

    def test_boundary_is_inclusive(self, source, tmp_path):
        make_backup(source, age=3600)
        assert throttle_for(tmp_path).should_force_backup(str(source)) is True

    def test_example_4000_seconds(self, source, tmp_path):
        make_backup(source, age=4000)
        assert throttle_for(tmp_path).should_force_backup(str(source), 3600) is True

    def test_interval_override(self, source, tmp_path):
        make_backup(source, age=100)
        throttle = throttle_for(tmp_path, interval=3600)
        assert throttle.should_force_backup(str(source)) is False
        assert throttle.should_force_backup(str(source), interval=60) is True

    def test_zero_interval_always_forces(self, source, tmp_path):
        make_backup(source, age=0)
        assert throttle_for(tmp_path, interval=0).should_force_backup(str(source)) is True

    def test_newest_backup_decides(self, source, tmp_path):
        make_backup(source, age=10_000, version=1)
        make_backup(source, age=10, version=2)
        assert throttle_for(tmp_path).should_force_backup(str(source)) is False

    def test_state_recomputed_each_call(self, source, tmp_path):
        throttle = throttle_for(tmp_path)
        assert throttle.should_force_backup(str(source)) is False
        backup = make_backup(source, age=5000)
        assert throttle.should_force_backup(str(source)) is True
        os.remove(backup)
        assert throttle.should_force_backup(str(source)) is False

    def test_vanished_backup_treated_as_missing(self, source):
        throttle = BackupThrottle(
            find_newest_backup=lambda p: p + ".~9~",
            clock=lambda: NOW,
        )
        assert throttle.should_force_backup(str(source)) is False

    def test_lookup_errors_never_raise(self, source, caplog):
        def broken(path):
            raise FilesystemError("permission denied", path)

        throttle = BackupThrottle(find_newest_backup=broken, clock=lambda: NOW)
        assert throttle.should_force_backup(str(source)) is False
        assert "Backup throttle check failed" in caplog.text

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            BackupThrottle(find_newest_backup=lambda p: None, interval=-1)

    @pytest.mark.parametrize("bad", ["3600", None, True, [60]])
    def test_non_numeric_interval_rejected(self, bad):
        with pytest.raises(ValueError):
            BackupThrottle(find_newest_backup=lambda p: None, interval=bad)

    def test_real_clock(self, source, tmp_path):
        backup = naming.numbered_backup_name(str(source), 1)
        with open(backup, "w") as f:
            f.write("old")
        old = time.time() - 7200
        os.utime(backup, (old, old))
        throttle = BackupThrottle(
            find_newest_backup=lambda p: naming.find_newest_backup(p, [str(tmp_path)]),
        )
        assert throttle.should_force_backup(str(source)) is True


class TestBackupNaming:
    def test_simple_and_numbered_names(self):
        assert naming.simple_backup_name("/x/a.txt") == "/x/a.txt~"
        assert naming.numbered_backup_name("/x/a.txt", 12) == "/x/a.txt.~12~"

    def test_version_must_be_positive(self):
        with pytest.raises(ValueError):
            naming.numbered_backup_name("/x/a.txt", 0)

    def test_autosave_name(self, tmp_path):
        assert naming.autosave_name(str(tmp_path / "a.txt")) == str(tmp_path / "#a.txt#")

    def test_versions_sorted_numerically(self, source, tmp_path):
        for v in (10, 2, 1):
            (tmp_path / f"report.txt.~{v}~").write_text("x")
        versions = naming.backup_versions(str(source), [str(tmp_path)])
        assert [v for v, _ in versions] == [1, 2, 10]

    def test_versions_ignore_other_files(self, source, tmp_path):
        (tmp_path / "report.txt.~1~").write_text("x")
        (tmp_path / "report.txt.old.~4~").write_text("x")
        (tmp_path / "report.txt.~0~").write_text("x")
        (tmp_path / "other.txt.~5~").write_text("x")
        versions = naming.backup_versions(str(source), [str(tmp_path)])
        assert [v for v, _ in versions] == [1]

    def test_versions_across_directories(self, source, tmp_path):
        fallback = tmp_path / "fallback"
        fallback.mkdir()
        (tmp_path / "report.txt.~1~").write_text("x")
        (fallback / "report.txt.~4~").write_text("x")
        dirs = [str(tmp_path), str(fallback)]
        assert naming.next_backup_version(str(source), dirs) == 5

    def test_next_version_starts_at_one(self, source, tmp_path):
        assert naming.next_backup_version(str(source), [str(tmp_path / "nowhere")]) == 1

    def test_newest_includes_simple_backup(self, source, tmp_path):
        make_backup(source, age=500)
        simple = tmp_path / "report.txt~"
        simple.write_text("x")
        os.utime(simple, (NOW - 5, NOW - 5))
        assert naming.find_newest_backup(str(source), [str(tmp_path)]) == str(simple)

    def test_newest_none_when_absent(self, source, tmp_path):
        assert naming.find_newest_backup(str(source), [str(tmp_path)]) is None

    def test_prune_keeps_oldest_and_newest(self):
        versions = [(v, f"/b/f.~{v}~") for v in range(1, 8)]
        doomed = naming.versions_to_prune(versions, kept_new=2, kept_old=2)
        assert doomed == ["/b/f.~3~", "/b/f.~4~", "/b/f.~5~"]

    def test_prune_nothing_when_few(self):
        versions = [(v, f"/b/f.~{v}~") for v in range(1, 5)]
        assert naming.versions_to_prune(versions, kept_new=2, kept_old=2) == []
