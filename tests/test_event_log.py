"""Tests for the SaveEventLog database module."""

import os
import sqlite3
import threading

import pytest

from savepolicy.database.event_log import (
    EVENT_AUTOSAVE,
    EVENT_BACKUP,
    SaveEventLog,
)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "save_events.db")


@pytest.fixture
def event_log(db_path):
    log = SaveEventLog(db_path)
    yield log
    log.close()


class TestDatabaseInit:
    def test_creates_database_file(self, db_path):
        log = SaveEventLog(db_path)
        assert os.path.exists(db_path)
        log.close()

    def test_creates_parent_directories(self, tmp_path):
        db_path = str(tmp_path / "nested" / "dir" / "events.db")
        log = SaveEventLog(db_path)
        assert os.path.exists(db_path)
        log.close()

    def test_schema_has_required_columns(self, event_log, db_path):
        conn = sqlite3.connect(db_path)
        columns = {row[1] for row in conn.execute("PRAGMA table_info(save_events)")}
        conn.close()
        assert {
            "id", "timestamp", "event_type", "file_path",
            "target_path", "relocated", "detail",
        }.issubset(columns)


class TestLogEvent:
    def test_log_backup_event(self, event_log):
        row_id = event_log.log_event(
            event_type=EVENT_BACKUP,
            file_path="/etc/foo.conf",
            target_path="/home/u/.emacs.d/file-backups/box/foo.conf.~1~",
            relocated=True,
        )
        assert row_id == 1
        events = event_log.get_events(limit=1)
        assert events[0]["event_type"] == EVENT_BACKUP
        assert events[0]["relocated"] == 1

    def test_filters(self, event_log):
        event_log.log_event(EVENT_BACKUP, "/a.txt", "/a.txt.~1~")
        event_log.log_event(EVENT_AUTOSAVE, "/a.txt", "/#a.txt#")
        event_log.log_event(EVENT_AUTOSAVE, "/b.txt", "/#b.txt#")

        assert len(event_log.get_events(event_type=EVENT_AUTOSAVE)) == 2
        assert len(event_log.get_events(file_path="/a.txt")) == 2
        assert len(event_log.get_events(event_type=EVENT_BACKUP, file_path="/b.txt")) == 0

    def test_newest_first(self, event_log):
        event_log.log_event(EVENT_BACKUP, "/first", None)
        event_log.log_event(EVENT_BACKUP, "/second", None)
        events = event_log.get_events()
        assert [e["file_path"] for e in events] == ["/second", "/first"]

    def test_limit(self, event_log):
        for i in range(5):
            event_log.log_event(EVENT_BACKUP, f"/f{i}", None)
        assert len(event_log.get_events(limit=3)) == 3


class TestThreadSafety:
    def test_concurrent_writers(self, event_log):
        def writer(n):
            for i in range(20):
                event_log.log_event(EVENT_AUTOSAVE, f"/t{n}/{i}", None)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(event_log.get_events(limit=1000)) == 80
