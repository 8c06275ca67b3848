"""SQLite record of backups, autosaves and relocations."""

import sqlite3
import threading
import logging
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

EVENT_BACKUP = "backup"
EVENT_FORCED_BACKUP = "forced_backup"
EVENT_AUTOSAVE = "autosave"
EVENT_PRUNED = "pruned"


class SaveEventLog:
    """Thread-safe SQLite logger for save lifecycle events."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        if not hasattr(self._local, "connection") or self._local.connection is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path), timeout=10
            )
            self._local.connection.row_factory = sqlite3.Row
            self._local.connection.execute("PRAGMA journal_mode=WAL")
            self._local.connection.execute("PRAGMA synchronous=NORMAL")
        return self._local.connection

    def _init_db(self):
        conn = self._get_connection()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS save_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                event_type TEXT NOT NULL,
                file_path TEXT NOT NULL,
                target_path TEXT,
                relocated INTEGER NOT NULL DEFAULT 0,
                detail TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_save_events_timestamp
                ON save_events(timestamp);
            CREATE INDEX IF NOT EXISTS idx_save_events_type
                ON save_events(event_type);
            CREATE INDEX IF NOT EXISTS idx_save_events_path
                ON save_events(file_path);
        """)
        conn.commit()
        logger.info("Save event log initialized at %s", self.db_path)

    def log_event(
        self,
        event_type: str,
        file_path: str,
        target_path: str = None,
        relocated: bool = False,
        detail: str = None,
    ) -> int:
        """Insert an event record. Returns the row ID."""
        timestamp = datetime.now().isoformat()
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT INTO save_events (
                timestamp, event_type, file_path, target_path, relocated, detail
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (timestamp, event_type, file_path, target_path, int(relocated), detail),
        )
        conn.commit()
        logger.debug("Logged %s event for %s -> %s", event_type, file_path, target_path)
        return cursor.lastrowid

    def get_events(
        self,
        since: str = None,
        event_type: str = None,
        file_path: str = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query events with optional filters, newest first."""
        conn = self._get_connection()
        query = "SELECT * FROM save_events WHERE 1=1"
        params = []

        if since:
            query += " AND timestamp >= ?"
            params.append(since)
        if event_type:
            query += " AND event_type = ?"
            params.append(event_type)
        if file_path:
            query += " AND file_path = ?"
            params.append(file_path)

        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        rows = conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def close(self):
        if hasattr(self._local, "connection") and self._local.connection:
            self._local.connection.close()
            self._local.connection = None
