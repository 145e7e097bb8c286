"""
Repository Pattern - local persistence for syncable records.

Records (settings, favourites, custom categories, custom words) and the
sentence history live in SQLite. All methods are blocking; async callers
run them in an executor.
"""

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import pandas as pd

from ..config import Config
from ..models.sync import SyncableRecord, SyncState
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """A spoken sentence."""
    id: int
    sentence: str
    timestamp: int  # epoch milliseconds
    synced: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"sentence": self.sentence, "timestamp": self.timestamp}


class LocalStore(ABC):
    """
    Abstract base class for local record storage.

    Records are addressed by (owner_id, kind, key).
    """

    @abstractmethod
    def get(self, owner_id: str, kind: str, key: str) -> Optional[SyncableRecord]:
        """Get one record or None."""
        pass

    @abstractmethod
    def put(self, record: SyncableRecord) -> bool:
        """Insert or replace a record. Returns True if successful."""
        pass

    @abstractmethod
    def delete(self, owner_id: str, kind: str, key: str) -> bool:
        """Delete a record. Returns True if a row was removed."""
        pass

    @abstractmethod
    def list_records(
        self,
        owner_id: str,
        kind: Optional[str] = None,
        state: Optional[SyncState] = None,
    ) -> List[SyncableRecord]:
        """List records for an owner, optionally filtered by kind and state."""
        pass

    def list_unsynced(self, owner_id: str, kind: Optional[str] = None) -> List[SyncableRecord]:
        """Records that still need a push."""
        return [r for r in self.list_records(owner_id, kind) if not r.synced]

    @abstractmethod
    def add_history(self, owner_id: str, sentence: str, timestamp: int) -> int:
        """Store a spoken sentence. Returns the new entry id or -1 on error."""
        pass

    @abstractmethod
    def recent_history(self, owner_id: str, limit: Optional[int] = None) -> List["HistoryEntry"]:
        """Most recent sentences, oldest first."""
        pass

    @abstractmethod
    def unsynced_history(self, owner_id: str) -> List["HistoryEntry"]:
        """Sentences not yet pushed, oldest first."""
        pass

    @abstractmethod
    def mark_history_synced(self, ids: List[int]) -> int:
        """Flag entries as pushed. Returns the number updated."""
        pass


class SQLiteLocalStore(LocalStore):
    """
    SQLite-based local store.

    Provides:
    - Records keyed by owner, kind and key with their sync state
    - Sentence history with a pushed-to-remote flag
    """

    # Schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path or Config.DB_PATH)
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get database connection with context manager."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    owner_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    key TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    state TEXT NOT NULL,
                    updated_at TEXT,
                    PRIMARY KEY (owner_id, kind, key)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    sentence TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    synced INTEGER DEFAULT 0
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_records_state ON records(owner_id, state)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_history_owner ON history(owner_id, timestamp)")

            cursor.execute("INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                           (self.SCHEMA_VERSION, datetime.now().isoformat()))

            conn.commit()

    # ==================== Records ====================

    def get(self, owner_id: str, kind: str, key: str) -> Optional[SyncableRecord]:
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT * FROM records WHERE owner_id = ? AND kind = ? AND key = ?",
                    (owner_id, kind, key)
                )
                row = cursor.fetchone()
                return SyncableRecord.from_row(dict(row), json.loads) if row else None
        except sqlite3.Error as e:
            logger.error(f"Error reading record {kind}:{key}: {e}")
            return None

    def put(self, record: SyncableRecord) -> bool:
        row = record.to_row(json.dumps)
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT OR REPLACE INTO records (owner_id, kind, key, payload, state, updated_at)
                    VALUES (:owner_id, :kind, :key, :payload, :state, :updated_at)
                """, row)
                conn.commit()
                return True
        except sqlite3.Error as e:
            logger.error(f"Error saving record {record.kind}:{record.key}: {e}")
            return False

    def delete(self, owner_id: str, kind: str, key: str) -> bool:
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "DELETE FROM records WHERE owner_id = ? AND kind = ? AND key = ?",
                    (owner_id, kind, key)
                )
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error deleting record {kind}:{key}: {e}")
            return False

    def list_records(
        self,
        owner_id: str,
        kind: Optional[str] = None,
        state: Optional[SyncState] = None,
    ) -> List[SyncableRecord]:
        df = self.records_frame(owner_id, kind, state)
        return [SyncableRecord.from_row(row, json.loads) for row in df.to_dict("records")]

    def records_frame(
        self,
        owner_id: str,
        kind: Optional[str] = None,
        state: Optional[SyncState] = None,
    ) -> pd.DataFrame:
        """Records as a DataFrame (payload left as JSON text)."""
        conditions = ["owner_id = ?"]
        params: List[Any] = [owner_id]
        if kind is not None:
            conditions.append("kind = ?")
            params.append(kind)
        if state is not None:
            conditions.append("state = ?")
            params.append(state.value)

        try:
            with self._get_connection() as conn:
                return pd.read_sql_query(
                    f"SELECT * FROM records WHERE {' AND '.join(conditions)} ORDER BY rowid",
                    conn,
                    params=params
                )
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.error(f"Error listing records: {e}")
            return pd.DataFrame(columns=["owner_id", "kind", "key", "payload", "state", "updated_at"])

    def count_by_state(self, owner_id: str) -> Dict[str, int]:
        """Number of records per sync state."""
        df = self.records_frame(owner_id)
        if df.empty:
            return {}
        return {str(k): int(v) for k, v in df.groupby("state").size().items()}

    # ==================== History ====================

    def add_history(self, owner_id: str, sentence: str, timestamp: int) -> int:
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT INTO history (owner_id, sentence, timestamp, synced) VALUES (?, ?, ?, 0)",
                    (owner_id, sentence, int(timestamp))
                )
                conn.commit()
                return cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(f"Error saving history: {e}")
            return -1

    def recent_history(self, owner_id: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        """
        Most recent sentences, oldest first.

        Args:
            owner_id: Owner
            limit: Number of entries (defaults to Config.HISTORY_LIMIT)
        """
        limit = Config.HISTORY_LIMIT if limit is None else limit
        try:
            with self._get_connection() as conn:
                df = pd.read_sql_query(
                    "SELECT * FROM history WHERE owner_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
                    conn,
                    params=[owner_id, limit]
                )
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.error(f"Error reading history: {e}")
            return []
        df = df.sort_values(["timestamp", "id"])
        return [self._history_entry(row) for row in df.to_dict("records")]

    def unsynced_history(self, owner_id: str) -> List[HistoryEntry]:
        try:
            with self._get_connection() as conn:
                df = pd.read_sql_query(
                    "SELECT * FROM history WHERE owner_id = ? AND synced = 0 ORDER BY timestamp, id",
                    conn,
                    params=[owner_id]
                )
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.error(f"Error reading history: {e}")
            return []
        return [self._history_entry(row) for row in df.to_dict("records")]

    def mark_history_synced(self, ids: List[int]) -> int:
        """Flag history rows as pushed."""
        if not ids:
            return 0

        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                placeholders = ",".join("?" for _ in ids)
                cursor.execute(f"UPDATE history SET synced = 1 WHERE id IN ({placeholders})", list(ids))
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Error updating history: {e}")
            return 0

    @staticmethod
    def _history_entry(row: Dict[str, Any]) -> HistoryEntry:
        return HistoryEntry(
            id=int(row["id"]),
            sentence=str(row["sentence"]),
            timestamp=int(row["timestamp"]),
            synced=bool(row["synced"]),
        )
