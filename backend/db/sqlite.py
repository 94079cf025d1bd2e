"""
SQLite Storage
Persistent storage layer.

Responsibilities:
- Write samples, audit entries and order results to database
- Read them back for warm start
- Handle schema

NOT responsible for:
- Validation (done upstream)
- Ordering invariants (the store enforces them)
- Business logic (engines handle this)

Every sqlite3 failure surfaces as StoreUnavailable.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from core.errors import StoreUnavailable
from core.models import Sample, DataSource


logger = logging.getLogger(__name__)


class SQLiteStorage:
    """
    SQLite persistence for market data.

    Tables:
        - samples: Raw price/volume samples
        - audit_log: Append-only audit entries
        - order_results: One row per executed or rejected order
    """

    def __init__(self, db_path: str = "data/market.db"):
        self.db_path = db_path
        self._ensure_directory()
        self._init_schema()

    def _ensure_directory(self):
        """Create data directory"""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            logger.error("Cannot open %s: %s", self.db_path, e)
            raise StoreUnavailable(f"Storage unavailable: {e}", db_path=self.db_path) from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error("Storage operation failed on %s: %s", self.db_path, e)
            raise StoreUnavailable(f"Storage unavailable: {e}", db_path=self.db_path) from e
        finally:
            conn.close()

    def _init_schema(self):
        """Initialize database schema"""
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS samples (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    asset_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    price REAL NOT NULL,
                    volume REAL DEFAULT 0,
                    source TEXT DEFAULT 'api',
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(asset_id, timestamp)
                );

                CREATE INDEX IF NOT EXISTS idx_samples_asset_ts
                ON samples(asset_id, timestamp);

                CREATE TABLE IF NOT EXISTS audit_log (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    entry_id TEXT NOT NULL UNIQUE,
                    actor_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    target_type TEXT NOT NULL,
                    target_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    detail TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_audit_ts
                ON audit_log(timestamp);

                CREATE TABLE IF NOT EXISTS order_results (
                    order_id TEXT PRIMARY KEY,
                    asset_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                );
            """)

    # =========================================================================
    # Write Operations
    # =========================================================================

    def save_samples(self, asset_id: str, samples: List[Sample]) -> int:
        """Save samples for one asset"""
        if not samples:
            return 0

        with self._connect() as conn:
            conn.executemany(
                """INSERT INTO samples
                   (asset_id, timestamp, price, volume, source)
                   VALUES (?, ?, ?, ?, ?)""",
                [
                    (asset_id, s.ts.isoformat(), s.price, s.volume, s.source.value)
                    for s in samples
                ]
            )
            return len(samples)

    def save_audit_entry(self, entry: Dict[str, Any]) -> None:
        """Append one audit entry (already serialized to a dict)"""
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO audit_log
                   (entry_id, actor_id, action, target_type, target_id, timestamp, detail)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                [
                    entry["entry_id"], entry["actor_id"], entry["action"],
                    entry["target_type"], entry["target_id"], entry["timestamp"],
                    json.dumps(entry.get("detail") or {}, default=str),
                ]
            )

    def save_order_result(self, result: Dict[str, Any]) -> None:
        """Write an order result once; a second write for the same order fails."""
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO order_results (order_id, asset_id, status, payload)
                   VALUES (?, ?, ?, ?)""",
                [
                    result["order_id"], result["asset_id"], result["status"],
                    json.dumps(result, default=str),
                ]
            )

    def delete_order_result(self, order_id: str) -> None:
        """Remove a result whose audit entry could not be written."""
        with self._connect() as conn:
            conn.execute("DELETE FROM order_results WHERE order_id = ?", [order_id])

    # =========================================================================
    # Read Operations
    # =========================================================================

    def load_samples(self) -> List[Tuple[str, Sample]]:
        """All stored samples as (asset_id, Sample), per-asset chronological"""
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """SELECT asset_id, timestamp, price, volume, source FROM samples
                   ORDER BY asset_id, timestamp"""
            ).fetchall()

        return [
            (
                row["asset_id"],
                Sample(
                    ts=datetime.fromisoformat(row["timestamp"]),
                    price=row["price"],
                    volume=row["volume"],
                    source=DataSource(row["source"]) if row["source"] else DataSource.STORAGE,
                ),
            )
            for row in rows
        ]

    def load_audit_entries(self) -> List[Dict[str, Any]]:
        """All audit entries in append order"""
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """SELECT entry_id, actor_id, action, target_type, target_id, timestamp, detail
                   FROM audit_log ORDER BY seq"""
            ).fetchall()

        return [
            {
                "entry_id": row["entry_id"],
                "actor_id": row["actor_id"],
                "action": row["action"],
                "target_type": row["target_type"],
                "target_id": row["target_id"],
                "timestamp": row["timestamp"],
                "detail": json.loads(row["detail"]) if row["detail"] else {},
            }
            for row in rows
        ]

    def load_order_results(self, asset_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Stored order results as dicts, oldest first"""
        with self._connect() as conn:
            if asset_id:
                rows = conn.execute(
                    "SELECT payload FROM order_results WHERE asset_id = ? ORDER BY rowid",
                    [asset_id]
                ).fetchall()
            else:
                rows = conn.execute("SELECT payload FROM order_results ORDER BY rowid").fetchall()
        return [json.loads(row[0]) for row in rows]

    def get_assets(self) -> List[str]:
        """Get all assets with data"""
        with self._connect() as conn:
            cursor = conn.execute("SELECT DISTINCT asset_id FROM samples ORDER BY asset_id")
            return [row[0] for row in cursor.fetchall()]

    def get_stats(self) -> dict:
        """Get storage statistics"""
        with self._connect() as conn:
            sample_count = conn.execute("SELECT COUNT(*) FROM samples").fetchone()[0]
            audit_count = conn.execute("SELECT COUNT(*) FROM audit_log").fetchone()[0]
            order_count = conn.execute("SELECT COUNT(*) FROM order_results").fetchone()[0]

        return {
            "sample_count": sample_count,
            "audit_count": audit_count,
            "order_count": order_count,
            "assets": self.get_assets(),
            "db_path": self.db_path
        }

    # =========================================================================
    # Management
    # =========================================================================

    def clear_samples(self, asset_id: str = None):
        """Clear market data. Audit entries and order results are never deleted."""
        with self._connect() as conn:
            if asset_id:
                conn.execute("DELETE FROM samples WHERE asset_id = ?", [asset_id])
            else:
                conn.execute("DELETE FROM samples")


# =============================================================================
# Singleton
# =============================================================================

_storage: Optional[SQLiteStorage] = None


def get_storage() -> SQLiteStorage:
    """Get singleton storage instance"""
    global _storage
    if _storage is None:
        from core.config import get_settings
        _storage = SQLiteStorage(get_settings().db_path)
    return _storage
