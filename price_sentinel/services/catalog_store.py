"""
SQLite catalog store.

Holds tracked items, append-only price history and alerts, and a small
key/value table for system settings such as the last successful run time.
"""

import logging
import sqlite3
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..models.alert import AlertEvent, AlertKind
from ..models.item import AlertConfig, ThresholdMode, TrackedItem
from ..models.price import PriceRecord, PriceSource

logger = logging.getLogger(__name__)

LAST_RUN_KEY = "last_monitoring_run"

SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id INTEGER NOT NULL UNIQUE,
    name TEXT NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    alert_enabled INTEGER NOT NULL DEFAULT 1,
    threshold_mode TEXT NOT NULL DEFAULT 'price',
    threshold_value REAL NOT NULL DEFAULT 0,
    manual_historical_low REAL,
    was_unreleased INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS price_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id INTEGER NOT NULL REFERENCES items(id),
    current_price REAL NOT NULL,
    original_price REAL NOT NULL,
    discount_percent INTEGER NOT NULL DEFAULT 0,
    historical_low REAL NOT NULL DEFAULT 0,
    is_on_sale INTEGER NOT NULL DEFAULT 0,
    source TEXT NOT NULL,
    release_date TEXT,
    recorded_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_price_history_item
    ON price_history(item_id, recorded_at);

CREATE TABLE IF NOT EXISTS alerts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id INTEGER NOT NULL REFERENCES items(id),
    kind TEXT NOT NULL,
    trigger_price REAL NOT NULL,
    previous_price REAL,
    discount_percent INTEGER NOT NULL DEFAULT 0,
    notified INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_alerts_item_kind
    ON alerts(item_id, kind, created_at);

CREATE TABLE IF NOT EXISTS system_settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def _ts(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


class SQLiteCatalogStore:
    """
    SQLite implementation of the catalog store.

    One connection is shared by the process; every write runs in its own
    short transaction.
    """

    def __init__(self, db_path: Union[str, Path] = "data/price_sentinel.db"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            try:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create database directory: {e}")
                raise

        self._lock = threading.RLock()
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        with self._lock, self.conn:
            self.conn.executescript(SCHEMA)
        logger.info(f"Catalog store ready at {self.db_path}")

    def _write(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock, self.conn:
            return self.conn.execute(sql, params)

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, params).fetchall()

    def close(self):
        with self._lock:
            self.conn.close()

    # Items

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> TrackedItem:
        return TrackedItem(
            id=row["id"],
            external_id=row["external_id"],
            name=row["name"],
            enabled=bool(row["enabled"]),
            alert_enabled=bool(row["alert_enabled"]),
            alert_config=AlertConfig(
                threshold_mode=ThresholdMode(row["threshold_mode"]),
                threshold_value=row["threshold_value"],
            ),
            manual_historical_low=row["manual_historical_low"],
            was_unreleased=bool(row["was_unreleased"]),
        )

    def add_item(self, item: TrackedItem) -> TrackedItem:
        """Insert a new tracked item and return it with its row id."""
        item.validate()
        now = _ts(datetime.now())
        cursor = self._write(
            """
            INSERT INTO items (external_id, name, enabled, alert_enabled, threshold_mode,
                               threshold_value, manual_historical_low, was_unreleased,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.external_id,
                item.name,
                int(item.enabled),
                int(item.alert_enabled),
                item.alert_config.threshold_mode.value,
                item.alert_config.threshold_value,
                item.manual_historical_low,
                int(item.was_unreleased),
                now,
                now,
            ),
        )
        item.id = cursor.lastrowid
        return item

    def get_item(self, external_id: int) -> Optional[TrackedItem]:
        rows = self._query("SELECT * FROM items WHERE external_id = ?", (external_id,))
        return self._row_to_item(rows[0]) if rows else None

    def get_enabled_items(self) -> List[TrackedItem]:
        rows = self._query("SELECT * FROM items WHERE enabled = 1 ORDER BY id")
        return [self._row_to_item(row) for row in rows]

    def _update_item(self, item_id: int, column: str, value: Any) -> None:
        self._write(
            f"UPDATE items SET {column} = ?, updated_at = ? WHERE id = ?",
            (value, _ts(datetime.now()), item_id),
        )

    def update_item_name(self, item_id: int, name: str) -> None:
        self._update_item(item_id, "name", name)

    def set_item_enabled(self, item_id: int, enabled: bool) -> None:
        self._update_item(item_id, "enabled", int(enabled))

    def set_was_unreleased(self, item_id: int, was_unreleased: bool) -> None:
        self._update_item(item_id, "was_unreleased", int(was_unreleased))

    def set_manual_historical_low(self, item_id: int, value: Optional[float]) -> None:
        if value is not None and value < 0:
            raise ValueError("manual_historical_low cannot be negative")
        self._update_item(item_id, "manual_historical_low", value)

    def update_alert_config(self, item_id: int, alert_config: AlertConfig) -> None:
        alert_config.validate()
        self._write(
            "UPDATE items SET threshold_mode = ?, threshold_value = ?, updated_at = ? WHERE id = ?",
            (
                alert_config.threshold_mode.value,
                alert_config.threshold_value,
                _ts(datetime.now()),
                item_id,
            ),
        )

    # Price history

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> PriceRecord:
        return PriceRecord(
            id=row["id"],
            item_id=row["item_id"],
            current_price=row["current_price"],
            original_price=row["original_price"],
            discount_percent=row["discount_percent"],
            historical_low=row["historical_low"],
            is_on_sale=bool(row["is_on_sale"]),
            source=PriceSource(row["source"]),
            release_date=row["release_date"],
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )

    def add_price_record(self, record: PriceRecord) -> PriceRecord:
        record.validate()
        cursor = self._write(
            """
            INSERT INTO price_history (item_id, current_price, original_price, discount_percent,
                                       historical_low, is_on_sale, source, release_date, recorded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.item_id,
                record.current_price,
                record.original_price,
                record.discount_percent,
                record.historical_low,
                int(record.is_on_sale),
                record.source.value,
                record.release_date,
                _ts(record.recorded_at),
            ),
        )
        record.id = cursor.lastrowid
        return record

    def get_latest_record(self, item_id: int) -> Optional[PriceRecord]:
        rows = self._query(
            "SELECT * FROM price_history WHERE item_id = ? ORDER BY recorded_at DESC, id DESC LIMIT 1",
            (item_id,),
        )
        return self._row_to_record(rows[0]) if rows else None

    def get_price_history(self, item_id: int, days: Optional[int] = None) -> List[PriceRecord]:
        """Return an item's records, oldest first."""
        if days is None:
            rows = self._query(
                "SELECT * FROM price_history WHERE item_id = ? ORDER BY recorded_at, id",
                (item_id,),
            )
        else:
            cutoff = _ts(datetime.now() - timedelta(days=days))
            rows = self._query(
                "SELECT * FROM price_history WHERE item_id = ? AND recorded_at >= ? "
                "ORDER BY recorded_at, id",
                (item_id, cutoff),
            )
        return [self._row_to_record(row) for row in rows]

    # Alerts

    @staticmethod
    def _row_to_alert(row: sqlite3.Row) -> AlertEvent:
        return AlertEvent(
            id=row["id"],
            item_id=row["item_id"],
            kind=AlertKind(row["kind"]),
            trigger_price=row["trigger_price"],
            previous_price=row["previous_price"],
            discount_percent=row["discount_percent"],
            notified=bool(row["notified"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def add_alert(self, alert: AlertEvent) -> AlertEvent:
        alert.validate()
        cursor = self._write(
            """
            INSERT INTO alerts (item_id, kind, trigger_price, previous_price,
                                discount_percent, notified, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                alert.item_id,
                alert.kind.value,
                alert.trigger_price,
                alert.previous_price,
                alert.discount_percent,
                int(alert.notified),
                _ts(alert.created_at),
            ),
        )
        alert.id = cursor.lastrowid
        return alert

    def mark_alert_notified(self, alert_id: int) -> None:
        self._write("UPDATE alerts SET notified = 1 WHERE id = ?", (alert_id,))

    def count_alerts_since(self, item_id: int, kind: AlertKind, since: datetime) -> int:
        rows = self._query(
            "SELECT COUNT(*) AS n FROM alerts WHERE item_id = ? AND kind = ? AND created_at > ?",
            (item_id, kind.value, _ts(since)),
        )
        return rows[0]["n"]

    def get_alerts(self, item_id: Optional[int] = None, limit: int = 50) -> List[AlertEvent]:
        """Return the newest alerts, optionally for one item."""
        if item_id is None:
            rows = self._query(
                "SELECT * FROM alerts ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
            )
        else:
            rows = self._query(
                "SELECT * FROM alerts WHERE item_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
                (item_id, limit),
            )
        return [self._row_to_alert(row) for row in rows]

    # Maintenance

    def cleanup_older_than(self, days: int) -> Dict[str, int]:
        """
        Delete price history and alerts older than ``days``.

        The latest record of every item is kept regardless of age.
        """
        cutoff = _ts(datetime.now() - timedelta(days=days))
        with self._lock, self.conn:
            history = self.conn.execute(
                """
                DELETE FROM price_history
                WHERE recorded_at < ?
                  AND id NOT IN (
                      SELECT (
                          SELECT p.id FROM price_history AS p
                          WHERE p.item_id = tracked.item_id
                          ORDER BY p.recorded_at DESC, p.id DESC LIMIT 1
                      )
                      FROM (SELECT DISTINCT item_id FROM price_history) AS tracked
                  )
                """,
                (cutoff,),
            ).rowcount
            alerts = self.conn.execute(
                "DELETE FROM alerts WHERE created_at < ?", (cutoff,)
            ).rowcount

        logger.info(f"Cleanup removed {history} price records and {alerts} alerts older than {days} days")
        return {"price_history": history, "alerts": alerts}

    def get_setting(self, key: str) -> Optional[str]:
        rows = self._query("SELECT value FROM system_settings WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    def set_setting(self, key: str, value: str) -> None:
        self._write(
            """
            INSERT INTO system_settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, _ts(datetime.now())),
        )

    def get_last_run_time(self) -> Optional[datetime]:
        value = self.get_setting(LAST_RUN_KEY)
        return datetime.fromisoformat(value) if value else None

    def set_last_run_time(self, when: datetime) -> None:
        self.set_setting(LAST_RUN_KEY, _ts(when))

    def get_stats(self) -> Dict[str, int]:
        """Row counts for health reports."""
        rows = self._query(
            """
            SELECT
                (SELECT COUNT(*) FROM items) AS items,
                (SELECT COUNT(*) FROM items WHERE enabled = 1) AS enabled_items,
                (SELECT COUNT(*) FROM price_history) AS price_records,
                (SELECT COUNT(*) FROM alerts) AS alerts
            """
        )
        return dict(rows[0])
