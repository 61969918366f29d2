"""SQLite repository for alert records and deduplication state."""
import json
import sqlite3
import logging
import threading
from pathlib import Path

from models.alerts import Alert

logger = logging.getLogger("netalert.db")


class Database:
    def __init__(self, db_path="data/alerts.db"):
        self.db_path = db_path
        self.conn = None
        self._lock = threading.Lock()

    def connect(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS alerts (
                id TEXT PRIMARY KEY,
                rule_id TEXT NOT NULL,
                device_id TEXT NOT NULL,
                provider_id TEXT,
                severity TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                record TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_alerts_status
                ON alerts(status);

            CREATE INDEX IF NOT EXISTS idx_alerts_created
                ON alerts(created_at);

            CREATE INDEX IF NOT EXISTS idx_alerts_device
                ON alerts(device_id, provider_id);

            CREATE TABLE IF NOT EXISTS dedup_state (
                rule_id TEXT NOT NULL,
                device_id TEXT NOT NULL,
                metric TEXT NOT NULL,
                last_accepted TEXT NOT NULL,
                PRIMARY KEY (rule_id, device_id, metric)
            );
        """)
        self.conn.commit()

    # --- Alerts ---

    def save_alert(self, alert: Alert):
        d = alert.to_dict()
        with self._lock:
            self.conn.execute("""
                INSERT OR REPLACE INTO alerts
                (id, rule_id, device_id, provider_id, severity, status, created_at, record)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                d["id"], d["rule_id"], d["device_id"], d["provider_id"],
                d["severity"], d["status"], d["created_at"], json.dumps(d, default=str),
            ))
            self.conn.commit()
        logger.debug(f"Saved alert {d['id']} ({d['status']})")

    def load_alerts(self):
        with self._lock:
            rows = self.conn.execute(
                "SELECT record FROM alerts ORDER BY created_at ASC, rowid ASC"
            ).fetchall()
        return [Alert.from_dict(json.loads(r["record"])) for r in rows]

    def get_alert_counts(self):
        with self._lock:
            rows = self.conn.execute(
                "SELECT status, COUNT(*) AS n FROM alerts GROUP BY status"
            ).fetchall()
        return {r["status"]: r["n"] for r in rows}

    # --- Deduplication state ---

    def save_dedup_state(self, records):
        with self._lock:
            self.conn.executemany("""
                INSERT OR REPLACE INTO dedup_state (rule_id, device_id, metric, last_accepted)
                VALUES (?, ?, ?, ?)
            """, [(r["rule_id"], r["device_id"], r["metric"], r["last_accepted"]) for r in records])
            self.conn.commit()
        logger.debug(f"Saved {len(records)} dedup entries")

    def load_dedup_state(self):
        with self._lock:
            rows = self.conn.execute("SELECT * FROM dedup_state").fetchall()
        return [dict(r) for r in rows]
