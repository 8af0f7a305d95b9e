"""
SQLite Alert Store
Persistent alert history.

Responsibilities:
- Write alert lifecycle events (created / acknowledged / dismissed / resolved)
- Read alert history and daily summaries

NOT responsible for:
- Deciding what is an alert (engine handles this)
- Retrying failed writes (the engine logs and moves on)
"""

import json
import sqlite3
from contextlib import contextmanager
import pandas as pd
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
from datetime import datetime

from alerts.models import AlertAction, AlertEvent


class SQLiteAlertStore:
    """
    SQLite persistence for alert history.

    One row per alert id, updated in place as the alert moves
    through its lifecycle.

    Tables:
        - alerts_history: Alert rows with lifecycle columns
    """

    def __init__(self, db_path: str = "data/alerts.db"):
        self.db_path = db_path
        self._ensure_directory()
        self._init_schema()

    def _ensure_directory(self):
        """Create data directory"""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Connection that commits on success and is always closed"""
        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_schema(self):
        """Initialize database schema"""
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS alerts_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    alert_id TEXT UNIQUE NOT NULL,
                    rule_id TEXT NOT NULL,
                    rule_name TEXT NOT NULL,
                    severity TEXT NOT NULL
                        CHECK (severity IN ('LOW', 'MEDIUM', 'HIGH', 'CRITICAL')),
                    message TEXT NOT NULL,
                    fingerprint TEXT,
                    job_id TEXT,
                    job_status TEXT,
                    truck_id TEXT,
                    created_at TEXT NOT NULL,
                    acknowledged INTEGER DEFAULT 0,
                    acknowledged_at TEXT,
                    acknowledged_by TEXT,
                    dismissed INTEGER DEFAULT 0,
                    dismissed_at TEXT,
                    dismissed_by TEXT,
                    resolved INTEGER DEFAULT 0,
                    resolved_at TEXT,
                    resolution TEXT,
                    response_time_seconds INTEGER,
                    resolution_time_seconds INTEGER,
                    details TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_alerts_history_severity
                ON alerts_history(severity);

                CREATE INDEX IF NOT EXISTS idx_alerts_history_job_id
                ON alerts_history(job_id);

                CREATE INDEX IF NOT EXISTS idx_alerts_history_created
                ON alerts_history(created_at);

                CREATE INDEX IF NOT EXISTS idx_alerts_history_rule
                ON alerts_history(rule_id);
            """)

    # =========================================================================
    # Write Operations
    # =========================================================================

    def record_event(self, event: AlertEvent) -> None:
        """HistorySink entry point"""
        if event.action == AlertAction.CREATED:
            self._insert(event)
        elif event.action == AlertAction.ACKNOWLEDGED:
            self._update(event, {
                "acknowledged": 1,
                "acknowledged_at": event.timestamp.isoformat(),
                "acknowledged_by": event.actor,
            }, "response_time_seconds")
        elif event.action == AlertAction.DISMISSED:
            self._update(event, {
                "dismissed": 1,
                "dismissed_at": event.timestamp.isoformat(),
                "dismissed_by": event.actor,
            }, "resolution_time_seconds")
        elif event.action == AlertAction.RESOLVED:
            resolution = event.alert.resolution
            self._update(event, {
                "resolved": 1,
                "resolved_at": event.timestamp.isoformat(),
                "resolution": resolution.value if resolution else None,
            }, "resolution_time_seconds")

    def _insert(self, event: AlertEvent) -> None:
        """Upsert: a re-created alert id starts a fresh lifecycle"""
        alert = event.alert
        with self._connect() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO alerts_history
                   (alert_id, rule_id, rule_name, severity, message, fingerprint,
                    job_id, job_status, truck_id, created_at, details)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    alert.id, alert.rule_id, alert.rule_name, alert.severity.value,
                    alert.message, alert.fingerprint, alert.job_id, alert.job_status,
                    alert.truck_id, alert.timestamp.isoformat(),
                    json.dumps(alert.to_dict()),
                ),
            )

    def _update(self, event: AlertEvent, columns: Dict[str, Any], elapsed_column: str) -> None:
        """Update lifecycle columns; seconds since creation go to elapsed_column"""
        alert = event.alert
        elapsed = int((event.timestamp - alert.timestamp).total_seconds())
        columns = {**columns, elapsed_column: elapsed}

        assignments = ", ".join(f"{name} = ?" for name in columns)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE alerts_history SET {assignments} WHERE alert_id = ?",
                [*columns.values(), alert.id],
            )
            if cursor.rowcount == 0:
                raise LookupError(f"No stored alert {alert.id} for {event.action.value} event")

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_alerts(
        self,
        severity: Optional[str] = None,
        rule_id: Optional[str] = None,
        job_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Stored alert rows, newest first"""
        clauses = []
        params: List[Any] = []
        for column, value in (("severity", severity), ("rule_id", rule_id), ("job_id", job_id)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                f"""SELECT * FROM alerts_history {where}
                    ORDER BY created_at DESC, id DESC LIMIT ?""",
                [*params, limit],
            )
            rows = cursor.fetchall()

        return [self._row_to_dict(row) for row in rows]

    def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM alerts_history WHERE alert_id = ?", [alert_id]
            ).fetchone()
        return self._row_to_dict(row) if row else None

    def get_history_df(self, since: Optional[datetime] = None) -> pd.DataFrame:
        """Read alert history as DataFrame (for analytics)"""
        query = """SELECT alert_id, rule_id, severity, job_id, created_at,
                          acknowledged, dismissed, resolved, resolution,
                          response_time_seconds, resolution_time_seconds
                   FROM alerts_history"""
        params: List[Any] = []
        if since is not None:
            query += " WHERE created_at >= ?"
            params.append(since.isoformat())
        query += " ORDER BY created_at"

        with self._connect() as conn:
            df = pd.read_sql_query(query, conn, params=params)

        if not df.empty:
            df['created_at'] = pd.to_datetime(df['created_at'])
            for col in ('acknowledged', 'dismissed', 'resolved'):
                df[col] = df[col].astype(bool)

        return df

    def daily_summary(self) -> pd.DataFrame:
        """Alert counts per day and severity"""
        df = self.get_history_df()
        columns = [
            "alert_date", "severity", "alert_count", "acknowledged_count",
            "resolved_count", "avg_response_seconds",
        ]
        if df.empty:
            return pd.DataFrame(columns=columns)

        df['alert_date'] = df['created_at'].dt.date
        summary = (
            df.groupby(['alert_date', 'severity'])
            .agg(
                alert_count=('alert_id', 'count'),
                acknowledged_count=('acknowledged', 'sum'),
                resolved_count=('resolved', 'sum'),
                avg_response_seconds=('response_time_seconds', 'mean'),
            )
            .reset_index()
            .sort_values(['alert_date', 'severity'], ascending=[False, True])
            .reset_index(drop=True)
        )
        return summary[columns]

    def get_stats(self) -> dict:
        """Get storage statistics"""
        with self._connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM alerts_history").fetchone()[0]
            open_count = conn.execute(
                """SELECT COUNT(*) FROM alerts_history
                   WHERE resolved = 0 AND dismissed = 0"""
            ).fetchone()[0]
            by_severity = dict(conn.execute(
                "SELECT severity, COUNT(*) FROM alerts_history GROUP BY severity"
            ).fetchall())

        return {
            "alert_count": total,
            "open_count": open_count,
            "by_severity": by_severity,
            "db_path": self.db_path,
        }

    # =========================================================================
    # Management
    # =========================================================================

    def clear(self):
        """Clear data"""
        with self._connect() as conn:
            conn.execute("DELETE FROM alerts_history")

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        data.pop("id", None)
        data["details"] = json.loads(data["details"]) if data.get("details") else {}
        for col in ("acknowledged", "dismissed", "resolved"):
            data[col] = bool(data[col])
        return data
