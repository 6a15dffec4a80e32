"""
SQLite state store: migrations, token cache slot, fulfillment state, sync snapshot and locks.
"""

import glob
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from ..constants import STATUS_RECEIVED, STATUS_SUBMITTING, STATUS_UNSUBMITTED
from ..models import AccessToken, FulfillmentOrder, SyncReport

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class MigrationManager:
    """Database migration management."""

    def __init__(self, db_path: str, migrations_dir: str):
        self.db_path = db_path
        self.migrations_dir = migrations_dir

    def _create_migrations_table(self, conn: sqlite3.Connection):
        """Create the migrations tracking table if it doesn't exist."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT NOT NULL UNIQUE,
                executed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()

    def _get_executed_migrations(self, conn: sqlite3.Connection) -> list[str]:
        cursor = conn.execute("SELECT filename FROM migrations ORDER BY id")
        return [row[0] for row in cursor.fetchall()]

    def _execute_migration(self, conn: sqlite3.Connection, migration_file: str) -> None:
        """Execute a single migration file."""
        migration_name = os.path.basename(migration_file)
        logger.info(f"Executing migration: {migration_name}")

        try:
            with open(migration_file, encoding="utf-8") as f:
                migration_sql = f.read()

            conn.executescript(migration_sql)
            conn.execute("INSERT INTO migrations (filename) VALUES (?)", (migration_name,))
            conn.commit()
            logger.info(f"Migration {migration_name} executed successfully")

        except Exception as e:
            conn.rollback()
            logger.exception(f"Failed to execute migration {migration_name}: {e}")
            raise

    def run_migrations(self) -> list[str]:
        """Run all pending migrations."""
        executed_migrations = []

        conn = sqlite3.connect(self.db_path)
        try:
            self._create_migrations_table(conn)
            executed = set(self._get_executed_migrations(conn))

            for migration_file in sorted(glob.glob(f"{self.migrations_dir}/*.sql")):
                migration_name = os.path.basename(migration_file)
                if migration_name not in executed:
                    self._execute_migration(conn, migration_file)
                    executed_migrations.append(migration_name)
        finally:
            conn.close()

        return executed_migrations


class StateDatabase:
    """Durable state owned by the bridge (the store keeps products and orders)."""

    def __init__(self, db_path: str):
        self.db_path = os.path.abspath(db_path)
        self.migrations_dir = os.path.join(os.path.dirname(__file__), "migrations")

        os.makedirs(os.path.dirname(self.db_path), exist_ok=True)
        self._initialize_database()

    def _initialize_database(self):
        logger.info(f"Initializing state database at: {self.db_path}")

        if not os.path.exists(self.db_path):
            Path(self.db_path).touch()

        executed = MigrationManager(self.db_path, self.migrations_dir).run_migrations()
        if executed:
            logger.info(f"Executed {len(executed)} migrations: {', '.join(executed)}")
        else:
            logger.info("Database is up to date")

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection; commits on success, rolls back on error."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
            conn.commit()
        except Exception as e:
            if conn:
                conn.rollback()
            logger.exception(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    # -- token cache -------------------------------------------------------

    def get_cached_token(self, cache_key: str, now: float) -> Optional[AccessToken]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT access_token, expires_at FROM token_cache WHERE cache_key = ? AND expires_at > ?",
                (cache_key, now),
            ).fetchone()
        if row is None:
            return None
        return AccessToken(value=row["access_token"], expires_at=row["expires_at"])

    def store_token(self, cache_key: str, token: AccessToken) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO token_cache (cache_key, access_token, expires_at) VALUES (?, ?, ?) "
                "ON CONFLICT(cache_key) DO UPDATE SET "
                "access_token = excluded.access_token, expires_at = excluded.expires_at, "
                "created_at = CURRENT_TIMESTAMP",
                (cache_key, token.value, token.expires_at),
            )

    def delete_token(self, cache_key: Optional[str] = None) -> int:
        """Drop one durable token slot, or all of them when no key is given."""
        with self.get_connection() as conn:
            if cache_key is None:
                cursor = conn.execute("DELETE FROM token_cache")
            else:
                cursor = conn.execute("DELETE FROM token_cache WHERE cache_key = ?", (cache_key,))
            return cursor.rowcount

    # -- locks -------------------------------------------------------------

    def acquire_lock(self, name: str, owner: str, ttl: float, now: float) -> bool:
        """Take a named lock unless another owner holds an unexpired one."""
        with self.get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO locks (name, owner, expires_at) VALUES (?, ?, ?) "
                "ON CONFLICT(name) DO UPDATE SET owner = excluded.owner, expires_at = excluded.expires_at "
                "WHERE locks.expires_at <= ? OR locks.owner = excluded.owner",
                (name, owner, now + ttl, now),
            )
            return cursor.rowcount == 1

    def release_lock(self, name: str, owner: str) -> None:
        with self.get_connection() as conn:
            conn.execute("DELETE FROM locks WHERE name = ? AND owner = ?", (name, owner))

    # -- sync snapshot -----------------------------------------------------

    def save_sync_report(self, report: SyncReport) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO sync_reports (id, report, updated_at) VALUES (1, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET report = excluded.report, updated_at = excluded.updated_at",
                (json.dumps(report.to_dict()), utc_now_iso()),
            )

    def get_last_sync_report(self) -> Optional[SyncReport]:
        with self.get_connection() as conn:
            row = conn.execute("SELECT report FROM sync_reports WHERE id = 1").fetchone()
        if row is None:
            return None
        return SyncReport.from_dict(json.loads(row["report"]))

    # -- fulfillment orders ------------------------------------------------

    @staticmethod
    def _row_to_fulfillment(row: sqlite3.Row) -> FulfillmentOrder:
        return FulfillmentOrder(
            store_order_id=row["store_order_id"],
            mcf_order_id=row["mcf_order_id"],
            status=row["status"],
            items=json.loads(row["items"] or "[]"),
            destination_address=json.loads(row["destination_address"] or "{}"),
            submitted_at=row["submitted_at"],
            tracking_number=row["tracking_number"],
            carrier=row["carrier"],
            last_error=row["last_error"],
            updated_at=row["updated_at"],
        )

    def get_fulfillment(self, store_order_id: int) -> Optional[FulfillmentOrder]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM fulfillment_orders WHERE store_order_id = ?", (store_order_id,)
            ).fetchone()
        return self._row_to_fulfillment(row) if row else None

    def list_fulfillments(self, statuses: Optional[list[str]] = None) -> list[FulfillmentOrder]:
        query = "SELECT * FROM fulfillment_orders"
        params: list[Any] = []
        if statuses:
            query += f" WHERE status IN ({','.join('?' * len(statuses))})"
            params.extend(statuses)
        query += " ORDER BY store_order_id"
        with self.get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_fulfillment(row) for row in rows]

    def claim_submission(
        self,
        store_order_id: int,
        mcf_order_id: str,
        items: list[dict[str, Any]],
        destination_address: dict[str, Any],
    ) -> bool:
        """Reserve ``mcf_order_id`` for the order.

        Single upsert statement: succeeds only when no MCF order id is stored
        yet, so two concurrent submits for the same order cannot both win.
        """
        with self.get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO fulfillment_orders "
                "(store_order_id, mcf_order_id, status, items, destination_address, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(store_order_id) DO UPDATE SET "
                "mcf_order_id = excluded.mcf_order_id, status = excluded.status, "
                "items = excluded.items, destination_address = excluded.destination_address, "
                "updated_at = excluded.updated_at "
                "WHERE fulfillment_orders.mcf_order_id IS NULL",
                (
                    store_order_id,
                    mcf_order_id,
                    STATUS_SUBMITTING,
                    json.dumps(items),
                    json.dumps(destination_address),
                    utc_now_iso(),
                ),
            )
            return cursor.rowcount == 1

    def mark_submitted(self, store_order_id: int, submitted_at: str) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "UPDATE fulfillment_orders SET status = ?, submitted_at = ?, last_error = NULL, updated_at = ? "
                "WHERE store_order_id = ?",
                (STATUS_RECEIVED, submitted_at, utc_now_iso(), store_order_id),
            )

    def mark_submission_failed(self, store_order_id: int, error: str) -> None:
        """Release the claimed id and keep the error for a manual retry."""
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO fulfillment_orders (store_order_id, status, last_error, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(store_order_id) DO UPDATE SET mcf_order_id = NULL, status = excluded.status, "
                "last_error = excluded.last_error, updated_at = excluded.updated_at",
                (store_order_id, STATUS_UNSUBMITTED, error, utc_now_iso()),
            )

    def clear_error(self, store_order_id: int) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "UPDATE fulfillment_orders SET last_error = NULL, updated_at = ? WHERE store_order_id = ?",
                (utc_now_iso(), store_order_id),
            )

    def update_fulfillment_status(
        self,
        store_order_id: int,
        status: str,
        tracking_number: Optional[str] = None,
        carrier: Optional[str] = None,
    ) -> None:
        """Store a new MCF status; tracking fields are only overwritten when provided."""
        with self.get_connection() as conn:
            conn.execute(
                "UPDATE fulfillment_orders SET status = ?, "
                "tracking_number = COALESCE(?, tracking_number), carrier = COALESCE(?, carrier), "
                "updated_at = ? WHERE store_order_id = ?",
                (status, tracking_number, carrier, utc_now_iso(), store_order_id),
            )

    def get_health_check(self) -> dict[str, Any]:
        """Get database health information."""
        try:
            with self.get_connection() as conn:
                order_count = conn.execute("SELECT COUNT(*) FROM fulfillment_orders").fetchone()[0]
                pending = conn.execute(
                    "SELECT COUNT(*) FROM fulfillment_orders WHERE last_error IS NOT NULL"
                ).fetchone()[0]

            return {
                "status": "healthy",
                "database_path": self.db_path,
                "database_size_bytes": os.path.getsize(self.db_path) if os.path.exists(self.db_path) else 0,
                "fulfillment_orders": order_count,
                "orders_with_errors": pending,
                "checked_at": utc_now_iso(),
            }

        except sqlite3.Error as e:
            return {"status": "unhealthy", "error": str(e), "checked_at": utc_now_iso()}
