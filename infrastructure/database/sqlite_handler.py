import logging
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from app.domain.exceptions import RepositoryError
from infrastructure.database.ops.diagnosis import DiagnosisOperations
from infrastructure.database.ops.environment import EnvironmentOperations
from infrastructure.database.ops.farm_locations import FarmLocationOperations
from infrastructure.database.ops.notifications import NotificationOperations

logger = logging.getLogger(__name__)


class SQLiteDatabaseHandler(
    EnvironmentOperations,
    DiagnosisOperations,
    NotificationOperations,
    FarmLocationOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals."""

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()

        # Ensure the directory for the database file exists
        if database_path != ":memory:":
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", db_path.parent)

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask | None = None) -> None:
        if app is not None:
            app.teardown_appcontext(self.close_db)
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            try:
                connection = self._open_connection()
            except sqlite3.DatabaseError as exc:
                if self._is_corruption_error(exc):
                    logger.error("Database appears corrupt (%s). Recreating a fresh database.", exc)
                    self._quarantine_corrupt_db()
                    connection = self._open_connection()
                else:
                    raise
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False, timeout=10.0)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _is_corruption_error(self, exc: sqlite3.Error) -> bool:
        message = str(exc).lower()
        return (
            "database disk image is malformed" in message
            or "file is not a database" in message
            or "malformed" in message
        )

    def _quarantine_corrupt_db(self) -> Optional[Path]:
        db_path = Path(self._database_path)
        if not db_path.exists():
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        quarantine_dir = db_path.parent / "corrupt"
        quarantine_dir.mkdir(parents=True, exist_ok=True)

        suffix = db_path.suffix or ".db"
        quarantined = quarantine_dir / f"{db_path.stem}_corrupt_{timestamp}{suffix}"
        try:
            shutil.move(str(db_path), str(quarantined))
            for sidecar_suffix in ("-wal", "-shm"):
                sidecar = Path(f"{db_path}{sidecar_suffix}")
                if sidecar.exists():
                    shutil.move(str(sidecar), str(quarantine_dir / f"{sidecar.name}_{timestamp}"))
            logger.warning("Quarantined corrupt database to %s", quarantined)
            return quarantined
        except OSError as exc:
            logger.error("Failed to quarantine corrupt database %s: %s", db_path, exc)
            return None

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """WAL lets the scheduler write while API requests read."""
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA foreign_keys=ON")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        finally:
            conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        try:
            with self.connection() as db:
                # One row per (farmer, location, UTC day)
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS EnvironmentalDaily (
                        record_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        record_key TEXT NOT NULL UNIQUE,
                        farmer_id TEXT,
                        day TEXT NOT NULL,
                        location_key TEXT NOT NULL,
                        location_id TEXT,
                        latitude REAL,
                        longitude REAL,
                        readings TEXT NOT NULL DEFAULT '[]',
                        temperature REAL NOT NULL,
                        humidity REAL NOT NULL,
                        rainfall REAL NOT NULL DEFAULT 0,
                        soil_moisture REAL,
                        cri REAL NOT NULL,
                        risk_level TEXT NOT NULL,
                        blight_type TEXT NOT NULL,
                        percentage_changes TEXT NOT NULL DEFAULT '{}',
                        data_source TEXT NOT NULL DEFAULT 'combined',
                        adjusted_by_diagnosis_id INTEGER,
                        version INTEGER NOT NULL DEFAULT 1,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_environmental_daily_farmer_day "
                    "ON EnvironmentalDaily(farmer_id, location_key, day)"
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Diagnosis (
                        diagnosis_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        farmer_id TEXT NOT NULL,
                        image_url TEXT NOT NULL,
                        condition TEXT NOT NULL DEFAULT 'Pending',
                        confidence REAL NOT NULL DEFAULT 0,
                        recommendation TEXT,
                        cri REAL NOT NULL DEFAULT 0,
                        coordinates TEXT,
                        status TEXT NOT NULL DEFAULT 'pending',
                        environmental_record_id INTEGER,
                        symptoms TEXT,
                        farmer_message TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        FOREIGN KEY (environmental_record_id)
                            REFERENCES EnvironmentalDaily(record_id) ON DELETE SET NULL
                    )
                    """
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_diagnosis_farmer ON Diagnosis(farmer_id, created_at)"
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Notification (
                        notification_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        farmer_id TEXT NOT NULL,
                        notification_type TEXT NOT NULL,
                        title TEXT NOT NULL,
                        body TEXT NOT NULL,
                        priority TEXT NOT NULL DEFAULT 'medium',
                        data TEXT,
                        is_read INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL,
                        read_at TEXT
                    )
                    """
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_notification_farmer ON Notification(farmer_id, is_read)"
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS NotificationSettings (
                        farmer_id TEXT PRIMARY KEY,
                        enable_push INTEGER NOT NULL DEFAULT 1,
                        enable_email INTEGER NOT NULL DEFAULT 1,
                        weather_alerts INTEGER NOT NULL DEFAULT 1,
                        blight_risk_alerts INTEGER NOT NULL DEFAULT 1,
                        farming_tips INTEGER NOT NULL DEFAULT 1,
                        diagnosis_results INTEGER NOT NULL DEFAULT 1,
                        updated_at TEXT
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS FarmLocation (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        farmer_id TEXT NOT NULL,
                        location_key TEXT NOT NULL,
                        location_id TEXT,
                        latitude REAL NOT NULL,
                        longitude REAL NOT NULL,
                        active INTEGER NOT NULL DEFAULT 1,
                        created_at TEXT NOT NULL,
                        UNIQUE (farmer_id, location_key)
                    )
                    """
                )
            logger.info("Database tables ready at %s", self._database_path)
        except sqlite3.Error as exc:
            logger.error("Failed to create tables: %s", exc)
            raise RepositoryError("Failed to create database schema") from exc

    # --- Account erasure -------------------------------------------------------
    def erase_farmer(self, farmer_id: str) -> dict[str, int]:
        """Delete everything a farmer owns in one transaction."""
        tables = ("Diagnosis", "EnvironmentalDaily", "Notification", "NotificationSettings", "FarmLocation")
        db = self.get_db()
        try:
            counts = {}
            for table in tables:
                cur = db.execute(f"DELETE FROM {table} WHERE farmer_id = ?", (farmer_id,))  # nosec B608
                counts[table] = cur.rowcount
            db.commit()
        except sqlite3.Error as exc:
            db.rollback()
            logger.error("Failed to erase farmer %s: %s", farmer_id, exc)
            raise RepositoryError("Failed to erase farmer data") from exc
        logger.info("Erased data for farmer %s: %s", farmer_id, counts)
        return counts
