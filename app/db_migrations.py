"""Lightweight SQLite migration runner for the FuE-Zeiterfassung database."""

from __future__ import annotations

import argparse
import logging
import sqlite3
from pathlib import Path
from typing import Callable, Iterable

from sqlalchemy import create_engine

from . import database, models
from .config import settings

logger = logging.getLogger(__name__)

MigrationFn = Callable[[sqlite3.Connection], None]


def _columns(connection: sqlite3.Connection, table: str) -> set[str]:
    cursor = connection.execute(f"PRAGMA table_info('{table}')")
    return {row[1] for row in cursor.fetchall()}


def _baseline(_connection: sqlite3.Connection) -> None:
    """Tables come from the SQLAlchemy metadata; nothing to alter."""
    return None


def _add_employee_anonymization(connection: sqlite3.Connection) -> None:
    columns = _columns(connection, "user_profiles")
    if "is_anonymized" not in columns:
        connection.execute("ALTER TABLE user_profiles ADD COLUMN is_anonymized INTEGER DEFAULT 0")
        connection.execute("UPDATE user_profiles SET is_anonymized = 0 WHERE is_anonymized IS NULL")
    if "anonymized_at" not in columns:
        connection.execute("ALTER TABLE user_profiles ADD COLUMN anonymized_at DATETIME")


def _add_payment_request_cost_columns(connection: sqlite3.Connection) -> None:
    columns = _columns(connection, "payment_requests")
    for column in ("rd_contract_costs", "temp_personnel_costs"):
        if column not in columns:
            connection.execute(f"ALTER TABLE payment_requests ADD COLUMN {column} FLOAT DEFAULT 0")


def _index_time_entries_by_user(connection: sqlite3.Connection) -> None:
    connection.execute(
        "CREATE INDEX IF NOT EXISTS ix_time_entries_user_date ON time_entries (user_profile_id, entry_date)"
    )


MIGRATIONS: list[tuple[int, MigrationFn]] = [
    (1, _baseline),
    (2, _add_employee_anonymization),
    (3, _add_payment_request_cost_columns),
    (4, _index_time_entries_by_user),
]


def current_version(connection: sqlite3.Connection) -> int:
    row = connection.execute("PRAGMA user_version").fetchone()
    return int(row[0]) if row else 0


def _apply_migrations(connection: sqlite3.Connection, migrations: Iterable[tuple[int, MigrationFn]]) -> None:
    version_before = current_version(connection)
    for version, upgrade in migrations:
        if version <= version_before:
            continue
        upgrade(connection)
        connection.execute(f"PRAGMA user_version = {version}")
        connection.commit()
        logger.info("Migration %s angewendet", version)


def run(database_path: Path) -> None:
    database_path.parent.mkdir(parents=True, exist_ok=True)
    engine = database.engine
    if Path(database_path).resolve() != Path(settings.sqlite_path).resolve():
        engine = create_engine(f"sqlite:///{database_path}")
    models.Base.metadata.create_all(bind=engine)
    with sqlite3.connect(database_path) as connection:
        connection.execute("PRAGMA foreign_keys = ON")
        _apply_migrations(connection, MIGRATIONS)


def main(argv: list[str] | None = None) -> None:
    default_path = Path(database.SQLALCHEMY_DATABASE_URL.replace("sqlite:///", ""))
    parser = argparse.ArgumentParser(description="Führt SQLite-Migrationen für die FuE-Zeiterfassung aus.")
    parser.add_argument("--database", default=str(default_path), help="Pfad zur SQLite-Datenbank")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    run(Path(args.database))


if __name__ == "__main__":
    main()
