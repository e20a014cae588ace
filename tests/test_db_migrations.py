from __future__ import annotations

import sqlite3

from app import db_migrations


def _user_version(path) -> int:
    with sqlite3.connect(path) as connection:
        return db_migrations.current_version(connection)


def test_run_creates_schema_and_sets_version(tmp_path):
    path = tmp_path / "nested" / "fresh.db"
    db_migrations.run(path)

    assert _user_version(path) == db_migrations.MIGRATIONS[-1][0]
    with sqlite3.connect(path) as connection:
        tables = {row[0] for row in connection.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        indexes = {row[0] for row in connection.execute("SELECT name FROM sqlite_master WHERE type='index'")}
    assert {"companies", "user_profiles", "time_entries", "payment_requests", "imported_timesheets"} <= tables
    assert "ix_time_entries_user_date" in indexes


def test_legacy_columns_are_added(tmp_path):
    path = tmp_path / "legacy.db"
    with sqlite3.connect(path) as connection:
        connection.execute(
            "CREATE TABLE user_profiles (id INTEGER PRIMARY KEY, email VARCHAR NOT NULL, "
            "password_hash VARCHAR NOT NULL, name VARCHAR NOT NULL)"
        )
        connection.execute(
            "CREATE TABLE payment_requests (id INTEGER PRIMARY KEY, project_id INTEGER NOT NULL, "
            "request_number INTEGER NOT NULL, period_start DATE NOT NULL, period_end DATE NOT NULL)"
        )
        connection.execute(
            "INSERT INTO user_profiles (email, password_hash, name) VALUES ('alt@example.com', 'x', 'Alt')"
        )
        connection.commit()

    db_migrations.run(path)

    with sqlite3.connect(path) as connection:
        user_columns = db_migrations._columns(connection, "user_profiles")
        request_columns = db_migrations._columns(connection, "payment_requests")
        flag = connection.execute("SELECT is_anonymized FROM user_profiles").fetchone()[0]
    assert {"is_anonymized", "anonymized_at"} <= user_columns
    assert {"rd_contract_costs", "temp_personnel_costs"} <= request_columns
    assert flag == 0


def test_run_is_idempotent(tmp_path):
    path = tmp_path / "twice.db"
    db_migrations.run(path)
    db_migrations.run(path)
    assert _user_version(path) == 4


def test_cli_accepts_database_path(tmp_path):
    path = tmp_path / "cli.db"
    db_migrations.main(["--database", str(path)])
    assert path.exists()
    assert _user_version(path) == 4
