"""
db.py
SQLite helpers + initialization (creates DB/tables, inserts default admin, etc.)
and LocalBackend, the on-disk stand-in for the hosted data/storage/auth service.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import auth
from config import Config, MEMBERS_TABLE, TRANSACTIONS_TABLE, TICKETS_TABLE, CONCERTS_TABLE
from errors import BackendError

logger = logging.getLogger(__name__)

_NOW = "(strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now'))"


@contextmanager
def get_conn(db_file: Path | None = None):
    conn = sqlite3.connect(db_file or Config.DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = (), db_file: Path | None = None) -> int:
    with get_conn(db_file) as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def fetch_one(sql: str, params: tuple = (), db_file: Path | None = None):
    with get_conn(db_file) as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def _create_tables(db_file: Path | None = None) -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS admin_users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """,
        db_file=db_file,
    )

    execute(
        f"""
        CREATE TABLE IF NOT EXISTS {MEMBERS_TABLE} (
            id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
            fname TEXT NOT NULL,
            lname TEXT NOT NULL,
            phone TEXT NOT NULL,
            email TEXT NOT NULL,
            nic TEXT NOT NULL,
            amount REAL NOT NULL DEFAULT 0,
            password TEXT,
            card_url TEXT,
            created_at TEXT NOT NULL DEFAULT {_NOW}
        )
        """,
        db_file=db_file,
    )

    # No foreign key on "user": ledger rows outlive deleted members
    execute(
        f"""
        CREATE TABLE IF NOT EXISTS {TRANSACTIONS_TABLE} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            "user" TEXT NOT NULL,
            amount REAL NOT NULL,
            type TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT {_NOW}
        )
        """,
        db_file=db_file,
    )

    execute(
        f"""
        CREATE TABLE IF NOT EXISTS {CONCERTS_TABLE} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            concert_name TEXT NOT NULL
        )
        """,
        db_file=db_file,
    )

    execute(
        f"""
        CREATE TABLE IF NOT EXISTS {TICKETS_TABLE} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            concert_id INTEGER NOT NULL,
            ticket_name TEXT NOT NULL,
            price REAL NOT NULL,
            quantity INTEGER NOT NULL
        )
        """,
        db_file=db_file,
    )

    # Small settings table (used to force password change on first login)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """,
        db_file=db_file,
    )


def _get_setting(key: str, default: str | None = None, db_file: Path | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,), db_file=db_file)
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str, db_file: Path | None = None) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
        db_file=db_file,
    )


def init_db(default_admin_hash: str, db_file: Path | None = None) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert default admin (admin/admin123) if no admin exists
    - Force password change on first login
    """
    _create_tables(db_file)

    admin = fetch_one("SELECT id FROM admin_users LIMIT 1", db_file=db_file)
    if not admin:
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        execute(
            "INSERT INTO admin_users(username, password_hash, created_at) VALUES(?,?,?)",
            ("admin", default_admin_hash, now),
            db_file=db_file,
        )
        _set_setting("force_password_change", "1", db_file=db_file)
    else:
        # ensure setting exists
        if _get_setting("force_password_change", db_file=db_file) is None:
            _set_setting("force_password_change", "0", db_file=db_file)


def _q(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _where(eq: dict | None, or_eq: dict | None) -> tuple[str, list]:
    clauses: list[str] = []
    params: list = []
    for col, val in (eq or {}).items():
        clauses.append(f"{_q(col)} = ?")
        params.append(val)
    if or_eq:
        clauses.append("(" + " OR ".join(f"{_q(col)} = ?" for col in or_eq) + ")")
        params.extend(or_eq.values())
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class LocalBackend:
    """
    SQLite tables + a directory of stored objects, exposing the same
    select/insert/update/delete, upload/remove/public_url and
    sign_in/current_user/sign_out calls as SupabaseBackend.
    """

    name = "local"

    def __init__(self, db_file: Path | None = None, storage_dir: Path | None = None):
        self.db_file = Path(db_file or Config.DB_FILE)
        self.storage_dir = Path(storage_dir or Config.STORAGE_DIR)
        self._user: dict | None = None

    def init(self, default_admin_password: str = "admin123") -> None:
        init_db(auth.hash_password(default_admin_password), db_file=self.db_file)

    def _run(self, sql: str, params: tuple = ()) -> list[dict]:
        try:
            with get_conn(self.db_file) as conn:
                cur = conn.execute(sql, params)
                rows = cur.fetchall()
        except sqlite3.Error as e:
            logger.error(f"SQLite error running {sql.split()[0]}: {e}")
            raise BackendError(str(e)) from e
        return [dict(r) for r in rows]

    # ---------- tables ----------

    def select(self, table: str, columns: str = "*", eq: dict | None = None,
               or_eq: dict | None = None, order: str | None = None, ascending: bool = True) -> list[dict]:
        cols = "*" if columns.strip() == "*" else ", ".join(_q(c.strip()) for c in columns.split(","))
        where, params = _where(eq, or_eq)
        sql = f"SELECT {cols} FROM {_q(table)}{where}"
        if order:
            direction = "ASC" if ascending else "DESC"
            sql += f" ORDER BY {_q(order)} {direction}, rowid {direction}"
        return self._run(sql, tuple(params))

    def select_one(self, table: str, columns: str = "*", eq: dict | None = None) -> dict:
        rows = self.select(table, columns, eq=eq)
        if len(rows) != 1:
            raise BackendError(f"Expected one row from {table}, got {len(rows)}")
        return rows[0]

    def insert(self, table: str, row: dict) -> dict:
        cols = ", ".join(_q(c) for c in row)
        marks = ", ".join("?" for _ in row)
        rows = self._run(
            f"INSERT INTO {_q(table)} ({cols}) VALUES ({marks}) RETURNING *",
            tuple(row.values()),
        )
        return rows[0]

    def update(self, table: str, values: dict, eq: dict) -> list[dict]:
        if not eq:
            raise BackendError("Refusing to update without a filter")
        sets = ", ".join(f"{_q(c)} = ?" for c in values)
        where, params = _where(eq, None)
        return self._run(
            f"UPDATE {_q(table)} SET {sets}{where} RETURNING *",
            tuple(values.values()) + tuple(params),
        )

    def delete(self, table: str, eq: dict) -> None:
        if not eq:
            raise BackendError("Refusing to delete without a filter")
        where, params = _where(eq, None)
        self._run(f"DELETE FROM {_q(table)}{where}", tuple(params))

    # ---------- storage ----------

    def _object_path(self, key: str) -> Path:
        path = (self.storage_dir / key).resolve()
        if self.storage_dir.resolve() not in path.parents:
            raise BackendError(f"Invalid storage key: {key}")
        return path

    def upload(self, key: str, data: bytes, content_type: str = "image/png") -> None:
        path = self._object_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise BackendError(f"Upload of {key} failed: {e}") from e

    def remove(self, key: str) -> None:
        path = self._object_path(key)
        try:
            path.unlink()
        except OSError as e:
            raise BackendError(f"Removal of {key} failed: {e}") from e

    def public_url(self, key: str) -> str:
        return self._object_path(key).as_uri()

    # ---------- auth ----------

    def sign_in(self, username: str, password: str) -> dict:
        row = fetch_one("SELECT * FROM admin_users WHERE username = ?", (username,), db_file=self.db_file)
        if not row or not auth.verify_password(password, row["password_hash"]):
            raise BackendError("Invalid username or password.")
        self._user = {"id": row["id"], "email": row["username"]}
        return self._user

    def current_user(self) -> dict | None:
        return self._user

    def sign_out(self) -> None:
        self._user = None

    def change_admin_password(self, username: str, password_hash: str) -> None:
        execute(
            "UPDATE admin_users SET password_hash = ? WHERE username = ?",
            (password_hash, username),
            db_file=self.db_file,
        )
        _set_setting("force_password_change", "0", db_file=self.db_file)

    def is_force_password_change(self) -> bool:
        return _get_setting("force_password_change", db_file=self.db_file) == "1"
