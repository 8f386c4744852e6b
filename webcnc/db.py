"""Database initialisation for WebCNC.

Creates the SQLite database holding machine, user, design and job records.
The database lives in the data directory of the settings handed to
``create_app`` (``WEBCNC_DATA_DIR``, default ``./data``).  Nothing in
the device connection core reads or writes it.

Usage::

    from webcnc.db import get_db, init_db
    init_db()                  # idempotent
    conn = get_db()            # returns a per-thread connection
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

from webcnc.config import load_settings

_DB_PATH: Path | None = None
_LOCAL = threading.local()


def _db_path() -> Path:
    global _DB_PATH
    if _DB_PATH is None:
        _DB_PATH = load_settings().db_path
    return _DB_PATH


def set_db_path(path: str | Path) -> None:
    """Point the records store at *path*; later connections open that file."""
    global _DB_PATH, _LOCAL
    _DB_PATH = Path(path)
    _LOCAL = threading.local()


def get_db() -> sqlite3.Connection:
    """Return a per-thread SQLite connection (WAL mode, FK enabled)."""
    conn = getattr(_LOCAL, "conn", None)
    if conn is None:
        path = _db_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        _LOCAL.conn = conn
    return conn


def init_db(path: str | Path | None = None) -> None:
    """Create all tables (idempotent)."""
    if path:
        set_db_path(path)
    conn = get_db()
    conn.executescript(_SCHEMA_SQL)
    conn.commit()


_SCHEMA_SQL = """
-- ───────── Machines ─────────

CREATE TABLE IF NOT EXISTS cnc_machines (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid        TEXT NOT NULL UNIQUE,
    name        TEXT NOT NULL,
    model       TEXT NOT NULL,
    location    TEXT,
    status      TEXT NOT NULL DEFAULT 'offline',
    created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- ───────── Users ─────────

CREATE TABLE IF NOT EXISTS users (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    name           TEXT NOT NULL,
    email          TEXT NOT NULL UNIQUE,
    role           TEXT NOT NULL DEFAULT 'operator',
    password_hash  TEXT NOT NULL,
    status         TEXT NOT NULL DEFAULT 'active',
    created_at     TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- ───────── Designs & Jobs ─────────

CREATE TABLE IF NOT EXISTS designs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    user_id     INTEGER,
    file_url    TEXT,
    created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE SET NULL
);
CREATE INDEX IF NOT EXISTS idx_designs_user ON designs(user_id);

CREATE TABLE IF NOT EXISTS jobs (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    cnc_id       INTEGER NOT NULL,
    design_id    INTEGER NOT NULL,
    duration     INTEGER,
    started_at   TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    finished_at  TIMESTAMP,
    status       TEXT NOT NULL DEFAULT 'pending',
    FOREIGN KEY (cnc_id) REFERENCES cnc_machines(id) ON DELETE CASCADE,
    FOREIGN KEY (design_id) REFERENCES designs(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_jobs_cnc     ON jobs(cnc_id);
CREATE INDEX IF NOT EXISTS idx_jobs_started ON jobs(started_at);
"""
