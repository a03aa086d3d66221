# storage/db.py
import os
import sqlite3
from pathlib import Path


_DEFAULT_DB_PATH = Path.home() / ".arcane" / "arcane.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT    NOT NULL,
    source_language TEXT    NOT NULL,
    target_language TEXT    NOT NULL,
    settings_json   TEXT    NOT NULL DEFAULT '{}',
    created_at      TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS chapters (
    id                     INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id             INTEGER NOT NULL,
    number                 INTEGER NOT NULL,
    title                  TEXT    NOT NULL DEFAULT '',
    original_text          TEXT    NOT NULL,
    translated_text        TEXT,
    translated_chunks_json TEXT,
    paragraphs_json        TEXT    NOT NULL DEFAULT '[]',
    status                 TEXT    NOT NULL DEFAULT 'pending',
    translation_meta_json  TEXT,
    updated_at             TEXT    NOT NULL,
    FOREIGN KEY (project_id) REFERENCES projects(id),
    UNIQUE (project_id, number)
);

CREATE TABLE IF NOT EXISTS glossary_entries (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id  INTEGER NOT NULL,
    type        TEXT    NOT NULL,
    original    TEXT    NOT NULL,
    translated  TEXT    NOT NULL,
    gender      TEXT,
    description TEXT    NOT NULL DEFAULT '',
    FOREIGN KEY (project_id) REFERENCES projects(id),
    UNIQUE (project_id, type, original)
);

CREATE TABLE IF NOT EXISTS agent_state (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id   INTEGER NOT NULL,
    version      INTEGER NOT NULL DEFAULT 1,
    content_json TEXT    NOT NULL,
    updated_at   TEXT    NOT NULL,
    FOREIGN KEY (project_id) REFERENCES projects(id)
);

CREATE TABLE IF NOT EXISTS quota_usage (
    model       TEXT    NOT NULL,
    date        TEXT    NOT NULL,
    tokens_used INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (model, date)
);
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """
    Abre y configura la conexión a SQLite.
    Siempre devuelve rows como dicts (row_factory).
    Activa foreign keys — SQLite las tiene desactivadas por defecto.
    """
    path = db_path or os.environ.get("ARCANE_DB_PATH") or str(_DEFAULT_DB_PATH)

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Crea las tablas si no existen. Idempotente."""
    with conn:
        conn.executescript(_SCHEMA)
