import logging
import os
import sqlite3
import time
from pathlib import Path

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 3
CONNECT_RETRY_DELAY = 2.0


def _repo_root() -> Path:
    # services/api/stash_api -> parents[3] = repo root
    return Path(__file__).resolve().parents[3]


def get_db_path() -> Path:
    env_path = os.getenv("DB_PATH")
    if env_path:
        return Path(env_path)
    return _repo_root() / "db" / "dev.db"


def get_schema_path() -> Path:
    env_path = os.getenv("SCHEMA_PATH")
    if env_path:
        return Path(env_path)
    return Path(__file__).resolve().parent / "schema.sql"


def get_connection() -> sqlite3.Connection:
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    last_error = None
    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        try:
            conn = sqlite3.connect(str(db_path))
            break
        except sqlite3.OperationalError as e:
            last_error = e
            logger.warning("Database connection attempt %d/%d failed: %s",
                           attempt, CONNECT_ATTEMPTS, e)
            if attempt < CONNECT_ATTEMPTS:
                time.sleep(CONNECT_RETRY_DELAY)
    else:
        raise RuntimeError(f"db_unavailable: {last_error}")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_db() -> None:
    schema_path = get_schema_path()
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    with open(schema_path, "r", encoding="utf-8") as f:
        schema_sql = f.read()
    with get_connection() as conn:
        conn.executescript(schema_sql)
        # Lightweight migrations for columns added after the first release

        def _has_column(table: str, col: str) -> bool:
            cur = conn.execute(f"PRAGMA table_info({table})")
            return any(r[1] == col for r in cur.fetchall())

        if not _has_column("users", "password_hash"):
            conn.execute("ALTER TABLE users ADD COLUMN password_hash TEXT;")
        if not _has_column("users", "password_salt"):
            conn.execute("ALTER TABLE users ADD COLUMN password_salt TEXT;")
        if not _has_column("nudges", "data_json"):
            conn.execute("ALTER TABLE nudges ADD COLUMN data_json TEXT;")
        if not _has_column("ai_insights", "data_json"):
            conn.execute("ALTER TABLE ai_insights ADD COLUMN data_json TEXT;")
    logger.info("Database initialised at %s", get_db_path())
