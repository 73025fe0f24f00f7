import json
import logging
import threading
import time
from typing import Any, Dict, Optional

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from . import config

logger = logging.getLogger(__name__)

HANDOFF_KEY = "receiptData"
HANDOFF_FIELDS = ("html", "subject", "fromName", "fromEmail", "platform")

DATABASE_URL = config.DATABASE_URL
USE_PG = bool(DATABASE_URL)

DATA_DIR = config.DATA_DIR
DB_FILE = DATA_DIR / "handoff.json"

_pool: Optional[ConnectionPool] = None
# Serializes read-modify-write of the JSON file across request threads
_file_lock = threading.Lock()


def _ensure_file() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not DB_FILE.exists():
        DB_FILE.write_text(json.dumps({}, indent=2), encoding="utf-8")


def _load_file() -> Dict[str, Dict[str, Any]]:
    _ensure_file()
    with DB_FILE.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _save_file(data: Dict[str, Dict[str, Any]]) -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    with DB_FILE.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)


def get_pool() -> ConnectionPool:
    global _pool
    if not USE_PG:
        raise RuntimeError("Postgres pool requested but DATABASE_URL unset")
    if _pool is None:
        _pool = ConnectionPool(DATABASE_URL, kwargs={"autocommit": True})
    return _pool


def init_db():
    if not USE_PG:
        _ensure_file()
        return
    pool = get_pool()
    with pool.connection() as con:
        with con.cursor() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS handoffs (
                  key TEXT PRIMARY KEY,
                  data JSONB NOT NULL,
                  updated_at BIGINT NOT NULL
                )
                """
            )


def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
    # Only the hand-off fields travel between steps; absent optionals stay absent
    rec = {k: data[k] for k in HANDOFF_FIELDS if data.get(k) is not None}
    rec.setdefault("html", "")
    return rec


def save_handoff(data: Dict[str, Any], key: str = HANDOFF_KEY) -> Dict[str, Any]:
    now = int(time.time() * 1000)
    rec = _clean(data)
    if USE_PG:
        pool = get_pool()
        with pool.connection() as con:
            with con.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO handoffs (key, data, updated_at) VALUES (%s, %s::jsonb, %s)
                    ON CONFLICT (key) DO UPDATE SET data = EXCLUDED.data, updated_at = EXCLUDED.updated_at
                    """,
                    (key, json.dumps(rec), now),
                )
    else:
        with _file_lock:
            stored = _load_file()
            stored[key] = {**rec, "updatedAt": now}
            _save_file(stored)
    logger.debug("saved hand-off %s (%d bytes of html)", key, len(rec["html"]))
    return {**rec, "updatedAt": now}


def load_handoff(key: str = HANDOFF_KEY) -> Optional[Dict[str, Any]]:
    if not USE_PG:
        with _file_lock:
            item = _load_file().get(key)
        return dict(item) if item else None
    pool = get_pool()
    with pool.connection() as con:
        with con.cursor(row_factory=dict_row) as cur:
            cur.execute("SELECT data, updated_at FROM handoffs WHERE key = %s", (key,))
            r = cur.fetchone()
            if not r:
                return None
            return {**r["data"], "updatedAt": r["updated_at"]}


def clear_handoff(key: str = HANDOFF_KEY) -> bool:
    if USE_PG:
        pool = get_pool()
        with pool.connection() as con:
            with con.cursor() as cur:
                cur.execute("DELETE FROM handoffs WHERE key = %s", (key,))
                return cur.rowcount > 0
    with _file_lock:
        stored = _load_file()
        if key not in stored:
            return False
        del stored[key]
        _save_file(stored)
    return True
