import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def get_db(path: str):
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(path: str):
    conn = get_db(path)
    cur = conn.cursor()
    cur.execute("""
        CREATE TABLE IF NOT EXISTS saved_games (
            kind TEXT NOT NULL,
            key TEXT NOT NULL,
            payload TEXT NOT NULL,
            saved_at TEXT NOT NULL,
            PRIMARY KEY (kind, key)
        );
    """)
    cur.execute("""
        CREATE TABLE IF NOT EXISTS last_game (
            kind TEXT PRIMARY KEY,
            key TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()


def save_progress(path: str, kind: str, key: str, payload: Dict[str, Any]):
    conn = get_db(path)
    cur = conn.cursor()
    cur.execute("""
        INSERT OR REPLACE INTO saved_games (kind, key, payload, saved_at)
        VALUES (?, ?, ?, ?)
    """, (kind, key, json.dumps(payload), datetime.utcnow().isoformat()))
    cur.execute("INSERT OR REPLACE INTO last_game (kind, key) VALUES (?, ?)", (kind, key))
    conn.commit()
    conn.close()


def load_progress(path: str, kind: str, key: str) -> Optional[Dict[str, Any]]:
    conn = get_db(path)
    cur = conn.cursor()
    cur.execute("SELECT payload FROM saved_games WHERE kind=? AND key=?", (kind, key))
    row = cur.fetchone()
    conn.close()
    if not row:
        return None
    try:
        return json.loads(row["payload"])
    except ValueError:
        logger.warning("corrupted saved %s game %s", kind, key)
        return None


def clear_progress(path: str, kind: str, key: str):
    conn = get_db(path)
    cur = conn.cursor()
    cur.execute("DELETE FROM saved_games WHERE kind=? AND key=?", (kind, key))
    conn.commit()
    conn.close()


def last_key(path: str, kind: str) -> Optional[str]:
    """Key of the most recently saved game of ``kind``, if it still has progress."""
    conn = get_db(path)
    cur = conn.cursor()
    cur.execute("""
        SELECT l.key FROM last_game l
        JOIN saved_games s ON s.kind = l.kind AND s.key = l.key
        WHERE l.kind=?
    """, (kind,))
    row = cur.fetchone()
    conn.close()
    return row["key"] if row else None
