# db.py

import sqlite3
from typing import Optional

from config import SETTINGS_DB_PATH, ROLE_SETTING_KEY
from models import Role
from logger import get_logger


log = get_logger("db")


# ---------- Local Settings DB ----------
def state_conn(path: Optional[str] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(path or SETTINGS_DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn

def init_settings_db(path: Optional[str] = None) -> None:
    conn = state_conn(path)
    cur = conn.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS app_settings (
        key TEXT PRIMARY KEY,
        value TEXT,
        updated_ts TEXT
    )
    """)

    conn.commit()
    conn.close()


def get_setting(key: str, path: Optional[str] = None) -> Optional[str]:
    conn = state_conn(path)
    try:
        row = conn.execute(
            "SELECT value FROM app_settings WHERE key=?",
            (key,)
        ).fetchone()
    except sqlite3.OperationalError as e:
        # table not created yet: the login flow has never stored anything
        log.warning(f"Settings lookup for '{key}' failed: {e}")
        return None
    finally:
        conn.close()
    return (row["value"] if row and row["value"] else None)

def get_acting_role(path: Optional[str] = None) -> Optional[Role]:
    """
    Role persisted by the login flow. This layer only reads it; an unknown or
    missing value yields None, which the transition policy treats as "no
    authority".
    """
    raw = get_setting(ROLE_SETTING_KEY, path)
    if raw is None:
        return None
    try:
        return Role(raw.strip().upper())
    except ValueError:
        log.warning(f"Ignoring unknown persisted role {raw!r}")
        return None
