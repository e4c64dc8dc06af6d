"""Helpers for building synthetic Cursor storage in tests."""

import json
import sqlite3
from datetime import datetime


def local_ms(*args) -> int:
    """Milliseconds for a naive local datetime."""
    return int(datetime(*args).timestamp() * 1000)


def rich_text(*children) -> str:
    return json.dumps({"root": {"type": "root", "children": list(children)}})


def write_workspace(storage, ws_id: str, folder: str):
    ws_dir = storage / ws_id
    ws_dir.mkdir(parents=True)
    (ws_dir / "workspace.json").write_text(json.dumps({"folder": folder}), encoding="utf-8")
    return ws_dir


def create_store(db_path, rows: dict):
    """Create a ``state.vscdb`` with the given ``cursorDiskKV`` rows."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.execute("CREATE TABLE ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
    conn.execute("CREATE TABLE cursorDiskKV (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
    for key, value in rows.items():
        if not isinstance(value, str):
            value = json.dumps(value)
        conn.execute("INSERT INTO cursorDiskKV VALUES (?, ?)", (key, value))
    conn.commit()
    conn.close()
