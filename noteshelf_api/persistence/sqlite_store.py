from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any

logger = logging.getLogger("noteshelf.store")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    is_system INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS notes (
    id TEXT PRIMARY KEY,
    title TEXT,
    content TEXT,
    encrypted_json TEXT,
    category_id TEXT NOT NULL REFERENCES categories(id),
    is_private INTEGER NOT NULL DEFAULT 0,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    original_category_id TEXT,
    updated_at INTEGER,
    last_modified TEXT
);
"""


class SqliteSnapshotStore:
    """
    Full-snapshot store over a single SQLite file.

    Every `save` replaces both tables inside one transaction. A connection is
    opened per call, so the store can be used from worker threads.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as db:
            db.executescript(_SCHEMA)
            self._ensure_content_type_column(db)
            db.commit()

    def _connect(self) -> sqlite3.Connection:
        db = sqlite3.connect(self.db_path)
        db.row_factory = sqlite3.Row
        db.execute("PRAGMA foreign_keys=ON")
        return db

    def _ensure_content_type_column(self, db: sqlite3.Connection) -> None:
        # Stores created before rich text/markdown support lack this column.
        columns = {row["name"] for row in db.execute("PRAGMA table_info(notes)")}
        if "content_type" not in columns:
            db.execute("ALTER TABLE notes ADD COLUMN content_type TEXT")
            logger.info("store_migrated", extra={"column": "content_type", "path": str(self.db_path)})

    def load(self) -> dict[str, Any]:
        with closing(self._connect()) as db:
            cats = db.execute("SELECT id, name, is_system FROM categories ORDER BY rowid").fetchall()
            rows = db.execute(
                "SELECT id, title, content, encrypted_json, category_id, is_private, is_deleted, "
                "original_category_id, updated_at, last_modified, content_type FROM notes ORDER BY rowid"
            ).fetchall()
        return {
            "categories": [
                {"id": c["id"], "name": c["name"], "isSystem": bool(c["is_system"])} for c in cats
            ],
            "notes": [self._row_to_record(r) for r in rows],
        }

    def save(self, snapshot: dict[str, Any]) -> None:
        categories = snapshot.get("categories") or []
        notes = snapshot.get("notes") or []
        with closing(self._connect()) as db:
            try:
                # notes first, so the foreign key never sees a dangling row
                db.execute("DELETE FROM notes")
                db.execute("DELETE FROM categories")
                db.executemany(
                    "INSERT INTO categories (id, name, is_system) VALUES (?, ?, ?)",
                    [(c["id"], c.get("name") or "", 1 if c.get("isSystem") else 0) for c in categories],
                )
                db.executemany(
                    "INSERT INTO notes (id, title, content, encrypted_json, category_id, is_private, "
                    "is_deleted, original_category_id, updated_at, last_modified, content_type) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [self._record_to_row(n) for n in notes],
                )
                db.commit()
            except sqlite3.Error:
                db.rollback()
                raise

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "content": row["content"],
            "encrypted": json.loads(row["encrypted_json"]) if row["encrypted_json"] else None,
            "categoryId": row["category_id"],
            "isPrivate": bool(row["is_private"]),
            "isDeleted": bool(row["is_deleted"]),
            "originalCategoryId": row["original_category_id"],
            "updatedAt": int(row["updated_at"]) if row["updated_at"] is not None else None,
            "lastModified": row["last_modified"],
            "contentType": row["content_type"] or "plain",
        }

    @staticmethod
    def _record_to_row(note: dict[str, Any]) -> tuple:
        encrypted = note.get("encrypted")
        return (
            note["id"],
            note.get("title"),
            note.get("content"),
            json.dumps(encrypted, ensure_ascii=False) if encrypted else None,
            note.get("categoryId") or "uncategorized",
            1 if note.get("isPrivate") else 0,
            1 if note.get("isDeleted") else 0,
            note.get("originalCategoryId"),
            int(note["updatedAt"]) if note.get("updatedAt") is not None else None,
            note.get("lastModified"),
            note.get("contentType") or "plain",
        )
