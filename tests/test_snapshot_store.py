from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime

import pytest

from noteshelf_api.crypto import CryptoEngine
from noteshelf_api.domain.entities import (
    ALL_CATEGORY_ID,
    PRIVATE_CATEGORY_ID,
    SYSTEM_CATEGORY_IDS,
    TRASH_CATEGORY_ID,
    UNCATEGORIZED_CATEGORY_ID,
)
from noteshelf_api.domain.exceptions import SyncFailure
from noteshelf_api.domain.ports import SnapshotStore
from noteshelf_api.gateway import SnapshotGateway
from noteshelf_api.persistence.sqlite_store import SqliteSnapshotStore
from noteshelf_api.workspace import Workspace


class _DictStore:
    def __init__(self, data) -> None:
        self.data = data

    def load(self):
        return self.data

    def save(self, snapshot) -> None:
        self.data = snapshot


def test_sqlite_store_round_trips_a_workspace(tmp_path) -> None:
    store = SqliteSnapshotStore(tmp_path / "notes.db")
    assert isinstance(store, SnapshotStore)
    gateway = SnapshotGateway(store)

    ws = Workspace(crypto=CryptoEngine(100_000))
    work = ws.create_category("Work")
    plan = asyncio.run(ws.create_note("Plan", work.id))
    asyncio.run(ws.save_note(plan.id, "Plan", "<p>hi</p>", "html", category_id=work.id))
    asyncio.run(ws.create_note("Secret", private=True, password="pw"))
    trashed = asyncio.run(ws.create_note("Old"))
    ws.soft_delete(trashed.id)

    gateway.save(SnapshotGateway.serialize(ws.snapshot()))
    loaded = gateway.load()

    assert loaded.categories == ws.categories
    assert loaded.notes == ws.notes


def test_save_replaces_the_previous_snapshot(tmp_path) -> None:
    gateway = SnapshotGateway(SqliteSnapshotStore(tmp_path / "notes.db"))
    ws = Workspace(crypto=CryptoEngine(100_000))
    first = asyncio.run(ws.create_note("A"))
    asyncio.run(ws.create_note("B"))
    gateway.save(SnapshotGateway.serialize(ws.snapshot()))

    ws.soft_delete(first.id)
    ws.hard_delete(first.id)
    gateway.save(SnapshotGateway.serialize(ws.snapshot()))

    assert [n.title for n in gateway.load().notes] == ["B"]


def test_failed_save_keeps_previous_rows(tmp_path) -> None:
    gateway = SnapshotGateway(SqliteSnapshotStore(tmp_path / "notes.db"))
    ws = Workspace(crypto=CryptoEngine(100_000))
    asyncio.run(ws.create_note("Kept"))
    gateway.save(SnapshotGateway.serialize(ws.snapshot()))

    broken = SnapshotGateway.serialize(ws.snapshot())
    broken["notes"][0]["categoryId"] = "cat_missing"
    with pytest.raises(SyncFailure) as exc:
        gateway.save(broken)
    assert str(exc.value) == "store_write_failed"
    assert [n.title for n in gateway.load().notes] == ["Kept"]


def test_legacy_database_gains_content_type_column(tmp_path) -> None:
    path = tmp_path / "legacy.db"
    db = sqlite3.connect(path)
    db.executescript(
        """
        CREATE TABLE categories (id TEXT PRIMARY KEY, name TEXT NOT NULL, is_system INTEGER NOT NULL DEFAULT 0);
        CREATE TABLE notes (
            id TEXT PRIMARY KEY, title TEXT, content TEXT, encrypted_json TEXT,
            category_id TEXT NOT NULL, is_private INTEGER NOT NULL DEFAULT 0,
            is_deleted INTEGER NOT NULL DEFAULT 0, original_category_id TEXT,
            updated_at INTEGER, last_modified TEXT
        );
        INSERT INTO categories VALUES ('uncategorized', 'Uncategorized', 1);
        INSERT INTO notes (id, title, content, category_id, updated_at) VALUES ('n1', 'Old', 'text', 'uncategorized', 5);
        """
    )
    db.commit()
    db.close()

    store = SqliteSnapshotStore(path)
    raw = store.load()
    assert raw["notes"][0]["contentType"] == "plain"

    snapshot = SnapshotGateway(store).load()
    assert snapshot.notes[0].content_type == "plain"
    assert [c.id for c in snapshot.categories][0] == ALL_CATEGORY_ID


def test_gateway_repairs_inconsistent_records() -> None:
    store = _DictStore(
        {
            "categories": [{"id": "cat_w", "name": "Work", "is_system": False}],
            "notes": [
                {"id": "a", "title": "Trashed", "categoryId": "trash", "isDeleted": False},
                {"id": "b", "title": "Homeless"},
                {"id": "c", "title": "Private Note", "categoryId": "cat_w", "isPrivate": True},
                {"id": "d", "title": "Odd", "categoryId": "cat_w", "contentType": "rtf"},
            ],
        }
    )
    snapshot = SnapshotGateway(store).load()
    by_id = {n.id: n for n in snapshot.notes}

    assert by_id["a"].is_deleted
    assert by_id["a"].original_category_id == UNCATEGORIZED_CATEGORY_ID
    assert by_id["b"].category_id == UNCATEGORIZED_CATEGORY_ID
    assert by_id["c"].category_id == PRIVATE_CATEGORY_ID
    assert by_id["d"].content_type == "plain"
    assert by_id["d"].last_modified

    ids = [c.id for c in snapshot.categories]
    assert ids[0] == ALL_CATEGORY_ID
    assert set(SYSTEM_CATEGORY_IDS) <= set(ids)
    assert TRASH_CATEGORY_ID in ids


def test_gateway_wraps_store_errors() -> None:
    class Broken:
        def load(self):
            raise sqlite3.OperationalError("disk I/O error")

        def save(self, snapshot):
            raise OSError("read-only")

    gateway = SnapshotGateway(Broken())
    with pytest.raises(SyncFailure):
        gateway.load()
    with pytest.raises(SyncFailure):
        gateway.save({"categories": [], "notes": []})

    bad = SnapshotGateway(_DictStore({"categories": "nope", "notes": []}))
    with pytest.raises(SyncFailure) as exc:
        bad.load()
    assert str(exc.value) == "store_bad_snapshot"


def test_missing_updated_at_is_recovered_from_last_modified() -> None:
    store = _DictStore(
        {
            "categories": [],
            "notes": [
                {"id": "en", "title": "A", "lastModified": "01/05/2024, 02:03:07 PM"},
                {"id": "zh", "title": "B", "lastModified": "2024/1/6 14:03:07"},
                {"id": "iso", "title": "C", "lastModified": "2024-01-07T08:00:00"},
            ],
        }
    )
    notes = {n.id: n for n in SnapshotGateway(store).load().notes}
    assert notes["en"].updated_at == int(datetime(2024, 1, 5, 14, 3, 7).timestamp() * 1000)
    assert notes["zh"].updated_at == int(datetime(2024, 1, 6, 14, 3, 7).timestamp() * 1000)
    assert notes["en"].updated_at < notes["zh"].updated_at < notes["iso"].updated_at
