from __future__ import annotations

import logging
import sqlite3
from typing import Any

from pydantic import ValidationError

from .domain.entities import (
    PRIVATE_CATEGORY_ID,
    SYSTEM_CATEGORY_IDS,
    TRASH_CATEGORY_ID,
    UNCATEGORIZED_CATEGORY_ID,
    Category,
    EncryptedBlob,
    Note,
    Snapshot,
    normalize_content_type,
)
from .domain.exceptions import SyncFailure
from .domain.ports import SnapshotStore
from .domain.schemas import CategoryRecord, EncryptedBlobRecord, NoteRecord, SnapshotRecord
from .labels import label
from .util import format_timestamp, now_ms, parse_timestamp

logger = logging.getLogger("noteshelf.gateway")


def ensure_system_categories(categories: list[Category], language: str = "en") -> list[Category]:
    """Insert missing system categories (`all` first) and flag existing ones."""
    by_id = {c.id: c for c in categories}
    out = list(categories)
    for cat_id in SYSTEM_CATEGORY_IDS:
        existing = by_id.get(cat_id)
        if existing is not None:
            existing.is_system = True
            continue
        cat = Category(id=cat_id, name=label(cat_id, language), is_system=True)
        if cat_id == SYSTEM_CATEGORY_IDS[0]:
            out.insert(0, cat)
        else:
            out.append(cat)
    return out


def note_from_record(record: NoteRecord, language: str = "en") -> Note:
    """
    Build a domain note from a stored record, repairing flags older stores
    left inconsistent.
    """
    category_id = record.categoryId or UNCATEGORIZED_CATEGORY_ID
    is_deleted = record.isDeleted or category_id == TRASH_CATEGORY_ID
    is_private = record.isPrivate or category_id == PRIVATE_CATEGORY_ID
    original = record.originalCategoryId or (
        category_id if category_id != TRASH_CATEGORY_ID else UNCATEGORIZED_CATEGORY_ID
    )
    if is_deleted:
        category_id = TRASH_CATEGORY_ID
    elif is_private:
        category_id = PRIVATE_CATEGORY_ID
    updated_at = record.updatedAt or parse_timestamp(record.lastModified) or now_ms()
    encrypted = None
    if record.encrypted is not None:
        encrypted = EncryptedBlob(
            cipher=record.encrypted.cipher,
            iv=record.encrypted.iv,
            salt=record.encrypted.salt,
        )
    return Note(
        id=record.id,
        title=record.title or "",
        content=record.content or "",
        content_type=normalize_content_type(record.contentType),
        category_id=category_id,
        original_category_id=original,
        updated_at=updated_at,
        last_modified=record.lastModified or format_timestamp(updated_at, language),
        is_private=is_private,
        is_deleted=is_deleted,
        encrypted=encrypted,
    )


def note_to_record(note: Note) -> NoteRecord:
    encrypted = None
    if note.encrypted is not None:
        encrypted = EncryptedBlobRecord(cipher=note.encrypted.cipher, iv=note.encrypted.iv, salt=note.encrypted.salt)
    return NoteRecord(
        id=note.id,
        title=note.title,
        content=note.content,
        encrypted=encrypted,
        categoryId=note.category_id,
        isPrivate=note.is_private,
        isDeleted=note.is_deleted,
        originalCategoryId=note.original_category_id,
        updatedAt=note.updated_at,
        lastModified=note.last_modified,
        contentType=note.content_type,
    )


def snapshot_from_record(record: SnapshotRecord, language: str = "en") -> Snapshot:
    categories = [Category(id=c.id, name=c.name, is_system=c.isSystem) for c in record.categories]
    return Snapshot(
        categories=ensure_system_categories(categories, language),
        notes=[note_from_record(n, language) for n in record.notes],
    )


def snapshot_to_record(snapshot: Snapshot) -> SnapshotRecord:
    return SnapshotRecord(
        categories=[CategoryRecord(id=c.id, name=c.name, isSystem=c.is_system) for c in snapshot.categories],
        notes=[note_to_record(n) for n in snapshot.notes],
    )


class SnapshotGateway:
    def __init__(self, store: SnapshotStore, *, language: str = "en") -> None:
        self.store = store
        self.language = language

    def load(self) -> Snapshot:
        try:
            raw = self.store.load()
            record = SnapshotRecord.model_validate(raw)
        except SyncFailure:
            raise
        except ValidationError as e:
            raise SyncFailure("store_bad_snapshot") from e
        except (sqlite3.Error, OSError) as e:
            raise SyncFailure("store_read_failed") from e
        snapshot = snapshot_from_record(record, self.language)
        logger.info(
            "snapshot_loaded",
            extra={"categories": len(snapshot.categories), "notes": len(snapshot.notes)},
        )
        return snapshot

    def save(self, payload: dict[str, Any]) -> None:
        try:
            self.store.save(payload)
        except SyncFailure:
            raise
        except (sqlite3.Error, OSError) as e:
            raise SyncFailure("store_write_failed") from e

    @staticmethod
    def serialize(snapshot: Snapshot) -> dict[str, Any]:
        return snapshot_to_record(snapshot).model_dump(mode="json")
