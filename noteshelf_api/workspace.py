from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Optional

from .crypto import CryptoEngine
from .domain.entities import (
    ALL_CATEGORY_ID,
    PRIVATE_CATEGORY_ID,
    SYSTEM_CATEGORY_IDS,
    TRASH_CATEGORY_ID,
    UNCATEGORIZED_CATEGORY_ID,
    Category,
    Note,
    Snapshot,
    UnlockedNote,
    normalize_content_type,
)
from .domain.exceptions import (
    CategoryNotFoundError,
    DuplicateCategoryError,
    DuplicateTitleError,
    EmptyNameError,
    InvalidCategoryError,
    MissingPasswordError,
    NoteNotFoundError,
    NoteStateError,
    ProtectedCategoryError,
)
from .domain.membership import membership
from .gateway import ensure_system_categories
from .labels import label
from .session import UnlockCache, unlock
from .util import format_timestamp, new_id, now_ms

logger = logging.getLogger("noteshelf.workspace")


def _payload(title: str, content: str, content_type: str) -> dict[str, str]:
    return {"title": title, "content": content, "contentType": content_type}


class Workspace:
    """
    In-memory categories and notes plus the session's unlocked plaintext.

    Category membership is never edited in place: every structural mutation
    ends with `rebuild()`, which recomputes `members` from the notes.
    """

    def __init__(
        self,
        categories: Iterable[Category] = (),
        notes: Iterable[Note] = (),
        *,
        crypto: CryptoEngine | None = None,
        language: str = "en",
    ) -> None:
        self.language = language
        self.crypto = crypto or CryptoEngine()
        self.categories: list[Category] = ensure_system_categories(list(categories), language)
        self.notes: list[Note] = list(notes)
        self.unlocked = UnlockCache()
        self.members: dict[str, list[str]] = {}
        self.rebuild()

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot, *, crypto: CryptoEngine | None = None, language: str = "en") -> Workspace:
        return cls(snapshot.categories, snapshot.notes, crypto=crypto, language=language)

    def snapshot(self) -> Snapshot:
        return Snapshot(categories=list(self.categories), notes=list(self.notes))

    # --- lookups ---

    def find_note(self, note_id: str) -> Note:
        for note in self.notes:
            if note.id == note_id:
                return note
        raise NoteNotFoundError("note_not_found")

    def find_category(self, category_id: str) -> Category:
        for cat in self.categories:
            if cat.id == category_id:
                return cat
        raise CategoryNotFoundError("category_not_found")

    def category_name(self, category_id: str) -> str:
        if category_id in SYSTEM_CATEGORY_IDS:
            return label(category_id, self.language)
        for cat in self.categories:
            if cat.id == category_id:
                return cat.name
        return label(UNCATEGORIZED_CATEGORY_ID, self.language)

    # --- membership ---

    def rebuild(self) -> None:
        known = {c.id for c in self.categories if c.id != ALL_CATEGORY_ID}
        for note in self.notes:
            if note.category_id not in known:
                logger.warning(
                    "note_category_repaired",
                    extra={"id": note.id, "category_id": note.category_id},
                )
                note.category_id = UNCATEGORIZED_CATEGORY_ID
        self.members = membership(self.notes, self.categories)

    # --- categories ---

    def _validate_category_name(self, name: str, exclude_id: Optional[str] = None) -> str:
        trimmed = (name or "").strip()
        if not trimmed:
            raise EmptyNameError("category_name_empty")
        if any(c.name == trimmed and c.id != exclude_id for c in self.categories):
            raise DuplicateCategoryError("category_name_exists")
        return trimmed

    def create_category(self, name: str) -> Category:
        trimmed = self._validate_category_name(name)
        cat = Category(id=new_id("cat"), name=trimmed)
        self.categories.append(cat)
        self.rebuild()
        return cat

    def rename_category(self, category_id: str, name: str) -> Category:
        if category_id in SYSTEM_CATEGORY_IDS:
            raise ProtectedCategoryError("category_protected")
        cat = self.find_category(category_id)
        if (name or "").strip() == cat.name:
            return cat
        cat.name = self._validate_category_name(name, exclude_id=category_id)
        logger.info("category_rename", extra={"id": cat.id})
        return cat

    def delete_category(self, category_id: str) -> list[str]:
        """Remove a user category; its notes move to `uncategorized`. Returns the moved note ids."""
        if category_id in SYSTEM_CATEGORY_IDS:
            raise ProtectedCategoryError("category_protected")
        self.find_category(category_id)
        moved: list[str] = []
        for note in self.notes:
            if note.category_id == category_id:
                note.category_id = UNCATEGORIZED_CATEGORY_ID
                note.original_category_id = UNCATEGORIZED_CATEGORY_ID
                moved.append(note.id)
            elif note.original_category_id == category_id:
                note.original_category_id = UNCATEGORIZED_CATEGORY_ID
        self.categories = [c for c in self.categories if c.id != category_id]
        self.rebuild()
        return moved

    # --- titles ---

    def is_title_duplicate(self, title: str, category_id: str, exclude_note_id: Optional[str] = None) -> bool:
        trimmed = (title or "").strip()
        return any(
            not n.is_private
            and not n.is_deleted
            and n.id != exclude_note_id
            and n.category_id == category_id
            and n.title == trimmed
            for n in self.notes
        )

    def unique_title(self, base_title: str, category_id: str, exclude_note_id: Optional[str] = None) -> str:
        title = (base_title or "").strip() or label("new_note", self.language)
        if not self.is_title_duplicate(title, category_id, exclude_note_id):
            return title
        suffix = 2
        while self.is_title_duplicate(f"{title} ({suffix})", category_id, exclude_note_id):
            suffix += 1
        return f"{title} ({suffix})"

    # --- notes ---

    def _stamp(self, note: Note) -> None:
        note.updated_at = now_ms()
        note.last_modified = format_timestamp(note.updated_at, self.language)

    async def create_note(
        self,
        title: Optional[str] = None,
        category_id: str = UNCATEGORIZED_CATEGORY_ID,
        *,
        private: bool = False,
        password: Optional[str] = None,
    ) -> Note:
        if category_id in (ALL_CATEGORY_ID, TRASH_CATEGORY_ID):
            target = UNCATEGORIZED_CATEGORY_ID
        elif category_id == PRIVATE_CATEGORY_ID:
            target = PRIVATE_CATEGORY_ID
            private = True
        else:
            target = self.find_category(category_id).id
        if private:
            if not password:
                raise MissingPasswordError("password_required")
            target = PRIVATE_CATEGORY_ID

        now = now_ms()
        if private:
            real_title = (title or "").strip() or label("new_private_note", self.language)
            blob = await self.crypto.encrypt(_payload(real_title, "", "plain"), password)
            note = Note(
                id=new_id("note"),
                title=label("private_note", self.language),
                content="",
                content_type="plain",
                category_id=target,
                original_category_id=target,
                updated_at=now,
                last_modified=format_timestamp(now, self.language),
                is_private=True,
                encrypted=blob,
            )
            self.unlocked.put(note.id, UnlockedNote(real_title, "", "plain", password))
        else:
            note = Note(
                id=new_id("note"),
                title=self.unique_title(title or label("new_note", self.language), target),
                content="",
                content_type="plain",
                category_id=target,
                original_category_id=target,
                updated_at=now,
                last_modified=format_timestamp(now, self.language),
            )
        self.notes.append(note)
        self.rebuild()
        return note

    async def set_private(self, note_id: str, password: str, payload: dict[str, Any]) -> Note:
        """
        Encrypt `payload` (title, content, contentType) into the note and leave
        only placeholders at rest. Undeleted notes are pinned to `private`.
        """
        if not password:
            raise MissingPasswordError("password_required")
        plain = _payload(
            str(payload.get("title") or ""),
            str(payload.get("content") or ""),
            normalize_content_type(payload.get("contentType")),
        )
        blob = await self.crypto.encrypt(plain, password)
        note = self.find_note(note_id)
        note.is_private = True
        note.encrypted = blob
        note.title = label("private_note", self.language)
        note.content = ""
        note.content_type = "plain"
        if not note.is_deleted:
            self._place(note, PRIVATE_CATEGORY_ID)
        self.rebuild()
        return note

    def clear_private(self, note_id: str, payload: dict[str, Any], *, target: Optional[str] = None) -> Note:
        """
        Write already-decrypted plaintext back into the note and drop the
        ciphertext. Undeleted notes move to `target` (default `uncategorized`).
        """
        note = self.find_note(note_id)
        title = str(payload.get("title") or "").strip()
        if not title:
            raise EmptyNameError("note_title_empty")
        destination = target or UNCATEGORIZED_CATEGORY_ID
        if not note.is_deleted and self.is_title_duplicate(title, destination, exclude_note_id=note.id):
            raise DuplicateTitleError("note_title_exists")
        note.title = title
        note.content = str(payload.get("content") or "")
        note.content_type = normalize_content_type(payload.get("contentType"))
        note.is_private = False
        note.encrypted = None
        self.unlocked.discard(note.id)
        if note.is_deleted:
            if note.original_category_id == PRIVATE_CATEGORY_ID:
                note.original_category_id = destination
        else:
            self._place(note, destination)
        self.rebuild()
        return note

    async def save_note(
        self,
        note_id: str,
        title: str,
        content: str,
        content_type: str = "plain",
        *,
        category_id: Optional[str] = None,
        private: bool = False,
        password: Optional[str] = None,
    ) -> Note:
        note = self.find_note(note_id)
        if note.is_deleted:
            raise NoteStateError("note_in_trash")
        new_title = (title or "").strip()
        if not new_title:
            raise EmptyNameError("note_title_empty")
        content_type = normalize_content_type(content_type)
        payload = _payload(new_title, content or "", content_type)

        if private:
            target = PRIVATE_CATEGORY_ID
            cached = self.unlocked.get(note.id)
            if cached is None and note.is_private:
                if not password:
                    raise MissingPasswordError("password_required")
                cached = await unlock(self.unlocked, self.crypto, note, password)
            secret = cached.password if cached is not None else password
            if not secret:
                raise MissingPasswordError("password_required")
            await self.set_private(note.id, secret, payload)
            self.unlocked.put(note.id, UnlockedNote(new_title, payload["content"], content_type, secret))
        else:
            target = category_id or self._home_category(note)
            if target in (ALL_CATEGORY_ID, TRASH_CATEGORY_ID, PRIVATE_CATEGORY_ID):
                raise InvalidCategoryError("category_not_assignable")
            self.find_category(target)
            if self.is_title_duplicate(new_title, target, exclude_note_id=note.id):
                raise DuplicateTitleError("note_title_exists")
            if note.is_private:
                if self.unlocked.get(note.id) is None:
                    if not password:
                        raise MissingPasswordError("password_required")
                    await unlock(self.unlocked, self.crypto, note, password)
                self.clear_private(note.id, payload, target=target)
            else:
                note.title = new_title
                note.content = payload["content"]
                note.content_type = content_type

        self._stamp(note)
        self.move_to_category(note.id, target)
        return note

    @staticmethod
    def _home_category(note: Note) -> str:
        """Category a save keeps the note in when the caller names none."""
        home = note.original_category_id if note.is_private else note.category_id
        if home in (ALL_CATEGORY_ID, TRASH_CATEGORY_ID, PRIVATE_CATEGORY_ID) or not home:
            return UNCATEGORIZED_CATEGORY_ID
        return home

    def _place(self, note: Note, target: str) -> None:
        previous = note.category_id
        if target == TRASH_CATEGORY_ID and not note.original_category_id:
            note.original_category_id = previous if previous != TRASH_CATEGORY_ID else UNCATEGORIZED_CATEGORY_ID
        note.is_deleted = target == TRASH_CATEGORY_ID
        note.category_id = target
        # Undeleted private notes live in the private aggregate whatever was requested.
        if target != PRIVATE_CATEGORY_ID and note.is_private and not note.is_deleted:
            note.category_id = PRIVATE_CATEGORY_ID
            target = PRIVATE_CATEGORY_ID
        if target != TRASH_CATEGORY_ID:
            note.original_category_id = note.category_id

    def move_to_category(self, note_id: str, target_category_id: str) -> Note:
        note = self.find_note(note_id)
        if target_category_id == ALL_CATEGORY_ID:
            raise InvalidCategoryError("category_not_assignable")
        self.find_category(target_category_id)
        if target_category_id == PRIVATE_CATEGORY_ID and not note.is_private:
            raise InvalidCategoryError("category_requires_private")
        self._place(note, target_category_id)
        self.rebuild()
        logger.info("note_move", extra={"id": note.id, "category_id": note.category_id})
        return note

    def soft_delete(self, note_id: str) -> Note:
        return self.move_to_category(note_id, TRASH_CATEGORY_ID)

    def restore(self, note_id: str) -> Note:
        note = self.find_note(note_id)
        if not note.is_deleted:
            raise NoteStateError("note_not_deleted")
        fallback = PRIVATE_CATEGORY_ID if note.is_private else UNCATEGORIZED_CATEGORY_ID
        target = note.original_category_id or fallback
        known = {c.id for c in self.categories}
        if target in (ALL_CATEGORY_ID, TRASH_CATEGORY_ID) or target not in known:
            target = fallback
        if target == PRIVATE_CATEGORY_ID and not note.is_private:
            target = UNCATEGORIZED_CATEGORY_ID
        self._place(note, target)
        self.rebuild()
        logger.info("note_restore", extra={"id": note.id, "category_id": note.category_id})
        return note

    def hard_delete(self, note_id: str) -> None:
        note = self.find_note(note_id)
        if not note.is_deleted:
            raise NoteStateError("note_not_deleted")
        self.notes = [n for n in self.notes if n.id != note_id]
        self.unlocked.discard(note_id)
        self.rebuild()

    # --- language ---

    def apply_language(self, language: str) -> None:
        self.language = language
        for cat in self.categories:
            if cat.id in SYSTEM_CATEGORY_IDS:
                cat.name = label(cat.id, language)
