from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .crypto import CryptoEngine
from .domain.entities import (
    ALL_CATEGORY_ID,
    PRIVATE_CATEGORY_ID,
    Note,
    UnlockedNote,
    normalize_content_type,
)
from .domain.exceptions import (
    MissingCiphertextError,
    MissingPasswordError,
    NoteStateError,
    WrongPasswordError,
)
from .labels import label

if TYPE_CHECKING:
    from .workspace import Workspace

logger = logging.getLogger("noteshelf.session")


class UnlockCache:
    """Decrypted private-note payloads for the current session only."""

    def __init__(self) -> None:
        self._entries: dict[str, UnlockedNote] = {}

    def get(self, note_id: str) -> Optional[UnlockedNote]:
        return self._entries.get(note_id)

    def put(self, note_id: str, entry: UnlockedNote) -> None:
        self._entries[note_id] = entry

    def discard(self, note_id: str) -> None:
        self._entries.pop(note_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


async def unlock(cache: UnlockCache, crypto: CryptoEngine, note: Note, password: str) -> UnlockedNote:
    if not note.is_private:
        raise NoteStateError("note_not_private")
    cached = cache.get(note.id)
    if cached is not None:
        return cached
    if note.encrypted is None:
        raise MissingCiphertextError("missing_ciphertext")
    payload = await crypto.decrypt(note.encrypted, password)
    if not isinstance(payload, dict):
        raise WrongPasswordError("decryption_failed")
    entry = UnlockedNote(
        title=str(payload.get("title") or ""),
        content=str(payload.get("content") or ""),
        content_type=normalize_content_type(payload.get("contentType")),
        password=password,
    )
    cache.put(note.id, entry)
    return entry


@dataclass(frozen=True)
class NoteView:
    note: Note
    title: str
    content: str
    content_type: str


class Session:
    """
    Navigation state of one client: the active category view and the focused
    note. Plaintext is relocked on every transition that could expose it to
    another view or another note.
    """

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.current_category_id = ALL_CATEGORY_ID
        self.current_note_id: Optional[str] = None

    @property
    def unlocked(self) -> UnlockCache:
        return self.workspace.unlocked

    def relock(self) -> None:
        if len(self.unlocked):
            logger.debug("relock", extra={"entries": len(self.unlocked)})
        self.unlocked.clear()

    def select_category(self, category_id: str) -> None:
        self.workspace.find_category(category_id)
        leaving_private = self.current_category_id == PRIVATE_CATEGORY_ID and category_id != PRIVATE_CATEGORY_ID
        self.current_category_id = category_id
        self.current_note_id = None
        if leaving_private:
            self.relock()

    async def select_note(self, note_id: str, password: Optional[str] = None) -> NoteView:
        previous = self.current_note_id
        if previous and previous != note_id and previous in self.unlocked:
            self.relock()
        note = self.workspace.find_note(note_id)
        if not note.is_private:
            self.current_note_id = note_id
            return NoteView(note=note, title=note.title, content=note.content, content_type=note.content_type)

        entry = self.unlocked.get(note_id)
        if entry is None:
            if not password:
                raise MissingPasswordError("password_required")
            entry = await unlock(self.unlocked, self.workspace.crypto, note, password)
        self.current_note_id = note_id
        return NoteView(
            note=note,
            title=entry.title or label("private_note", self.workspace.language),
            content=entry.content,
            content_type=entry.content_type,
        )

    def note_saved(self, note: Note) -> None:
        if note.is_private and self.current_category_id != PRIVATE_CATEGORY_ID:
            self.unlocked.discard(note.id)

    def note_removed(self, note_id: str) -> None:
        if self.current_note_id == note_id:
            self.current_note_id = None

    def category_removed(self, category_id: str) -> None:
        if self.current_category_id == category_id:
            self.current_category_id = ALL_CATEGORY_ID
            self.current_note_id = None
