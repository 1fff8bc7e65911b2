from __future__ import annotations

import asyncio

import pytest

from noteshelf_api.crypto import CryptoEngine
from noteshelf_api.domain.entities import (
    ALL_CATEGORY_ID,
    PRIVATE_CATEGORY_ID,
    TRASH_CATEGORY_ID,
    UNCATEGORIZED_CATEGORY_ID,
    Note,
)
from noteshelf_api.domain.exceptions import (
    MissingCiphertextError,
    MissingPasswordError,
    NoteStateError,
    WrongPasswordError,
)
from noteshelf_api.session import Session, unlock
from noteshelf_api.workspace import Workspace


def _workspace() -> Workspace:
    return Workspace(crypto=CryptoEngine(100_000))


def _run(coro):
    return asyncio.run(coro)


def test_making_a_note_private_hides_plaintext_at_rest() -> None:
    ws = _workspace()
    note = _run(ws.create_note("Draft"))
    _run(ws.save_note(note.id, "Secret", "body", private=True, password="abc123"))

    assert note.is_private
    assert note.encrypted is not None
    assert note.title == "Private Note"
    assert note.content == ""
    assert note.category_id == PRIVATE_CATEGORY_ID

    ws.unlocked.clear()
    entry = _run(unlock(ws.unlocked, ws.crypto, note, "abc123"))
    assert (entry.title, entry.content) == ("Secret", "body")

    ws.unlocked.clear()
    with pytest.raises(WrongPasswordError):
        _run(unlock(ws.unlocked, ws.crypto, note, "wrong"))
    assert note.id not in ws.unlocked


def test_private_note_creation_requires_a_password() -> None:
    ws = _workspace()
    with pytest.raises(MissingPasswordError):
        _run(ws.create_note("Secret", private=True))
    assert ws.notes == []


def test_creating_in_the_private_view_makes_a_private_note() -> None:
    ws = _workspace()
    note = _run(ws.create_note(None, PRIVATE_CATEGORY_ID, password="pw"))
    assert note.is_private
    assert note.category_id == PRIVATE_CATEGORY_ID
    assert note.title == "Private Note"
    assert ws.unlocked.get(note.id).title == "New Private Note"


def test_private_notes_stay_in_the_private_category() -> None:
    ws = _workspace()
    work = ws.create_category("Work")
    note = _run(ws.create_note("Secret", private=True, password="pw"))
    ws.move_to_category(note.id, work.id)
    assert note.category_id == PRIVATE_CATEGORY_ID
    assert note.original_category_id == PRIVATE_CATEGORY_ID


def test_trashed_private_note_restores_into_private() -> None:
    ws = _workspace()
    note = _run(ws.create_note("Secret", private=True, password="pw"))
    ws.soft_delete(note.id)
    assert note.category_id == TRASH_CATEGORY_ID
    assert note.is_private
    ws.restore(note.id)
    assert note.category_id == PRIVATE_CATEGORY_ID


def test_protecting_a_trashed_note_defers_placement() -> None:
    ws = _workspace()
    note = _run(ws.create_note("Draft"))
    ws.soft_delete(note.id)
    _run(ws.set_private(note.id, "pw", {"title": "Draft", "content": "x"}))
    assert note.category_id == TRASH_CATEGORY_ID
    assert note.is_private
    ws.restore(note.id)
    assert note.category_id == PRIVATE_CATEGORY_ID


def test_unlock_without_ciphertext_is_reported() -> None:
    ws = _workspace()
    broken = Note(
        id="n1",
        title="Private Note",
        content="",
        content_type="plain",
        category_id=PRIVATE_CATEGORY_ID,
        original_category_id=PRIVATE_CATEGORY_ID,
        updated_at=1,
        last_modified="",
        is_private=True,
    )
    with pytest.raises(MissingCiphertextError):
        _run(unlock(ws.unlocked, ws.crypto, broken, "pw"))


def test_unlock_rejects_public_notes() -> None:
    ws = _workspace()
    note = _run(ws.create_note("Plain"))
    with pytest.raises(NoteStateError):
        _run(unlock(ws.unlocked, ws.crypto, note, "pw"))


def test_unprotecting_restores_plaintext() -> None:
    ws = _workspace()
    note = _run(ws.create_note("Secret", private=True, password="pw"))
    _run(ws.save_note(note.id, "Public", "now visible", category_id=UNCATEGORIZED_CATEGORY_ID))
    assert not note.is_private
    assert note.encrypted is None
    assert (note.title, note.content) == ("Public", "now visible")
    assert note.category_id == UNCATEGORIZED_CATEGORY_ID
    assert note.id not in ws.unlocked


def test_unprotecting_a_locked_note_needs_the_right_password() -> None:
    ws = _workspace()
    note = _run(ws.create_note("Secret", private=True, password="pw"))
    ws.unlocked.clear()
    with pytest.raises(MissingPasswordError):
        _run(ws.save_note(note.id, "Public", "x"))
    with pytest.raises(WrongPasswordError):
        _run(ws.save_note(note.id, "Public", "x", password="nope"))
    assert note.is_private
    assert note.encrypted is not None


def test_purging_a_private_note_drops_its_plaintext() -> None:
    ws = _workspace()
    note = _run(ws.create_note("Secret", private=True, password="pw"))
    ws.soft_delete(note.id)
    assert note.id in ws.unlocked
    ws.hard_delete(note.id)
    assert note.id not in ws.unlocked


def test_leaving_the_private_view_relocks() -> None:
    ws = _workspace()
    session = Session(ws)
    session.select_category(PRIVATE_CATEGORY_ID)
    _run(ws.create_note("Secret", PRIVATE_CATEGORY_ID, password="pw"))
    assert len(ws.unlocked) == 1

    session.select_category(ALL_CATEGORY_ID)
    assert len(ws.unlocked) == 0
    assert session.current_note_id is None


def test_switching_away_from_an_unlocked_note_relocks() -> None:
    ws = _workspace()
    session = Session(ws)
    secret = _run(ws.create_note("Secret", private=True, password="pw"))
    plain = _run(ws.create_note("Plain"))

    view = _run(session.select_note(secret.id))
    assert view.title == "Secret"
    _run(session.select_note(plain.id))
    assert secret.id not in ws.unlocked

    with pytest.raises(MissingPasswordError):
        _run(session.select_note(secret.id))
    with pytest.raises(WrongPasswordError):
        _run(session.select_note(secret.id, "bad"))
    assert _run(session.select_note(secret.id, "pw")).title == "Secret"
    assert session.current_note_id == secret.id


def test_saving_outside_the_private_view_discards_plaintext() -> None:
    ws = _workspace()
    session = Session(ws)
    note = _run(ws.create_note("Secret", private=True, password="pw"))
    session.note_saved(note)
    assert note.id not in ws.unlocked

    session.select_category(PRIVATE_CATEGORY_ID)
    _run(session.select_note(note.id, "pw"))
    session.note_saved(note)
    assert note.id in ws.unlocked


def test_deleting_the_viewed_category_resets_navigation() -> None:
    ws = _workspace()
    session = Session(ws)
    work = ws.create_category("Work")
    session.select_category(work.id)
    ws.delete_category(work.id)
    session.category_removed(work.id)
    assert session.current_category_id == ALL_CATEGORY_ID


def test_unprotecting_without_a_category_lands_in_uncategorized() -> None:
    ws = _workspace()
    note = _run(ws.create_note("Secret", private=True, password="pw"))
    _run(ws.save_note(note.id, "Public", "body"))
    assert not note.is_private
    assert note.category_id == UNCATEGORIZED_CATEGORY_ID
