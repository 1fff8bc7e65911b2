import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from noteshelf_api.dependencies import get_session, get_sync, get_workspace
from noteshelf_api.domain.entities import (
    ALL_CATEGORY_ID,
    PRIVATE_CATEGORY_ID,
    TRASH_CATEGORY_ID,
    UNCATEGORIZED_CATEGORY_ID,
    Category,
    Note,
)
from noteshelf_api.domain.exceptions import (
    CategoryNotFoundError,
    DuplicateCategoryError,
    DuplicateTitleError,
    EmptyNameError,
    InvalidCategoryError,
    MissingCiphertextError,
    MissingPasswordError,
    NoteNotFoundError,
    NotesError,
    NoteStateError,
    ProtectedCategoryError,
    SyncFailure,
    WrongPasswordError,
)
from noteshelf_api.domain.schemas import (
    CategoryIn,
    CategoryOut,
    LanguageIn,
    NavigateIn,
    NoteCreateIn,
    NoteDetailOut,
    NoteListOut,
    NoteMoveIn,
    NoteSaveIn,
    NoteSelectIn,
    NoteSummaryOut,
    SyncStatusOut,
)
from noteshelf_api.gateway import SnapshotGateway
from noteshelf_api.labels import label
from noteshelf_api.search import (
    category_counts,
    content_text,
    effective_sort_mode,
    notes_in_view,
    search_notes,
    sort_notes,
)
from noteshelf_api.session import NoteView, Session
from noteshelf_api.sync import SyncCoordinator
from noteshelf_api.util import snippet
from noteshelf_api.workspace import Workspace

router = APIRouter()
logger = logging.getLogger("noteshelf.api")

_STATUS_BY_ERROR: list[tuple[type[NotesError], int]] = [
    (EmptyNameError, 400),
    (InvalidCategoryError, 400),
    (WrongPasswordError, 401),
    (ProtectedCategoryError, 403),
    (NoteNotFoundError, 404),
    (CategoryNotFoundError, 404),
    (DuplicateTitleError, 409),
    (DuplicateCategoryError, 409),
    (NoteStateError, 409),
    (MissingCiphertextError, 422),
    (MissingPasswordError, 423),
    (SyncFailure, 502),
]

_CATEGORY_ORDER = {ALL_CATEGORY_ID: -1, UNCATEGORIZED_CATEGORY_ID: 0, PRIVATE_CATEGORY_ID: 90, TRASH_CATEGORY_ID: 99}


def _http_error(e: NotesError) -> HTTPException:
    for kind, status in _STATUS_BY_ERROR:
        if isinstance(e, kind):
            return HTTPException(status_code=status, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


async def _sync(workspace: Workspace, sync: SyncCoordinator) -> None:
    # a client disconnect must not cancel a save already queued
    await asyncio.shield(sync.enqueue(SnapshotGateway.serialize(workspace.snapshot())))


def _rid(request: Request) -> str:
    return getattr(request.state, "request_id", "")


def _category_out(cat: Category, workspace: Workspace, counts: dict[str, int]) -> CategoryOut:
    return CategoryOut(
        id=cat.id,
        name=workspace.category_name(cat.id),
        isSystem=cat.is_system,
        noteCount=counts.get(cat.id, 0),
    )


def _detail(view: NoteView) -> NoteDetailOut:
    note = view.note
    return NoteDetailOut(
        id=note.id,
        title=view.title,
        content=view.content,
        contentType=view.content_type,
        categoryId=note.category_id,
        originalCategoryId=note.original_category_id,
        isPrivate=note.is_private,
        isDeleted=note.is_deleted,
        updatedAt=note.updated_at,
        lastModified=note.last_modified,
    )


def _view_of(note: Note, workspace: Workspace) -> NoteView:
    if note.is_private:
        entry = workspace.unlocked.get(note.id)
        if entry is None:
            return NoteView(note=note, title=note.title, content="", content_type="plain")
        return NoteView(note=note, title=entry.title, content=entry.content, content_type=entry.content_type)
    return NoteView(note=note, title=note.title, content=note.content, content_type=note.content_type)


def _summary(note: Note, workspace: Workspace) -> NoteSummaryOut:
    lang = workspace.language
    entry = workspace.unlocked.get(note.id) if note.is_private else None
    if note.is_private:
        title = entry.title if entry and entry.title else label("private_note", lang)
        text = snippet(content_text(entry.content, entry.content_type)) if entry else label("private_locked", lang)
    else:
        title = note.title or label("untitled_note", lang)
        text = snippet(content_text(note.content, note.content_type))
    return NoteSummaryOut(
        id=note.id,
        title=title,
        snippet=text,
        categoryId=note.category_id,
        categoryName=workspace.category_name(note.category_id),
        isPrivate=note.is_private,
        isDeleted=note.is_deleted,
        locked=note.is_private and entry is None,
        updatedAt=note.updated_at,
        lastModified=note.last_modified,
    )


@router.get("/health")
def health():
    return {"ok": True}


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(workspace: Workspace = Depends(get_workspace)):
    counts = category_counts(workspace.categories, workspace.notes)
    ordered = sorted(
        enumerate(workspace.categories),
        key=lambda pair: (_CATEGORY_ORDER.get(pair[1].id, 1), pair[0]),
    )
    return [_category_out(cat, workspace, counts) for _, cat in ordered]


@router.post("/categories", response_model=CategoryOut)
async def create_category(
    payload: CategoryIn,
    request: Request,
    workspace: Workspace = Depends(get_workspace),
    sync: SyncCoordinator = Depends(get_sync),
):
    try:
        cat = workspace.create_category(payload.name)
    except NotesError as e:
        raise _http_error(e) from e
    logger.info("category_create", extra={"rid": _rid(request), "id": cat.id})
    await _sync(workspace, sync)
    return _category_out(cat, workspace, {})


@router.patch("/categories/{category_id}", response_model=CategoryOut)
async def rename_category(
    category_id: str,
    payload: CategoryIn,
    workspace: Workspace = Depends(get_workspace),
    sync: SyncCoordinator = Depends(get_sync),
):
    try:
        cat = workspace.rename_category(category_id, payload.name)
    except NotesError as e:
        raise _http_error(e) from e
    await _sync(workspace, sync)
    counts = category_counts([cat], workspace.notes)
    return _category_out(cat, workspace, counts)


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: str,
    request: Request,
    workspace: Workspace = Depends(get_workspace),
    session: Session = Depends(get_session),
    sync: SyncCoordinator = Depends(get_sync),
):
    try:
        moved = workspace.delete_category(category_id)
    except NotesError as e:
        raise _http_error(e) from e
    session.category_removed(category_id)
    logger.info("category_delete", extra={"rid": _rid(request), "id": category_id, "moved": len(moved)})
    await _sync(workspace, sync)
    return {"ok": True, "moved": moved}


@router.get("/session")
async def get_session_state(session: Session = Depends(get_session)):
    return {"categoryId": session.current_category_id, "noteId": session.current_note_id}


@router.put("/session/category")
async def navigate(payload: NavigateIn, session: Session = Depends(get_session)):
    try:
        session.select_category(payload.categoryId)
    except NotesError as e:
        raise _http_error(e) from e
    return {"categoryId": session.current_category_id, "noteId": session.current_note_id}


@router.get("/notes", response_model=NoteListOut)
async def list_notes(
    sort: str = Query("modified"),
    q: Optional[str] = None,
    workspace: Workspace = Depends(get_workspace),
    session: Session = Depends(get_session),
):
    view_id = session.current_category_id
    notes = notes_in_view(workspace.notes, view_id)
    if q and q.strip():
        notes = search_notes(notes, q, workspace.unlocked)
    mode = effective_sort_mode(view_id, sort)
    ordered = sort_notes(notes, mode, category_name=workspace.category_name)
    return NoteListOut(categoryId=view_id, sort=mode, items=[_summary(n, workspace) for n in ordered])


@router.post("/notes", response_model=NoteDetailOut)
async def create_note(
    payload: NoteCreateIn,
    request: Request,
    workspace: Workspace = Depends(get_workspace),
    session: Session = Depends(get_session),
    sync: SyncCoordinator = Depends(get_sync),
):
    category_id = payload.categoryId or session.current_category_id
    try:
        note = await workspace.create_note(
            payload.title,
            category_id,
            private=payload.private,
            password=payload.password,
        )
    except NotesError as e:
        raise _http_error(e) from e
    logger.info(
        "note_create",
        extra={"rid": _rid(request), "id": note.id, "category_id": note.category_id, "private": note.is_private},
    )
    await _sync(workspace, sync)
    return _detail(_view_of(note, workspace))


@router.post("/notes/{note_id}/select", response_model=NoteDetailOut)
async def select_note(
    note_id: str,
    payload: NoteSelectIn,
    session: Session = Depends(get_session),
):
    try:
        view = await session.select_note(note_id, payload.password)
    except NotesError as e:
        raise _http_error(e) from e
    return _detail(view)


@router.put("/notes/{note_id}", response_model=NoteDetailOut)
async def save_note(
    note_id: str,
    payload: NoteSaveIn,
    request: Request,
    workspace: Workspace = Depends(get_workspace),
    session: Session = Depends(get_session),
    sync: SyncCoordinator = Depends(get_sync),
):
    try:
        note = await workspace.save_note(
            note_id,
            payload.title,
            payload.content,
            payload.contentType,
            category_id=payload.categoryId,
            private=payload.private,
            password=payload.password,
        )
    except NotesError as e:
        raise _http_error(e) from e
    view = _view_of(note, workspace)
    session.note_saved(note)
    logger.info(
        "note_save",
        extra={"rid": _rid(request), "id": note.id, "category_id": note.category_id, "private": note.is_private},
    )
    await _sync(workspace, sync)
    return _detail(view)


@router.post("/notes/{note_id}/move", response_model=NoteDetailOut)
async def move_note(
    note_id: str,
    payload: NoteMoveIn,
    workspace: Workspace = Depends(get_workspace),
    sync: SyncCoordinator = Depends(get_sync),
):
    try:
        note = workspace.move_to_category(note_id, payload.categoryId)
    except NotesError as e:
        raise _http_error(e) from e
    await _sync(workspace, sync)
    return _detail(_view_of(note, workspace))


@router.delete("/notes/{note_id}", response_model=NoteDetailOut)
async def delete_note(
    note_id: str,
    request: Request,
    workspace: Workspace = Depends(get_workspace),
    session: Session = Depends(get_session),
    sync: SyncCoordinator = Depends(get_sync),
):
    try:
        note = workspace.soft_delete(note_id)
    except NotesError as e:
        raise _http_error(e) from e
    session.note_removed(note_id)
    logger.info("note_trash", extra={"rid": _rid(request), "id": note_id})
    await _sync(workspace, sync)
    return _detail(_view_of(note, workspace))


@router.post("/notes/{note_id}/restore", response_model=NoteDetailOut)
async def restore_note(
    note_id: str,
    workspace: Workspace = Depends(get_workspace),
    sync: SyncCoordinator = Depends(get_sync),
):
    try:
        note = workspace.restore(note_id)
    except NotesError as e:
        raise _http_error(e) from e
    await _sync(workspace, sync)
    return _detail(_view_of(note, workspace))


@router.delete("/notes/{note_id}/permanent")
async def purge_note(
    note_id: str,
    request: Request,
    workspace: Workspace = Depends(get_workspace),
    session: Session = Depends(get_session),
    sync: SyncCoordinator = Depends(get_sync),
):
    try:
        workspace.hard_delete(note_id)
    except NotesError as e:
        raise _http_error(e) from e
    session.note_removed(note_id)
    logger.info("note_purge", extra={"rid": _rid(request), "id": note_id})
    await _sync(workspace, sync)
    return {"ok": True}


@router.put("/settings/language")
async def set_language(
    payload: LanguageIn,
    workspace: Workspace = Depends(get_workspace),
    sync: SyncCoordinator = Depends(get_sync),
):
    workspace.apply_language(payload.language)
    await _sync(workspace, sync)
    return {"language": workspace.language}


@router.get("/sync", response_model=SyncStatusOut)
def sync_status(sync: SyncCoordinator = Depends(get_sync)):
    return SyncStatusOut(**sync.status())


@router.get("/snapshot")
def export_snapshot(workspace: Workspace = Depends(get_workspace)):
    return SnapshotGateway.serialize(workspace.snapshot())
