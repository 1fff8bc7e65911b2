from __future__ import annotations

from collections.abc import Iterable

from .entities import ALL_CATEGORY_ID, UNCATEGORIZED_CATEGORY_ID, Category, Note


def membership(notes: Iterable[Note], categories: Iterable[Category]) -> dict[str, list[str]]:
    """
    Recompute every category's member list from the notes' `category_id`.

    The `all` aggregate never holds members. Notes pointing at an unknown
    category land in `uncategorized`.
    """
    members: dict[str, list[str]] = {c.id: [] for c in categories if c.id != ALL_CATEGORY_ID}
    members.setdefault(UNCATEGORIZED_CATEGORY_ID, [])
    for note in notes:
        target = note.category_id if note.category_id in members else UNCATEGORIZED_CATEGORY_ID
        members[target].append(note.id)
    return members
