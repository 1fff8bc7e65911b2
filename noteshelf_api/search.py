from __future__ import annotations

import unicodedata
from collections.abc import Callable, Iterable
from html.parser import HTMLParser
from typing import Optional

import markdown as mdlib

from .domain.entities import (
    ALL_CATEGORY_ID,
    PRIVATE_CATEGORY_ID,
    TRASH_CATEGORY_ID,
    Category,
    Note,
)
from .session import UnlockCache

SORT_MODES = ("modified", "title", "category")

_BLOCK_TAGS = {"p", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "pre", "blockquote"}


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []
        self._skip = 0

    def handle_starttag(self, tag, attrs):
        if tag in ("script", "style"):
            self._skip += 1
        elif tag == "br":
            self.parts.append("\n")

    def handle_endtag(self, tag):
        if tag in ("script", "style"):
            self._skip = max(0, self._skip - 1)
        elif tag in _BLOCK_TAGS:
            self.parts.append("\n")

    def handle_data(self, data):
        if not self._skip:
            self.parts.append(data)


def strip_html(html: str) -> str:
    parser = _TextExtractor()
    parser.feed(html or "")
    parser.close()
    return "".join(parser.parts).strip()


def markdown_to_text(text: str) -> str:
    html = mdlib.markdown(text or "", extensions=["fenced_code", "tables"])
    return strip_html(html)


def content_text(content: str, content_type: str = "plain") -> str:
    if content_type == "html":
        return strip_html(content)
    if content_type == "markdown":
        return markdown_to_text(content)
    return content or ""


def collation_key(text: str) -> str:
    return unicodedata.normalize("NFKD", text or "").casefold()


def effective_sort_mode(view_category_id: str, mode: str) -> str:
    if mode not in SORT_MODES:
        return "modified"
    if mode == "category" and view_category_id != ALL_CATEGORY_ID:
        return "modified"
    return mode


def sort_notes(
    notes: Iterable[Note],
    mode: str = "modified",
    *,
    category_name: Optional[Callable[[str], str]] = None,
) -> list[Note]:
    items = list(notes)
    if mode == "title":
        items.sort(key=lambda n: collation_key(n.title))
    elif mode == "category":
        name_of = category_name or (lambda cid: cid)
        items.sort(key=lambda n: collation_key(name_of(n.category_id)))
    else:
        items.sort(key=lambda n: n.updated_at or 0, reverse=True)
    return items


def notes_in_view(notes: Iterable[Note], category_id: str) -> list[Note]:
    if category_id == ALL_CATEGORY_ID:
        return [n for n in notes if not n.is_deleted]
    if category_id == TRASH_CATEGORY_ID:
        return [n for n in notes if n.is_deleted]
    if category_id == PRIVATE_CATEGORY_ID:
        return [n for n in notes if not n.is_deleted and n.is_private]
    return [n for n in notes if not n.is_deleted and not n.is_private and n.category_id == category_id]


def category_counts(categories: Iterable[Category], notes: Iterable[Note]) -> dict[str, int]:
    items = list(notes)
    return {c.id: len(notes_in_view(items, c.id)) for c in categories}


def readable_text(note: Note, unlocked: UnlockCache) -> Optional[tuple[str, str]]:
    """(title, plain-text content) of a note, or None while a private note is locked."""
    if note.is_private:
        entry = unlocked.get(note.id)
        if entry is None:
            return None
        return entry.title, content_text(entry.content, entry.content_type)
    return note.title, content_text(note.content, note.content_type)


def search_notes(notes: Iterable[Note], term: str, unlocked: UnlockCache) -> list[Note]:
    needle = (term or "").strip().lower()
    items = list(notes)
    if not needle:
        return items
    out: list[Note] = []
    for note in items:
        text = readable_text(note, unlocked)
        if text is None:
            continue
        title, body = text
        if needle in title.lower() or needle in body.lower():
            out.append(note)
    return out
