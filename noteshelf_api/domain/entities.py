from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

ALL_CATEGORY_ID = "all"
UNCATEGORIZED_CATEGORY_ID = "uncategorized"
PRIVATE_CATEGORY_ID = "private"
TRASH_CATEGORY_ID = "trash"

SYSTEM_CATEGORY_IDS = (
    ALL_CATEGORY_ID,
    UNCATEGORIZED_CATEGORY_ID,
    PRIVATE_CATEGORY_ID,
    TRASH_CATEGORY_ID,
)

ContentType = Literal["plain", "html", "markdown"]
CONTENT_TYPES: tuple[str, ...] = ("plain", "html", "markdown")


def normalize_content_type(value: str | None) -> str:
    return value if value in CONTENT_TYPES else "plain"


@dataclass(frozen=True)
class EncryptedBlob:
    cipher: str
    iv: str
    salt: str


@dataclass
class Category:
    id: str
    name: str
    is_system: bool = False


@dataclass
class Note:
    id: str
    title: str
    content: str
    content_type: str
    category_id: str
    original_category_id: str
    updated_at: int
    last_modified: str
    is_private: bool = False
    is_deleted: bool = False
    encrypted: Optional[EncryptedBlob] = None


@dataclass(frozen=True)
class UnlockedNote:
    title: str
    content: str
    content_type: str
    password: str = field(repr=False)


@dataclass
class Snapshot:
    categories: list[Category] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
