from __future__ import annotations

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EncryptedBlobRecord(BaseModel):
    cipher: str
    iv: str
    salt: str


class CategoryRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    isSystem: bool = Field(default=False, validation_alias=AliasChoices("isSystem", "is_system"))


class NoteRecord(BaseModel):
    id: str
    title: Optional[str] = None
    content: Optional[str] = None
    encrypted: Optional[EncryptedBlobRecord] = None
    categoryId: Optional[str] = None
    isPrivate: bool = False
    isDeleted: bool = False
    originalCategoryId: Optional[str] = None
    updatedAt: Optional[int] = None
    lastModified: Optional[str] = None
    contentType: Optional[str] = "plain"


class SnapshotRecord(BaseModel):
    categories: list[CategoryRecord] = Field(default_factory=list)
    notes: list[NoteRecord] = Field(default_factory=list)


class StoreEnvelope(BaseModel):
    success: bool
    data: Optional[SnapshotRecord] = None
    message: Optional[str] = None


# --- HTTP API ---


class CategoryOut(BaseModel):
    id: str
    name: str
    isSystem: bool
    noteCount: int


class CategoryIn(BaseModel):
    name: str


class NavigateIn(BaseModel):
    categoryId: str


class NoteSummaryOut(BaseModel):
    id: str
    title: str
    snippet: str
    categoryId: str
    categoryName: str
    isPrivate: bool
    isDeleted: bool
    locked: bool
    updatedAt: int
    lastModified: str


class NoteListOut(BaseModel):
    categoryId: str
    sort: str
    items: list[NoteSummaryOut] = Field(default_factory=list)


class NoteDetailOut(BaseModel):
    id: str
    title: str
    content: str
    contentType: str
    categoryId: str
    originalCategoryId: str
    isPrivate: bool
    isDeleted: bool
    updatedAt: int
    lastModified: str


class NoteCreateIn(BaseModel):
    title: Optional[str] = None
    categoryId: Optional[str] = None
    private: bool = False
    password: Optional[str] = None


class NoteSelectIn(BaseModel):
    password: Optional[str] = None


class NoteSaveIn(BaseModel):
    title: str
    content: str = ""
    contentType: Literal["plain", "html", "markdown"] = "plain"
    categoryId: Optional[str] = None
    private: bool = False
    password: Optional[str] = None


class NoteMoveIn(BaseModel):
    categoryId: str


class LanguageIn(BaseModel):
    language: Literal["en", "zh"]


class SyncStatusOut(BaseModel):
    state: str
    pending: int
    saves: int
    failureReported: bool
    lastError: Optional[str] = None
