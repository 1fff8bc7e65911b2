from __future__ import annotations

from .domain.entities import (
    ALL_CATEGORY_ID,
    PRIVATE_CATEGORY_ID,
    TRASH_CATEGORY_ID,
    UNCATEGORIZED_CATEGORY_ID,
)

LANGUAGES = ("en", "zh")

_LABELS: dict[str, dict[str, str]] = {
    "en": {
        ALL_CATEGORY_ID: "All Notes",
        UNCATEGORIZED_CATEGORY_ID: "Uncategorized",
        PRIVATE_CATEGORY_ID: "Private Notes",
        TRASH_CATEGORY_ID: "Recently Deleted",
        "new_note": "New Note",
        "new_private_note": "New Private Note",
        "private_note": "Private Note",
        "untitled_note": "Untitled Note",
        "private_locked": "Content is encrypted",
    },
    "zh": {
        ALL_CATEGORY_ID: "全部笔记",
        UNCATEGORIZED_CATEGORY_ID: "未分类",
        PRIVATE_CATEGORY_ID: "私密笔记",
        TRASH_CATEGORY_ID: "最近删除",
        "new_note": "新笔记",
        "new_private_note": "新私密笔记",
        "private_note": "私密笔记",
        "untitled_note": "无标题笔记",
        "private_locked": "内容已加密",
    },
}


def label(key: str, language: str = "en") -> str:
    pack = _LABELS.get(language, _LABELS["en"])
    return pack.get(key, key)
