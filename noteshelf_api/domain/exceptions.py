from __future__ import annotations


class NotesError(Exception):
    """Base class; the message is a stable snake_case code."""


class EmptyNameError(NotesError, ValueError):
    pass


class DuplicateTitleError(NotesError):
    pass


class DuplicateCategoryError(NotesError):
    pass


class ProtectedCategoryError(NotesError):
    pass


class CategoryNotFoundError(NotesError, LookupError):
    pass


class InvalidCategoryError(NotesError, ValueError):
    pass


class NoteNotFoundError(NotesError, LookupError):
    pass


class NoteStateError(NotesError):
    pass


class WrongPasswordError(NotesError):
    pass


class MissingCiphertextError(NotesError):
    pass


class MissingPasswordError(NotesError):
    pass


class SyncFailure(NotesError, RuntimeError):
    pass
