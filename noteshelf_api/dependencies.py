import logging
from functools import lru_cache

from noteshelf_api.config import load_settings
from noteshelf_api.crypto import CryptoEngine
from noteshelf_api.domain.entities import Snapshot
from noteshelf_api.domain.exceptions import SyncFailure
from noteshelf_api.gateway import SnapshotGateway
from noteshelf_api.persistence.http_store import HttpSnapshotStore
from noteshelf_api.persistence.sqlite_store import SqliteSnapshotStore
from noteshelf_api.session import Session
from noteshelf_api.sync import SyncCoordinator
from noteshelf_api.workspace import Workspace

logger = logging.getLogger("noteshelf.api")


@lru_cache()
def get_settings():
    return load_settings()


@lru_cache()
def get_gateway():
    settings = get_settings()
    if settings.store_url:
        store = HttpSnapshotStore(settings.store_url, timeout_s=settings.store_timeout_s)
    else:
        store = SqliteSnapshotStore(settings.db_path)
    return SnapshotGateway(store, language=settings.language)


@lru_cache()
def get_workspace():
    settings = get_settings()
    crypto = CryptoEngine(settings.kdf_iterations)
    try:
        snapshot = get_gateway().load()
    except SyncFailure:
        logger.exception("snapshot_load_failed")
        snapshot = Snapshot()
    workspace = Workspace.from_snapshot(snapshot, crypto=crypto, language=settings.language)
    workspace.apply_language(settings.language)
    return workspace


@lru_cache()
def get_session():
    return Session(get_workspace())


@lru_cache()
def get_sync():
    return SyncCoordinator(get_gateway())


def reset_caches() -> None:
    for provider in (get_settings, get_gateway, get_workspace, get_session, get_sync):
        provider.cache_clear()
