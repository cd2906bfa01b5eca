from __future__ import annotations

from questlines.core.config import Settings
from questlines.core.persistence.contracts import KeyValueStore, QuestlineBackend
from questlines.core.persistence.kvstore import FileKeyValueStore
from questlines.core.persistence.local import LocalQuestlineBackend
from questlines.core.persistence.remote import RemoteQuestlineBackend


def create_preferences(settings: Settings) -> KeyValueStore:
    return FileKeyValueStore(settings.store_path)


def create_backend(settings: Settings, store: KeyValueStore) -> QuestlineBackend:
    """Select the persistence backend once, from the configured mode.

    Nothing else branches on the mode; callers receive the backend by injection.
    """
    if settings.mode == "local":
        return LocalQuestlineBackend(store, export_dir=settings.export_dir)
    return RemoteQuestlineBackend(
        settings.api_base,
        export_dir=settings.export_dir,
        timeout=settings.http_timeout,
    )
