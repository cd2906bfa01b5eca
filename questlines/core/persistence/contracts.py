from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

from questlines.core.model import Questline, QuestlineInfo


# Client-side keys, shared by both modes.
QUESTLINES_LOCAL_KEY = "questlines-app_questlines"
LAST_ACTIVE_QUESTLINE_ID_KEY = "lastActiveQuestlineId"
IS_DARK_MODE_KEY = "isDarkMode"


class KeyValueStore(Protocol):
    """String key -> string value store (values are JSON-encoded by callers)."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class QuestlineBackend(Protocol):
    """Persistence capability. Exactly two implementations: remote and local.

    Every returned Questline has been through ``normalize_questline``.
    Missing ids raise NotFound; network/storage errors raise TransportFailure.
    """

    async def list_summaries(self) -> list[QuestlineInfo]: ...

    async def get(self, questline_id: str) -> Questline: ...

    async def create(self, questline: Questline) -> Questline: ...

    async def update(self, questline_id: str, questline: Questline) -> Questline: ...

    async def delete(self, questline_id: str) -> None: ...

    async def export(self, questline_id: str, fmt: str) -> Path: ...

    async def aclose(self) -> None: ...
