"""The questline session: the single owner of the current questline.

Every edit goes through a session method, which applies the mutation,
emits a ``ChangeEvent`` to subscribers and marks the session dirty when the
graph actually changed. Persistence calls are coroutines guarded by
``is_loading``; a failed call leaves the in-memory questline untouched.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from questlines.core.engine import mutations
from questlines.core.engine.completion import set_completed
from questlines.core.errors import QuestlineError, ValidationRejection
from questlines.core.graph.queries import can_complete
from questlines.core.io.normalize import new_id, normalize_questline
from questlines.core.logging import get_logger
from questlines.core.model import (
    DEFAULT_QUESTLINE_NAME,
    UNSAVED_QUESTLINE_NAME,
    Objective,
    Position,
    Quest,
    Questline,
    QuestlineInfo,
)
from questlines.core.persistence.contracts import (
    IS_DARK_MODE_KEY,
    LAST_ACTIVE_QUESTLINE_ID_KEY,
    KeyValueStore,
    QuestlineBackend,
)
from questlines.core.session.messages import VALIDATION_MSG_WAIT_S, Message, MessageSlot

log = get_logger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    kind: str
    questline_id: Optional[str]


Listener = Callable[[ChangeEvent], None]


def blank_questline() -> Questline:
    return Questline(id=new_id(), name=DEFAULT_QUESTLINE_NAME)


class QuestlineSession:
    def __init__(
        self,
        backend: QuestlineBackend,
        preferences: KeyValueStore,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._prefs = preferences
        self._messages = MessageSlot(clock)
        self._listeners: list[Listener] = []

        self._questline = Questline(id=None, name=UNSAVED_QUESTLINE_NAME)
        self._summaries: list[QuestlineInfo] = []
        self._summaries_fetched = False
        self._dirty = False
        self._loading = False
        self._last_error: Optional[QuestlineError] = None

    # -- state -----------------------------------------------------------------

    @property
    def questline(self) -> Questline:
        return self._questline

    @property
    def summaries(self) -> list[QuestlineInfo]:
        return list(self._summaries)

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def message(self) -> Optional[Message]:
        return self._messages.current

    @property
    def last_error(self) -> Optional[QuestlineError]:
        """The error behind the most recent error message, if any."""
        return self._last_error

    @property
    def is_dark_mode(self) -> bool:
        return self._prefs.get(IS_DARK_MODE_KEY) == "true"

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def can_complete(self, quest_id: str) -> bool:
        return can_complete(self._questline, quest_id)

    # -- mutations -------------------------------------------------------------

    def add_quest(self, position: Optional[Position] = None, title: Optional[str] = None) -> Quest:
        quest = mutations.add_quest(self._questline, position, title)
        self._changed("quest_added")
        return quest

    def move_quest(self, quest_id: str, position: Position) -> bool:
        return self._commit("quest_moved", mutations.move_quest(self._questline, quest_id, position))

    def set_quest_completed(self, quest_id: str, completed: bool) -> list[str]:
        try:
            changed = set_completed(self._questline, quest_id, completed)
        except ValidationRejection as e:
            self._reject(e)
            return []
        self._commit("quest_completion", bool(changed))
        return changed

    def add_dependency(self, source: str, target: str) -> bool:
        try:
            added = mutations.add_dependency(self._questline, source, target)
        except ValidationRejection as e:
            self._reject(e)
            return False
        return self._commit("dependency_added", added)

    def remove_quests(self, quest_ids: list[str]) -> mutations.MutationResult:
        result = mutations.remove_quests(self._questline, quest_ids)
        self._commit("quests_removed", result.changed)
        return result

    def remove_dependencies(self, edge_ids: list[str]) -> mutations.MutationResult:
        result = mutations.remove_dependencies(self._questline, edge_ids)
        self._commit("dependencies_removed", result.changed)
        return result

    def add_objective(self, quest_id: str, text: Optional[str] = None) -> Optional[Objective]:
        objective = mutations.add_objective(self._questline, quest_id, text)
        self._commit("objective_added", objective is not None)
        return objective

    def remove_objective(self, quest_id: str, objective_id: str) -> bool:
        return self._commit(
            "objective_removed", mutations.remove_objective(self._questline, quest_id, objective_id)
        )

    def set_objective_completed(
        self, quest_id: str, objective_id: str, completed: bool
    ) -> mutations.MutationResult:
        result = mutations.set_objective_completed(self._questline, quest_id, objective_id, completed)
        self._commit("objective_completion", result.changed)
        return result

    def update_quest_details(
        self,
        quest_id: str,
        *,
        title: str,
        description: str,
        color: str,
        objectives: Optional[list[Objective]],
    ) -> Optional[mutations.MutationResult]:
        try:
            result = mutations.update_quest_details(
                self._questline,
                quest_id,
                title=title,
                description=description,
                color=color,
                objectives=objectives,
            )
        except ValidationRejection as e:
            self._reject(e)
            return None
        self._commit("quest_updated", result.changed)
        return result

    def rename(self, name: str) -> bool:
        return self._commit("questline_renamed", mutations.rename_questline(self._questline, name))

    def toggle_dark_mode(self) -> bool:
        active = not self.is_dark_mode
        self._prefs.set(IS_DARK_MODE_KEY, "true" if active else "false")
        return active

    # -- persistence -----------------------------------------------------------

    async def refresh_summaries(self) -> list[QuestlineInfo]:
        if not self._begin("refresh questlines"):
            return self.summaries
        try:
            self._messages.clear()
            try:
                await self._fetch_summaries()
            except QuestlineError as e:
                self._fail(e, "Failed to load questlines")
                self._summaries = []
        finally:
            self._loading = False
        return self.summaries

    async def load(self, questline_id: Optional[str]) -> bool:
        """Load a saved questline, or a fresh blank one when ``questline_id`` is None.

        Returns False when loading failed and a blank questline was put in place.
        """
        if not self._begin("load a questline"):
            return False
        try:
            return await self._load(questline_id)
        finally:
            self._loading = False

    async def restore_last_active(self) -> bool:
        return await self.load(self._prefs.get(LAST_ACTIVE_QUESTLINE_ID_KEY))

    def import_questline(self, raw: dict[str, Any]) -> Questline:
        """Replace the current questline with one read from a file (not yet saved)."""
        imported = Questline.from_dict(normalize_questline(raw))
        self._replace(imported, dirty=True)
        self._prefs.remove(LAST_ACTIVE_QUESTLINE_ID_KEY)
        self._messages.success("Questline loaded from file")
        return imported

    async def save(self) -> bool:
        if not self._questline.name.strip():
            self._reject(ValidationRejection(code="E_EMPTY_NAME", message="Questline name cannot be empty"))
            return False
        if not self._begin("save"):
            return False

        try:
            self._messages.clear()
            current = self._questline
            try:
                await self._ensure_summaries()
                if current.id and self._is_saved(current.id):
                    saved = await self._backend.update(current.id, current.copy())
                else:
                    to_send = current.copy()
                    to_send.id = None
                    saved = await self._backend.create(to_send)
            except QuestlineError as e:
                self._fail(e, "Failed to save questline")
                return False

            self._replace(saved, dirty=False)
            if saved.id:
                self._prefs.set(LAST_ACTIVE_QUESTLINE_ID_KEY, saved.id)
            log.info("questline_saved", questline_id=saved.id)
            try:
                await self._fetch_summaries()
            except QuestlineError as e:
                self._fail(e, "Questline saved, but the questline list could not be refreshed")
                return True
            self._messages.success("Questline saved.")
            return True
        finally:
            self._loading = False

    async def delete(self) -> bool:
        if not self._begin("delete"):
            return False
        try:
            self._messages.clear()
            qid = self._questline.id
            try:
                await self._ensure_summaries()
            except QuestlineError as e:
                self._fail(e, "Failed to delete questline")
                return False
            if not qid or not self._is_saved(qid):
                self._reject(
                    ValidationRejection(
                        code="E_NOT_SAVED",
                        message="Please save before deleting, or select a saved questline",
                    )
                )
                return False
            try:
                await self._backend.delete(qid)
            except QuestlineError as e:
                self._fail(e, "Failed to delete questline")
                return False

            if self._prefs.get(LAST_ACTIVE_QUESTLINE_ID_KEY) == qid:
                self._prefs.remove(LAST_ACTIVE_QUESTLINE_ID_KEY)
            await self._load(None)
            try:
                await self._fetch_summaries()
            except QuestlineError as e:
                self._fail(e, "Questline deleted, but the questline list could not be refreshed")
            return True
        finally:
            self._loading = False

    async def export(self, fmt: str = "json") -> Optional[Path]:
        if not self._begin("export"):
            return None
        try:
            qid = self._questline.id
            try:
                await self._ensure_summaries()
            except QuestlineError as e:
                self._fail(e, "Failed to export questline")
                return None
            if not qid or not self._is_saved(qid):
                self._reject(
                    ValidationRejection(code="E_NOT_SAVED", message="Please save questline before exporting")
                )
                return None
            try:
                out = await self._backend.export(qid, fmt)
            except QuestlineError as e:
                self._fail(e, "Failed to export questline")
                return None
            self._messages.success(f"Exported to {out}")
            return out
        finally:
            self._loading = False

    async def aclose(self) -> None:
        await self._backend.aclose()

    # -- internals -------------------------------------------------------------

    async def _load(self, questline_id: Optional[str]) -> bool:
        if not questline_id:
            self._replace(blank_questline(), dirty=True)
            self._prefs.remove(LAST_ACTIVE_QUESTLINE_ID_KEY)
            return True

        try:
            loaded = await self._backend.get(questline_id)
        except QuestlineError as e:
            self._fail(e, f"Failed to load questline {questline_id}")
            self._prefs.remove(LAST_ACTIVE_QUESTLINE_ID_KEY)
            self._replace(blank_questline(), dirty=True)
            return False

        self._replace(loaded, dirty=False)
        self._prefs.set(LAST_ACTIVE_QUESTLINE_ID_KEY, questline_id)
        log.info("questline_loaded", questline_id=questline_id, quests=len(loaded.quests))
        return True

    async def _fetch_summaries(self) -> None:
        """Replace the cached summaries. On failure the cache is marked stale and the error propagates."""
        try:
            summaries = await self._backend.list_summaries()
        except QuestlineError:
            self._summaries_fetched = False
            raise
        self._summaries = summaries
        self._summaries_fetched = True

    async def _ensure_summaries(self) -> None:
        if not self._summaries_fetched:
            await self._fetch_summaries()

    def _is_saved(self, questline_id: str) -> bool:
        return any(info.id == questline_id for info in self._summaries)

    def _begin(self, action: str) -> bool:
        if self._loading:
            self._reject(
                ValidationRejection(
                    code="E_BUSY",
                    message=f"Cannot {action} while another request is in progress",
                )
            )
            return False
        self._last_error = None
        self._loading = True
        return True

    def _replace(self, questline: Questline, *, dirty: bool) -> None:
        self._questline = questline
        self._dirty = dirty
        self._emit(ChangeEvent(kind="questline_loaded", questline_id=questline.id))

    def _commit(self, kind: str, changed: bool) -> bool:
        if changed:
            self._changed(kind)
        return changed

    def _changed(self, kind: str) -> None:
        self._dirty = True
        self._emit(ChangeEvent(kind=kind, questline_id=self._questline.id))

    def _emit(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _reject(self, e: ValidationRejection) -> None:
        self._last_error = e
        log.info("request_rejected", code=e.code, message=e.message)
        self._messages.error(e.message, VALIDATION_MSG_WAIT_S)

    def _fail(self, e: QuestlineError, context: str) -> None:
        self._last_error = e
        log.warning("request_failed", context=context, code=e.code, message=e.message)
        self._messages.error(f"{context}: {e.message}")
