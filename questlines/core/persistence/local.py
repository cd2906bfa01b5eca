from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from questlines.core.errors import NotFound, TransportFailure, ValidationRejection
from questlines.core.graph.queries import summarize
from questlines.core.io.normalize import new_id, normalize_questline
from questlines.core.logging import get_logger
from questlines.core.model import Questline, QuestlineInfo
from questlines.core.persistence.contracts import QUESTLINES_LOCAL_KEY, KeyValueStore

log = get_logger(__name__)

EXPORT_FORMATS: set[str] = {"json"}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalQuestlineBackend:
    """Local-only persistence: all questlines in one key of a key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        export_dir: Path = Path("."),
        now: Callable[[], str] = utc_now_iso,
        seed_demo: bool = True,
    ) -> None:
        self._store = store
        self._export_dir = Path(export_dir)
        self._now = now
        self._seed_demo = seed_demo

    async def list_summaries(self) -> list[QuestlineInfo]:
        infos = [summarize(Questline.from_dict(normalize_questline(raw))) for raw in self._read_all()]
        return sorted(infos, key=lambda i: _sort_key(i.updated), reverse=True)

    async def get(self, questline_id: str) -> Questline:
        raw = self._find(self._read_all(), questline_id)
        if raw is None:
            raise NotFound(
                code="E_NOT_FOUND",
                message=f"Questline with id '{questline_id}' not found in local store.",
                path=questline_id,
            )
        return Questline.from_dict(normalize_questline(raw))

    async def create(self, questline: Questline) -> Questline:
        questlines = self._read_all()
        raw = questline.to_dict()
        # The store always owns identity for new questlines.
        raw["id"] = new_id()
        created = self._stamp(normalize_questline(raw))
        questlines.append(created)
        self._write_all(questlines)
        log.info("questline_created", questline_id=created["id"], store="local")
        return Questline.from_dict(created)

    async def update(self, questline_id: str, questline: Questline) -> Questline:
        questlines = self._read_all()
        idx = next((i for i, ql in enumerate(questlines) if ql.get("id") == questline_id), -1)
        if idx == -1:
            raise NotFound(
                code="E_NOT_FOUND",
                message=f"Questline with id '{questline_id}' not found for update in local store.",
                path=questline_id,
            )

        merged: dict[str, Any] = {**questlines[idx], **questline.to_dict(), "id": questline_id}
        merged["updated"] = self._now()
        updated = self._stamp(normalize_questline(merged))
        questlines[idx] = updated
        self._write_all(questlines)
        log.info("questline_updated", questline_id=questline_id, store="local")
        return Questline.from_dict(updated)

    async def delete(self, questline_id: str) -> None:
        questlines = self._read_all()
        remaining = [ql for ql in questlines if ql.get("id") != questline_id]
        if len(remaining) != len(questlines):
            self._write_all(remaining)
            log.info("questline_deleted", questline_id=questline_id, store="local")

    async def export(self, questline_id: str, fmt: str) -> Path:
        raw = self._find(self._read_all(), questline_id)
        if raw is None:
            raise NotFound(
                code="E_NOT_FOUND",
                message=f"Questline with id '{questline_id}' not found for export in local store.",
                path=questline_id,
            )
        if fmt not in EXPORT_FORMATS:
            raise ValidationRejection(
                code="E_UNSUPPORTED_FORMAT",
                message=f"Unsupported export format '{fmt}'",
                path="format",
            )

        out = self._export_dir / f"{export_file_stem(raw.get('name'))}.{fmt}"
        try:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(json.dumps(raw, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise TransportFailure(code="E_EXPORT_WRITE", message=str(e), file=str(out)) from e
        log.info("questline_exported", questline_id=questline_id, file=str(out))
        return out

    async def aclose(self) -> None:
        return None

    def _read_all(self) -> list[dict[str, Any]]:
        encoded = self._store.get(QUESTLINES_LOCAL_KEY)
        questlines: list[dict[str, Any]] = []
        if encoded:
            try:
                decoded = json.loads(encoded)
            except json.JSONDecodeError as e:
                raise TransportFailure(code="E_STORAGE_READ", message=str(e), path=QUESTLINES_LOCAL_KEY) from e
            if isinstance(decoded, list):
                questlines = [ql for ql in decoded if isinstance(ql, dict)]

        if not questlines and encoded is None and self._seed_demo:
            questlines = [self._stamp(normalize_questline(demo_questline()))]
            self._write_all(questlines)
            log.info("demo_questline_seeded", questline_id=questlines[0]["id"])
        return questlines

    def _write_all(self, questlines: list[dict[str, Any]]) -> None:
        self._store.set(QUESTLINES_LOCAL_KEY, json.dumps(questlines))

    def _stamp(self, raw: dict[str, Any]) -> dict[str, Any]:
        now = self._now()
        raw.setdefault("created", now)
        raw.setdefault("updated", now)
        return raw

    @staticmethod
    def _find(questlines: list[dict[str, Any]], questline_id: str) -> Optional[dict[str, Any]]:
        return next((ql for ql in questlines if ql.get("id") == questline_id), None)


def export_file_stem(name: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]", "_", (name or "questline"), flags=re.IGNORECASE).lower()


def _sort_key(updated: Optional[str]) -> datetime:
    if updated:
        try:
            ts = datetime.fromisoformat(updated.replace("Z", "+00:00"))
        except ValueError:
            ts = None
        if ts is not None:
            return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
    return datetime.min.replace(tzinfo=timezone.utc)


def demo_questline() -> dict[str, Any]:
    """The questline seeded into an empty local store."""
    return {
        "name": "Getting Started",
        "quests": [
            {
                "id": "demo-welcome",
                "title": "Welcome",
                "description": "Mark quests complete once their objectives are done.",
                "position": {"x": 100, "y": 100},
                "color": "#a3e635",
                "objectives": [
                    {"id": "demo-welcome-1", "text": "Read this quest", "completed": False, "sortIndex": 0},
                ],
            },
            {
                "id": "demo-link",
                "title": "Link quests",
                "description": "A quest can only be completed after its prerequisites.",
                "position": {"x": 350, "y": 100},
                "color": "#38bdf8",
            },
            {
                "id": "demo-checklist",
                "title": "Build a checklist",
                "description": "Add objectives to break a quest down.",
                "position": {"x": 350, "y": 250},
                "color": "#f472b6",
            },
            {
                "id": "demo-finish",
                "title": "Finish the questline",
                "description": "Un-completing a prerequisite un-completes everything after it.",
                "position": {"x": 600, "y": 175},
                "color": "#fbbf24",
            },
        ],
        "dependencies": [
            {"from": "demo-welcome", "to": "demo-link"},
            {"from": "demo-welcome", "to": "demo-checklist"},
            {"from": "demo-link", "to": "demo-finish"},
            {"from": "demo-checklist", "to": "demo-finish"},
        ],
    }
