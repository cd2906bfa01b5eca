from __future__ import annotations

import uuid
from copy import deepcopy
from typing import Any

from questlines.core.model import (
    DEFAULT_OBJECTIVE_TEXT,
    DEFAULT_POSITION,
    DEFAULT_QUEST_COLOR,
    DEFAULT_QUEST_TITLE,
    DEFAULT_QUESTLINE_NAME,
)


def new_id() -> str:
    return str(uuid.uuid4())


def normalize_questline(raw: dict[str, Any]) -> dict[str, Any]:
    """Return a repaired copy of a questline dict.

    Backfills missing ids, flags, sequences and objective sortIndex values.
    Present values are kept as-is (a stored sortIndex of 0 stays 0), so the
    pass is idempotent. Timestamps are left to the backend.

    Dependencies that are not {from: str, to: str} objects are dropped; they
    could never reference a quest.
    """

    ql: dict[str, Any] = deepcopy(raw)

    if not _is_non_empty_str(ql.get("id")):
        ql["id"] = new_id()
    if not isinstance(ql.get("name"), str):
        ql["name"] = DEFAULT_QUESTLINE_NAME

    quests = ql.get("quests")
    if not isinstance(quests, list):
        quests = []
    ql["quests"] = [_normalize_quest(q) for q in quests if isinstance(q, dict)]

    deps = ql.get("dependencies")
    if not isinstance(deps, list):
        deps = []
    ql["dependencies"] = [
        {"from": d["from"], "to": d["to"]}
        for d in deps
        if isinstance(d, dict) and _is_non_empty_str(d.get("from")) and _is_non_empty_str(d.get("to"))
    ]

    for key in ("created", "updated"):
        if key in ql and not isinstance(ql[key], str):
            del ql[key]

    return ql


def _normalize_quest(q: dict[str, Any]) -> dict[str, Any]:
    if not _is_non_empty_str(q.get("id")):
        q["id"] = new_id()
    if not isinstance(q.get("title"), str):
        q["title"] = DEFAULT_QUEST_TITLE
    if not isinstance(q.get("description"), str):
        q["description"] = ""
    if not isinstance(q.get("color"), str) or not q["color"]:
        q["color"] = DEFAULT_QUEST_COLOR
    q["position"] = _normalize_position(q.get("position"))
    q["completed"] = q.get("completed") is True

    objectives = q.get("objectives")
    if not isinstance(objectives, list):
        objectives = []
    q["objectives"] = [
        _normalize_objective(o, idx) for idx, o in enumerate(objectives) if isinstance(o, dict)
    ]
    return q


def _normalize_objective(o: dict[str, Any], idx: int) -> dict[str, Any]:
    if not _is_non_empty_str(o.get("id")):
        o["id"] = new_id()
    if not isinstance(o.get("text"), str):
        o["text"] = DEFAULT_OBJECTIVE_TEXT
    o["completed"] = o.get("completed") is True
    sort_index = o.get("sortIndex")
    if not isinstance(sort_index, int) or isinstance(sort_index, bool):
        o["sortIndex"] = idx
    return o


def _normalize_position(pos: Any) -> dict[str, float]:
    if isinstance(pos, dict):
        x, y = pos.get("x"), pos.get("y")
        if _is_number(x) and _is_number(y):
            return {"x": float(x), "y": float(y)}
    return {"x": DEFAULT_POSITION[0], "y": DEFAULT_POSITION[1]}


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and bool(v.strip())


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)
