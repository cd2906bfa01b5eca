from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable

from questlines.core.errors import ValidationRejection
from questlines.core.graph.queries import can_complete, quest_by_id
from questlines.core.logging import get_logger
from questlines.core.model import Questline

log = get_logger(__name__)


def cascade_uncomplete(questline: Questline, quest_id: str) -> list[str]:
    """Force every completed downstream quest of ``quest_id`` to incomplete.

    Breadth-first over from -> to edges. Each reachable quest is visited once,
    so diamonds are handled and a cycle (edges are not checked for cycles when
    created) terminates. Returns the ids that were turned off, in visit order.
    """

    quests = {q.id: q for q in questline.quests}
    dependents: dict[str, list[str]] = defaultdict(list)
    for dep in questline.dependencies:
        dependents[dep.source].append(dep.target)

    turned_off: list[str] = []
    seen: set[str] = {quest_id}
    q: deque[str] = deque([quest_id])
    while q:
        cur = q.popleft()
        for nxt in dependents.get(cur, []):
            if nxt in seen:
                continue
            seen.add(nxt)
            quest = quests.get(nxt)
            if quest is None:
                continue
            if quest.completed:
                quest.completed = False
                turned_off.append(nxt)
            q.append(nxt)

    if turned_off:
        log.debug("cascade_uncomplete", origin=quest_id, uncompleted=turned_off)
    return turned_off


def force_uncomplete(questline: Questline, quest_ids: Iterable[str]) -> list[str]:
    """Turn each listed quest off (if complete) and cascade from it."""
    changed: list[str] = []
    for qid in quest_ids:
        quest = quest_by_id(questline, qid)
        if quest is None or not quest.completed:
            continue
        quest.completed = False
        changed.append(qid)
        changed.extend(cascade_uncomplete(questline, qid))
    return changed


def set_completed(questline: Questline, quest_id: str, completed: bool) -> list[str]:
    """Apply a user-initiated completion toggle.

    Returns the ids whose flag changed (empty when nothing changed). Marking
    complete requires ``can_complete``; un-marking always succeeds and
    cascades downstream. Unknown quest ids are a no-op.
    """

    quest = quest_by_id(questline, quest_id)
    if quest is None:
        return []

    if completed:
        if quest.completed:
            return []
        if not can_complete(questline, quest_id):
            raise ValidationRejection(
                code="E_CANNOT_COMPLETE",
                message=f"Quest {quest_id} cannot be marked complete: prerequisites or objectives not completed",
                path=f"quests[{quest_id}].completed",
            )
        quest.completed = True
        return [quest_id]

    return force_uncomplete(questline, [quest_id])
