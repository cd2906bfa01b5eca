from __future__ import annotations

from typing import Literal, Optional

from questlines.core.model import Quest, Questline, QuestlineInfo


QuestStatus = Literal["done", "ready", "blocked"]


def quest_by_id(questline: Questline, quest_id: str) -> Optional[Quest]:
    for q in questline.quests:
        if q.id == quest_id:
            return q
    return None


def prerequisites_of(questline: Questline, quest: Quest) -> set[str]:
    return {d.source for d in questline.dependencies if d.target == quest.id}


def dependents_of(questline: Questline, quest_id: str) -> list[str]:
    """Direct downstream quest ids, in edge order."""
    return [d.target for d in questline.dependencies if d.source == quest_id]


def objectives_satisfied(quest: Quest) -> bool:
    return all(o.completed for o in quest.objectives)


def prerequisites_satisfied(questline: Questline, quest: Quest) -> bool:
    # A prerequisite id with no matching quest counts as unsatisfied.
    for prereq_id in prerequisites_of(questline, quest):
        prereq = quest_by_id(questline, prereq_id)
        if prereq is None or prereq.completed is not True:
            return False
    return True


def can_complete(questline: Questline, quest_id: str) -> bool:
    quest = quest_by_id(questline, quest_id)
    if quest is None:
        return False
    return objectives_satisfied(quest) and prerequisites_satisfied(questline, quest)


def quest_status(questline: Questline, quest: Quest) -> QuestStatus:
    if quest.completed:
        return "done"
    return "ready" if can_complete(questline, quest.id) else "blocked"


def summarize(questline: Questline) -> QuestlineInfo:
    return QuestlineInfo(
        id=questline.id or "",
        name=questline.name,
        updated=questline.updated,
        total_quests=len(questline.quests),
        completed_quests=sum(1 for q in questline.quests if q.completed),
    )
