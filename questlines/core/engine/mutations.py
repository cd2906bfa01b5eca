from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Iterable, Optional

from questlines.core.engine.completion import force_uncomplete
from questlines.core.errors import ValidationRejection
from questlines.core.graph.queries import can_complete, quest_by_id
from questlines.core.io.normalize import new_id
from questlines.core.model import (
    DEFAULT_OBJECTIVE_TEXT,
    DEFAULT_QUEST_TITLE,
    Dependency,
    Objective,
    Position,
    Quest,
    Questline,
    edge_id,
)


@dataclass(frozen=True)
class MutationResult:
    changed: bool
    # Quests forced back to incomplete as a side effect.
    uncompleted: list[str] = field(default_factory=list)


def add_quest(
    questline: Questline,
    position: Optional[Position] = None,
    title: Optional[str] = None,
) -> Quest:
    quest = Quest(
        id=new_id(),
        title=title or DEFAULT_QUEST_TITLE,
        position=Position(position.x, position.y) if position else Position(),
    )
    questline.quests.append(quest)
    return quest


def move_quest(questline: Questline, quest_id: str, position: Position) -> bool:
    quest = quest_by_id(questline, quest_id)
    if quest is None:
        return False
    quest.position = Position(position.x, position.y)
    return True


def add_dependency(questline: Questline, source: str, target: str) -> bool:
    """Append ``source -> target``.

    Only self-loops and exact duplicates are rejected; longer cycles are allowed.
    """
    if not source or not target:
        return False

    exists = any(d.source == source and d.target == target for d in questline.dependencies)
    if exists or source == target:
        raise ValidationRejection(
            code="E_INVALID_DEPENDENCY",
            message="Cannot create duplicate or self-referencing link.",
            path=f"dependencies[{source}->{target}]",
        )

    questline.dependencies.append(Dependency(source=source, target=target))
    return True


def remove_quests(questline: Questline, quest_ids: Iterable[str]) -> MutationResult:
    to_remove = set(quest_ids)
    if not to_remove:
        return MutationResult(changed=False)

    # Completed quests directly downstream of a removed quest, taken from the
    # edges as they were before removal.
    downstream: list[str] = []
    for dep in questline.dependencies:
        if dep.source not in to_remove or dep.target in downstream:
            continue
        target = quest_by_id(questline, dep.target)
        if target is not None and target.completed:
            downstream.append(dep.target)

    n_quests = len(questline.quests)
    n_deps = len(questline.dependencies)
    questline.quests = [q for q in questline.quests if q.id not in to_remove]
    questline.dependencies = [
        d for d in questline.dependencies if d.source not in to_remove and d.target not in to_remove
    ]
    changed = len(questline.quests) != n_quests or len(questline.dependencies) != n_deps

    uncompleted = force_uncomplete(questline, downstream)
    return MutationResult(changed=changed or bool(uncompleted), uncompleted=uncompleted)


def remove_dependencies(questline: Questline, edge_ids: Iterable[str]) -> MutationResult:
    to_remove = set(edge_ids)
    if not to_remove:
        return MutationResult(changed=False)

    remaining: list[Dependency] = []
    to_cascade: list[str] = []
    for i, dep in enumerate(questline.dependencies):
        if edge_id(dep, i) not in to_remove:
            remaining.append(dep)
            continue
        target = quest_by_id(questline, dep.target)
        # The target just lost a prerequisite it was completed against.
        if target is not None and target.completed and dep.target not in to_cascade:
            to_cascade.append(dep.target)

    changed = len(remaining) != len(questline.dependencies)
    questline.dependencies = remaining

    uncompleted = force_uncomplete(questline, to_cascade)
    return MutationResult(changed=changed, uncompleted=uncompleted)


def add_objective(questline: Questline, quest_id: str, text: Optional[str] = None) -> Optional[Objective]:
    quest = quest_by_id(questline, quest_id)
    if quest is None:
        return None
    objective = Objective(
        id=new_id(),
        text=text or DEFAULT_OBJECTIVE_TEXT,
        completed=False,
        sort_index=len(quest.objectives),
    )
    quest.objectives.append(objective)
    return objective


def remove_objective(questline: Questline, quest_id: str, objective_id: str) -> bool:
    """Remove one objective. Remaining sort indexes are left as they are."""
    quest = quest_by_id(questline, quest_id)
    if quest is None:
        return False
    before = len(quest.objectives)
    quest.objectives = [o for o in quest.objectives if o.id != objective_id]
    return len(quest.objectives) != before


def set_objective_completed(
    questline: Questline, quest_id: str, objective_id: str, completed: bool
) -> MutationResult:
    quest = quest_by_id(questline, quest_id)
    if quest is None:
        return MutationResult(changed=False)
    objective = next((o for o in quest.objectives if o.id == objective_id), None)
    if objective is None or objective.completed == completed:
        return MutationResult(changed=False)

    objective.completed = completed
    uncompleted: list[str] = []
    if quest.completed and not can_complete(questline, quest_id):
        uncompleted = force_uncomplete(questline, [quest_id])
    return MutationResult(changed=True, uncompleted=uncompleted)


def update_quest_details(
    questline: Questline,
    quest_id: str,
    *,
    title: str,
    description: str,
    color: str,
    objectives: Optional[list[Objective]],
) -> MutationResult:
    """Replace editable fields, keeping the stored ``completed`` flag.

    If the quest was complete and the new checklist no longer qualifies, it is
    forced incomplete and the change cascades.
    """
    quest = quest_by_id(questline, quest_id)
    if quest is None:
        raise ValidationRejection(
            code="E_QUEST_NOT_FOUND",
            message=f"Quest {quest_id} could not be found for update.",
            path=f"quests[{quest_id}]",
        )

    was_completed = quest.completed
    quest.title = title
    quest.description = description
    quest.color = color
    quest.objectives = deepcopy(objectives) if objectives else []
    quest.completed = was_completed

    uncompleted: list[str] = []
    if was_completed and not can_complete(questline, quest_id):
        uncompleted = force_uncomplete(questline, [quest_id])
    return MutationResult(changed=True, uncompleted=uncompleted)


def rename_questline(questline: Questline, name: str) -> bool:
    """Set the name. Emptiness is only rejected when saving."""
    if questline.name == name:
        return False
    questline.name = name
    return True
