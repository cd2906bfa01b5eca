from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Optional


DEFAULT_QUESTLINE_NAME = "Untitled"
# Name of the unsaved questline a session starts with.
UNSAVED_QUESTLINE_NAME = "New Questline"
DEFAULT_QUEST_TITLE = "New Quest"
DEFAULT_QUEST_COLOR = "#cccccc"
DEFAULT_OBJECTIVE_TEXT = "New objective"
DEFAULT_POSITION: tuple[float, float] = (100.0, 100.0)


@dataclass
class Position:
    x: float = DEFAULT_POSITION[0]
    y: float = DEFAULT_POSITION[1]

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Position:
        return cls(x=float(raw["x"]), y=float(raw["y"]))


@dataclass
class Objective:
    id: str
    text: str
    completed: bool = False
    sort_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "sortIndex": self.sort_index,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Objective:
        return cls(
            id=raw["id"],
            text=raw["text"],
            completed=bool(raw["completed"]),
            sort_index=int(raw["sortIndex"]),
        )


@dataclass
class Quest:
    id: str
    title: str = DEFAULT_QUEST_TITLE
    description: str = ""
    position: Position = field(default_factory=Position)
    color: str = DEFAULT_QUEST_COLOR
    objectives: list[Objective] = field(default_factory=list)
    # Stored rather than derived: completion is an explicit user action.
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "position": self.position.to_dict(),
            "color": self.color,
            "objectives": [o.to_dict() for o in self.objectives],
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Quest:
        return cls(
            id=raw["id"],
            title=raw["title"],
            description=raw["description"],
            position=Position.from_dict(raw["position"]),
            color=raw["color"],
            objectives=[Objective.from_dict(o) for o in raw["objectives"]],
            completed=bool(raw["completed"]),
        )


@dataclass(frozen=True)
class Dependency:
    """Prerequisite edge: ``source`` must be completed before ``target``."""

    source: str
    target: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.target}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Dependency:
        return cls(source=raw["from"], target=raw["to"])


def edge_id(dep: Dependency, index: int) -> str:
    """Derived edge id; dependencies carry no persisted identifier."""
    return f"edge-{dep.source}-{dep.target}-{index}"


@dataclass
class Questline:
    id: Optional[str]
    name: str = DEFAULT_QUESTLINE_NAME
    quests: list[Quest] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    created: Optional[str] = None
    updated: Optional[str] = None

    def edges(self) -> list[tuple[str, Dependency]]:
        return [(edge_id(dep, i), dep) for i, dep in enumerate(self.dependencies)]

    def copy(self) -> Questline:
        return deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "quests": [q.to_dict() for q in self.quests],
            "dependencies": [d.to_dict() for d in self.dependencies],
        }
        if self.created is not None:
            out["created"] = self.created
        if self.updated is not None:
            out["updated"] = self.updated
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Questline:
        """Build from a normalized dict (see ``normalize_questline``)."""
        return cls(
            id=raw.get("id"),
            name=raw["name"],
            quests=[Quest.from_dict(q) for q in raw["quests"]],
            dependencies=[Dependency.from_dict(d) for d in raw["dependencies"]],
            created=raw.get("created"),
            updated=raw.get("updated"),
        )


@dataclass(frozen=True)
class QuestlineInfo:
    id: str
    name: str
    updated: Optional[str] = None
    total_quests: int = 0
    completed_quests: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "updated": self.updated,
            "totalQuests": self.total_quests,
            "completedQuests": self.completed_quests,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> QuestlineInfo:
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            updated=raw.get("updated"),
            total_quests=int(raw.get("totalQuests") or 0),
            completed_quests=int(raw.get("completedQuests") or 0),
        )
