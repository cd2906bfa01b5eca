from questlines.core.graph.queries import (
    can_complete,
    dependents_of,
    objectives_satisfied,
    prerequisites_of,
    prerequisites_satisfied,
    quest_by_id,
    quest_status,
    summarize,
)
from questlines.core.io.normalize import normalize_questline
from questlines.core.model import Dependency, Questline


def _ql(quests, deps):
    return Questline.from_dict(normalize_questline({"name": "t", "quests": quests, "dependencies": deps}))


def test_prerequisites_of_collects_every_incoming_edge():
    ql = _ql(
        [{"id": "a"}, {"id": "b"}, {"id": "x"}],
        [{"from": "a", "to": "x"}, {"from": "b", "to": "x"}, {"from": "x", "to": "a"}],
    )
    x = quest_by_id(ql, "x")
    assert prerequisites_of(ql, x) == {"a", "b"}
    assert dependents_of(ql, "x") == ["a"]


def test_objectives_satisfied_empty_and_partial():
    ql = _ql(
        [
            {"id": "empty"},
            {"id": "partial", "objectives": [{"text": "1", "completed": True}, {"text": "2"}]},
            {"id": "full", "objectives": [{"text": "1", "completed": True}]},
        ],
        [],
    )
    assert objectives_satisfied(quest_by_id(ql, "empty"))
    assert not objectives_satisfied(quest_by_id(ql, "partial"))
    assert objectives_satisfied(quest_by_id(ql, "full"))


def test_can_complete_two_prerequisites_one_incomplete():
    ql = _ql(
        [{"id": "p1", "completed": True}, {"id": "p2"}, {"id": "x"}],
        [{"from": "p1", "to": "x"}, {"from": "p2", "to": "x"}],
    )
    assert can_complete(ql, "x") is False

    quest_by_id(ql, "p2").completed = True
    assert can_complete(ql, "x") is True


def test_missing_prerequisite_fails_closed():
    ql = _ql([{"id": "x"}], [])
    # No quest "ghost" exists.
    ql.dependencies.append(Dependency(source="ghost", target="x"))
    assert prerequisites_satisfied(ql, quest_by_id(ql, "x")) is False
    assert can_complete(ql, "x") is False


def test_can_complete_unknown_quest_is_false():
    ql = _ql([], [])
    assert can_complete(ql, "nope") is False


def test_can_complete_requires_objectives_too():
    ql = _ql(
        [{"id": "p", "completed": True}, {"id": "x", "objectives": [{"text": "do it"}]}],
        [{"from": "p", "to": "x"}],
    )
    assert can_complete(ql, "x") is False
    quest_by_id(ql, "x").objectives[0].completed = True
    assert can_complete(ql, "x") is True


def test_quest_status_and_summary():
    ql = _ql(
        [{"id": "a", "completed": True}, {"id": "b"}, {"id": "c"}],
        [{"from": "b", "to": "c"}],
    )
    assert [quest_status(ql, q) for q in ql.quests] == ["done", "ready", "blocked"]

    info = summarize(ql)
    assert info.total_quests == 3
    assert info.completed_quests == 1
    assert info.name == "t"
