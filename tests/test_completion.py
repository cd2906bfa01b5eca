import pytest

from questlines.core.engine.completion import cascade_uncomplete, force_uncomplete, set_completed
from questlines.core.errors import ValidationRejection
from questlines.core.graph.queries import quest_by_id
from questlines.core.io.normalize import normalize_questline
from questlines.core.model import Dependency, Questline


def _ql(quests, deps):
    return Questline.from_dict(normalize_questline({"name": "t", "quests": quests, "dependencies": deps}))


def _completed(ql):
    return {q.id for q in ql.quests if q.completed}


def test_uncompleting_head_of_chain_uncompletes_all():
    ql = _ql(
        [{"id": "A", "completed": True}, {"id": "B", "completed": True}, {"id": "C", "completed": True}],
        [{"from": "A", "to": "B"}, {"from": "B", "to": "C"}],
    )
    changed = set_completed(ql, "A", False)
    assert changed == ["A", "B", "C"]
    assert _completed(ql) == set()


def test_complete_without_eligibility_is_rejected_and_unchanged():
    ql = _ql([{"id": "p"}, {"id": "x"}], [{"from": "p", "to": "x"}])
    with pytest.raises(ValidationRejection) as ei:
        set_completed(ql, "x", True)
    assert ei.value.code == "E_CANNOT_COMPLETE"
    assert quest_by_id(ql, "x").completed is False


def test_complete_when_eligible():
    ql = _ql([{"id": "p", "completed": True}, {"id": "x"}], [{"from": "p", "to": "x"}])
    assert set_completed(ql, "x", True) == ["x"]
    assert set_completed(ql, "x", True) == []
    assert quest_by_id(ql, "x").completed is True


def test_unknown_quest_is_noop():
    ql = _ql([{"id": "a", "completed": True}], [])
    assert set_completed(ql, "nope", False) == []
    assert set_completed(ql, "nope", True) == []


def test_diamond_visits_each_quest_once():
    #     A
    #    / \
    #   B   C
    #    \ /
    #     D -> E
    ql = _ql(
        [{"id": i, "completed": True} for i in "ABCDE"],
        [
            {"from": "A", "to": "B"},
            {"from": "A", "to": "C"},
            {"from": "B", "to": "D"},
            {"from": "C", "to": "D"},
            {"from": "D", "to": "E"},
        ],
    )
    changed = set_completed(ql, "A", False)
    assert sorted(changed) == ["A", "B", "C", "D", "E"]
    assert len(changed) == len(set(changed))


def test_cascade_only_touches_reachable_closure():
    ql = _ql(
        [{"id": "A", "completed": True}, {"id": "B", "completed": True}, {"id": "Z", "completed": True}],
        [{"from": "A", "to": "B"}],
    )
    set_completed(ql, "A", False)
    assert _completed(ql) == {"Z"}


def test_cascade_terminates_on_cycle():
    ql = _ql(
        [{"id": "a", "completed": True}, {"id": "b", "completed": True}, {"id": "c", "completed": True}],
        [{"from": "a", "to": "b"}, {"from": "b", "to": "c"}, {"from": "c", "to": "a"}],
    )
    quest_by_id(ql, "a").completed = False
    turned_off = cascade_uncomplete(ql, "a")
    assert turned_off == ["b", "c"]
    assert _completed(ql) == set()


def test_cascade_ignores_dangling_targets():
    ql = _ql([{"id": "a"}, {"id": "b", "completed": True}], [{"from": "a", "to": "b"}])
    ql.dependencies.append(Dependency(source="a", target="ghost"))
    assert cascade_uncomplete(ql, "a") == ["b"]


def test_cascade_never_recompletes():
    ql = _ql([{"id": "a"}, {"id": "b"}], [{"from": "a", "to": "b"}])
    assert force_uncomplete(ql, ["a", "b"]) == []
    assert _completed(ql) == set()
