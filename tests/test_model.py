from questlines.core.errors import NotFound, QuestlineError
from questlines.core.model import Dependency, Objective, Questline, QuestlineInfo, edge_id


def test_edge_ids_are_positional():
    ql = Questline(id="q", dependencies=[Dependency("a", "b"), Dependency("b", "c")])
    assert [eid for eid, _ in ql.edges()] == ["edge-a-b-0", "edge-b-c-1"]
    assert edge_id(Dependency("x", "y"), 7) == "edge-x-y-7"


def test_questline_to_dict_wire_names():
    ql = Questline(id=None, name="n", dependencies=[Dependency("a", "b")])
    out = ql.to_dict()
    assert out == {"id": None, "name": "n", "quests": [], "dependencies": [{"from": "a", "to": "b"}]}
    assert Objective(id="o", text="t", sort_index=2).to_dict()["sortIndex"] == 2


def test_copy_is_deep():
    ql = Questline(id="q", dependencies=[Dependency("a", "b")])
    other = ql.copy()
    other.dependencies.append(Dependency("b", "c"))
    assert len(ql.dependencies) == 1


def test_info_wire_format():
    info = QuestlineInfo.from_dict({"id": "x", "name": "X", "totalQuests": 4, "completedQuests": 2})
    assert info == QuestlineInfo(id="x", name="X", updated=None, total_quests=4, completed_quests=2)
    assert info.to_dict()["completedQuests"] == 2


def test_error_str_includes_location():
    e = NotFound(code="E_NOT_FOUND", message="gone", path="abc")
    assert isinstance(e, QuestlineError)
    assert str(e) == "abc: E_NOT_FOUND: gone"
    assert str(QuestlineError(code="E_X", message="m")) == "<questline>: E_X: m"
