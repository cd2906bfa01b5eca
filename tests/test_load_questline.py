import pytest

from questlines.core.errors import QuestlineLoadError
from questlines.core.io.load_questline import load_questline_file


def test_load_yaml_success():
    ql = load_questline_file("examples/chain-questline.yaml")
    assert ql["name"] == "Chain"
    assert [q["id"] for q in ql["quests"]] == ["A", "B", "C"]


def test_load_json_export():
    ql = load_questline_file("examples/demo-questline.json")
    assert ql["id"] == "9f1c2d4e-0000-4000-8000-000000000001"
    assert len(ql["dependencies"]) == 2


def test_load_missing_file():
    with pytest.raises(QuestlineLoadError) as ei:
        load_questline_file("examples/does-not-exist.json")
    assert ei.value.code == "E_FILE_NOT_FOUND"


def test_load_unsupported_format(tmp_path):
    p = tmp_path / "questline.txt"
    p.write_text("hello", encoding="utf-8")
    with pytest.raises(QuestlineLoadError) as ei:
        load_questline_file(str(p))
    assert ei.value.code == "E_UNSUPPORTED_FORMAT"


def test_load_yaml_parse_error():
    with pytest.raises(QuestlineLoadError) as ei:
        load_questline_file("examples/invalid-syntax.yaml")
    assert ei.value.code == "E_YAML_PARSE"


def test_load_json_parse_error(tmp_path):
    p = tmp_path / "broken.json"
    p.write_text("{", encoding="utf-8")
    with pytest.raises(QuestlineLoadError) as ei:
        load_questline_file(str(p))
    assert ei.value.code == "E_JSON_PARSE"
    assert str(p) in str(ei.value)


def test_load_invalid_top_level():
    with pytest.raises(QuestlineLoadError) as ei:
        load_questline_file("examples/invalid-top-level.json")
    assert ei.value.code == "E_INVALID_TOP_LEVEL"


def test_load_rejects_mistyped_top_level_field(tmp_path):
    p = tmp_path / "questline.yaml"
    p.write_text("name: Broken\nquests:\n  id: not-a-list\n", encoding="utf-8")
    with pytest.raises(QuestlineLoadError) as ei:
        load_questline_file(str(p))
    assert ei.value.code == "E_INVALID_FIELD"
    assert ei.value.path == "quests"


def test_load_accepts_null_fields(tmp_path):
    p = tmp_path / "questline.json"
    p.write_text('{"id": null, "name": "Sparse", "dependencies": null}', encoding="utf-8")
    assert load_questline_file(str(p))["name"] == "Sparse"
