import json
import re

from typer.testing import CliRunner

from questlines.cli import app

runner = CliRunner()


def _invoke(tmp_path, *args):
    return runner.invoke(app, ["--mode", "local", "--store", str(tmp_path / "store.json"), *args])


def _import(tmp_path, path):
    r = _invoke(tmp_path, "import", path)
    assert r.exit_code == 0, r.output
    return re.search(r" as (\S+) \(", r.stdout).group(1)


def test_list_seeds_demo_on_first_run(tmp_path):
    r = _invoke(tmp_path, "list")
    assert r.exit_code == 0
    assert "Getting Started" in r.stdout
    assert "0/4 done" in r.stdout


def test_list_json(tmp_path):
    _import(tmp_path, "examples/chain-questline.yaml")
    r = _invoke(tmp_path, "list", "--format", "json")
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["tool"] == "questlines"
    assert payload["command"] == "list"
    assert payload["ok"] is True
    by_name = {q["name"]: q for q in payload["questlines"]}
    assert by_name["Chain"]["totalQuests"] == 3
    assert by_name["Chain"]["completedQuests"] == 3


def test_import_assigns_new_id(tmp_path):
    r = _invoke(tmp_path, "import", "examples/demo-questline.json")
    assert r.exit_code == 0
    assert "OK: imported 'Dragon Hunt' as" in r.stdout
    assert "(3 quests)" in r.stdout
    assert "9f1c2d4e-0000-4000-8000-000000000001" not in r.stdout


def test_import_invalid_file(tmp_path):
    r = _invoke(tmp_path, "import", "examples/invalid-top-level.json")
    assert r.exit_code == 1
    assert "E_INVALID_TOP_LEVEL" in r.output


def test_show_statuses(tmp_path):
    qid = _import(tmp_path, "examples/demo-questline.json")
    r = _invoke(tmp_path, "show", qid)
    assert r.exit_code == 0
    assert "Quests: 1/3 done" in r.stdout
    assert "[done] Find the map (p1)" in r.stdout
    assert "[blocked] Forge a sword (p2)  objectives 1/2" in r.stdout
    assert "[blocked] Slay the dragon (x)" in r.stdout
    assert "p1 -> x  (edge-p1-x-0)" in r.stdout


def test_show_json(tmp_path):
    qid = _import(tmp_path, "examples/demo-questline.json")
    r = _invoke(tmp_path, "show", qid, "--format", "json")
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["questline"]["id"] == qid
    assert payload["questline"]["status"] == {"p1": "done", "p2": "blocked", "x": "blocked"}


def test_show_unknown_questline(tmp_path):
    r = _invoke(tmp_path, "show", "missing")
    assert r.exit_code == 1
    assert "E_NOT_FOUND" in r.output


def test_complete_blocked_quest_is_rejected(tmp_path):
    qid = _import(tmp_path, "examples/demo-questline.json")
    r = _invoke(tmp_path, "complete", qid, "x")
    assert r.exit_code == 2
    assert "E_CANNOT_COMPLETE" in r.output


def test_complete_unknown_quest(tmp_path):
    qid = _import(tmp_path, "examples/demo-questline.json")
    r = _invoke(tmp_path, "complete", qid, "nope")
    assert r.exit_code == 2
    assert "E_QUEST_NOT_FOUND" in r.output


def test_uncomplete_cascades_and_persists(tmp_path):
    qid = _import(tmp_path, "examples/chain-questline.yaml")
    r = _invoke(tmp_path, "uncomplete", qid, "A")
    assert r.exit_code == 0
    assert "OK: A incomplete" in r.stdout
    assert "Also marked incomplete: B, C" in r.stdout

    r = _invoke(tmp_path, "show", qid, "--format", "json")
    assert json.loads(r.stdout)["questline"]["status"] == {"A": "ready", "B": "blocked", "C": "blocked"}

    r = _invoke(tmp_path, "complete", qid, "A")
    assert r.exit_code == 0
    assert "OK: A complete" in r.stdout


def test_edit_commands(tmp_path):
    qid = _import(tmp_path, "examples/chain-questline.yaml")

    r = _invoke(tmp_path, "add-quest", qid, "Celebrate")
    assert r.exit_code == 0
    new_id = r.stdout.strip().split()[-1]

    r = _invoke(tmp_path, "link", qid, "C", new_id)
    assert r.exit_code == 0
    r = _invoke(tmp_path, "link", qid, "C", "C")
    assert r.exit_code == 2
    assert "E_INVALID_DEPENDENCY" in r.output

    r = _invoke(tmp_path, "unlink", qid, "A", "B")
    assert r.exit_code == 0
    assert "Also marked incomplete: B, C" in r.stdout

    r = _invoke(tmp_path, "remove-quest", qid, "A")
    assert r.exit_code == 0
    assert "OK: removed" in r.stdout

    r = _invoke(tmp_path, "rename", qid, "Shorter chain")
    assert r.exit_code == 0

    r = _invoke(tmp_path, "show", qid, "--format", "json")
    ql = json.loads(r.stdout)["questline"]
    assert ql["name"] == "Shorter chain"
    assert [q["id"] for q in ql["quests"]] == ["B", "C", new_id]
    assert ql["dependencies"] == [{"from": "B", "to": "C"}, {"from": "C", "to": new_id}]


def test_export_and_delete(tmp_path):
    qid = _import(tmp_path, "examples/chain-questline.yaml")
    out_dir = tmp_path / "out"

    r = _invoke(tmp_path, "export", qid, "--out", str(out_dir))
    assert r.exit_code == 0
    written = out_dir / "chain.json"
    assert written.exists()
    assert json.loads(written.read_text(encoding="utf-8"))["id"] == qid

    r = _invoke(tmp_path, "export", qid, "--format", "pdf", "--out", str(out_dir))
    assert r.exit_code == 2
    assert "E_UNSUPPORTED_FORMAT" in r.output

    r = _invoke(tmp_path, "delete", qid)
    assert r.exit_code == 0
    assert f"OK: deleted {qid}" in r.stdout
    r = _invoke(tmp_path, "list")
    assert qid not in r.stdout


def test_bad_mode_is_config_error(tmp_path):
    r = runner.invoke(app, ["--mode", "cloud", "list"])
    assert r.exit_code == 2
    assert "E_CONFIG" in r.output


def test_reimporting_an_export_creates_a_copy(tmp_path):
    qid = _import(tmp_path, "examples/chain-questline.yaml")
    out_dir = tmp_path / "out"
    r = _invoke(tmp_path, "export", qid, "--out", str(out_dir))
    assert r.exit_code == 0

    copy_id = _import(tmp_path, str(out_dir / "chain.json"))
    assert copy_id != qid

    r = _invoke(tmp_path, "list", "--format", "json")
    ids = [q["id"] for q in json.loads(r.stdout)["questlines"]]
    assert qid in ids and copy_id in ids
