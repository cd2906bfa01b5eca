import json
import re

from typer.testing import CliRunner

from questlines.cli import app

runner = CliRunner()


def test_check_clean_file():
    r = runner.invoke(app, ["check", "examples/demo-questline.json"])
    assert r.exit_code == 0
    assert "OK: check passed" in r.stdout


def test_check_cyclic_file():
    r = runner.invoke(app, ["check", "examples/cyclic-questline.json"])
    assert r.exit_code == 2
    assert "L_CYCLE_DETECTED" in r.output
    assert "L_DANGLING_DEPENDENCY" in r.output


def test_check_json():
    r = runner.invoke(app, ["check", "examples/cyclic-questline.json", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["command"] == "check"
    assert payload["ok"] is False
    assert payload["error_count"] == 2
    assert {e["code"] for e in payload["errors"]} == {"L_CYCLE_DETECTED", "L_DANGLING_DEPENDENCY"}


def test_check_unknown_format():
    r = runner.invoke(app, ["check", "examples/demo-questline.json", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_UNKNOWN_FORMAT" in r.output


def test_check_saved_questline(tmp_path):
    base = ["--mode", "local", "--store", str(tmp_path / "store.json")]
    r = runner.invoke(app, [*base, "import", "examples/cyclic-questline.json"])
    assert r.exit_code == 0
    qid = re.search(r" as (\S+) \(", r.stdout).group(1)

    r = runner.invoke(app, [*base, "check", qid])
    assert r.exit_code == 2
    assert "L_CYCLE_DETECTED" in r.output
