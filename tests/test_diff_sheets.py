import shutil
import subprocess

import pytest

from lang_keeper import diff_sheets
from lang_keeper.diff_sheets import CommitInfo, build_records, list_commits, order_langs, parse_diff_sheets
from lang_keeper.engine import LangKeeper
from lang_keeper.models import ResultCode
from lang_keeper.read import read_lang_files
from lang_keeper.workbook import Sheet, read_workbook, write_workbook


class FakeCompleted:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def test_build_records_orders_by_action_then_key():
    baseline = {"a": {"en": "A"}, "b": {"en": "B"}, "same": {"en": "S"}}
    current = {"a": {"en": "A2"}, "C": {"en": "C"}, "same": {"en": "S"}, "c0": {"en": "x"}}
    records = build_records(current, baseline, ["en"])

    assert [(r.action, r.key) for r in records] == [("ADD", "C"), ("ADD", "c0"), ("MODIFY", "a"), ("DELETE", "b")]
    modify = records[2]
    assert modify.changed_langs == ["en"]
    assert modify.old_values == {"en": "A"}
    assert modify.new_values == {"en": "A2"}


def test_order_langs_puts_source_first():
    assert order_langs(["fr", "en", "ja"], "en") == ["en", "fr", "ja"]
    assert order_langs(["fr", "ja"], "en") == ["fr", "ja"]


def test_list_commits_parses_git_log(monkeypatch):
    calls = []

    def fake_run(cmd, capture_output=False, text=False, check=False):
        calls.append(cmd)
        out = "abc123full\tabc123\t2024-05-01\tadd keys\nbad line\n"
        return FakeCompleted(0, out, "")

    monkeypatch.setattr(diff_sheets.subprocess, "run", fake_run)
    commits = list_commits("/repo", "src/i18n")

    assert commits == [CommitInfo(hash="abc123full", short="abc123", date="2024-05-01", subject="add keys")]
    assert calls[0][:3] == ["git", "-C", "/repo"]
    assert calls[0][-2:] == ["--", "src/i18n"]


def test_run_git_failure_raises(monkeypatch):
    monkeypatch.setattr(diff_sheets.subprocess, "run", lambda *a, **k: FakeCompleted(128, "", "not a git repository"))
    with pytest.raises(diff_sheets.GitError) as e:
        list_commits("/nope")
    assert "not a git repository" in str(e.value)


def _ctx(make_project, langs):
    ctx = make_project(langs)
    read_lang_files(ctx)
    return ctx


def test_parse_diff_sheets_prefers_new_columns(make_project):
    ctx = _ctx(make_project, {"en": {"a": "A", "b": "B"}, "zh-cn": {"a": "甲"}})
    sheets = [
        Sheet(name="README", rows=[["说明", "x"]]),
        Sheet(name="ADD", rows=[["key", "English", "Simplified Chinese"], ["b", "B", "乙"], ["ghost", "G", "鬼"]]),
        Sheet(name="MODIFY", rows=[
            ["key", "changed_languages", "English (old)", "English (new)", "Simplified Chinese (old)", "Simplified Chinese (new)"],
            ["a", "English", "A0", "A", "", "甲二"],
        ]),
        Sheet(name="DELETE", rows=[["key", "English"], ["a", "A"]]),
    ]
    payloads, missing = parse_diff_sheets(ctx, sheets)

    assert missing == 1
    changes = {(p.key, lang): vc.after for p in payloads for lang, vc in p.value_changes.items()}
    assert changes == {("b", "zh-cn"): "乙", ("a", "zh-cn"): "甲二"}


def test_parse_diff_sheets_errors(make_project):
    ctx = _ctx(make_project, {"en": {"a": "A"}})
    with pytest.raises(ValueError):
        parse_diff_sheets(ctx, [Sheet(name="Sheet1", rows=[["key"]])])
    with pytest.raises(KeyError):
        parse_diff_sheets(ctx, [Sheet(name="ADD", rows=[["id", "English"], ["a", "x"]])])


def test_import_diff_writes_changes(make_project, tmp_path, load_json):
    ctx = make_project({"en": {"a": "A"}, "ja": {}})
    xlsx = tmp_path / "diff.xlsx"
    write_workbook(xlsx, [Sheet(name="ADD", rows=[["key", "English", "Japanese"], ["a", "A", "エー"], ["nope", "x", "y"]])])
    res = LangKeeper(ctx).execute("importDiff", import_path=str(xlsx))

    assert res.success, res.message
    assert res.data == {"count": 1, "missing": 1}
    assert load_json(tmp_path / "src" / "i18n" / "ja.json") == {"a": "エー"}


def test_import_diff_missing_key_column(make_project, tmp_path):
    ctx = make_project({"en": {"a": "A"}})
    xlsx = tmp_path / "diff.xlsx"
    write_workbook(xlsx, [Sheet(name="MODIFY", rows=[["name", "English (new)"], ["a", "B"]])])
    res = LangKeeper(ctx).execute("importDiff", import_path=str(xlsx))
    assert res.code == ResultCode.IMPORT_NO_KEY


def _git(cwd, *args):
    subprocess.run(
        ["git", "-c", "user.name=test", "-c", "user.email=test@example.com", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
    )


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_export_diff_against_commit(make_project, tmp_path, write_json):
    ctx = make_project({"en": {"a": "A", "b": "B"}, "zh-cn": {"a": "甲", "b": "乙"}})
    _git(tmp_path, "init", "-q")
    _git(tmp_path, "add", "-A")
    _git(tmp_path, "commit", "-q", "-m", "init i18n")

    write_json(tmp_path / "src" / "i18n" / "en.json", {"a": "A2", "c": "C"})
    write_json(tmp_path / "src" / "i18n" / "zh-cn.json", {"a": "甲", "c": "丙"})

    keeper = LangKeeper(ctx)
    assert keeper.execute("check").success
    commits = list_commits(ctx.project_path, "i18n")
    assert [c.subject for c in commits] == ["init i18n"]

    out = tmp_path / "diff.xlsx"
    res = keeper.execute("exportDiff", commit=commits[0], out_path=out)

    assert res.success, res.message
    assert res.data["counts"] == {"ADD": 1, "MODIFY": 1, "DELETE": 1}
    sheets = {s.name: s for s in read_workbook(out)}
    assert list(sheets) == ["README", "ADD", "MODIFY", "DELETE"]
    assert sheets["ADD"].rows[0] == ["key", "English", "Simplified Chinese"]
    assert sheets["ADD"].rows[1] == ["c", "C", "丙"]
    assert sheets["MODIFY"].rows[1][:4] == ["a", "English", "A", "A2"]
    assert sheets["DELETE"].rows[1] == ["b", "B", "乙"]
