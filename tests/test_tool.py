import json

from lang_keeper import tool
from lang_keeper.config import CONFIG_FILE


def _setup(root, langs, sources=None):
    assert tool.main(["init"]) == tool.EXIT_OK
    for lang, data in langs.items():
        p = root / "src" / "i18n" / f"{lang}.json"
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    for rel, text in (sources or {}).items():
        p = root / "src" / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")


def _read(root, lang):
    return json.loads((root / "src" / "i18n" / f"{lang}.json").read_text(encoding="utf-8"))


def test_box_tool_meta():
    for k in ("id", "name", "category", "summary", "usage", "options", "examples", "dependencies", "docs"):
        assert k in tool.BOX_TOOL
    assert tool.BOX_TOOL["name"] == "lang_keeper"


def test_init_creates_config(chdir_tmp):
    assert tool.main(["init"]) == tool.EXIT_OK
    assert (chdir_tmp / CONFIG_FILE).exists()
    # 再次执行只校验
    assert tool.main(["init"]) == tool.EXIT_OK


def test_missing_config_is_bad(chdir_tmp):
    assert tool.main(["check"]) == tool.EXIT_BAD


def test_check_exit_codes(chdir_tmp):
    """场景：有缺失词条时默认返回 3；--no-exitcode-3 返回 0。"""
    _setup(chdir_tmp, {"en": {"a": "A", "b": "B"}, "zh-cn": {"a": "甲"}})
    assert tool.main(["check"]) == tool.EXIT_ISSUES
    assert tool.main(["check", "--no-exitcode-3"]) == tool.EXIT_OK


def test_check_clean_project(chdir_tmp):
    _setup(chdir_tmp, {"en": {"a": "A"}, "zh-cn": {"a": "甲"}}, sources={"app.js": 't("a")\n'})
    assert tool.main(["check"]) == tool.EXIT_OK


def test_missing_lang_dir_fails(chdir_tmp):
    assert tool.main(["init"]) == tool.EXIT_OK
    assert tool.main(["check"]) == tool.EXIT_FAIL
    assert tool.main(["doctor"]) == tool.EXIT_BAD


def test_doctor_ok(chdir_tmp):
    _setup(chdir_tmp, {"en": {"a": "A"}})
    assert tool.main(["doctor"]) == tool.EXIT_OK


def test_export_writes_xlsx(chdir_tmp):
    _setup(chdir_tmp, {"en": {"a": "A"}, "zh-cn": {"a": "甲"}})
    out = chdir_tmp / "out.xlsx"
    assert tool.main(["export", "--out", str(out)]) == tool.EXIT_OK
    assert out.exists()


def test_arg_validation(chdir_tmp):
    _setup(chdir_tmp, {"en": {"a": "A"}})
    assert tool.main(["import"]) == tool.EXIT_BAD
    assert tool.main(["import-diff"]) == tool.EXIT_BAD
    assert tool.main(["edit", "--key", "a"]) == tool.EXIT_BAD
    assert tool.main(["rename", "--key", "a"]) == tool.EXIT_BAD
    assert tool.main(["sort", "--mode", "random"]) == tool.EXIT_BAD


def test_edit_and_rename(chdir_tmp):
    _setup(chdir_tmp, {"en": {"a": "A"}, "zh-cn": {"a": "甲"}}, sources={"app.js": 't("a")\n'})

    assert tool.main(["edit", "--key", "a", "--lang", "en", "--value", "Apple"]) == tool.EXIT_OK
    assert _read(chdir_tmp, "en") == {"a": "Apple"}

    assert tool.main(["rename", "--key", "a", "--new-key", "fruit"]) == tool.EXIT_OK
    assert _read(chdir_tmp, "en") == {"fruit": "Apple"}
    assert _read(chdir_tmp, "zh-cn") == {"fruit": "甲"}
    assert (chdir_tmp / "src" / "app.js").read_text(encoding="utf-8") == 't("fruit")\n'

    assert tool.main(["rename", "--key", "nope", "--new-key", "x"]) == tool.EXIT_FAIL


def test_trim_unused_with_yes(chdir_tmp):
    _setup(chdir_tmp, {"en": {"a": "A", "b": "B"}}, sources={"app.js": 't("a")\n'})
    assert tool.main(["trim", "--yes"]) == tool.EXIT_OK
    assert _read(chdir_tmp, "en") == {"a": "A"}


def test_trim_cancelled_by_prompt(chdir_tmp, monkeypatch):
    _setup(chdir_tmp, {"en": {"a": "A", "b": "B"}}, sources={"app.js": 't("a")\n'})
    monkeypatch.setattr("builtins.input", lambda *_: "n")
    assert tool.main(["trim"]) == tool.EXIT_OK
    assert _read(chdir_tmp, "en") == {"a": "A", "b": "B"}


def test_fix_falls_back_to_original(chdir_tmp):
    _setup(chdir_tmp, {"en": {"a": "A", "b": "B"}, "zh-cn": {"a": "甲"}})
    assert tool.main(["fix"]) == tool.EXIT_OK
    assert _read(chdir_tmp, "zh-cn") == {"a": "甲", "b": "B"}


def test_menu_exit(chdir_tmp, monkeypatch):
    _setup(chdir_tmp, {"en": {"a": "A"}})
    answers = iter(["1", "0"])
    monkeypatch.setattr("builtins.input", lambda *_: next(answers))
    assert tool.main([]) == tool.EXIT_OK


def test_extract_with_yes(chdir_tmp):
    _setup(chdir_tmp, {"en": {"a": "A"}}, sources={"app.js": 'const m = "Hello there"\n'})
    assert tool.main(["extract", "--yes"]) == tool.EXIT_OK
    assert _read(chdir_tmp, "en") == {"a": "A", "helloThere": "Hello there"}
    assert (chdir_tmp / "src" / "app.js").read_text(encoding="utf-8") == 'const m = t("helloThere")\n'


def test_extract_cancelled_by_prompt(chdir_tmp, monkeypatch):
    _setup(chdir_tmp, {"en": {"a": "A"}}, sources={"app.js": 'const m = "Hello there"\n'})
    monkeypatch.setattr("builtins.input", lambda *_: "n")
    assert tool.main(["extract"]) == tool.EXIT_OK
    assert _read(chdir_tmp, "en") == {"a": "A"}
