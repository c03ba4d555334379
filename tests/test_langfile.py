import pytest

from lang_keeper.langfile import (
    LangFileError,
    format_for_file,
    format_object_to_string,
    parse_lang_text,
    read_lang_file,
)
from lang_keeper.models import FileExtraInfo, IndentType, QuoteStyle


JS_TEXT = """export default {
  a: 'x',
  b: {
    c: 'y'
  }
}
"""


def test_parse_js_module_keeps_format_fingerprint():
    data, extra = parse_lang_text(JS_TEXT, "js")
    assert data == {"a": "x", "b": {"c": "y"}}
    assert extra.prefix == "export default "
    assert extra.suffix == "\n"
    assert extra.key_quotes == QuoteStyle.NONE
    assert extra.value_quotes == QuoteStyle.SINGLE
    assert extra.indent_type == IndentType.SPACE
    assert extra.indent_size == 2
    assert extra.is_flat is False


def test_quote_style_follows_majority():
    """场景：第一个 key 恰好带引号、第一个值恰好是双引号，其余都不是 -> 按多数。"""
    text = "export default {\n  'first-key': \"a\",\n  b: 'b',\n  c: 'c',\n  d: 'd'\n}\n"
    _, extra = parse_lang_text(text, "ts")
    assert extra.key_quotes == QuoteStyle.NONE
    assert extra.value_quotes == QuoteStyle.SINGLE


def test_js_module_written_back_unchanged():
    data, extra = parse_lang_text(JS_TEXT, "js")
    tree = {"a": "a", "b": {"c": "b.c"}}
    lookup = {"a": "x", "b.c": "y"}
    assert format_object_to_string(tree, lookup, "js", extra) == JS_TEXT


def test_json5_comments_and_trailing_commas():
    text = """{
    // 注释
    "hello": "Hi\\nthere",
    'tab': 'a\\tb',
}"""
    data, extra = parse_lang_text(text, "json5")
    assert data == {"hello": "Hi\nthere", "tab": "a\tb"}
    assert extra.indent_size == 4
    assert extra.is_flat is True


def test_spread_lines_are_kept():
    text = "const zh = {\n  ...common,\n  ok: '好的',\n}\nexport default zh\n"
    data, extra = parse_lang_text(text, "ts")
    assert data == {"ok": "好的"}
    assert extra.inner_var == "...common"
    out = format_object_to_string({"ok": "ok"}, {"ok": "好的"}, "ts", extra)
    assert out == "const zh = {\n  ...common,\n  ok: '好的'\n}\nexport default zh\n"


def test_non_string_leaf_is_rejected():
    with pytest.raises(LangFileError):
        parse_lang_text('{"a": 1}', "json")
    with pytest.raises(LangFileError):
        parse_lang_text('{"a": "\\u12"}', "json")


def test_yaml_round_trip():
    data, extra = parse_lang_text("home:\n  title: 首页\nok: 好\n", "yaml")
    assert data == {"home": {"title": "首页"}, "ok": "好"}
    out = format_object_to_string(
        {"home": {"title": "home.title"}, "ok": "ok"},
        {"home.title": "首页", "ok": "好"},
        "yaml",
        extra,
    )
    assert out == "home:\n  title: 首页\nok: 好\n"


def test_missing_values_dropped_on_write():
    out = format_object_to_string({"a": "a", "b": {"c": "b.c"}}, {"a": "1"}, "json", FileExtraInfo())
    assert out == '{\n  "a": "1"\n}'


def test_format_for_file_escapes():
    assert format_for_file('say "hi"\n') == '"say \\"hi\\"\\n"'
    assert format_for_file("it's", "'") == "'it\\'s'"


def test_read_lang_file_returns_none_for_invalid(tmp_path):
    bad = tmp_path / "en.json"
    bad.write_text("{ not json", encoding="utf-8")
    assert read_lang_file(bad) is None
    assert read_lang_file(tmp_path / "README.md") is None

    ok = tmp_path / "zh.json"
    ok.write_text('{"a": "甲"}\n', encoding="utf-8")
    info = read_lang_file(ok)
    assert info.data == {"a": "甲"}
    assert info.ext == "json"
