import pytest

from lang_keeper.keys import (
    escape_string,
    flatten_nested,
    get_common_file_paths,
    get_content_at_location,
    get_file_location_from_id,
    get_path_segs_from_id,
    join_id,
    parse_escaped_path,
    resolve_ambiguous,
    set_value_by_escaped_name,
    unescape_string,
)
from lang_keeper.models import DirNode, Entry, NamespaceStrategy


def _structure():
    return DirNode.directory({
        "common": DirNode.file("json"),
        "pages": DirNode.directory({"home": DirNode.file("json")}),
    })


def test_escape_and_parse_path():
    """
    场景：key 本身带点号
    - 转义后用 \\. 表示
    - 解析回 segment 时保持原样
    """
    assert escape_string("a.b") == "a\\.b"
    assert unescape_string("a\\.b") == "a.b"
    assert parse_escaped_path("a\\.b.c") == ["a.b", "c"]
    assert get_path_segs_from_id("a\\.b.c") == ["a.b", "c"]
    assert join_id(["a.b", "c"]) == "a\\.b.c"


def test_parse_escaped_path_trailing_backslash_is_error():
    with pytest.raises(ValueError):
        parse_escaped_path("a\\")


def test_set_value_creates_and_prunes():
    tree = {}
    set_value_by_escaped_name(tree, "a.b.c", "x")
    set_value_by_escaped_name(tree, "a.d", "y")
    assert tree == {"a": {"b": {"c": "x"}, "d": "y"}}

    set_value_by_escaped_name(tree, "a.b.c", None)
    assert tree == {"a": {"d": "y"}}

    set_value_by_escaped_name(tree, "a.d", None)
    assert tree == {}


def test_flatten_nested_escapes_dotted_keys():
    data = {"a": {"b": "1"}, "c.d": "2", " ": "ignored"}
    assert flatten_nested(data) == {"a.b": "1", "c\\.d": "2"}


def test_resolve_ambiguous_any_split():
    """场景：代码里写 a.b.c，语言文件里实际是 {"a.b": {"c": ...}}"""
    tree = {"a.b": {"c": "a\\.b.c"}, "x": {"y": "x.y"}}
    assert resolve_ambiguous(tree, "a.b.c") == "a\\.b.c"
    assert resolve_ambiguous(tree, "x.y") == "x.y"
    assert resolve_ambiguous(tree, "x.z") is None
    assert resolve_ambiguous(tree, "") is None


def test_resolve_ambiguous_prefers_longest_key():
    tree = {"a": {"b": "a.b"}, "a.b": "a\\.b"}
    assert resolve_ambiguous(tree, "a.b") == "a\\.b"


def test_file_location_and_common_paths():
    s = _structure()
    assert get_common_file_paths(s) == ["common", "pages/home"]
    assert get_file_location_from_id("common.title", s) == ["common"]
    assert get_file_location_from_id("pages.home.title", s) == ["pages", "home"]
    assert get_file_location_from_id("pages.title", s) is None
    assert get_file_location_from_id("other.title", None) is None


def test_content_at_location_by_strategy():
    """
    场景：none 策略下两个文件的词条合并在同一棵树里，
    按 file_scope 过滤出属于某个文件的部分
    """
    tree = {"title": "title", "hello": "hello"}
    dictionary = {
        "title": Entry(full_path="common.title", file_scope="common"),
        "hello": Entry(full_path="pages.home.hello", file_scope="pages.home"),
    }
    assert get_content_at_location("common", tree, dictionary, NamespaceStrategy.NONE) == {"title": "title"}
    assert get_content_at_location("pages.home", tree, dictionary, NamespaceStrategy.NONE) == {"hello": "hello"}

    full_tree = {"pages": {"home": {"hello": "pages.home.hello"}}}
    full_dict = {"pages.home.hello": Entry(full_path="pages.home.hello", file_scope="pages.home")}
    assert get_content_at_location("pages.home", full_tree, full_dict, NamespaceStrategy.FULL) == {
        "hello": "pages.home.hello"
    }
    assert get_content_at_location("common", full_tree, full_dict, NamespaceStrategy.FULL) is None
