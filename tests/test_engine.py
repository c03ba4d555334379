import pytest

from lang_keeper.context import LangContext
from lang_keeper.engine import LangKeeper
from lang_keeper.models import NamespaceStrategy, ResultCode


def test_check_reports_counts(make_project):
    """场景：lack / null / undefined / unused 都能在 check 结果里看到。"""
    ctx = make_project(
        {"en": {"a": "A", "b": "B", "c": ""}, "zh-cn": {"a": "甲"}},
        sources={"app.ts": 't("a"); t("missing.key")\n'},
    )
    res = LangKeeper(ctx).execute("check")

    assert res.success, res.message
    assert res.code == ResultCode.SUCCESS
    assert res.data["lack"]["zh-cn"] == ["b", "c"]
    assert res.data["null"]["en"] == ["c"]
    assert res.data["undefined"] == 1
    assert res.data["unused"] == 2


def test_missing_lang_path(tmp_path):
    ctx = LangContext(lang_path=str(tmp_path / "nope"), project_path=str(tmp_path))
    res = LangKeeper(ctx).execute("check")
    assert not res.success
    assert res.code == ResultCode.NO_LANG_PATH_DETECTED


def test_unknown_task(make_project):
    res = LangKeeper(make_project({"en": {"a": "A"}})).execute("publish")
    assert not res.success
    assert res.code == ResultCode.UNKNOWN_ERROR


def test_busy_returns_processing(make_project):
    """场景：上一个任务还没结束，新任务直接返回 PROCESSING。"""
    keeper = LangKeeper(make_project({"en": {"a": "A"}}))
    with keeper._lock:
        res = keeper.execute("check")
    assert res.code == ResultCode.PROCESSING
    assert keeper.execute("check").success


def test_unknown_option_rejected(make_project):
    keeper = LangKeeper(make_project({"en": {"a": "A"}}))
    with pytest.raises(ValueError):
        keeper.set_options(no_such_option=1)


def test_auto_namespace_picks_file_strategy(make_project):
    """场景：代码里用 home.title，多文件 pages/home.json -> 自动选 file 策略。"""
    ctx = make_project(
        {
            "en": {"pages/home": {"title": "Home"}},
            "zh-cn": {"pages/home": {"title": "首页"}},
        },
        sources={"home.vue": '<template>{{ $t("home.title") }}</template>\n'},
        multi=True,
    )
    keeper = LangKeeper(ctx)
    res = keeper.execute("check")

    assert res.success, res.message
    assert keeper.ctx.is_multi_file
    assert keeper.ctx.namespace_strategy == NamespaceStrategy.FILE
    assert "home.title" in keeper.ctx.lang_dictionary
    assert keeper.ctx.lang_dictionary["home.title"].file_scope == "pages.home"
    assert res.data["undefined"] == 0


def test_explicit_namespace_strategy(make_project):
    ctx = make_project(
        {"en": {"pages/home": {"title": "Home"}}},
        multi=True,
        namespace_strategy=NamespaceStrategy.FULL,
    )
    keeper = LangKeeper(ctx)
    assert keeper.execute("check").success
    assert list(keeper.ctx.lang_dictionary) == ["pages.home.title"]


def test_referred_lang_resolution(make_project):
    """场景：referred_lang 写别名能对上；对不上时退回 en。"""
    keeper = LangKeeper(make_project({"en": {"a": "A"}, "zh-cn": {"a": "甲"}}, referred_lang="zh-CN"))
    assert keeper.execute("check").success
    assert keeper.ctx.referred_lang == "zh-cn"

    keeper.set_options(referred_lang="xx-unknown")
    assert keeper.execute("check").success
    assert keeper.ctx.referred_lang == "en"


def test_lang_detail_and_public_context(make_project):
    keeper = LangKeeper(make_project({"en": {"a": "A"}, "ja": {}}, referred_lang="en"))
    keeper.execute("check")

    detail = keeper.lang_detail
    assert detail["lang_list"] == ["en", "ja"]
    assert detail["lack"]["ja"] == ["a"]
    assert detail["country_map"]["en"] == {"a": "A"}

    pub = keeper.public_context()
    assert pub["referred_lang"] == "en"
    assert pub["lang_file_type"] == "json"
    assert pub["multi_file"] is False


def test_mutating_task_refreshes_model(make_project, tmp_path, load_json):
    """场景：trim 成功后自动重新 check，模型与文件一致。"""
    ctx = make_project({"en": {"a": "A", "b": "B"}}, sources={"x.js": 't("a")\n'})
    keeper = LangKeeper(ctx)
    res = keeper.execute("trim", trim_key_list=["b"])

    assert res.success, res.message
    assert load_json(tmp_path / "src" / "i18n" / "en.json") == {"a": "A"}
    assert list(keeper.ctx.lang_dictionary) == ["a"]
    assert keeper.ctx.unused_key_set == {}
