from lang_keeper.langs import header_candidates, is_lang_name, lang_display_name, normalize_header, resolve_lang


def test_resolve_lang_common_spellings():
    assert resolve_lang("en").key == "en"
    assert resolve_lang("en-US").key == "en"
    assert resolve_lang("en_GB").key == "en"
    assert resolve_lang("English").key == "en"
    assert resolve_lang("zh-CN").key == "zh-cn"
    assert resolve_lang("zh_Hans").key == "zh-cn"
    assert resolve_lang("简体中文").key == "zh-cn"
    assert resolve_lang("zh-TW").key == "zh-tw"
    assert resolve_lang("es-419").key == "es"


def test_non_language_names():
    """场景：语言目录下的普通文件名不能被当成语言"""
    for name in ("common", "messages", "pages", "", "  "):
        assert not is_lang_name(name)


def test_custom_alias_mapping():
    custom = {"zh-cn": ["mainland"]}
    assert resolve_lang("mainland") is None
    assert resolve_lang("mainland", custom).key == "zh-cn"


def test_display_name_and_header_candidates():
    assert lang_display_name("zh-cn") == "Simplified Chinese"
    assert lang_display_name("unknown") == ""

    cands = header_candidates("zh-cn")
    assert "简体中文" in cands
    assert "simplified chinese" in cands
    assert "zh-cn" in cands
    assert normalize_header("  Simplified   Chinese ") == "simplified chinese"
