from pathlib import Path

import pytest

from lang_keeper.config import (
    CONFIG_FILE,
    ConfigError,
    assert_config_ok,
    init_config,
    to_options,
    validate_config,
)
from lang_keeper.models import ImportMode, NamespaceStrategy, SortMode


def test_validate_minimal_defaults():
    cfg = validate_config({"langPath": "src/i18n"})
    assert cfg.lang_path == "src/i18n"
    assert cfg.project_path == "."
    assert cfg.namespace_strategy == NamespaceStrategy.AUTO
    assert cfg.sorting_write_mode == SortMode.NONE
    assert cfg.import_mode == ImportMode.KEY
    assert cfg.call_names == ["t", "$t"]
    assert cfg.match_existing_key is True
    assert cfg.max_file_size == 1024
    assert cfg.scan_string_literals is False


def test_validate_full_config():
    cfg = validate_config({
        "langPath": " locales ",
        "referredLang": "English",
        "ignoredLangs": ["ja"],
        "namespaceStrategy": "file",
        "sortingExportMode": "byKey",
        "langAliasCustomMappings": {"zh-cn": "chs"},
        "importMode": "language",
        "baselineLanguage": "en",
        "maxFileSize": 0,
        "scanStringLiterals": True,
    })
    assert cfg.lang_path == "locales"
    assert cfg.referred_lang == "English"
    assert cfg.namespace_strategy == NamespaceStrategy.FILE
    assert cfg.sorting_export_mode == SortMode.BY_KEY
    assert cfg.lang_alias_custom_mappings == {"zh-cn": ["chs"]}
    assert cfg.import_mode == ImportMode.LANGUAGE
    assert cfg.max_file_size == 0
    assert cfg.scan_string_literals is True


@pytest.mark.parametrize(
    "raw, word",
    [
        ([], "根节点"),
        ({}, "langPath"),
        ({"langPath": "  "}, "langPath"),
        ({"langPath": "x", "namespaceStrategy": "deep"}, "namespaceStrategy"),
        ({"langPath": "x", "ignoredLangs": "ja"}, "ignoredLangs"),
        ({"langPath": "x", "fillWithOriginal": "yes"}, "fillWithOriginal"),
        ({"langPath": "x", "scanStringLiterals": 1}, "scanStringLiterals"),
        ({"langPath": "x", "maxFileSize": -1}, "maxFileSize"),
        ({"langPath": "x", "maxFileSize": True}, "maxFileSize"),
        ({"langPath": "x", "callNames": []}, "callNames"),
        ({"langPath": "x", "langAliasCustomMappings": ["cn"]}, "langAliasCustomMappings"),
    ],
)
def test_validate_rejects_bad_values(raw, word):
    with pytest.raises(ValueError) as ei:
        validate_config(raw)
    assert word in str(ei.value)


def test_missing_config_hints_init(tmp_path):
    with pytest.raises(ConfigError) as ei:
        assert_config_ok(tmp_path / CONFIG_FILE)
    assert "lang_keeper init" in str(ei.value)


def test_broken_yaml_is_config_error(tmp_path):
    p = tmp_path / CONFIG_FILE
    p.write_text("langPath: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        assert_config_ok(p)


def test_init_creates_template_then_keeps_it(tmp_path):
    """场景：init 生成的模板本身可以通过校验；再次 init 不覆盖。"""
    p = tmp_path / CONFIG_FILE
    assert init_config(p) is True
    cfg = assert_config_ok(p)
    assert cfg.lang_path == "src/i18n"
    assert cfg.referred_lang == "en"

    p.write_text("langPath: locales\n", encoding="utf-8")
    assert init_config(p) is False
    assert p.read_text(encoding="utf-8") == "langPath: locales\n"


def test_to_options_resolves_paths(tmp_path):
    cfg = validate_config({"langPath": "src/i18n", "projectPath": "src", "maxFileSize": 10})
    opts = to_options(cfg, tmp_path)
    assert Path(opts["lang_path"]) == (tmp_path / "src" / "i18n").resolve()
    assert Path(opts["project_path"]) == (tmp_path / "src").resolve()
    assert opts["file_size_skip_threshold_kb"] == 10

    abs_lang = str(tmp_path / "elsewhere")
    opts = to_options(validate_config({"langPath": abs_lang}), tmp_path / "sub")
    assert opts["lang_path"] == abs_lang
