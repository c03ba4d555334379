from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .context import DEFAULT_FILE_EXTENSIONS
from .models import ImportMode, LanguageStructure, NamespaceStrategy, SortMode

CONFIG_FILE = "lang_keeper.yaml"
DEFAULT_TEMPLATE_NAME = "lang_keeper.yaml"


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class KeeperConfig:
    lang_path: str
    project_path: str = "."
    referred_lang: str = ""
    ignored_langs: List[str] = field(default_factory=list)
    namespace_strategy: NamespaceStrategy = NamespaceStrategy.AUTO
    language_structure: LanguageStructure = LanguageStructure.AUTO
    sync_based_on_referred_entries: bool = False
    sorting_write_mode: SortMode = SortMode.NONE
    sorting_export_mode: SortMode = SortMode.NONE
    file_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_FILE_EXTENSIONS))
    ignored_files: List[str] = field(default_factory=list)
    ignored_directories: List[str] = field(default_factory=list)
    manually_marked_used_entries: List[str] = field(default_factory=list)
    ignored_undefined_entries: List[str] = field(default_factory=list)
    lang_alias_custom_mappings: Dict[str, List[str]] = field(default_factory=dict)
    call_names: List[str] = field(default_factory=lambda: ["t", "$t"])
    import_mode: ImportMode = ImportMode.KEY
    baseline_language: str = ""
    fill_with_original: bool = False
    match_existing_key: bool = True
    max_file_size: int = 1024
    import_statement: str = ""
    scan_string_literals: bool = False


# ----------------------------
# schema
# ----------------------------
def _schema_error(msg: str) -> ValueError:
    return ValueError(
        f"{CONFIG_FILE} 格式错误：\n"
        f"- {msg}\n\n"
        "最小示例：\n"
        "langPath: src/i18n\n"
        "projectPath: src\n"
        "referredLang: en\n"
    )


def _need_nonempty_str(obj: Dict[str, Any], key: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str) or not v.strip():
        raise _schema_error(f"{key} 必须是非空字符串")
    return v.strip()


def _opt_str(obj: Dict[str, Any], key: str, default: str = "") -> str:
    v = obj.get(key)
    if v is None:
        return default
    if not isinstance(v, str):
        raise _schema_error(f"{key} 必须是字符串（可省略）")
    return v.strip()


def _opt_bool(obj: Dict[str, Any], key: str, default: bool) -> bool:
    v = obj.get(key)
    if v is None:
        return default
    if not isinstance(v, bool):
        raise _schema_error(f"{key} 必须是 bool（true/false）")
    return v


def _opt_str_list(obj: Dict[str, Any], key: str, default: List[str]) -> List[str]:
    v = obj.get(key)
    if v is None:
        return list(default)
    if not isinstance(v, list) or not all(isinstance(x, str) and x.strip() for x in v):
        raise _schema_error(f"{key} 必须是字符串数组（可省略）")
    return [x.strip() for x in v]


def _opt_enum(obj: Dict[str, Any], key: str, enum_cls, default):
    v = obj.get(key)
    if v is None:
        return default
    allowed = [e.value for e in enum_cls]
    if v not in allowed:
        raise _schema_error(f"{key} 必须是 {'/'.join(allowed)} 之一（当前：{v!r}）")
    return enum_cls(v)


def _aliases(obj: Dict[str, Any]) -> Dict[str, List[str]]:
    v = obj.get("langAliasCustomMappings")
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise _schema_error("langAliasCustomMappings 必须是 object/map（语言 -> 别名数组）")
    out: Dict[str, List[str]] = {}
    for k, names in v.items():
        if not isinstance(k, str) or not k.strip():
            raise _schema_error("langAliasCustomMappings 的 key 必须是非空字符串")
        if isinstance(names, str):
            names = [names]
        if not isinstance(names, list) or not all(isinstance(x, str) for x in names):
            raise _schema_error(f"langAliasCustomMappings[{k!r}] 必须是字符串或字符串数组")
        out[k.strip()] = [x.strip() for x in names if x.strip()]
    return out


def validate_config(raw: Any) -> KeeperConfig:
    if not isinstance(raw, dict):
        raise _schema_error("根节点必须是 YAML object/map")

    max_size = raw.get("maxFileSize", 1024)
    if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size < 0:
        raise _schema_error("maxFileSize 必须是非负整数（KB，0 表示不限制）")

    exts = _opt_str_list(raw, "fileExtensions", list(DEFAULT_FILE_EXTENSIONS))
    if not exts:
        raise _schema_error("fileExtensions 不能为空数组")
    call_names = _opt_str_list(raw, "callNames", ["t", "$t"])
    if not call_names:
        raise _schema_error("callNames 不能为空数组")

    return KeeperConfig(
        lang_path=_need_nonempty_str(raw, "langPath"),
        project_path=_opt_str(raw, "projectPath", "."),
        referred_lang=_opt_str(raw, "referredLang"),
        ignored_langs=_opt_str_list(raw, "ignoredLangs", []),
        namespace_strategy=_opt_enum(raw, "namespaceStrategy", NamespaceStrategy, NamespaceStrategy.AUTO),
        language_structure=_opt_enum(raw, "languageStructure", LanguageStructure, LanguageStructure.AUTO),
        sync_based_on_referred_entries=_opt_bool(raw, "syncBasedOnReferredEntries", False),
        sorting_write_mode=_opt_enum(raw, "sortingWriteMode", SortMode, SortMode.NONE),
        sorting_export_mode=_opt_enum(raw, "sortingExportMode", SortMode, SortMode.NONE),
        file_extensions=exts,
        ignored_files=_opt_str_list(raw, "ignoredFiles", []),
        ignored_directories=_opt_str_list(raw, "ignoredDirectories", []),
        manually_marked_used_entries=_opt_str_list(raw, "manuallyMarkedUsedEntries", []),
        ignored_undefined_entries=_opt_str_list(raw, "ignoredUndefinedEntries", []),
        lang_alias_custom_mappings=_aliases(raw),
        call_names=call_names,
        import_mode=_opt_enum(raw, "importMode", ImportMode, ImportMode.KEY),
        baseline_language=_opt_str(raw, "baselineLanguage"),
        fill_with_original=_opt_bool(raw, "fillWithOriginal", False),
        match_existing_key=_opt_bool(raw, "matchExistingKey", True),
        max_file_size=max_size,
        import_statement=_opt_str(raw, "importStatement"),
        scan_string_literals=_opt_bool(raw, "scanStringLiterals", False),
    )


# ----------------------------
# 文件
# ----------------------------
def read_config(path: Path) -> KeeperConfig:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    return validate_config(raw)


def assert_config_ok(path: Path) -> KeeperConfig:
    if not path.exists():
        raise ConfigError(
            f"配置文件不存在：{path}\n"
            f"解决方法：在项目根目录执行 `lang_keeper init` 生成默认配置。"
        )
    try:
        return read_config(path)
    except yaml.YAMLError as e:
        raise ConfigError(f"配置文件不是合法的 YAML：{path}\n{e}") from None
    except ValueError as e:
        raise ConfigError(str(e)) from None


def _copy_packaged_template(path: Path) -> None:
    # 模板与本模块同目录，随包发布
    tpl = Path(__file__).resolve().parent / DEFAULT_TEMPLATE_NAME
    if not tpl.exists():
        raise ConfigError(f"内置模板不存在：{tpl}（请确保随包发布 {DEFAULT_TEMPLATE_NAME}）")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tpl.read_text(encoding="utf-8"), encoding="utf-8")


def init_config(path: Path) -> bool:
    """不存在则生成模板并返回 True；已存在只校验，不覆盖。"""
    if path.exists():
        assert_config_ok(path)
        return False
    _copy_packaged_template(path)
    return True


def _resolve(root: Path, p: str) -> str:
    if not p:
        return ""
    q = Path(p).expanduser()
    return str(q if q.is_absolute() else (root / q).resolve())


def to_options(cfg: KeeperConfig, root: Path) -> Dict[str, Any]:
    """KeeperConfig -> LangContext 的选项（路径按项目根目录展开）。"""
    return {
        "lang_path": _resolve(root, cfg.lang_path),
        "project_path": _resolve(root, cfg.project_path),
        "referred_lang": cfg.referred_lang,
        "ignored_langs": list(cfg.ignored_langs),
        "namespace_strategy": cfg.namespace_strategy,
        "language_structure": cfg.language_structure,
        "sync_based_on_referred_entries": cfg.sync_based_on_referred_entries,
        "sorting_write_mode": cfg.sorting_write_mode,
        "sorting_export_mode": cfg.sorting_export_mode,
        "file_extensions": list(cfg.file_extensions),
        "ignored_files": list(cfg.ignored_files),
        "ignored_directories": list(cfg.ignored_directories),
        "manually_marked_used_entries": list(cfg.manually_marked_used_entries),
        "ignored_undefined_entries": list(cfg.ignored_undefined_entries),
        "lang_alias_custom_mappings": {k: list(v) for k, v in cfg.lang_alias_custom_mappings.items()},
        "call_names": list(cfg.call_names),
        "import_mode": cfg.import_mode,
        "baseline_language": cfg.baseline_language,
        "fill_with_original": cfg.fill_with_original,
        "match_existing_key": cfg.match_existing_key,
        "file_size_skip_threshold_kb": cfg.max_file_size,
        "import_statement": cfg.import_statement,
        "scan_string_literals": cfg.scan_string_literals,
    }
