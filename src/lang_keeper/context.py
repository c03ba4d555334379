from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models import (
    DirNode,
    Entry,
    FileExtraInfo,
    IdPatch,
    ImportMode,
    LanguageStructure,
    NamespaceStrategy,
    SortMode,
    TCall,
    TranslateResult,
    UpdatePayload,
    UsageMap,
)

# (source, target, texts) -> TranslateResult
Translator = Callable[[str, str, List[str]], TranslateResult]

DEFAULT_FILE_EXTENSIONS: Tuple[str, ...] = (".js", ".jsx", ".ts", ".tsx", ".vue", ".mjs", ".cjs", ".html", ".svelte")


@dataclass
class ModifyQuery:
    """
    type:
    - editValue: data = [{"key", "lang", "value"}]
    - rename: data = [{"key", "newKey"}]
    """
    type: str
    data: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class FixQuery:
    # None 表示全部；列表表示只处理其中的 key / 语言
    entries_to_fill: Optional[List[str]] = None
    fill_scope: Optional[List[str]] = None
    bind_existing: bool = True


@dataclass
class ExtractQuery:
    # 只扫描该目录（相对 project_path）；为空扫描整个 project_path
    scope_path: str = ""
    key_prefix: str = ""
    # None 表示全部候选；列表表示只提取其中的文案
    texts: Optional[List[str]] = None


@dataclass
class LangContext:
    """
    一次会话内所有 handler 共享的上下文。
    配置字段由 set_options 覆盖；其余字段由 read/check/rewrite 维护。
    """

    # ---- 配置 ----
    lang_path: str = ""
    project_path: str = ""
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
    file_size_skip_threshold_kb: int = 1024
    import_statement: str = ""
    scan_string_literals: bool = False

    # ---- 任务输入 ----
    export_path: str = ""
    import_path: str = ""
    rewrite_flag: bool = True
    trim_key_list: List[str] = field(default_factory=list)
    modify_query: Optional[ModifyQuery] = None
    fix_query: FixQuery = field(default_factory=FixQuery)
    extract_query: ExtractQuery = field(default_factory=ExtractQuery)
    translator: Optional[Translator] = None
    is_cancelled: Callable[[], bool] = lambda: False

    # ---- 读取结果 ----
    lang_file_type: str = ""
    file_nested_level: int = 0
    file_structure: Optional[DirNode] = None
    lang_file_extra_info: Dict[str, FileExtraInfo] = field(default_factory=dict)
    lang_country_map: Dict[str, Dict[str, str]] = field(default_factory=dict)
    lang_dictionary: Dict[str, Entry] = field(default_factory=dict)
    entry_tree: Dict[str, Any] = field(default_factory=dict)

    # ---- census ----
    used_entry_map: UsageMap = field(default_factory=dict)
    undefined_entry_list: List[TCall] = field(default_factory=list)
    undefined_entry_map: UsageMap = field(default_factory=dict)
    # 有序集合（dict 的 key），按首次出现的顺序
    used_key_set: Dict[str, None] = field(default_factory=dict)
    unused_key_set: Dict[str, None] = field(default_factory=dict)

    # ---- check ----
    lack_info: Dict[str, List[str]] = field(default_factory=dict)
    null_info: Dict[str, List[str]] = field(default_factory=dict)
    extra_info: Dict[str, List[str]] = field(default_factory=dict)

    # ---- 待提交 ----
    update_payloads: List[UpdatePayload] = field(default_factory=list)
    patched_entry_id_info: Dict[str, List[IdPatch]] = field(default_factory=dict)

    @property
    def detected_lang_list(self) -> List[str]:
        return [x for x in self.lang_country_map.keys() if x not in self.ignored_langs]

    @property
    def is_multi_file(self) -> bool:
        return self.file_nested_level > 0

    def reset_model(self) -> None:
        """重新读取前清空所有派生状态。"""
        self.lang_file_type = ""
        self.file_nested_level = 0
        self.file_structure = None
        self.lang_file_extra_info = {}
        self.lang_country_map = {}
        self.lang_dictionary = {}
        self.entry_tree = {}
        self.used_entry_map = {}
        self.undefined_entry_list = []
        self.undefined_entry_map = {}
        self.used_key_set = {}
        self.unused_key_set = {}
        self.lack_info = {}
        self.null_info = {}
        self.extra_info = {}

    def apply_options(self, options: Dict[str, Any]) -> None:
        known = {f.name for f in fields(self)}
        for k, v in options.items():
            if k not in known:
                raise ValueError(f"未知选项：{k}")
            setattr(self, k, v)

    def public(self) -> Dict[str, Any]:
        """对外只读投影。"""
        return {
            "lang_path": self.lang_path,
            "project_path": self.project_path,
            "referred_lang": self.referred_lang,
            "ignored_langs": list(self.ignored_langs),
            "namespace_strategy": self.namespace_strategy,
            "language_structure": self.language_structure,
            "sync_based_on_referred_entries": self.sync_based_on_referred_entries,
            "sorting_write_mode": self.sorting_write_mode,
            "sorting_export_mode": self.sorting_export_mode,
            "lang_file_type": self.lang_file_type,
            "multi_file": self.is_multi_file,
        }
