from __future__ import annotations

import copy
from pathlib import Path
from typing import Dict, List, Set, Tuple

from .context import LangContext
from .keys import (
    get_content_at_location,
    get_common_file_paths,
    get_file_location_from_id,
    get_path_segs_from_id,
    join_id,
    parse_escaped_path,
    set_value_by_escaped_name,
)
from .langfile import format_object_to_string, write_text
from .models import (
    Entry,
    ExecutionResult,
    FileExtraInfo,
    LanguageStructure,
    NamespaceStrategy,
    PayloadType,
    ResultCode,
    UpdatePayload,
)
from .patches import apply_code_patches
from .read import resolve_name

# (lang, file scope)；单文件模式下 scope 为 ""
Target = Tuple[str, str]


class UnresolvedFileError(LookupError):
    """多文件模式下，某个词条找不到应写入的文件。"""


# ----------------------------
# 文件定位
# ----------------------------
def file_scopes(ctx: LangContext) -> List[str]:
    if not ctx.is_multi_file:
        return [""]
    return [p.replace("/", ".") for p in get_common_file_paths(ctx.file_structure)]


def resolve_scope(ctx: LangContext, entry_id: str, hint: str = "") -> str:
    """词条 -> 文件 scope（pages.home）。单文件模式恒为 ""。"""
    if not ctx.is_multi_file:
        return ""
    entry = ctx.lang_dictionary.get(entry_id)
    if entry is not None and entry.file_scope:
        return entry.file_scope
    if hint:
        return hint

    scopes = file_scopes(ctx)
    if ctx.namespace_strategy == NamespaceStrategy.FULL:
        segs = get_file_location_from_id(entry_id, ctx.file_structure)
        if segs:
            return ".".join(segs)
    elif ctx.namespace_strategy == NamespaceStrategy.FILE:
        head = (get_path_segs_from_id(entry_id) or [""])[0]
        for scope in scopes:
            if scope.split(".")[-1] == head:
                return scope
    elif len(scopes) == 1:
        return scopes[0]
    raise UnresolvedFileError(f"无法确定词条所在文件：{entry_id}")


def full_path_of(ctx: LangContext, entry_id: str, scope: str) -> str:
    if not scope:
        return entry_id
    if ctx.namespace_strategy == NamespaceStrategy.FULL:
        return entry_id
    if ctx.namespace_strategy == NamespaceStrategy.FILE:
        parent = scope.rsplit(".", 1)[0] if "." in scope else ""
        return f"{parent}.{entry_id}" if parent else entry_id
    return f"{scope}.{entry_id}"


def lang_file_path(ctx: LangContext, lang: str, scope: str) -> Path:
    ext = ctx.lang_file_type or "json"
    root = Path(ctx.lang_path)
    if not scope:
        return root / f"{lang}.{ext}"
    segs = scope.split(".")
    return root.joinpath(lang, *segs[:-1]) / f"{segs[-1]}.{ext}"


def _extra_for(ctx: LangContext, lang: str, scope: str) -> FileExtraInfo:
    key = f"{lang}.{scope}" if scope else lang
    if key in ctx.lang_file_extra_info:
        return ctx.lang_file_extra_info[key]
    # 新文件沿用其它语言同位置文件的风格
    for other, info in ctx.lang_file_extra_info.items():
        if scope and other.split(".", 1)[-1] == scope:
            return info
        if not scope and "." not in other:
            return info
    return FileExtraInfo()


# ----------------------------
# 模型更新
# ----------------------------
def _set_value(ctx: LangContext, entry_id: str, lang: str, value: str, scope: str) -> None:
    entry = ctx.lang_dictionary.get(entry_id)
    if entry is None:
        entry = Entry(full_path=full_path_of(ctx, entry_id, scope), file_scope=scope)
        ctx.lang_dictionary[entry_id] = entry
    entry.value[lang] = value
    ctx.lang_country_map.setdefault(lang, {})[entry_id] = value
    set_value_by_escaped_name(ctx.entry_tree, entry_id, entry_id)


def _remove_value(ctx: LangContext, entry_id: str, lang: str) -> None:
    ctx.lang_country_map.get(lang, {}).pop(entry_id, None)
    entry = ctx.lang_dictionary.get(entry_id)
    if entry is None:
        return
    entry.value.pop(lang, None)
    if not entry.value:
        del ctx.lang_dictionary[entry_id]
        set_value_by_escaped_name(ctx.entry_tree, entry_id, None)


def _remove_entry(ctx: LangContext, entry_id: str) -> None:
    for lang in list(ctx.lang_country_map.keys()):
        ctx.lang_country_map[lang].pop(entry_id, None)
    if entry_id in ctx.lang_dictionary:
        del ctx.lang_dictionary[entry_id]
    set_value_by_escaped_name(ctx.entry_tree, entry_id, None)


def _langs_of(ctx: LangContext, entry_id: str) -> List[str]:
    entry = ctx.lang_dictionary.get(entry_id)
    return list(entry.value.keys()) if entry else []


def _prefix_len(ctx: LangContext, scope: str) -> int:
    """id 开头属于命名空间（文件路径）的段数。"""
    if not scope:
        return 0
    if ctx.namespace_strategy == NamespaceStrategy.FULL:
        return len(scope.split("."))
    if ctx.namespace_strategy == NamespaceStrategy.FILE:
        return 1
    return 0


def target_id(ctx: LangContext, name: str, scope: str) -> str:
    """
    payload 里的 key -> 写入用的 entry id：
    - 已有词条（含歧义切分命中）用原 id
    - 平铺结构的新词条，命名空间之后的部分整体作为一个 key（common.ok -> common\\.ok）
    """
    hit = resolve_name(ctx, name)
    if hit is not None:
        return hit
    if ctx.language_structure != LanguageStructure.FLAT:
        return name
    segs = parse_escaped_path(name)
    keep = _prefix_len(ctx, scope)
    if len(segs) <= keep + 1:
        return name
    return join_id(segs[:keep] + [".".join(segs[keep:])])


def _plan(ctx: LangContext, payloads: List[UpdatePayload]) -> List[Tuple[str, str, str, str]]:
    """
    先把所有 payload 的 id 和文件 scope 算好；任何一个失败都不会动模型。
    返回 [(id, scope, rename 后的 id, rename 后的 scope)]
    """
    plan: List[Tuple[str, str, str, str]] = []
    for p in payloads:
        before = resolve_scope(ctx, resolve_name(ctx, p.key) or p.key)
        key = target_id(ctx, p.key, before)
        new_key, after = key, before
        if p.type == PayloadType.RENAME and p.key_change is not None:
            raw_new = p.key_change.key_after
            hint = p.key_change.file_pos_after or (before if ctx.namespace_strategy == NamespaceStrategy.NONE else "")
            existing = resolve_name(ctx, raw_new)
            if existing is not None:
                after = resolve_scope(ctx, existing)
            else:
                after = resolve_scope(ctx, raw_new, hint)
            new_key = target_id(ctx, raw_new, after)
        plan.append((key, before, new_key, after))
    return plan


def apply_payloads(ctx: LangContext, payloads: List[UpdatePayload]) -> Set[Target]:
    plan = _plan(ctx, payloads)
    touched: Set[Target] = set()
    for p, (key, scope, new_id, scope_after) in zip(payloads, plan):

        if p.type == PayloadType.DELETE:
            for lang in _langs_of(ctx, key):
                touched.add((lang, scope))
            _remove_entry(ctx, key)
            continue

        if p.type == PayloadType.RENAME:
            if p.key_change is None:
                continue
            values = dict(ctx.lang_dictionary[key].value) if key in ctx.lang_dictionary else {}
            for lang, vc in p.value_changes.items():
                if vc.after is not None:
                    values[lang] = vc.after
            # 先加新 key，再删旧 key
            for lang, value in values.items():
                _set_value(ctx, new_id, lang, value, scope_after)
                touched.add((lang, scope_after))
            if p.key_change.full_path_after and new_id in ctx.lang_dictionary:
                ctx.lang_dictionary[new_id].full_path = p.key_change.full_path_after
            for lang in _langs_of(ctx, key):
                touched.add((lang, scope))
            if new_id != key:
                _remove_entry(ctx, key)
            continue

        for lang, vc in p.value_changes.items():
            if lang in ctx.ignored_langs:
                continue
            if p.type == PayloadType.FILL:
                current = ctx.lang_country_map.get(lang, {}).get(key)
                if current is not None and current.strip() != "":
                    continue
            if vc.after is None:
                _remove_value(ctx, key, lang)
            else:
                _set_value(ctx, key, lang, vc.after, scope)
            touched.add((lang, scope))
    return touched


# ----------------------------
# 写文件
# ----------------------------
def render_file(ctx: LangContext, lang: str, scope: str) -> str:
    if scope:
        content = get_content_at_location(scope, ctx.entry_tree, ctx.lang_dictionary, ctx.namespace_strategy) or {}
    else:
        content = ctx.entry_tree
    lookup = ctx.lang_country_map.get(lang, {})
    return format_object_to_string(content, lookup, ctx.lang_file_type or "json", _extra_for(ctx, lang, scope))


def write_targets(ctx: LangContext, targets: Set[Target]) -> List[str]:
    rendered = [
        (lang_file_path(ctx, lang, scope), render_file(ctx, lang, scope))
        for lang, scope in sorted(targets)
    ]
    for path, text in rendered:
        write_text(path, text)
    return [str(p) for p, _ in rendered]


def _snapshot(ctx: LangContext) -> Tuple[Dict[str, Entry], Dict[str, Dict[str, str]], Dict[str, object]]:
    return copy.deepcopy((ctx.lang_dictionary, ctx.lang_country_map, ctx.entry_tree))


def run(ctx: LangContext, rewrite_all: bool = False) -> ExecutionResult:
    """
    提交 update_payloads：更新模型 -> 重新生成受影响的语言文件 -> 应用代码 patch。
    rewrite_all=True 时按当前模型重写所有语言文件（排序用）。
    写文件失败时模型回滚到提交前，异常继续抛出。
    """
    saved = _snapshot(ctx)
    try:
        touched = apply_payloads(ctx, ctx.update_payloads)
    except UnresolvedFileError as e:
        ctx.lang_dictionary, ctx.lang_country_map, ctx.entry_tree = saved
        ctx.update_payloads = []
        ctx.patched_entry_id_info = {}
        return ExecutionResult.fail(ResultCode.UNKNOWN_REWRITE_ERROR, f"❌ {e}")
    ctx.update_payloads = []

    if rewrite_all:
        touched |= {(lang, scope) for lang in ctx.detected_lang_list for scope in file_scopes(ctx)}
    try:
        written = write_targets(ctx, touched)
    except Exception:
        ctx.lang_dictionary, ctx.lang_country_map, ctx.entry_tree = saved
        ctx.patched_entry_id_info = {}
        raise

    patched = apply_code_patches(ctx.patched_entry_id_info, ctx.import_statement)
    ctx.patched_entry_id_info = {}
    return ExecutionResult.ok(f"✅ 已写入 {len(written)} 个语言文件", files=written, patched_files=patched)
