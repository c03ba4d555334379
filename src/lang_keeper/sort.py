from __future__ import annotations

from typing import Any, Dict, List

from . import rewrite
from .context import LangContext
from .models import ExecutionResult, LanguageStructure, ResultCode, SortMode


def _key_order(k: str):
    return (k.lower(), k)


def get_sorted_keys(ctx: LangContext, mode: SortMode, lang: str = "") -> List[str]:
    """
    - byKey: 全部词条按 key 排序
    - byPosition: 先代码里用到的（按出现顺序），再未使用的
    - 其它: 该语言原本的顺序；没有该语言时用词条表顺序
    """
    if mode == SortMode.BY_KEY:
        return sorted(ctx.lang_dictionary.keys(), key=_key_order)
    if mode == SortMode.BY_POSITION:
        return list(ctx.used_key_set) + [k for k in ctx.unused_key_set if k not in ctx.used_key_set]
    if lang in ctx.lang_country_map:
        return list(ctx.lang_country_map[lang].keys())
    return list(ctx.lang_dictionary.keys())


def _key_sorted_tree(tree: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k in sorted(tree.keys(), key=_key_order):
        v = tree[k]
        out[k] = _key_sorted_tree(v) if isinstance(v, dict) else v
    return out


def _reorder_flat_tree(tree: Dict[str, Any], keys: List[str]) -> Dict[str, Any]:
    rank = {k: i for i, k in enumerate(keys)}
    tail = len(rank)
    items = sorted(tree.items(), key=lambda kv: rank.get(kv[1], tail) if isinstance(kv[1], str) else tail)
    return dict(items)


def run(ctx: LangContext) -> ExecutionResult:
    mode = ctx.sorting_write_mode
    can_sort_flat = not ctx.is_multi_file and ctx.language_structure == LanguageStructure.FLAT
    can_sort_nested = ctx.language_structure == LanguageStructure.NESTED and mode == SortMode.BY_KEY
    if mode == SortMode.NONE or not (can_sort_flat or can_sort_nested):
        return ExecutionResult(
            success=False,
            message="⚠️ 当前文件结构 / 排序模式下不支持排序",
            code=ResultCode.NO_SORTING_APPLIED,
        )

    keys = get_sorted_keys(ctx, mode)
    for lang in ctx.detected_lang_list:
        current = ctx.lang_country_map.get(lang, {})
        ctx.lang_country_map[lang] = {k: current[k] for k in keys if k in current}

    if can_sort_nested:
        ctx.entry_tree = _key_sorted_tree(ctx.entry_tree)
    else:
        ctx.entry_tree = _reorder_flat_tree(ctx.entry_tree, keys)
    return rewrite.run(ctx, rewrite_all=True)
