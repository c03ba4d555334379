from __future__ import annotations

from typing import Dict, List

from .context import LangContext


def pivot_keys(ctx: LangContext) -> List[str]:
    """对比基准：开启参考语言同步时用参考语言的 key，否则用全部词条。"""
    if ctx.sync_based_on_referred_entries and ctx.referred_lang in ctx.lang_country_map:
        return list(ctx.lang_country_map[ctx.referred_lang].keys())
    return list(ctx.lang_dictionary.keys())


def run(ctx: LangContext) -> None:
    """
    按语言统计：
    - lack: 基准里有、该语言没有
    - null: 该语言有，但值是空白
    - extra: 该语言有、参考语言没有（仅参考语言同步模式）
    """
    pivot = pivot_keys(ctx)
    referred = ctx.lang_country_map.get(ctx.referred_lang) if ctx.sync_based_on_referred_entries else None

    lack_info: Dict[str, List[str]] = {}
    null_info: Dict[str, List[str]] = {}
    extra_info: Dict[str, List[str]] = {}
    for lang in ctx.detected_lang_list:
        translation = ctx.lang_country_map.get(lang, {})
        lack: List[str] = []
        null: List[str] = []
        for key in pivot:
            if key not in translation:
                lack.append(key)
            elif str(translation[key]).strip() == "":
                null.append(key)
        lack_info[lang] = lack
        null_info[lang] = null
        extra_info[lang] = [k for k in translation if k not in referred] if referred is not None else []

    ctx.lack_info = lack_info
    ctx.null_info = null_info
    ctx.extra_info = extra_info


def has_issues(ctx: LangContext) -> bool:
    return any(ctx.lack_info.values()) or any(ctx.null_info.values()) or any(ctx.extra_info.values())
