from __future__ import annotations

import re
from typing import Dict, List, Optional

from . import rewrite
from .context import LangContext
from .keys import unescape_string
from .models import ExecutionResult, IdPatch, PayloadType, ResultCode, TCall, UpdatePayload, ValueChange

_QUOTE_RE = re.compile(r"[\"'`]")


def text_id(text: str) -> str:
    """按文案找已有词条时用的归一化形式。"""
    return re.sub(r"[\s\\]", "", text.lower())


def fixed_raw(call: TCall, key: str) -> str:
    """t("你好") -> t("common.hello")，第一个参数之后的内容原样保留。"""
    start = int(call.raw_range.split(",")[0])
    lit_end = int(call.pos.split(",")[1])
    m = _QUOTE_RE.search(call.raw, 1)
    quote = m.group(0) if m else '"'
    func = call.raw.split("(", 1)[0]
    rest = call.raw[lit_end - start + 1:]
    name = unescape_string(key).replace(quote, "\\" + quote)
    return f"{func}({quote}{name}{quote}{rest}"


def bind_undefined(ctx: LangContext) -> int:
    """未定义的 t() 调用，如果文案和参考语言里已有的值一致，就直接改成对应 key。"""
    referred = ctx.lang_country_map.get(ctx.referred_lang, {})
    value_to_key: Dict[str, str] = {}
    for key, value in referred.items():
        value_to_key.setdefault(text_id(value), key)

    patched = 0
    for call in ctx.undefined_entry_list:
        if call.has_vars:
            continue
        key = value_to_key.get(text_id(call.text))
        if key is None:
            continue
        patch = IdPatch(id=key, raw=call.raw, fixed_raw=fixed_raw(call, key), pos=f"{call.pos},{call.raw_range}")
        ctx.patched_entry_id_info.setdefault(call.path, []).append(patch)
        patched += 1
    return patched


def _fill_payloads(lang: str, keys: List[str], texts: List[str]) -> List[UpdatePayload]:
    return [
        UpdatePayload(type=PayloadType.FILL, key=k, value_changes={lang: ValueChange(before=None, after=t)})
        for k, t in zip(keys, texts)
    ]


def run(ctx: LangContext) -> ExecutionResult:
    """
    1) 绑定：未定义调用 -> 已有词条（match_existing_key）
    2) 补全：lack_info 里缺的词条用参考语言原文或翻译器结果填上
    """
    referred_lang = ctx.referred_lang
    if not referred_lang or referred_lang not in ctx.lang_country_map:
        return ExecutionResult.fail(ResultCode.NO_REFERRED_LANG, "❌ 没有可用的参考语言")

    query = ctx.fix_query
    patched = bind_undefined(ctx) if (query.bind_existing and ctx.match_existing_key) else 0
    referred = ctx.lang_country_map[referred_lang]

    success = failed = added = 0
    messages: List[str] = []
    payloads: List[UpdatePayload] = []
    for lang, lack in ctx.lack_info.items():
        if lang == referred_lang or (query.fill_scope is not None and lang not in query.fill_scope):
            continue
        if ctx.is_cancelled():
            ctx.patched_entry_id_info = {}
            return ExecutionResult(success=False, message="⚠️ 已取消", code=ResultCode.CANCELLED)
        keys = [
            k for k in lack
            if referred.get(k) and (query.entries_to_fill is None or k in query.entries_to_fill)
        ]
        if not keys:
            continue
        texts = [referred[k] for k in keys]
        if ctx.fill_with_original:
            payloads += _fill_payloads(lang, keys, texts)
            added += len(keys)
            continue

        res = _translate(ctx, referred_lang, lang, texts)
        if res is not None:
            success += 1
            payloads += _fill_payloads(lang, keys, res)
            added += len(keys)
        else:
            failed += 1
            messages.append(lang)

    if not patched and not payloads and not failed:
        return ExecutionResult(success=True, message="✅ 没有需要修复的词条", code=ResultCode.NO_LACK_ENTRIES)

    data = {"success": success, "failed": failed, "generated": added, "total": success + failed, "patched": patched}
    if payloads or patched:
        ctx.update_payloads.extend(payloads)
        res = rewrite.run(ctx)
        if not res.success:
            return res

    if failed == 0:
        return ExecutionResult.ok(f"✅ 已补全 {added} 条，修正 {patched} 处调用", **data)
    if success > 0:
        return ExecutionResult(
            success=True,
            message=f"⚠️ 部分语言翻译失败：{', '.join(messages)}（已补全 {added} 条）",
            code=ResultCode.TRANSLATOR_PARTIAL_FAILED,
            data=data,
        )
    return ExecutionResult(
        success=False,
        message=f"❌ 翻译失败：{', '.join(messages)}",
        code=ResultCode.TRANSLATOR_FAILED,
        data=data,
    )


def _translate(ctx: LangContext, source: str, target: str, texts: List[str]) -> Optional[List[str]]:
    if ctx.translator is None:
        return None
    res = ctx.translator(source, target, texts)
    if not res.success or len(res.data) != len(texts):
        return None
    return list(res.data)
