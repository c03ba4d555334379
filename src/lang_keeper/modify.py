from __future__ import annotations

from typing import Dict, List

from . import rewrite
from .context import LangContext, ModifyQuery
from .keys import unescape_string
from .models import ExecutionResult, IdPatch, KeyChange, PayloadType, ResultCode, UpdatePayload, ValueChange
from .read import resolve_name

EDIT_VALUE = "editValue"
RENAME = "rename"


def _invalid(msg: str) -> ExecutionResult:
    return ExecutionResult.fail(ResultCode.INVALID_ENTRY_NAME, f"❌ {msg}")


def _edit_payloads(ctx: LangContext, query: ModifyQuery) -> List[UpdatePayload]:
    out: List[UpdatePayload] = []
    for item in query.data:
        key = item.get("key", "")
        lang = item.get("lang", "")
        if not key or not lang:
            raise KeyError("editValue 需要 key 和 lang")
        key = resolve_name(ctx, key) or key
        before = ctx.lang_country_map.get(lang, {}).get(key, "")
        out.append(UpdatePayload(
            type=PayloadType.EDIT,
            key=key,
            value_changes={lang: ValueChange(before=before, after=item.get("value", ""))},
        ))
    return out


def _call_site_patches(ctx: LangContext, old_key: str, new_key: str) -> Dict[str, List[IdPatch]]:
    """代码里引用旧 key 的位置 -> 替换成新 key 的显示名。"""
    out: Dict[str, List[IdPatch]] = {}
    new_name = unescape_string(new_key)
    for name, files in ctx.used_entry_map.items():
        if resolve_name(ctx, name) != old_key:
            continue
        for path, positions in files.items():
            for pos in sorted(positions):
                out.setdefault(path, []).append(IdPatch(id=new_key, raw=name, fixed_raw=new_name, pos=pos))
    return out


def run(ctx: LangContext) -> ExecutionResult:
    query = ctx.modify_query
    if query is None or not query.data:
        return _invalid("缺少修改内容")

    if query.type == EDIT_VALUE:
        try:
            payloads = _edit_payloads(ctx, query)
        except KeyError as e:
            return _invalid(e.args[0])
        ctx.update_payloads.extend(payloads)
        ctx.modify_query = None
        return rewrite.run(ctx)

    if query.type != RENAME:
        return _invalid(f"未知的修改类型：{query.type}")

    # 旧 key 按显示名解析成 id（平铺结构里 common.ok -> common\\.ok）
    pairs = [(resolve_name(ctx, item.get("key", "")) or item.get("key", ""), item.get("newKey", "")) for item in query.data]
    targets = [new for _, new in pairs]
    for old_key, new_key in pairs:
        if old_key not in ctx.lang_dictionary:
            return _invalid(f"词条不存在：{old_key}")
        if not new_key or new_key == old_key:
            return _invalid(f"新 key 无效：{new_key!r}")
        if resolve_name(ctx, new_key) is not None or targets.count(new_key) > 1:
            return _invalid(f"新 key 已存在：{new_key}")

    for old_key, new_key in pairs:
        entry = ctx.lang_dictionary[old_key]
        ctx.update_payloads.append(UpdatePayload(
            type=PayloadType.RENAME,
            key=old_key,
            key_change=KeyChange(key_after=new_key, file_pos_before=entry.file_scope),
        ))
        for path, patches in _call_site_patches(ctx, old_key, new_key).items():
            ctx.patched_entry_id_info.setdefault(path, []).extend(patches)

    res = rewrite.run(ctx)
    ctx.modify_query = None
    return res
