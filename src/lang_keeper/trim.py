from __future__ import annotations

from typing import List

from . import rewrite
from .context import LangContext
from .models import ExecutionResult, PayloadType, ResultCode, UpdatePayload, ValueChange


def run(ctx: LangContext) -> ExecutionResult:
    """删除 trim_key_list 中的词条（所有语言）。"""
    keys = [k for k in ctx.trim_key_list if k in ctx.lang_dictionary]
    if not keys:
        return ExecutionResult(success=True, message="⚠️ 没有需要删除的词条", code=ResultCode.NO_TRIM_ENTRIES)

    payloads: List[UpdatePayload] = []
    for key in keys:
        values = ctx.lang_dictionary[key].value
        payloads.append(UpdatePayload(
            type=PayloadType.DELETE,
            key=key,
            value_changes={lang: ValueChange(before=v) for lang, v in values.items() if v},
        ))
    ctx.update_payloads.extend(payloads)
    res = rewrite.run(ctx)
    if not res.success:
        return res
    return ExecutionResult.ok(f"🗑️ 已删除 {len(keys)} 条词条", deleted=keys, files=res.data.get("files", []))
