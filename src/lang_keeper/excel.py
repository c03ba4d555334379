from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from . import rewrite
from .context import LangContext
from .langs import header_candidates, lang_display_name, normalize_header
from .models import ExecutionResult, ImportMode, PayloadType, ResultCode, UpdatePayload, ValueChange
from .sort import get_sorted_keys
from .workbook import Sheet, cell_text, read_workbook, write_workbook

KEY_HEADERS = ("key", "label")


# ----------------------------
# 表头
# ----------------------------
def lang_titles(ctx: LangContext, langs: List[str]) -> Dict[str, str]:
    """语言 -> 表头标题（英文名）；重名时追加语言代码。"""
    custom = ctx.lang_alias_custom_mappings
    raw = {lang: lang_display_name(lang, custom) or lang for lang in langs}
    seen: Dict[str, int] = {}
    for title in raw.values():
        seen[title] = seen.get(title, 0) + 1
    return {lang: (f"{title} ({lang})" if seen[title] > 1 else title) for lang, title in raw.items()}


def find_key_column(header: List[str]) -> Optional[int]:
    for i, h in enumerate(header):
        if normalize_header(h) in KEY_HEADERS:
            return i
    return None


def find_lang_columns(ctx: LangContext, header: List[str], langs: List[str]) -> Dict[str, int]:
    """按别名 / 显示名匹配表头中的语言列。"""
    titles = lang_titles(ctx, langs)
    normalized = [normalize_header(h) for h in header]
    out: Dict[str, int] = {}
    for lang in langs:
        candidates = header_candidates(lang, ctx.lang_alias_custom_mappings)
        candidates.add(normalize_header(titles[lang]))
        for i, h in enumerate(normalized):
            if h and h in candidates and i not in out.values():
                out[lang] = i
                break
    return out


# ----------------------------
# 导出
# ----------------------------
def export(ctx: LangContext) -> ExecutionResult:
    if not ctx.export_path:
        return ExecutionResult.fail(ResultCode.INVALID_EXPORT_PATH, "❌ 导出路径为空")
    langs = ctx.detected_lang_list
    titles = lang_titles(ctx, langs)
    rows: List[List[object]] = [["Key", *[titles[x] for x in langs]]]
    for key in get_sorted_keys(ctx, ctx.sorting_export_mode):
        entry = ctx.lang_dictionary.get(key)
        if entry is None:
            continue
        rows.append([key, *[entry.value.get(lang) for lang in langs]])

    path = Path(ctx.export_path)
    write_workbook(path, [Sheet(name="Sheet1", rows=rows)])
    return ExecutionResult.ok(f"✅ 已导出 {len(rows) - 1} 条词条：{path}", path=str(path), count=len(rows) - 1)


# ----------------------------
# 导入
# ----------------------------
def _edit_payload(ctx: LangContext, key: str, row: List[object], lang_cols: Dict[str, int]) -> Optional[UpdatePayload]:
    entry = ctx.lang_dictionary[key]
    changes: Dict[str, ValueChange] = {}
    for lang, idx in lang_cols.items():
        new = cell_text(row, idx)
        old = entry.value.get(lang)
        if new.strip() and new != old:
            changes[lang] = ValueChange(before=old, after=new)
    if not changes:
        return None
    return UpdatePayload(type=PayloadType.EDIT, key=key, value_changes=changes)


def _baseline_index(ctx: LangContext, lang: str) -> Dict[str, List[str]]:
    index: Dict[str, List[str]] = {}
    for key, value in ctx.lang_country_map.get(lang, {}).items():
        index.setdefault(value, []).append(key)
    return index


def import_(ctx: LangContext) -> ExecutionResult:
    if not ctx.import_path or not Path(ctx.import_path).is_file():
        return ExecutionResult.fail(ResultCode.INVALID_EXPORT_PATH, f"❌ 导入文件不存在：{ctx.import_path}")

    langs = ctx.detected_lang_list
    baseline = ctx.baseline_language or ctx.referred_lang
    payloads: List[UpdatePayload] = []
    lang_found = False

    for sheet in read_workbook(Path(ctx.import_path)):
        if not sheet.rows:
            continue
        header = sheet.header
        lang_cols = find_lang_columns(ctx, header, langs)
        if lang_cols:
            lang_found = True

        if ctx.import_mode == ImportMode.LANGUAGE:
            base_idx = lang_cols.get(baseline)
            if base_idx is None:
                continue
            index = _baseline_index(ctx, baseline)
            targets = {lang: idx for lang, idx in lang_cols.items() if lang != baseline}
            for row in sheet.body:
                for key in index.get(cell_text(row, base_idx), []):
                    p = _edit_payload(ctx, key, row, targets)
                    if p is not None:
                        payloads.append(p)
            continue

        key_idx = find_key_column(header)
        if key_idx is None:
            return ExecutionResult.fail(ResultCode.IMPORT_NO_KEY, f"❌ 工作表 {sheet.name} 缺少 Key 列")
        for row in sheet.body:
            key = cell_text(row, key_idx).strip()
            if key not in ctx.lang_dictionary:
                continue
            p = _edit_payload(ctx, key, row, lang_cols)
            if p is not None:
                payloads.append(p)

    if not lang_found:
        return ExecutionResult.fail(ResultCode.IMPORT_NO_LANG, "❌ 表格中没有识别到任何语言列")

    ctx.update_payloads.extend(payloads)
    if ctx.rewrite_flag and payloads:
        return rewrite.run(ctx)
    return ExecutionResult.ok(f"✅ 识别到 {len(payloads)} 条待更新词条", count=len(payloads))
