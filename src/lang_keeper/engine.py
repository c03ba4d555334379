from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import check, diff_sheets, excel, extract, fix, modify, read, rewrite, sort, trim
from .context import LangContext
from .langs import resolve_lang
from .models import ExecutionResult, NamespaceStrategy, ResultCode

AUTO_STRATEGIES = (NamespaceStrategy.FULL, NamespaceStrategy.FILE, NamespaceStrategy.NONE)

# 只影响单次任务、不需要重新读取的选项
TASK_INPUTS = frozenset({
    "export_path", "import_path", "rewrite_flag", "trim_key_list",
    "modify_query", "fix_query", "extract_query", "translator", "is_cancelled",
})

Handler = Callable[[LangContext], ExecutionResult]


class LangKeeper:
    """
    会话入口：持有一个 LangContext，按 task 调度各个 handler。
    同一时间只允许一个任务在跑，重入直接返回 PROCESSING。
    """

    def __init__(self, ctx: Optional[LangContext] = None) -> None:
        self.ctx = ctx or LangContext()
        self._lock = threading.Lock()
        self._dirty = True
        self._remember_options()

    # ----------------------------
    # 配置
    # ----------------------------
    def _remember_options(self) -> None:
        # 这三项在读取时会被解析成具体值，这里保留用户原始设置
        self._namespace_option = self.ctx.namespace_strategy
        self._structure_option = self.ctx.language_structure
        self._referred_option = self.ctx.referred_lang

    def set_options(self, **partial: Any) -> None:
        self.ctx.apply_options(partial)
        if set(partial) - TASK_INPUTS:
            self._dirty = True
        if {"namespace_strategy", "language_structure", "referred_lang"} & set(partial):
            self._remember_options()

    def public_context(self) -> Dict[str, Any]:
        return self.ctx.public()

    @property
    def detected_lang_list(self) -> List[str]:
        return self.ctx.detected_lang_list

    @property
    def lang_detail(self) -> Dict[str, Any]:
        c = self.ctx
        return {
            "lang_list": c.detected_lang_list,
            "dictionary": c.lang_dictionary,
            "country_map": c.lang_country_map,
            "lack": c.lack_info,
            "null": c.null_info,
            "extra": c.extra_info,
            "used": list(c.used_key_set),
            "unused": list(c.unused_key_set),
            "undefined": c.undefined_entry_map,
            "used_map": c.used_entry_map,
            "tree": c.entry_tree,
            "file_structure": c.file_structure,
            "file_extra_info": c.lang_file_extra_info,
            "update_payloads": c.update_payloads,
            "patched_ids": c.patched_entry_id_info,
        }

    # ----------------------------
    # 读取
    # ----------------------------
    def _read_once(self, strategy: NamespaceStrategy) -> None:
        self.ctx.namespace_strategy = strategy
        self.ctx.language_structure = self._structure_option
        read.read_lang_files(self.ctx)
        read.start_census(self.ctx)

    def _read(self) -> bool:
        if self._namespace_option != NamespaceStrategy.AUTO:
            self._read_once(self._namespace_option)
        else:
            for strategy in AUTO_STRATEGIES:
                if strategy == NamespaceStrategy.FILE and self.ctx.file_nested_level == 1:
                    # 只有一层目录时 file 与 full 等价
                    continue
                self._read_once(strategy)
                if not self.ctx.is_multi_file or not self.ctx.project_path or self.ctx.used_key_set:
                    break
        if not self.ctx.detected_lang_list:
            return False
        self.ctx.referred_lang = self._resolve_referred(self._referred_option)
        return True

    def _resolve_referred(self, target: str) -> str:
        langs = self.ctx.detected_lang_list
        custom = self.ctx.lang_alias_custom_mappings

        def key_of(name: str) -> Optional[str]:
            intro = resolve_lang(name, custom)
            return intro.key if intro else None

        if target in langs:
            return target
        wanted = key_of(target) if target else None
        for cond in (
                lambda x: wanted is not None and key_of(x) == wanted,
                lambda x: key_of(x) == "en",
                lambda x: key_of(x) is not None,
        ):
            hit = next((x for x in langs if cond(x)), None)
            if hit is not None:
                return hit
        return ""

    def _check(self) -> ExecutionResult:
        if not self._read():
            return ExecutionResult.fail(ResultCode.NO_LANG_PATH_DETECTED, f"❌ 未检测到语言文件：{self.ctx.lang_path}")
        check.run(self.ctx)
        self._dirty = False
        return ExecutionResult.ok(
            "✅ 检查完成",
            lack=self.ctx.lack_info,
            null=self.ctx.null_info,
            extra=self.ctx.extra_info,
            undefined=len(self.ctx.undefined_entry_list),
            unused=len(self.ctx.unused_key_set),
        )

    # ----------------------------
    # 调度
    # ----------------------------
    def _handlers(self, partial: Dict[str, Any]) -> Dict[str, Tuple[Handler, ResultCode, bool]]:
        """task -> (handler, 异常时的错误码, 成功后是否重新读取)"""
        commit = partial.get("commit")
        out_path = partial.get("out_path")
        return {
            "fix": (fix.run, ResultCode.UNKNOWN_FIX_ERROR, True),
            "rewrite": (rewrite.run, ResultCode.UNKNOWN_REWRITE_ERROR, True),
            "sort": (sort.run, ResultCode.UNKNOWN_REWRITE_ERROR, True),
            "export": (excel.export, ResultCode.UNKNOWN_EXPORT_ERROR, False),
            "import": (excel.import_, ResultCode.UNKNOWN_IMPORT_ERROR, True),
            "trim": (trim.run, ResultCode.UNKNOWN_EXPORT_ERROR, True),
            "modify": (modify.run, ResultCode.UNKNOWN_MODIFY_ERROR, True),
            "extract": (extract.run, ResultCode.UNKNOWN_EXTRACT_ERROR, True),
            "exportDiff": (lambda c: diff_sheets.export_diff(c, commit, out_path), ResultCode.UNKNOWN_EXPORT_ERROR, False),
            "importDiff": (diff_sheets.import_diff, ResultCode.UNKNOWN_IMPORT_ERROR, True),
        }

    def execute(self, task: str, **partial: Any) -> ExecutionResult:
        if not self._lock.acquire(blocking=False):
            return ExecutionResult(success=False, message="⚠️ 正在处理中，请稍后", code=ResultCode.PROCESSING)
        try:
            extra = {k: partial.pop(k) for k in ("commit", "out_path") if k in partial}
            if partial:
                self.set_options(**partial)
            if task == "check":
                try:
                    return self._check()
                except Exception as e:
                    return ExecutionResult.fail(ResultCode.UNKNOWN_CHECK_ERROR, f"❌ 检查失败：{e}")

            handlers = self._handlers(extra)
            if task not in handlers:
                return ExecutionResult.fail(ResultCode.UNKNOWN_ERROR, f"❌ 未知任务：{task}")
            handler, error_code, refresh = handlers[task]

            if self._dirty or not self.ctx.detected_lang_list:
                try:
                    res = self._check()
                except Exception as e:
                    return ExecutionResult.fail(ResultCode.UNKNOWN_CHECK_ERROR, f"❌ 检查失败：{e}")
                if not res.success:
                    return res

            try:
                res = handler(self.ctx)
            except Exception as e:
                self.ctx.update_payloads = []
                self.ctx.patched_entry_id_info = {}
                # 失败后磁盘与模型可能不一致，下次任务重新读取
                self._dirty = True
                return ExecutionResult.fail(error_code, f"❌ {task} 失败：{e}")

            if not res.success:
                self._dirty = True
            elif refresh:
                try:
                    if not self._check().success:
                        self._dirty = True
                except Exception as e:
                    self._dirty = True
                    res = replace(res, message=f"{res.message}（刷新失败：{e}）")
            return res
        finally:
            self._lock.release()
