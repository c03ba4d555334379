from __future__ import annotations

import dataclasses
import re
import subprocess
import tempfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from . import rewrite
from .context import LangContext
from .excel import lang_titles
from .langs import header_candidates, normalize_header
from .models import ExecutionResult, PayloadType, ResultCode, UpdatePayload, ValueChange
from .read import read_lang_files
from .workbook import Sheet, cell_text, read_workbook, write_workbook

MAX_COMMIT_OPTIONS = 80
ACTION_ORDER = {"ADD": 1, "MODIFY": 2, "DELETE": 3}
_LOG_FORMAT = "--pretty=format:%H%x09%h%x09%cs%x09%s"

# id -> {lang: value}
Snapshot = Dict[str, Dict[str, str]]


class GitError(RuntimeError):
    pass


@dataclass(frozen=True)
class CommitInfo:
    hash: str
    short: str
    date: str
    subject: str

    @property
    def label(self) -> str:
        return f"{self.short} {self.date} {self.subject}"


@dataclass(frozen=True)
class RepoMeta:
    project_name: str
    branch: str = "-"
    head: Optional[CommitInfo] = None
    dirty: bool = False


@dataclass
class DiffRecord:
    action: str
    key: str
    changed_langs: List[str] = field(default_factory=list)
    old_values: Dict[str, str] = field(default_factory=dict)
    new_values: Dict[str, str] = field(default_factory=dict)


# ----------------------------
# git
# ----------------------------
def run_git(args: List[str], *, binary: bool = False):
    cmd = ["git", *args]
    try:
        p = subprocess.run(cmd, capture_output=True, text=not binary, check=False)
    except OSError as e:
        raise GitError(f"无法执行 git：{e}") from e
    if p.returncode != 0:
        err = p.stderr.decode("utf-8", "replace") if binary else p.stderr
        raise GitError(f"执行命令失败: {' '.join(cmd)}\nexit code: {p.returncode}\nstderr:\n{err}")
    return p.stdout


def _parse_log_line(line: str) -> Optional[CommitInfo]:
    parts = line.strip().split("\t")
    if len(parts) < 4:
        return None
    return CommitInfo(hash=parts[0], short=parts[1], date=parts[2], subject=parts[3])


def list_commits(project_path: str, rel_lang_path: str = "") -> List[CommitInfo]:
    args = ["-C", project_path, "log", f"--max-count={MAX_COMMIT_OPTIONS}", "--date=short", _LOG_FORMAT]
    if rel_lang_path:
        args += ["--", rel_lang_path]
    out: List[CommitInfo] = []
    for line in run_git(args).splitlines():
        c = _parse_log_line(line)
        if c is not None:
            out.append(c)
    return out


def materialize(project_path: str, commit: str, rel_lang_path: str, target_root: Path) -> List[Path]:
    """把某个提交里的语言目录还原到 target_root 下（保持相对路径）。"""
    listing = run_git(["-C", project_path, "ls-tree", "-r", "--name-only", commit, "--", rel_lang_path])
    written: List[Path] = []
    for name in (x.strip() for x in listing.splitlines()):
        if not name:
            continue
        content = run_git(["-C", project_path, "show", f"{commit}:./{name}"], binary=True)
        target = target_root.joinpath(*name.split("/"))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        written.append(target)
    return written


def project_name(project_path: str) -> str:
    raw = Path(project_path or "").resolve().name.strip() or "project"
    return re.sub(r'[<>:"/\\|?*\s]+', "-", raw)


def repo_meta(project_path: str) -> RepoMeta:
    name = project_name(project_path)
    try:
        branch = run_git(["-C", project_path, "rev-parse", "--abbrev-ref", "HEAD"]).strip() or "-"
        head = _parse_log_line(run_git(["-C", project_path, "log", "-1", "--date=short", _LOG_FORMAT]))
        dirty = bool(run_git(["-C", project_path, "status", "--porcelain"]).strip())
    except GitError:
        return RepoMeta(project_name=name)
    return RepoMeta(project_name=name, branch=branch, head=head, dirty=dirty)


def default_output_name(project_path: str, commit: str) -> str:
    return f"{project_name(project_path)}-i18n-diff-{commit[:7]}-{date.today():%Y%m%d}.xlsx"


# ----------------------------
# diff
# ----------------------------
def snapshot(ctx: LangContext) -> Snapshot:
    return {k: dict(e.value) for k, e in ctx.lang_dictionary.items()}


def build_records(current: Snapshot, baseline: Snapshot, langs: List[str]) -> List[DiffRecord]:
    records: List[DiffRecord] = []
    for key in {*current.keys(), *baseline.keys()}:
        has_next = key in current
        has_prev = key in baseline
        old = {lang: baseline.get(key, {}).get(lang, "") for lang in langs}
        new = {lang: current.get(key, {}).get(lang, "") for lang in langs}
        changed = [lang for lang in langs if old[lang] != new[lang]]
        if has_prev and not has_next:
            action = "DELETE"
        elif has_next and not has_prev:
            action = "ADD"
        elif changed:
            action = "MODIFY"
        else:
            continue
        records.append(DiffRecord(action=action, key=key, changed_langs=changed, old_values=old, new_values=new))
    records.sort(key=lambda r: (ACTION_ORDER[r.action], r.key.lower(), r.key))
    return records


def order_langs(langs: List[str], source: str) -> List[str]:
    if source not in langs:
        return list(langs)
    return [source, *[x for x in langs if x != source]]


def build_sheets(
        ctx: LangContext,
        records: List[DiffRecord],
        langs: List[str],
        commit: CommitInfo,
        source: str,
        meta: RepoMeta,
) -> List[Sheet]:
    titles = lang_titles(ctx, langs)
    cols = [titles[x] for x in langs]

    add_rows: List[List[object]] = [["key", *cols]]
    modify_rows: List[List[object]] = [["key", "changed_languages", *[t for c in cols for t in (f"{c} (old)", f"{c} (new)")]]]
    delete_rows: List[List[object]] = [["key", *cols]]
    for r in records:
        if r.action == "ADD":
            add_rows.append([r.key, *[r.new_values[x] for x in langs]])
        elif r.action == "DELETE":
            delete_rows.append([r.key, *[r.old_values[x] for x in langs]])
        else:
            row: List[object] = [r.key, ", ".join(titles[x] for x in r.changed_langs)]
            for x in langs:
                if r.old_values[x] == r.new_values[x]:
                    row += ["", ""]
                else:
                    row += [r.old_values[x], r.new_values[x]]
            modify_rows.append(row)

    head = meta.head
    new_node = f"{head.short} ({head.date}) {head.subject}" if head else "-"
    if meta.dirty:
        new_node += "（含未提交改动）"
    readme: List[List[object]] = [
        ["说明", "多语言词条差异表：对比基线提交与当前工作区"],
        ["项目", meta.project_name],
        ["分支", meta.branch],
        ["旧节点", f"{commit.short} ({commit.date}) {commit.subject}"],
        ["新节点", new_node],
        ["源语言", titles.get(source, source) or "-"],
        ["ADD", "新增的词条：填写各语言译文"],
        ["MODIFY", "修改过的词条：只需关注 (new) 列"],
        ["DELETE", "删除的词条：仅供参考，导入时忽略"],
        ["导入", "lang_keeper import-diff <file> 只会读取 ADD / MODIFY 中非空且有变化的单元格"],
    ]
    return [
        Sheet(name="README", rows=readme),
        Sheet(name="ADD", rows=add_rows),
        Sheet(name="MODIFY", rows=modify_rows),
        Sheet(name="DELETE", rows=delete_rows),
    ]


def export_diff(ctx: LangContext, commit: CommitInfo, out_path: Path) -> ExecutionResult:
    """当前目录 vs 基线提交 -> README / ADD / MODIFY / DELETE 四个工作表。"""
    if not ctx.detected_lang_list:
        return ExecutionResult.fail(ResultCode.NO_LANG_PATH_DETECTED, "❌ 没有检测到语言文件")
    try:
        rel = Path(ctx.lang_path).resolve().relative_to(Path(ctx.project_path).resolve()).as_posix()
    except ValueError:
        return ExecutionResult.fail(ResultCode.INVALID_EXPORT_PATH, "❌ 语言目录不在项目目录内")

    current = snapshot(ctx)
    current_langs = list(ctx.detected_lang_list)
    with tempfile.TemporaryDirectory(prefix="lang-keeper-diff-") as tmp:
        materialize(ctx.project_path, commit.hash, rel, Path(tmp))
        base_ctx = dataclasses.replace(ctx, lang_path=str(Path(tmp).joinpath(*rel.split("/"))))
        read_lang_files(base_ctx)
        baseline = snapshot(base_ctx)
        baseline_langs = list(base_ctx.detected_lang_list)

    langs = list(dict.fromkeys(current_langs + baseline_langs))
    source = ctx.referred_lang if ctx.referred_lang in langs else (langs[0] if langs else "")
    ordered = order_langs(langs, source)
    records = build_records(current, baseline, langs)
    write_workbook(out_path, build_sheets(ctx, records, ordered, commit, source, repo_meta(ctx.project_path)))

    counts = {a: sum(1 for r in records if r.action == a) for a in ACTION_ORDER}
    return ExecutionResult.ok(
        f"✅ 已导出 {len(records)} 条差异：{out_path}",
        path=str(out_path),
        counts=counts,
    )


# ----------------------------
# 导入
# ----------------------------
def _find_index(header: List[str], candidates: List[str]) -> Optional[int]:
    wanted = {normalize_header(c) for c in candidates}
    for i, h in enumerate(header):
        if normalize_header(h) in wanted:
            return i
    return None


def _lang_columns(ctx: LangContext, header: List[str], sheet_type: str) -> Dict[str, int]:
    titles = lang_titles(ctx, ctx.detected_lang_list)
    out: Dict[str, int] = {}
    for lang in ctx.detected_lang_list:
        base = sorted(header_candidates(lang, ctx.lang_alias_custom_mappings) | {normalize_header(titles[lang])})
        if sheet_type == "MODIFY":
            idx = _find_index(header, [f"{x} (new)" for x in base] + [f"{x}_new" for x in base])
            if idx is None:
                idx = _find_index(header, base)
        else:
            idx = _find_index(header, base)
        if idx is not None:
            out[lang] = idx
    return out


def parse_diff_sheets(ctx: LangContext, sheets: List[Sheet]) -> Tuple[List[UpdatePayload], int]:
    """返回 (edit payloads, 表里有但当前词条表里没有的 key 数)。"""
    by_name = {s.name.strip().upper(): s for s in sheets}
    if "ADD" not in by_name and "MODIFY" not in by_name:
        raise ValueError("未找到 ADD / MODIFY 工作表")

    edits: Dict[Tuple[str, str], UpdatePayload] = {}
    missing = 0
    for sheet_type in ("ADD", "MODIFY"):
        sheet = by_name.get(sheet_type)
        if sheet is None or not sheet.rows:
            continue
        header = sheet.header
        key_idx = _find_index(header, ["key"])
        if key_idx is None:
            raise KeyError(f"工作表 {sheet.name} 缺少 key 列")
        cols = _lang_columns(ctx, header, sheet_type)
        for row in sheet.body:
            key = cell_text(row, key_idx).strip()
            if not key:
                continue
            entry = ctx.lang_dictionary.get(key)
            if entry is None:
                missing += 1
                continue
            for lang, idx in cols.items():
                new = cell_text(row, idx).strip()
                old = entry.value.get(lang, "")
                if not new or new == old:
                    continue
                edits[(key, lang)] = UpdatePayload(
                    type=PayloadType.EDIT,
                    key=key,
                    value_changes={lang: ValueChange(before=old, after=new)},
                )
    return list(edits.values()), missing


def import_diff(ctx: LangContext) -> ExecutionResult:
    if not ctx.import_path or not Path(ctx.import_path).is_file():
        return ExecutionResult.fail(ResultCode.INVALID_EXPORT_PATH, f"❌ 导入文件不存在：{ctx.import_path}")
    try:
        payloads, missing = parse_diff_sheets(ctx, read_workbook(Path(ctx.import_path)))
    except KeyError as e:
        return ExecutionResult.fail(ResultCode.IMPORT_NO_KEY, f"❌ {e.args[0]}")
    except ValueError as e:
        return ExecutionResult.fail(ResultCode.UNKNOWN_IMPORT_ERROR, f"❌ {e}")

    if not payloads:
        msg = "⚠️ 没有可导入的改动"
        if missing:
            msg += f"（{missing} 个 key 在当前词条表中不存在）"
        return ExecutionResult.ok(msg, count=0, missing=missing)

    ctx.update_payloads.extend(payloads)
    if ctx.rewrite_flag:
        res = rewrite.run(ctx)
        if not res.success:
            return res
    msg = f"✅ 已导入 {len(payloads)} 处改动"
    if missing:
        msg += f"，跳过 {missing} 个不存在的 key"
    return ExecutionResult.ok(msg, count=len(payloads), missing=missing)
