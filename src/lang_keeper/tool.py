from __future__ import annotations

import argparse
import shutil
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, List, Optional

from rich.console import Console
from rich.status import Status
from rich.table import Table
from rich.theme import Theme

from . import __version__
from .check import has_issues
from .config import CONFIG_FILE, ConfigError, KeeperConfig, assert_config_ok, init_config, to_options
from .context import ExtractQuery, FixQuery, ModifyQuery
from .diff_sheets import CommitInfo, GitError, default_output_name, list_commits
from .engine import LangKeeper
from .extract import collect_candidates
from .langs import lang_display_name
from .models import ExecutionResult, ImportMode, ResultCode, SortMode
from .modify import EDIT_VALUE, RENAME

BOX_TOOL = {
    "id": "frontend.lang_keeper",
    "name": "lang_keeper",
    "category": "frontend",
    "summary": "前端 i18n 词条维护：检查缺失/空值/冗余，排序，Excel 导入导出，Git 差异表，清理未使用词条（支持交互）",
    "usage": [
        "lang_keeper",
        "lang_keeper init",
        "lang_keeper doctor",
        "lang_keeper check",
        "lang_keeper sort --mode byKey",
        "lang_keeper export --out i18n.xlsx",
        "lang_keeper import --file i18n.xlsx",
        "lang_keeper export-diff --commit a1b2c3d",
        "lang_keeper import-diff --file diff.xlsx",
        "lang_keeper trim --yes",
        "lang_keeper fix --fill-with-original",
        "lang_keeper edit --key app.title --lang en --value Hello",
        "lang_keeper rename --key old.key --new-key new.key",
        "lang_keeper extract --scope src/views --prefix home",
    ],
    "options": [
        {"flag": "--config", "desc": f"配置文件路径（基于 project-root，默认 {CONFIG_FILE}）"},
        {"flag": "--project-root", "desc": "项目根目录（默认当前目录）"},
        {"flag": "--no-exitcode-3", "desc": "check 发现问题时仍返回 0（默认返回 3）"},
        {"flag": "--out", "desc": "export / export-diff 输出的 xlsx 路径"},
        {"flag": "--file", "desc": "import / import-diff 读取的 xlsx 路径"},
        {"flag": "--commit", "desc": "export-diff 的基线提交（不填则交互选择）"},
        {"flag": "--mode", "desc": "sort 的排序方式（byKey / byPosition）或 import 的匹配方式（key / language）"},
        {"flag": "--key", "desc": "edit / rename / trim 的词条 key（trim 可重复）"},
        {"flag": "--scope", "desc": "extract 只扫描的目录（相对 projectPath）"},
        {"flag": "--prefix", "desc": "extract 生成 key 的前缀"},
        {"flag": "--yes", "desc": "trim / extract 跳过确认"},
    ],
    "examples": [
        {"cmd": "lang_keeper init", "desc": f"生成 {CONFIG_FILE} 模板（含详细注释）"},
        {"cmd": "lang_keeper check", "desc": "按语言输出缺失 / 空值 / 冗余词条，发现问题返回 3"},
        {"cmd": "lang_keeper export-diff", "desc": "选择一个历史提交，导出当前语言文件与它的差异表"},
        {"cmd": "lang_keeper trim --yes", "desc": "删除代码中未使用的词条（不询问）"},
    ],
    "dependencies": [
        "PyYAML>=6.0",
        "rich>=13.0.0",
        "openpyxl>=3.1",
    ],
    "docs": "README.md",
}

# Exit codes
EXIT_OK = 0
EXIT_FAIL = 1
EXIT_BAD = 2
EXIT_ISSUES = 3

ACTIONS = [
    "menu", "init", "doctor", "check", "sort", "export", "import",
    "export-diff", "import-diff", "trim", "fix", "edit", "rename", "extract",
]


# =========================================================
# Output
# =========================================================
def make_console() -> Console:
    theme = Theme(
        {
            "ok": "bold green",
            "warn": "yellow",
            "error": "bold red",
            "meta": "dim",
        }
    )
    return Console(theme=theme, highlight=False)


@contextmanager
def _status(console: Console, text: str):
    with Status(text, console=console, spinner="dots"):
        yield


def print_result(console: Console, res: ExecutionResult) -> int:
    style = "ok" if res.success else "error"
    if res.success and res.code != ResultCode.SUCCESS:
        style = "warn"
    console.print(res.message, style=style)
    return EXIT_OK if res.success else EXIT_FAIL


def render_check(console: Console, keeper: LangKeeper) -> Table:
    ctx = keeper.ctx
    table = Table(title=f"检查结果（参考语言：{ctx.referred_lang or '-'}）")
    table.add_column("语言")
    table.add_column("词条数", justify="right")
    table.add_column("缺失", justify="right")
    table.add_column("空值", justify="right")
    table.add_column("冗余", justify="right")
    for lang in ctx.detected_lang_list:
        name = lang_display_name(lang, ctx.lang_alias_custom_mappings)
        label = f"{lang} ({name})" if name and name != lang else lang
        table.add_row(
            label,
            str(len(ctx.lang_country_map.get(lang, {}))),
            str(len(ctx.lack_info.get(lang, []))),
            str(len(ctx.null_info.get(lang, []))),
            str(len(ctx.extra_info.get(lang, []))),
        )
    console.print(table)
    return table


def _print_keys(console: Console, title: str, info, limit: int = 20) -> None:
    for lang, keys in info.items():
        if not keys:
            continue
        console.print(f"[warn]{title}[/warn] {lang}（{len(keys)}）")
        for k in keys[:limit]:
            console.print(f"  - {k}", style="meta")
        if len(keys) > limit:
            console.print(f"  ... 还有 {len(keys) - limit} 条", style="meta")


def report_check(console: Console, keeper: LangKeeper, verbose: bool = True) -> None:
    ctx = keeper.ctx
    render_check(console, keeper)
    if verbose:
        _print_keys(console, "缺失", ctx.lack_info)
        _print_keys(console, "空值", ctx.null_info)
        _print_keys(console, "冗余", ctx.extra_info)
    if ctx.project_path:
        console.print(
            f"代码引用：已使用 {len(ctx.used_key_set)}，未使用 {len(ctx.unused_key_set)}，"
            f"未定义调用 {len(ctx.undefined_entry_list)}",
            style="meta",
        )
        for call in ctx.undefined_entry_list[:20]:
            console.print(f"  ⚠️ {call.text!r}  {call.path}", style="meta")


# =========================================================
# Interactive
# =========================================================
def _read_choice(prompt: str, valid: Iterable[str]) -> str:
    valid_set = {v.lower() for v in valid}
    while True:
        s = input(prompt).strip().lower()
        if s in valid_set:
            return s
        if s in ("q", "quit", "exit"):
            return "0"
        print(f"请输入 {' / '.join(sorted(valid_set))}（或 q 退出）")


def _confirm(prompt: str) -> bool:
    return input(f"{prompt} [y/N]: ").strip().lower() in ("y", "yes")


MENU = [
    ("check", "检查缺失 / 空值 / 冗余（check）"),
    ("sort", "排序并重写语言文件（sort）"),
    ("export", "导出 Excel（export）"),
    ("import", "从 Excel 导入（import）"),
    ("export-diff", "导出 Git 差异表（export-diff）"),
    ("import-diff", "导入差异表（import-diff）"),
    ("trim", "删除未使用词条（trim）"),
    ("fix", "补全缺失词条（fix）"),
    ("extract", "提取硬编码文案（extract）"),
]


def choose_action_interactive() -> str:
    print("请选择操作：")
    for i, (_, label) in enumerate(MENU, start=1):
        print(f"{i} - {label}")
    print("0 - 退出")
    valid = [str(i) for i in range(len(MENU) + 1)]
    choice = _read_choice(f"请输入 0 - {len(MENU)}（或 q 退出）: ", valid=valid)
    if choice == "0":
        return "exit"
    return MENU[int(choice) - 1][0]


def choose_commit_interactive(console: Console, commits: List[CommitInfo]) -> Optional[CommitInfo]:
    if not commits:
        console.print("❌ 没有找到语言目录相关的提交", style="error")
        return None
    shown = commits[:20]
    for i, c in enumerate(shown, start=1):
        console.print(f"{i:>2} - {c.short} {c.date} {c.subject}")
    console.print(" 0 - 取消")
    valid = [str(i) for i in range(len(shown) + 1)]
    choice = _read_choice("请选择基线提交: ", valid=valid)
    if choice == "0":
        return None
    return shown[int(choice) - 1]


def _pick_commit(commits: List[CommitInfo], wanted: str) -> Optional[CommitInfo]:
    for c in commits:
        if c.hash.startswith(wanted) or c.short == wanted:
            return c
    return None


# =========================================================
# Actions
# =========================================================
def _rel_lang_path(keeper: LangKeeper) -> str:
    ctx = keeper.ctx
    try:
        return Path(ctx.lang_path).resolve().relative_to(Path(ctx.project_path).resolve()).as_posix()
    except ValueError:
        return ""


def run_check(console: Console, keeper: LangKeeper, no_exitcode_3: bool = False) -> int:
    with _status(console, "正在读取语言文件并扫描代码..."):
        res = keeper.execute("check")
    if not res.success:
        return print_result(console, res)
    report_check(console, keeper)
    if has_issues(keeper.ctx):
        console.print("⚠️ 发现缺失 / 空值 / 冗余词条", style="warn")
        return EXIT_OK if no_exitcode_3 else EXIT_ISSUES
    console.print("✅ 没有发现问题", style="ok")
    return EXIT_OK


def run_doctor(console: Console, cfg_path: Path, root: Path) -> int:
    ok = True
    try:
        cfg = assert_config_ok(cfg_path)
        console.print(f"✅ {cfg_path.name} OK", style="ok")
    except ConfigError as e:
        console.print(f"❌ {e}", style="error")
        return EXIT_BAD

    opts = to_options(cfg, root)
    lang_path = Path(opts["lang_path"])
    if not lang_path.is_dir():
        ok = False
        console.print(f"❌ 语言目录不存在：{lang_path}", style="error")
    if opts["project_path"] and not Path(opts["project_path"]).is_dir():
        ok = False
        console.print(f"❌ 源码目录不存在：{opts['project_path']}", style="error")

    if ok:
        keeper = LangKeeper()
        res = keeper.execute("check", **opts)
        if not res.success:
            ok = False
            console.print(res.message, style="error")
        else:
            langs = keeper.detected_lang_list
            console.print(
                f"✅ 语言：{', '.join(langs)}（参考语言：{keeper.ctx.referred_lang or '-'}，"
                f"格式：{keeper.ctx.lang_file_type}，{'多文件' if keeper.ctx.is_multi_file else '单文件'}）",
                style="ok",
            )
            if not keeper.ctx.referred_lang:
                console.print("⚠️ 未识别到参考语言（fix / export-diff 需要）", style="warn")

    if shutil.which("git") is None:
        console.print("⚠️ 未找到 git（export-diff 需要）", style="warn")
    else:
        console.print("✅ git OK", style="ok")

    if not ok:
        return EXIT_BAD
    console.print("✅ doctor 完成", style="ok")
    return EXIT_OK


def run_sort(console: Console, keeper: LangKeeper, mode: Optional[str]) -> int:
    opts = {}
    if mode:
        opts["sorting_write_mode"] = SortMode(mode)
    with _status(console, "正在排序..."):
        res = keeper.execute("sort", **opts)
    return print_result(console, res)


def run_export(console: Console, keeper: LangKeeper, out: str) -> int:
    with _status(console, "正在导出..."):
        res = keeper.execute("export", export_path=out)
    return print_result(console, res)


def run_import(console: Console, keeper: LangKeeper, file: str, mode: Optional[str], baseline: Optional[str]) -> int:
    opts = {"import_path": file, "rewrite_flag": True}
    if mode:
        opts["import_mode"] = ImportMode(mode)
    if baseline:
        opts["baseline_language"] = baseline
    with _status(console, "正在导入..."):
        res = keeper.execute("import", **opts)
    return print_result(console, res)


def run_export_diff(
        console: Console,
        keeper: LangKeeper,
        commit: Optional[str],
        out: Optional[str],
        interactive: bool,
) -> int:
    res = keeper.execute("check")
    if not res.success:
        return print_result(console, res)
    ctx = keeper.ctx
    try:
        commits = list_commits(ctx.project_path, _rel_lang_path(keeper))
    except GitError as e:
        console.print(f"❌ {e}", style="error")
        return EXIT_FAIL

    if commit:
        picked = _pick_commit(commits, commit)
        if picked is None:
            console.print(f"❌ 在语言目录的提交记录中找不到：{commit}", style="error")
            return EXIT_BAD
    elif interactive:
        picked = choose_commit_interactive(console, commits)
        if picked is None:
            return EXIT_OK
    else:
        console.print("❌ 请用 --commit 指定基线提交", style="error")
        return EXIT_BAD

    out_path = Path(out) if out else Path(ctx.project_path) / default_output_name(ctx.project_path, picked.hash)
    with _status(console, f"正在对比 {picked.short}..."):
        res = keeper.execute("exportDiff", commit=picked, out_path=out_path)
    return print_result(console, res)


def run_import_diff(console: Console, keeper: LangKeeper, file: str) -> int:
    with _status(console, "正在导入差异表..."):
        res = keeper.execute("importDiff", import_path=file, rewrite_flag=True)
    return print_result(console, res)


def run_trim(console: Console, keeper: LangKeeper, keys: List[str], yes: bool) -> int:
    if not keys:
        res = keeper.execute("check")
        if not res.success:
            return print_result(console, res)
        if not keeper.ctx.project_path:
            console.print("❌ 未配置 projectPath，无法判断未使用词条；请用 --key 指定", style="error")
            return EXIT_BAD
        keys = list(keeper.ctx.unused_key_set)
    if not keys:
        console.print("✅ 没有未使用的词条", style="ok")
        return EXIT_OK

    console.print(f"将删除 {len(keys)} 条词条：", style="warn")
    for k in keys[:50]:
        console.print(f"  - {k}", style="meta")
    if len(keys) > 50:
        console.print(f"  ... 还有 {len(keys) - 50} 条", style="meta")
    if not yes and not _confirm("确认删除？"):
        console.print("已取消", style="meta")
        return EXIT_OK

    res = keeper.execute("trim", trim_key_list=keys)
    return print_result(console, res)


def run_fix(console: Console, keeper: LangKeeper, fill_with_original: bool) -> int:
    opts = {"fix_query": FixQuery()}
    if fill_with_original:
        opts["fill_with_original"] = True
    elif keeper.ctx.translator is None and not keeper.ctx.fill_with_original:
        console.print("⚠️ 命令行未接入翻译器，缺失词条将使用参考语言原文补全", style="warn")
        opts["fill_with_original"] = True
    with _status(console, "正在补全..."):
        res = keeper.execute("fix", **opts)
    return print_result(console, res)


def run_extract(console: Console, keeper: LangKeeper, scope: Optional[str], prefix: Optional[str], yes: bool) -> int:
    res = keeper.execute("check")
    if not res.success:
        return print_result(console, res)
    if not keeper.ctx.project_path:
        console.print("❌ 未配置 projectPath，无法扫描源码", style="error")
        return EXIT_BAD

    query = ExtractQuery(scope_path=scope or "", key_prefix=prefix or "")
    candidates = collect_candidates(keeper.ctx, query)
    if not candidates:
        console.print("✅ 没有需要提取的文案", style="ok")
        return EXIT_OK

    root = Path(keeper.ctx.project_path)
    console.print(f"将提取 {len(candidates)} 处文案：", style="warn")
    for lit in candidates[:50]:
        try:
            where = Path(lit.path).relative_to(root).as_posix()
        except ValueError:
            where = lit.path
        console.print(f"  - {where}: {lit.raw}", style="meta")
    if len(candidates) > 50:
        console.print(f"  ... 还有 {len(candidates) - 50} 处", style="meta")
    if not yes and not _confirm("确认替换为 t() 调用？"):
        console.print("已取消", style="meta")
        return EXIT_OK

    res = keeper.execute("extract", extract_query=query)
    return print_result(console, res)


def run_edit(console: Console, keeper: LangKeeper, key: str, lang: str, value: str) -> int:
    query = ModifyQuery(type=EDIT_VALUE, data=[{"key": key, "lang": lang, "value": value}])
    res = keeper.execute("modify", modify_query=query)
    return print_result(console, res)


def run_rename(console: Console, keeper: LangKeeper, key: str, new_key: str) -> int:
    query = ModifyQuery(type=RENAME, data=[{"key": key, "newKey": new_key}])
    res = keeper.execute("modify", modify_query=query)
    return print_result(console, res)


# =========================================================
# CLI
# =========================================================
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lang_keeper",
        description="前端 i18n 词条维护：检查 / 排序 / Excel 导入导出 / Git 差异表 / 清理（支持交互）",
    )
    p.add_argument(
        "command",
        nargs="?",
        default="menu",
        choices=ACTIONS,
        help="子命令（不填则进入交互菜单）",
    )
    p.add_argument("--config", default=CONFIG_FILE, help="配置文件路径（基于 project-root）")
    p.add_argument("--project-root", default=".", help="项目根目录（默认当前目录）")
    p.add_argument("--no-exitcode-3", action="store_true", help="check 发现问题时仍返回 0（默认返回 3）")
    p.add_argument("--out", default=None, help="export / export-diff 输出路径")
    p.add_argument("--file", default=None, help="import / import-diff 读取路径")
    p.add_argument("--commit", default=None, help="export-diff 基线提交（hash 或前缀）")
    p.add_argument("--mode", default=None, help="sort: byKey/byPosition；import: key/language")
    p.add_argument("--baseline", default=None, help="import --mode language 时的基准语言")
    p.add_argument("--key", action="append", default=[], help="词条 key（trim 可重复）")
    p.add_argument("--new-key", default=None, help="rename 的新 key")
    p.add_argument("--lang", default=None, help="edit 的语言")
    p.add_argument("--value", default=None, help="edit 的新值")
    p.add_argument("--fill-with-original", action="store_true", help="fix 时直接用参考语言原文补全")
    p.add_argument("--scope", default=None, help="extract 只扫描的目录（相对 projectPath）")
    p.add_argument("--prefix", default=None, help="extract 生成 key 的前缀")
    p.add_argument("--yes", action="store_true", help="trim / extract 跳过确认")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _validate_args(args: argparse.Namespace, command: str) -> Optional[str]:
    if command == "sort" and args.mode and args.mode not in (SortMode.BY_KEY.value, SortMode.BY_POSITION.value):
        return "sort --mode 只能是 byKey / byPosition"
    if command == "import" and args.mode and args.mode not in [m.value for m in ImportMode]:
        return "import --mode 只能是 key / language"
    if command in ("import", "import-diff") and not args.file:
        return f"{command} 需要 --file"
    if command == "edit" and (len(args.key) != 1 or not args.lang or args.value is None):
        return "edit 需要 --key、--lang 和 --value"
    if command == "rename" and (len(args.key) != 1 or not args.new_key):
        return "rename 需要 --key 和 --new-key"
    return None


def dispatch(
        console: Console,
        keeper: LangKeeper,
        cfg: KeeperConfig,
        args: argparse.Namespace,
        command: str,
        interactive: bool = False,
) -> int:
    if command == "check":
        return run_check(console, keeper, no_exitcode_3=args.no_exitcode_3)
    if command == "sort":
        return run_sort(console, keeper, args.mode)
    if command == "export":
        out = args.out or str(Path(args.project_root) / "lang_keeper.xlsx")
        return run_export(console, keeper, out)
    if command == "import":
        return run_import(console, keeper, args.file, args.mode, args.baseline)
    if command == "export-diff":
        return run_export_diff(console, keeper, args.commit, args.out, interactive)
    if command == "import-diff":
        return run_import_diff(console, keeper, args.file)
    if command == "trim":
        return run_trim(console, keeper, list(args.key), args.yes)
    if command == "extract":
        return run_extract(console, keeper, args.scope, args.prefix, args.yes)
    if command == "fix":
        return run_fix(console, keeper, args.fill_with_original or cfg.fill_with_original)
    if command == "edit":
        return run_edit(console, keeper, args.key[0], args.lang, args.value)
    if command == "rename":
        return run_rename(console, keeper, args.key[0], args.new_key)
    console.print(f"❌ 未知命令：{command}", style="error")
    return EXIT_BAD


def _ask_file(prompt: str) -> Optional[str]:
    s = input(prompt).strip()
    return s or None


def run_menu(console: Console, keeper: LangKeeper, cfg: KeeperConfig, args: argparse.Namespace) -> int:
    while True:
        action = choose_action_interactive()
        if action == "exit":
            return EXIT_OK
        if action in ("import", "import-diff") and not args.file:
            args.file = _ask_file("xlsx 路径（回车取消）: ")
            if not args.file:
                continue
        rc = dispatch(console, keeper, cfg, args, action, interactive=True)
        if action in ("import", "import-diff"):
            args.file = None
        console.print(f"（退出码 {rc}）", style="meta")


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    args = build_parser().parse_args(argv)
    console = make_console()

    root = Path(args.project_root).resolve()
    cfg_path = (root / args.config).resolve()

    # init：允许无配置
    if args.command == "init":
        try:
            created = init_config(cfg_path)
        except (ConfigError, OSError) as e:
            console.print(f"❌ init 失败：{e}", style="error")
            return EXIT_BAD
        if created:
            console.print(f"📝 已生成 {cfg_path}（含详细注释）", style="ok")
        else:
            console.print(f"✅ {cfg_path.name} 已存在且格式正确（不会覆盖）", style="ok")
        return EXIT_OK

    if args.command == "doctor":
        return run_doctor(console, cfg_path, root)

    error = _validate_args(args, args.command)
    if error:
        console.print(f"❌ {error}", style="error")
        return EXIT_BAD

    # 其余命令：必须有配置
    try:
        cfg = assert_config_ok(cfg_path)
    except ConfigError as e:
        console.print(str(e), style="error")
        return EXIT_BAD

    keeper = LangKeeper()
    try:
        keeper.set_options(**to_options(cfg, root))
        if args.command == "menu":
            return run_menu(console, keeper, cfg, args)
        return dispatch(console, keeper, cfg, args, args.command)
    except ValueError as e:
        console.print(f"❌ {e}", style="error")
        return EXIT_BAD
    except OSError as e:
        console.print(f"❌ {e}", style="error")
        return EXIT_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
