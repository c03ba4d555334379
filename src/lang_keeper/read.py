from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .context import LangContext
from .keys import flatten_nested, join_id, resolve_ambiguous, unescape_string
from .langfile import LANG_FILE_EXTS, read_lang_file
from .langs import is_lang_name
from .models import DirNode, Entry, FileExtraInfo, LanguageStructure, NamespaceStrategy, TCall
from .scanner import call_pattern, scan_source, scan_string_literals

IGNORED_DIR_RE = re.compile(r"^(dist|node_modules|img|image|css|asset|\.)", re.I)

# id -> (full_path, file_scope)
KeyMap = Dict[str, Tuple[str, str]]


# ----------------------------
# 语言目录扫描
# ----------------------------
class _LangDirWalker:
    """把语言目录读成 {name: data | {...}} + DirNode，同时记录每个文件的格式信息。"""

    def __init__(self) -> None:
        self.ext = ""
        self.extra: Dict[str, FileExtraInfo] = {}

    def walk(self, d: Path, segs: List[str]) -> Tuple[Dict[str, Any], DirNode, bool]:
        tree: Dict[str, Any] = {}
        node = DirNode.directory()
        has_data = False
        try:
            items = sorted(d.iterdir(), key=lambda p: p.name)
        except OSError:
            return tree, node, False

        for p in items:
            if p.is_dir():
                sub_tree, sub_node, ok = self.walk(p, segs + [p.name])
                if ok:
                    tree[p.name] = sub_tree
                    node.children[p.name] = sub_node
                    has_data = True
                continue
            ext = p.suffix.lstrip(".").lower()
            base = p.stem
            if ext not in LANG_FILE_EXTS or base == "index" or (self.ext and ext != self.ext):
                continue
            info = read_lang_file(p)
            if info is None:
                continue
            self.ext = self.ext or ext
            tree[base] = info.data
            node.children[base] = DirNode.file(ext)
            self.extra[".".join(segs + [base])] = info.extra
            has_data = True
        return tree, node, has_data


def _depth(node: DirNode) -> int:
    if node.is_file:
        return 0
    return max((_depth(c) + (0 if c.is_file else 1) for c in node.children.values()), default=0)


def _copy_structure(src: DirNode) -> DirNode:
    if src.is_file:
        return DirNode.file(src.ext)
    node = DirNode.directory()
    for name, child in src.children.items():
        node.children[name] = _copy_structure(child)
    return node


def _intersect_structure(dst: DirNode, src: DirNode) -> None:
    """只保留每个语言都有、且类型一致的文件和目录。"""
    for name in list(dst.children):
        mine = dst.children[name]
        other = src.children.get(name)
        if other is None or other.is_file != mine.is_file:
            del dst.children[name]
        elif not mine.is_file:
            _intersect_structure(mine, other)
            if not mine.children:
                del dst.children[name]


def _merge_first_wins(dst: Dict[str, Any], src: Dict[str, Any]) -> None:
    for k, v in src.items():
        if k not in dst:
            dst[k] = _copy_tree(v)
        elif isinstance(dst[k], dict) and isinstance(v, dict):
            _merge_first_wins(dst[k], v)


def _copy_tree(v: Any) -> Any:
    if isinstance(v, dict):
        return {k: _copy_tree(x) for k, x in v.items()}
    return v


def _file_paths(node: DirNode, prefix: List[str]) -> List[List[str]]:
    out: List[List[str]] = []
    for name, child in node.children.items():
        if child.is_file:
            out.append(prefix + [name])
        else:
            out.extend(_file_paths(child, prefix + [name]))
    return out


def _pick(tree: Dict[str, Any], segs: List[str]) -> Optional[Dict[str, Any]]:
    cur: Any = tree
    for s in segs:
        if not isinstance(cur, dict) or s not in cur:
            return None
        cur = cur[s]
    return cur if isinstance(cur, dict) else None


def apply_namespace(
        lang_tree: Dict[str, Any],
        structure: DirNode,
        strategy: NamespaceStrategy,
) -> Tuple[Dict[str, Any], KeyMap]:
    """
    多文件模式下，把某个语言目录下的文件合成一棵树：
    - full: 以文件路径为前缀（pages.home.title）
    - file: 以文件名为前缀（home.title）
    - none: 不加前缀，全部平铺合并
    同名冲突时先到先得。
    """
    data: Dict[str, Any] = {}
    key_map: KeyMap = {}
    for segs in _file_paths(structure, []):
        file_data = _pick(lang_tree, segs)
        if file_data is None:
            continue
        scope = ".".join(segs)
        if strategy == NamespaceStrategy.FULL:
            target = data
            for s in segs[:-1]:
                target = target.setdefault(s, {})
            if segs[-1] not in target:
                target[segs[-1]] = _copy_tree(file_data)
            prefix = join_id(segs)
        elif strategy == NamespaceStrategy.FILE:
            data.setdefault(segs[-1], {})
            _merge_first_wins(data[segs[-1]], file_data)
            prefix = join_id(segs[-1:])
        else:
            _merge_first_wins(data, file_data)
            prefix = ""

        for key_id in flatten_nested(file_data):
            final = f"{prefix}.{key_id}" if prefix else key_id
            key_map.setdefault(final, (f"{scope}.{key_id}", scope))
    return data, key_map


def _walk_leaves(node: Dict[str, Any], path: List[str]):
    for k, v in node.items():
        if not str(k).strip():
            continue
        if isinstance(v, dict):
            yield from _walk_leaves(v, path + [k])
        else:
            yield path + [k], v


def read_lang_files(ctx: LangContext) -> None:
    """
    读取 ctx.lang_path 下所有语言文件，重建 entry tree / dictionary / country map。
    目录不存在或没有任何语言文件时，保持空模型（detected_lang_list 为空）。
    namespace_strategy 必须已经是具体策略（auto 由 engine 逐个尝试）。
    """
    ctx.reset_model()
    root = Path(ctx.lang_path) if ctx.lang_path else None
    if root is None or not root.is_dir():
        return

    walker = _LangDirWalker()
    tree, node, has_data = walker.walk(root, [])
    if not has_data:
        return

    custom = ctx.lang_alias_custom_mappings
    dir_langs = [n for n, c in node.children.items() if not c.is_file and is_lang_name(n, custom)]
    file_langs = [n for n, c in node.children.items() if c.is_file and is_lang_name(n, custom)]

    lang_trees: Dict[str, Dict[str, Any]] = {}
    key_maps: Dict[str, KeyMap] = {}
    if dir_langs:
        # 各语言目录结构取交集
        structure = _copy_structure(node.children[dir_langs[0]])
        for lang in dir_langs[1:]:
            _intersect_structure(structure, node.children[lang])
        ctx.file_structure = structure
        ctx.file_nested_level = max(1, _depth(structure) + 1)
        for lang in dir_langs:
            data, km = apply_namespace(tree[lang], structure, ctx.namespace_strategy)
            lang_trees[lang] = data
            key_maps[lang] = km
        ctx.lang_file_extra_info = {k: v for k, v in walker.extra.items() if "." in k and k.split(".", 1)[0] in dir_langs}
    elif file_langs:
        ctx.file_structure = DirNode.directory()
        ctx.file_nested_level = 0
        for lang in file_langs:
            lang_trees[lang] = tree[lang]
        ctx.lang_file_extra_info = {k: v for k, v in walker.extra.items() if k in file_langs}
    else:
        return

    ctx.lang_file_type = walker.ext
    for lang, data in lang_trees.items():
        ctx.lang_country_map[lang] = flatten_nested(data)

    for lang, data in lang_trees.items():
        if lang in ctx.ignored_langs:
            continue
        km = key_maps.get(lang, {})
        for segs, value in _walk_leaves(data, []):
            entry_id = join_id(segs)
            _set_leaf(ctx.entry_tree, segs, entry_id)
            entry = ctx.lang_dictionary.get(entry_id)
            if entry is None:
                full_path, scope = km.get(entry_id, (entry_id, ""))
                entry = Entry(full_path=full_path, file_scope=scope)
                ctx.lang_dictionary[entry_id] = entry
            entry.value[lang] = value

    if ctx.language_structure == LanguageStructure.AUTO:
        flat = all(info.is_flat for info in ctx.lang_file_extra_info.values())
        ctx.language_structure = LanguageStructure.FLAT if flat else LanguageStructure.NESTED


def _set_leaf(tree: Dict[str, Any], segs: List[str], entry_id: str) -> None:
    cur = tree
    for s in segs[:-1]:
        nxt = cur.get(s)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[s] = nxt
        cur = nxt
    cur[segs[-1]] = entry_id


# ----------------------------
# 代码引用统计
# ----------------------------
def _is_ignored_dir(name: str, ctx: LangContext) -> bool:
    return bool(IGNORED_DIR_RE.match(name)) or name in ctx.ignored_directories


def iter_source_files(ctx: LangContext) -> List[Path]:
    root = Path(ctx.project_path)
    exts = {e.lower() if e.startswith(".") else "." + e.lower() for e in ctx.file_extensions}
    lang_root = Path(ctx.lang_path).resolve() if ctx.lang_path else None
    limit = ctx.file_size_skip_threshold_kb * 1024
    out: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not _is_ignored_dir(d, ctx))
        if lang_root is not None and Path(dirpath).resolve() == lang_root:
            dirnames[:] = []
            continue
        for name in sorted(filenames):
            p = Path(dirpath) / name
            if p.suffix.lower() not in exts:
                continue
            rel = p.relative_to(root).as_posix()
            if name in ctx.ignored_files or rel in ctx.ignored_files:
                continue
            try:
                if limit > 0 and p.stat().st_size > limit:
                    continue
            except OSError:
                continue
            out.append(p)
    return out


def resolve_name(ctx: LangContext, name: str) -> Optional[str]:
    if name in ctx.lang_dictionary:
        return name
    return resolve_ambiguous(ctx.entry_tree, name)


def _record(usage: Dict[str, Dict[str, set]], text: str, path: str, pos: str) -> None:
    usage.setdefault(text, {}).setdefault(path, set()).add(pos)


def _literal_hits(ctx: LangContext, text: str, path: str) -> List[Tuple[int, str, str]]:
    """普通字符串里直接写了词条 key（常量表、配置等）也算引用。"""
    hits: List[Tuple[int, str, str]] = []
    for lit in scan_string_literals(text, ctx.call_names, path):
        name = lit.text
        if not name or any(c.isspace() for c in name):
            continue
        entry_id = resolve_name(ctx, name)
        if entry_id is None:
            continue
        pos = f"{lit.start + 1},{lit.end - 1}"
        hits.append((lit.start + 1, entry_id, pos))
        _record(ctx.used_entry_map, name, path, pos)
    return hits


def start_census(ctx: LangContext) -> None:
    """
    扫描 project_path 下的源码，统计 t() 调用：
    - 精确 id / 歧义切分命中 -> used
    - 带变量的调用按正则匹配所有词条
    - 都不命中 -> undefined（ignored_undefined_entries 除外）
    - scan_string_literals 开启时，普通字符串正好是某个词条 key 也算 used
    """
    ctx.used_entry_map = {}
    ctx.undefined_entry_list = []
    ctx.undefined_entry_map = {}
    ctx.used_key_set = {}
    ctx.unused_key_set = {}
    if not ctx.project_path or not Path(ctx.project_path).is_dir() or not ctx.lang_dictionary:
        return

    names = {entry_id: unescape_string(entry_id) for entry_id in ctx.lang_dictionary}
    for p in iter_source_files(ctx):
        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        path = str(p)
        hits: List[Tuple[int, str, str]] = []
        for call in scan_source(text, ctx.call_names, path):
            for entry_id, text_name in _match_call(ctx, call, names):
                hits.append((int(call.pos.split(",")[0]), entry_id, call.pos))
                _record(ctx.used_entry_map, text_name, path, call.pos)
        if ctx.scan_string_literals:
            hits.extend(_literal_hits(ctx, text, path))
        for _, entry_id, _ in sorted(hits, key=lambda x: x[0]):
            ctx.used_key_set.setdefault(entry_id, None)

    for name in ctx.manually_marked_used_entries:
        ctx.used_entry_map.setdefault(name, {})
        entry_id = resolve_name(ctx, name)
        if entry_id is not None:
            ctx.used_key_set.setdefault(entry_id, None)

    for entry_id in ctx.lang_dictionary:
        if entry_id not in ctx.used_key_set:
            ctx.unused_key_set[entry_id] = None


def _match_call(ctx: LangContext, call: TCall, names: Dict[str, str]) -> List[Tuple[str, str]]:
    """返回 [(entry id, 展示名)]；未命中时登记到 undefined。"""
    if call.has_vars:
        pattern = call_pattern(call)
        matched = [(entry_id, name) for entry_id, name in names.items() if pattern.match(name)]
    else:
        entry_id = resolve_name(ctx, call.text)
        matched = [] if entry_id is None else [(entry_id, call.text)]

    if not matched and call.text not in ctx.ignored_undefined_entries:
        ctx.undefined_entry_list.append(call)
        _record(ctx.undefined_entry_map, call.text, call.path, call.pos)
    return matched
