from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from .models import DirNode, Entry, NamespaceStrategy

# 歧义 key 的最大切分层数（超过直接视为无法解析）
MAX_AMBIGUOUS_DEPTH = 64

_SEG_RE = re.compile(r"(?:\\\.|[^.])+")


# ----------------------------
# 转义
# ----------------------------
def escape_string(s: str) -> str:
    return s.replace("\\", "\\\\").replace(".", "\\.")


def unescape_string(s: str) -> str:
    return s.replace("\\.", ".").replace("\\\\", "\\")


def parse_escaped_path(path: str) -> List[str]:
    """
    `a\\.b.c` -> ["a.b", "c"]
    末尾出现单独的反斜杠视为非法。
    """
    out: List[str] = []
    cur = ""
    escaping = False
    for ch in path:
        if escaping:
            cur += ch
            escaping = False
        elif ch == "\\":
            escaping = True
        elif ch == ".":
            out.append(cur)
            cur = ""
        else:
            cur += ch
    if escaping:
        raise ValueError(f"非法转义（结尾是反斜杠）：{path!r}")
    if cur:
        out.append(cur)
    return out


def get_path_segs_from_id(entry_id: str) -> List[str]:
    return [seg.replace("\\.", ".") for seg in _SEG_RE.findall(entry_id)]


def join_id(segs: List[str]) -> str:
    return ".".join(escape_string(s) for s in segs)


# ----------------------------
# Entry tree 读写
# ----------------------------
def set_value_by_escaped_name(tree: Dict[str, Any], entry_id: str, value: Optional[str]) -> None:
    """value=None 表示删除叶子，并清理变空的父节点。"""
    parts = parse_escaped_path(entry_id)
    if not parts:
        return
    if value is None:
        _remove_path(tree, parts)
        return
    cur = tree
    for p in parts[:-1]:
        nxt = cur.get(p)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[p] = nxt
        cur = nxt
    cur[parts[-1]] = value


def _remove_path(node: Dict[str, Any], parts: List[str]) -> bool:
    head = parts[0]
    if head not in node:
        return False
    if len(parts) == 1:
        del node[head]
        return True
    child = node[head]
    if not isinstance(child, dict):
        return False
    removed = _remove_path(child, parts[1:])
    if removed and not child:
        del node[head]
    return removed


def flatten_nested(obj: Dict[str, Any], prefix: str = "", out: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    out = {} if out is None else out
    for k, v in obj.items():
        if not str(k).strip():
            continue
        name = f"{prefix}.{escape_string(k)}" if prefix else escape_string(k)
        if isinstance(v, dict):
            flatten_nested(v, name, out)
        else:
            out[name] = v
    return out


# ----------------------------
# 歧义 key 解析
# ----------------------------
def resolve_ambiguous(tree: Dict[str, Any], name: str) -> Optional[str]:
    """
    代码里写的 `a.b.c` 可能对应 tree 中 {"a.b": {"c": ..}} / {"a": {"b.c": ..}} 等任意切分。
    递归匹配 + 按 (节点, 剩余后缀) 记忆化；同一层优先最长的精确 key。
    """
    if not isinstance(tree, dict) or not name:
        return None
    parts = name.split(".")
    if len(parts) > MAX_AMBIGUOUS_DEPTH:
        return None

    n = len(parts)
    memo: Dict[Tuple[int, int], Optional[str]] = {}

    def match(node: Dict[str, Any], i: int) -> Optional[str]:
        mk = (id(node), i)
        if mk in memo:
            return memo[mk]
        memo[mk] = None
        for j in range(n, i, -1):
            key = ".".join(parts[i:j])
            if key not in node:
                continue
            child = node[key]
            if j == n:
                if isinstance(child, str):
                    memo[mk] = child
                    return child
                continue
            if isinstance(child, dict):
                hit = match(child, j)
                if hit is not None:
                    memo[mk] = hit
                    return hit
        return None

    return match(tree, 0)


# ----------------------------
# 文件定位
# ----------------------------
def get_file_location_from_id(entry_id: str, structure: Optional[DirNode]) -> Optional[List[str]]:
    """沿目录结构按 segment 下钻；落在 file 节点上才算定位成功。"""
    if structure is None:
        return None
    node = structure
    segs: List[str] = []
    for seg in get_path_segs_from_id(entry_id):
        if node.type == "directory" and seg in node.children:
            segs.append(seg)
            node = node.children[seg]
        else:
            break
    if not node.is_file:
        return None
    return segs


def get_common_file_paths(structure: Optional[DirNode]) -> List[str]:
    out: List[str] = []

    def walk(node: DirNode, prefix: List[str]) -> None:
        for name, child in node.children.items():
            if child.is_file:
                out.append("/".join(prefix + [name]))
            else:
                walk(child, prefix + [name])

    if structure is not None:
        walk(structure, [])
    return out


def get_content_at_location(
        location: str,
        tree: Dict[str, Any],
        dictionary: Dict[str, Entry],
        strategy: NamespaceStrategy,
) -> Optional[Dict[str, Any]]:
    """
    返回属于 file scope `location` 的那部分 entry tree。
    - full: 先按 location 全路径下钻
    - file: 先按文件名（最后一段）下钻
    - none: 从根开始，只按 file_scope 过滤
    """
    segs = get_path_segs_from_id(location) if location else []
    cursor: Any = tree
    if strategy == NamespaceStrategy.FULL:
        walk = segs
    elif strategy == NamespaceStrategy.FILE:
        walk = segs[-1:]
    else:
        walk = []
    for seg in walk:
        if isinstance(cursor, dict) and seg in cursor:
            cursor = cursor[seg]
        else:
            return None
    if not isinstance(cursor, dict):
        return None
    return _filter_by_scope(cursor, dictionary, location)


def _filter_by_scope(node: Dict[str, Any], dictionary: Dict[str, Entry], scope: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in node.items():
        if isinstance(v, dict):
            sub = _filter_by_scope(v, dictionary, scope)
            if sub:
                out[k] = sub
            continue
        entry = dictionary.get(v)
        if entry is None or entry.file_scope == scope:
            out[k] = v
    return out
