from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .langfile import write_text
from .models import IdPatch

_SCRIPT_TAG_RE = re.compile(r"<script\b[^>]*>[ \t]*\r?\n?", re.I)


def parse_range(pos: str) -> Optional[Tuple[int, int]]:
    """"start,end" 或 "a,b,start,end"（取后两位）"""
    parts = [p.strip() for p in str(pos).split(",")]
    try:
        if len(parts) >= 4:
            return int(parts[2]), int(parts[3])
        if len(parts) >= 2:
            return int(parts[0]), int(parts[1])
    except ValueError:
        return None
    return None


def insert_import(content: str, statement: str, path: Path) -> str:
    if not statement or statement in content:
        return content
    line = statement.rstrip("\n") + "\n"
    if path.suffix.lower() == ".vue":
        m = _SCRIPT_TAG_RE.search(content)
        if m is None:
            return content
        return content[:m.end()] + line + content[m.end():]
    return line + content


def patch_text(content: str, patches: List[IdPatch]) -> Tuple[str, int]:
    """从后往前替换；越界或原文已变化的 patch 跳过。"""
    ranged: List[Tuple[int, int, IdPatch]] = []
    for p in patches:
        r = parse_range(p.pos)
        if r is not None:
            ranged.append((r[0], r[1], p))
    ranged.sort(key=lambda x: x[0], reverse=True)

    applied = 0
    for start, end, p in ranged:
        if start < 0 or end < start or end > len(content):
            continue
        if p.raw and content[start:end] != p.raw:
            continue
        content = content[:start] + p.fixed_raw + content[end:]
        applied += 1
    return content, applied


def apply_code_patches(patch_info: Dict[str, List[IdPatch]], import_statement: str = "") -> List[str]:
    """把 fix 生成的调用点替换写回源码，返回实际改动过的文件。"""
    changed: List[str] = []
    for file_path, patches in patch_info.items():
        if not patches:
            continue
        path = Path(file_path)
        content = path.read_text(encoding="utf-8")
        new_content, applied = patch_text(content, patches)
        if applied == 0:
            continue
        new_content = insert_import(new_content, import_statement, path)
        write_text(path, new_content)
        changed.append(file_path)
    return changed
