from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .models import TCall

DEFAULT_CALL_NAMES: Tuple[str, ...] = ("t", "$t")

# t( 前面允许出现的字符（其余情况视为别的标识符的一部分，如 set( / at( ）
_PRECEDERS = set("$.[({:=")

_ESC_RE = re.compile(r"\\(.)", re.S)
_ESC_MAP = {"n": "\n", "t": "\t", "r": "\r"}


def _unescape_literal(s: str) -> str:
    return _ESC_RE.sub(lambda m: _ESC_MAP.get(m.group(1), m.group(1)), s)


def _skip_string(text: str, i: int) -> int:
    """i 指向开引号；返回闭引号之后的位置（未闭合时返回文本末尾）。"""
    quote = text[i]
    n = len(text)
    k = i + 1
    while k < n:
        ch = text[k]
        if ch == "\\":
            k += 2
            continue
        if ch == quote:
            return k + 1
        if quote == "`" and text.startswith("${", k):
            k = _skip_braces(text, k + 1)
            continue
        if ch == "\n" and quote != "`":
            return k
        k += 1
    return n


def _skip_braces(text: str, i: int) -> int:
    """i 指向 `{`；返回匹配的 `}` 之后的位置。"""
    depth = 0
    n = len(text)
    k = i
    while k < n:
        ch = text[k]
        if ch in "'\"`":
            k = _skip_string(text, k)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return k + 1
        k += 1
    return n


def _skip_trivia(text: str, i: int) -> int:
    n = len(text)
    while i < n:
        if text[i].isspace():
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end < 0 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end < 0 else end + 2
        else:
            break
    return i


def _read_expression(text: str, i: int) -> int:
    """读到顶层的 + , ) 为止。"""
    n = len(text)
    depth = 0
    k = i
    while k < n:
        ch = text[k]
        if ch in "'\"`":
            k = _skip_string(text, k)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            if depth == 0:
                return k
            depth -= 1
        elif depth == 0 and ch in "+,":
            return k
        k += 1
    return n


def _find_call_end(text: str, i: int) -> Optional[int]:
    """i 位于参数列表内；返回闭合 `)` 之后的位置。"""
    depth = 0
    n = len(text)
    k = i
    while k < n:
        ch = text[k]
        if ch in "'\"`":
            k = _skip_string(text, k)
            continue
        if text.startswith("//", k) or text.startswith("/*", k):
            k = _skip_trivia(text, k)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            if depth == 0:
                return k + 1 if ch == ")" else None
            depth -= 1
        k += 1
    return None


def _parse_template(body: str, vars_out: List[str]) -> str:
    out: List[str] = []
    k = 0
    while k < len(body):
        if body.startswith("${", k):
            end = _skip_braces(body, k + 1)
            vars_out.append(body[k + 2: end - 1].strip())
            out.append("{t%d}" % (len(vars_out) - 1))
            k = end
            continue
        if body[k] == "\\" and k + 1 < len(body):
            out.append(_ESC_MAP.get(body[k + 1], body[k + 1]))
            k += 2
            continue
        out.append(body[k])
        k += 1
    return "".join(out)


def _parse_call(text: str, start: int, name_end: int, path: str) -> Optional[TCall]:
    k = _skip_trivia(text, name_end)
    if k >= len(text) or text[k] != "(":
        return None
    k += 1

    pieces: List[str] = []
    vars_: List[str] = []
    lit_start = -1
    lit_end = -1
    has_text = False
    while True:
        k = _skip_trivia(text, k)
        if k >= len(text):
            return None
        ch = text[k]
        if ch in ",)":
            break
        if ch == "+":
            k += 1
            continue
        if ch in "'\"`":
            end = _skip_string(text, k)
            if end > len(text) or text[end - 1] != ch:
                return None
            body = text[k + 1: end - 1]
            if ch == "`":
                pieces.append(_parse_template(body, vars_))
            else:
                pieces.append(_unescape_literal(body))
            if lit_start < 0:
                lit_start = k + 1
            lit_end = end - 1
            has_text = True
            k = end
            continue
        end = _read_expression(text, k)
        expr = text[k:end].strip()
        if not expr:
            return None
        vars_.append(expr)
        pieces.append("{t%d}" % (len(vars_) - 1))
        k = end

    if not has_text:
        return None
    call_end = _find_call_end(text, k)
    if call_end is None:
        return None
    key_text = "".join(pieces)
    if not re.sub(r"\{t\d+\}", "", key_text).strip():
        return None
    return TCall(
        raw=text[start:call_end],
        text=key_text,
        vars=vars_,
        pos=f"{lit_start},{lit_end}",
        raw_range=f"{start},{call_end}",
        path=path,
    )


def scan_t_calls(text: str, names: Sequence[str] = DEFAULT_CALL_NAMES, path: str = "") -> List[TCall]:
    """
    扫描源码里的 t("...") 调用：
    - 注释 / 字符串内部不算
    - 第一个参数允许字符串拼接、模板字符串、变量（变量部分记为 {tN}）
    """
    out: List[TCall] = []
    wanted = set(names)
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]
        if text.startswith("//", i) or text.startswith("/*", i):
            i = _skip_trivia(text, i)
            continue
        if ch in "'\"`":
            i = _skip_string(text, i)
            continue
        if ch.isalpha() or ch in "_$":
            j = i
            while j < n and (text[j].isalnum() or text[j] in "_$"):
                j += 1
            word = text[i:j]
            prev = text[i - 1] if i > 0 else " "
            if word in wanted and (prev.isspace() or prev in _PRECEDERS):
                call = _parse_call(text, i, j, path)
                if call is not None:
                    out.append(call)
            i = j
            continue
        i += 1
    return out


def call_pattern(call: TCall) -> "re.Pattern[str]":
    """带变量的 key -> 匹配所有候选 entry 名的正则。"""
    parts = re.split(r"\{t\d+\}", call.text)
    return re.compile("^" + ".*".join(re.escape(p) for p in parts) + "$")


# ----------------------------
# 模板文件（.vue / .html / .svelte）
# ----------------------------
MARKUP_EXTS = (".vue", ".html", ".htm", ".svelte")

_BLOCK_RE = re.compile(
    r"(<script\b[^>]*>)([\s\S]*?)</script\s*>|<style\b[^>]*>[\s\S]*?</style\s*>|<!--[\s\S]*?-->",
    re.I,
)
# {{ 插值 }} / { svelte 表达式 } / 属性值
_MARKUP_CODE_RE = re.compile(r"\{\{([\s\S]*?)\}\}|\{([^{}]*)\}|=\s*\"([^\"]*)\"|=\s*'([^']*)'")


def _shift(call: TCall, offset: int) -> TCall:
    if not offset:
        return call
    a, b = (int(x) for x in call.pos.split(","))
    c, d = (int(x) for x in call.raw_range.split(","))
    return replace(call, pos=f"{a + offset},{b + offset}", raw_range=f"{c + offset},{d + offset}")


def code_regions(text: str, path: str = "") -> List[Tuple[int, int]]:
    """
    返回需要按 JS 规则扫描的区间 [(start, end)]：
    - 普通源码：整个文件
    - 模板文件：<script> 内容、{{ }} / { } 插值、属性值；<style> 和注释跳过，标签间的文本不算代码
    """
    if not path.lower().endswith(MARKUP_EXTS):
        return [(0, len(text))]
    out: List[Tuple[int, int]] = []
    cursor = 0
    for m in _BLOCK_RE.finditer(text):
        out.extend(_markup_regions(text, cursor, m.start()))
        if m.group(1) is not None:
            out.append((m.start(2), m.end(2)))
        cursor = m.end()
    out.extend(_markup_regions(text, cursor, len(text)))
    return out


def _markup_regions(text: str, start: int, end: int) -> List[Tuple[int, int]]:
    out: List[Tuple[int, int]] = []
    for m in _MARKUP_CODE_RE.finditer(text, start, end):
        g = next(i for i in range(1, 5) if m.group(i) is not None)
        out.append((m.start(g), m.end(g)))
    return out


def scan_source(text: str, names: Sequence[str] = DEFAULT_CALL_NAMES, path: str = "") -> List[TCall]:
    """按文件类型扫描 t() 调用；位置始终是相对整个文件的偏移。"""
    out: List[TCall] = []
    for start, end in code_regions(text, path):
        for call in scan_t_calls(text[start:end], names, path):
            out.append(_shift(call, start))
    return out


# ----------------------------
# 字符串字面量
# ----------------------------
@dataclass(frozen=True)
class StringLiteral:
    """源码里的一个字符串字面量；start/end 包含引号。"""
    text: str
    raw: str
    start: int
    end: int
    path: str = ""


def _prev_word(text: str, i: int) -> str:
    k = i - 1
    while k >= 0 and text[k].isspace():
        k -= 1
    end = k + 1
    while k >= 0 and (text[k].isalnum() or text[k] in "_$"):
        k -= 1
    return text[k + 1:end]


def _prev_char(text: str, i: int) -> str:
    k = i - 1
    while k >= 0 and text[k].isspace():
        k -= 1
    return text[k] if k >= 0 else ""


def _next_char(text: str, i: int) -> str:
    k = i
    while k < len(text) and text[k].isspace():
        k += 1
    return text[k] if k < len(text) else ""


def _literals_in(text: str, path: str) -> List[StringLiteral]:
    out: List[StringLiteral] = []
    n = len(text)
    i = 0
    while i < n:
        if text.startswith("//", i) or text.startswith("/*", i):
            i = _skip_trivia(text, i)
            continue
        ch = text[i]
        if ch not in "'\"`":
            i += 1
            continue
        end = _skip_string(text, i)
        closed = end <= n and end - 1 > i and text[end - 1] == ch
        body = text[i + 1: end - 1] if closed else ""
        skip = (
            not closed
            or (ch == "`" and "${" in body)
            or _prev_word(text, i) in ("import", "from", "require")
            or (_prev_char(text, i) == "(" and _prev_word(text, text.rfind("(", 0, i)) == "require")
            or (_prev_char(text, i) in ("{", ",") and _next_char(text, end) == ":")
        )
        if not skip:
            out.append(StringLiteral(text=_unescape_literal(body), raw=text[i:end], start=i, end=end, path=path))
        i = end
    return out


def scan_string_literals(
        text: str,
        names: Sequence[str] = DEFAULT_CALL_NAMES,
        path: str = "",
        script_only: bool = False,
) -> List[StringLiteral]:
    """
    扫描源码里的字符串字面量（t() 的参数、import 路径、对象 key、带插值的模板字符串除外）。
    script_only=True 时模板文件只看 <script> 块。
    """
    calls = [tuple(int(x) for x in c.raw_range.split(",")) for c in scan_source(text, names, path)]
    out: List[StringLiteral] = []
    for start, end in _literal_regions(text, path, script_only):
        for lit in _literals_in(text[start:end], path):
            s, e = lit.start + start, lit.end + start
            if any(a <= s and e <= b for a, b in calls):
                continue
            out.append(replace(lit, start=s, end=e))
    return out


def _literal_regions(text: str, path: str, script_only: bool) -> List[Tuple[int, int]]:
    if not script_only or not path.lower().endswith(MARKUP_EXTS):
        return code_regions(text, path)
    return [(m.start(2), m.end(2)) for m in _BLOCK_RE.finditer(text) if m.group(1) is not None]
