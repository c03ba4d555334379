from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .models import FileExtraInfo, IndentType, QuoteStyle

JS_LIKE_EXTS = ("json", "json5", "js", "mjs", "cjs", "ts")
YAML_EXTS = ("yaml", "yml")
LANG_FILE_EXTS = JS_LIKE_EXTS + YAML_EXTS

_IDENT_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_SPREAD_RE = re.compile(r"\n[ \t]*\.\.\.[^,\n}]+,?")
_INDENT_RE = re.compile(r"\{[ \t]*\r?\n([ \t]*)\S")
_YAML_INDENT_RE = re.compile(r"^[^\s#][^\n]*:\s*\n( +)\S", re.M)


class LangFileError(ValueError):
    pass


@dataclass(frozen=True)
class LangFileInfo:
    data: Dict[str, Any]
    ext: str
    extra: FileExtraInfo


# ----------------------------
# 对象字面量解析（JSON / JSON5 / JS / TS）
# ----------------------------
class _LiteralParser:
    """
    只支持语言文件需要的子集：
    object / array / 字符串（单双引号、无插值的模板字符串）/ 数字 / true false null，
    允许注释、无引号 key、尾逗号。
    """

    _ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}

    def __init__(self, text: str) -> None:
        self.s = text
        self.i = 0
        # 引号风格按多数决定；"" 表示无引号 key
        self.key_quotes: Counter = Counter()
        self.value_quotes: Counter = Counter()

    def error(self, msg: str) -> LangFileError:
        line = self.s.count("\n", 0, self.i) + 1
        snippet = self.s[max(0, self.i - 20): self.i + 20].replace("\n", "\\n")
        return LangFileError(f"{msg}（第 {line} 行附近：{snippet!r}）")

    def parse(self) -> Any:
        self.skip()
        value = self.value()
        self.skip()
        if self.i < len(self.s):
            raise self.error("对象之后存在多余内容")
        return value

    def skip(self) -> None:
        s = self.s
        while self.i < len(s):
            ch = s[self.i]
            if ch in " \t\r\n\ufeff":
                self.i += 1
            elif s.startswith("//", self.i):
                end = s.find("\n", self.i)
                self.i = len(s) if end < 0 else end
            elif s.startswith("/*", self.i):
                end = s.find("*/", self.i + 2)
                if end < 0:
                    raise self.error("注释未闭合")
                self.i = end + 2
            else:
                break

    def value(self) -> Any:
        if self.i >= len(self.s):
            raise self.error("意外结束")
        ch = self.s[self.i]
        if ch == "{":
            return self.obj()
        if ch == "[":
            return self.arr()
        if ch in "\"'`":
            return self.string()
        m = re.compile(r"-?[A-Za-z0-9_.$+]+").match(self.s, self.i)
        if not m:
            raise self.error(f"无法识别的字符 {ch!r}")
        self.i = m.end()
        word = m.group(0)
        if word == "true":
            return True
        if word == "false":
            return False
        if word == "null":
            return None
        try:
            return float(word) if any(c in word for c in ".eE") and not word.startswith("0x") else int(word, 0)
        except ValueError:
            raise self.error(f"不支持的值：{word}") from None

    def obj(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        self.i += 1
        while True:
            self.skip()
            if self.i >= len(self.s):
                raise self.error("对象未闭合")
            if self.s[self.i] == "}":
                self.i += 1
                return out
            key = self.key()
            self.skip()
            if self.i >= len(self.s) or self.s[self.i] != ":":
                raise self.error("缺少冒号")
            self.i += 1
            self.skip()
            if self.i < len(self.s) and self.s[self.i] in "\"'`":
                self.value_quotes[self.s[self.i]] += 1
            out[key] = self.value()
            self.skip()
            if self.i < len(self.s) and self.s[self.i] == ",":
                self.i += 1
                continue
            self.skip()
            if self.i < len(self.s) and self.s[self.i] == "}":
                continue
            raise self.error("缺少逗号或右花括号")

    def key(self) -> str:
        ch = self.s[self.i]
        if ch in "\"'`":
            self.key_quotes[ch] += 1
            return self.string()
        m = re.compile(r"[A-Za-z0-9_$\-]+").match(self.s, self.i)
        if not m:
            raise self.error("非法 key")
        self.key_quotes[""] += 1
        self.i = m.end()
        return m.group(0)

    def arr(self) -> List[Any]:
        out: List[Any] = []
        self.i += 1
        while True:
            self.skip()
            if self.i >= len(self.s):
                raise self.error("数组未闭合")
            if self.s[self.i] == "]":
                self.i += 1
                return out
            out.append(self.value())
            self.skip()
            if self.i < len(self.s) and self.s[self.i] == ",":
                self.i += 1

    def string(self) -> str:
        quote = self.s[self.i]
        self.i += 1
        buf: List[str] = []
        s = self.s
        while self.i < len(s):
            ch = s[self.i]
            if ch == quote:
                self.i += 1
                return "".join(buf)
            if quote == "`" and s.startswith("${", self.i):
                raise self.error("模板字符串不能包含插值")
            if ch == "\\":
                nxt = s[self.i + 1: self.i + 2]
                if nxt in ("u", "x"):
                    width = 4 if nxt == "u" else 2
                    digits = s[self.i + 2: self.i + 2 + width]
                    if not re.fullmatch(r"[0-9A-Fa-f]{%d}" % width, digits):
                        raise self.error("非法转义序列")
                    buf.append(chr(int(digits, 16)))
                    self.i += 2 + width
                    continue
                if nxt == "\n":
                    self.i += 2
                    continue
                buf.append(self._ESCAPES.get(nxt, nxt))
                self.i += 2
                continue
            if ch == "\n" and quote != "`":
                raise self.error("字符串未闭合")
            buf.append(ch)
            self.i += 1
        raise self.error("字符串未闭合")


def _quote_style(counts: Counter, default: QuoteStyle) -> QuoteStyle:
    if not counts:
        return default
    ch = counts.most_common(1)[0][0]
    if ch == "":
        return QuoteStyle.NONE
    return QuoteStyle.DOUBLE if ch == '"' else QuoteStyle.SINGLE


def _all_strings(node: Any) -> bool:
    if isinstance(node, dict):
        return all(_all_strings(v) for v in node.values())
    return isinstance(node, str)


def _is_flat(data: Dict[str, Any]) -> bool:
    return not any(isinstance(v, dict) for v in data.values())


def _line_ending(text: str) -> str:
    crlf = text.count("\r\n")
    return "\r\n" if crlf and crlf >= text.count("\n") - crlf else "\n"


def parse_js_like(text: str, ext: str) -> Tuple[Dict[str, Any], FileExtraInfo]:
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end < start:
        raise LangFileError("未找到对象字面量")
    prefix, body, suffix = text[:start], text[start:end + 1], text[end + 1:]

    spreads = _SPREAD_RE.findall(body)
    inner_var = "\n".join(x.strip().rstrip(",") for x in spreads)
    if spreads:
        body = _SPREAD_RE.sub("", body)

    m = _INDENT_RE.search(body)
    indent = m.group(1) if m else "  "
    indent_type = IndentType.TAB if "\t" in indent else IndentType.SPACE
    indent_size = 1 if indent_type == IndentType.TAB else (len(indent) or 2)

    p = _LiteralParser(body)
    data = p.parse()
    if not isinstance(data, dict):
        raise LangFileError("顶层必须是 object")
    if not _all_strings(data):
        raise LangFileError("只支持 string 叶子（含 number / bool / 数组 的文件不是语言文件）")

    json_like = ext == "json"
    extra = FileExtraInfo(
        prefix=prefix,
        suffix=suffix,
        inner_var=inner_var,
        indent_type=indent_type,
        indent_size=indent_size,
        is_flat=_is_flat(data),
        key_quotes=QuoteStyle.DOUBLE if json_like else _quote_style(p.key_quotes, QuoteStyle.DOUBLE),
        value_quotes=QuoteStyle.DOUBLE if json_like else _quote_style(p.value_quotes, QuoteStyle.DOUBLE),
        line_ending=_line_ending(text),
    )
    return data, extra


def parse_yaml(text: str) -> Tuple[Dict[str, Any], FileExtraInfo]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise LangFileError(f"YAML 解析失败：{e}") from None
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise LangFileError("YAML 顶层必须是 mapping")
    data = {str(k): v for k, v in data.items()}
    if not _all_strings(data):
        raise LangFileError("只支持 string 叶子")
    m = _YAML_INDENT_RE.search(text)
    extra = FileExtraInfo(
        indent_size=len(m.group(1)) if m else 2,
        is_flat=_is_flat(data),
        key_quotes=QuoteStyle.NONE,
        line_ending=_line_ending(text),
    )
    return data, extra


def parse_lang_text(text: str, ext: str) -> Tuple[Dict[str, Any], FileExtraInfo]:
    ext = ext.lower()
    if ext in YAML_EXTS:
        return parse_yaml(text)
    if ext in JS_LIKE_EXTS:
        return parse_js_like(text, ext)
    raise LangFileError(f"不支持的语言文件类型：.{ext}")


def read_lang_file(path: Path) -> Optional[LangFileInfo]:
    """不是语言文件（或解析失败）时返回 None。"""
    ext = path.suffix.lstrip(".").lower()
    if ext not in LANG_FILE_EXTS:
        return None
    try:
        text = path.read_text(encoding="utf-8")
        data, extra = parse_lang_text(text, ext)
    except (OSError, UnicodeDecodeError, LangFileError):
        return None
    return LangFileInfo(data=data, ext=ext, extra=extra)


# ----------------------------
# 输出
# ----------------------------
def format_for_file(value: str, quote: str = '"') -> str:
    s = (
        value.replace("\\", "\\\\")
        .replace(quote, "\\" + quote)
        .replace("\r", "\\r")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f"{quote}{s}{quote}"


def _key_text(key: str, ext: str, extra: FileExtraInfo) -> str:
    if ext == "json" or extra.key_quotes == QuoteStyle.DOUBLE:
        return format_for_file(key, '"')
    if extra.key_quotes == QuoteStyle.SINGLE:
        return format_for_file(key, "'")
    if _IDENT_RE.match(key):
        return key
    quote = "'" if extra.value_quotes == QuoteStyle.SINGLE else '"'
    return format_for_file(key, quote)


def build_plain_tree(tree: Dict[str, Any], lookup: Dict[str, str]) -> Dict[str, Any]:
    """entry tree（叶子是 id）+ 某语言的 id->value => 该语言的嵌套对象；缺值叶子和空分支丢弃。"""
    out: Dict[str, Any] = {}
    for k, v in tree.items():
        if isinstance(v, dict):
            sub = build_plain_tree(v, lookup)
            if sub:
                out[k] = sub
        elif isinstance(v, str) and v in lookup:
            out[k] = lookup[v]
    return out


def format_object_to_string(tree: Dict[str, Any], lookup: Dict[str, str], ext: str, extra: FileExtraInfo) -> str:
    ext = ext.lower()
    plain = build_plain_tree(tree, lookup)
    if ext in YAML_EXTS:
        return _format_yaml(plain, extra)

    nl = extra.line_ending
    ind = extra.indent
    quote = "'" if ext != "json" and extra.value_quotes == QuoteStyle.SINGLE else '"'

    def fmt(obj: Dict[str, Any], level: int) -> List[str]:
        lines: List[str] = []
        pad = ind * level
        for k, v in obj.items():
            key = _key_text(k, ext, extra)
            if isinstance(v, dict):
                inner = fmt(v, level + 1)
                lines.append(f"{pad}{key}: {{{nl}{f',{nl}'.join(inner)}{nl}{pad}}}")
            else:
                lines.append(f"{pad}{key}: {format_for_file(v, quote)}")
        return lines

    items: List[str] = []
    if extra.inner_var and ext != "json":
        items.extend(f"{ind}{x}" for x in extra.inner_var.split("\n") if x.strip())
    items.extend(fmt(plain, 1))
    if not items:
        return f"{extra.prefix}{{}}{extra.suffix}"
    return f"{extra.prefix}{{{nl}{f',{nl}'.join(items)}{nl}}}{extra.suffix}"


def _format_yaml(plain: Dict[str, Any], extra: FileExtraInfo) -> str:
    text = yaml.safe_dump(
        plain,
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=False,
        indent=max(2, extra.indent_size),
    )
    if not plain:
        text = "{}\n"
    if extra.line_ending != "\n":
        text = text.replace("\n", extra.line_ending)
    return text


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(content)
