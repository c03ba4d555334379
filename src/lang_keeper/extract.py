from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from . import rewrite
from .context import ExtractQuery, LangContext
from .fix import text_id
from .keys import unescape_string
from .langs import resolve_lang
from .models import ExecutionResult, IdPatch, PayloadType, ResultCode, UpdatePayload, ValueChange
from .read import iter_source_files, resolve_name
from .scanner import StringLiteral, scan_string_literals

# 不是给用户看的文案：URL、路径、颜色、尺寸、命令行参数、转义序列等
_NOISE_PATTERNS = [re.compile(p, re.A | flags) for p, flags in (
    (r"^-{1,2}[A-Za-z0-9][\w-]*(?:=[^\s]+)?$", 0),
    (r"^(?:https?:)?//\S+$", re.I),
    (r"^(?:mailto:|tel:|data:)\S+$", re.I),
    (r"^(?:\w+://)?[\w.-]+\.[a-z]{2,}(?:[/?#]\S*)?$", re.I),
    (r"^[A-Za-z]:\\", 0),
    (r"^[./@_\w-]+$", 0),
    (r"^[A-Z_][A-Z0-9_]{2,}$", 0),
    (r"^\$\{?[\w.]+\}?$", 0),
    (r"^\{+[\w.$-]+\}+$", 0),
    (r"^</?[a-z][^>]*>$", re.I),
    (r"^<!DOCTYPE\s+html>$", re.I),
    (r"^&[a-zA-Z]+;$", 0),
    (r"^#(?:[\da-fA-F]{3}|[\da-fA-F]{4}|[\da-fA-F]{6}|[\da-fA-F]{8})$", 0),
    (r"^(?:rgb|rgba|hsl|hsla)\s*\([^)]*\)$", re.I),
    (r"^var\(--[\w-]+\)$", re.I),
    (r"^-?\d+(?:\.\d+)?(?:px|r?em|vh|vw|vmin|vmax|%)$", re.I),
    (r"^\d+(?:\.\d+)?$", 0),
    (r"^\$[A-Za-z_][$\w]*$", 0),
    (r"^\[object\s+[A-Za-z][\w$]*\]$", re.I),
    (r"^(?:undefined|null|true|false|NaN|Infinity)$", re.I),
    (r"^<[/!?]?(?:script|style|template)\b", re.I),
    (r"^\*?\.[a-z0-9]+$", re.I),
    (r"^\*+\.[\w.-]+$", 0),
    (r"^(?:\\[nrtbfv0'\"\\])+$", re.I),
    (r"^\\u[\da-fA-F]{4}$", re.I),
    (r"^\\u\{[\da-fA-F]{1,6}\}$", re.I),
    (r"^\\x[\da-fA-F]{2}$", re.I),
)]
_PATH_RE = re.compile(r"^(?:\.{0,2}[/\\]|[/\\]).+")
_DOTTED_RE = re.compile(r"^[-\w]+(?:\.[-\w]+)+$", re.A)
_FORMAT_RE = re.compile(r"%[A-Za-z]|%x[\da-fA-F]{2}")
_MASK_RE = re.compile(r"^[*?\[\]{}!./\\\w-]+$", re.A)
_REGEX_TOKEN_RE = re.compile(r"\\[dDsSwWbB]|[()\[\]{}+*?|^$]")
_OPERATOR_RE = re.compile(r"^(?:=>|==?=?|!=?=?|&&|\|\||\+\+|--)$")
_KEYWORD_RE = re.compile(r"^(?:import|export|function|return|const|let|var)\b")
_CALL_RE = re.compile(r"^[\w$]+\([^)]*\)$", re.A)
_WORD_RE = re.compile(r"[A-Za-z0-9]+")

_CJK_LANGS = ("zh-cn", "zh-tw", "ja", "ko")
_KEY_MAX_WORDS = 4


def _has_space(text: str) -> bool:
    return any(c.isspace() for c in text)


def _is_regex_like(text: str) -> bool:
    if not text.strip() or "\\" not in text:
        return False
    if _has_space(text) and "\\s" not in text:
        return False
    if not _REGEX_TOKEN_RE.search(text):
        return False
    return sum(1 for c in text if c.isascii() and c.isalpha()) <= 6


def _is_code_like(text: str) -> bool:
    s = text.strip()
    if len(s) <= 1:
        return True
    if all(c in "()[]{}<>;,:|&^~`" for c in s):
        return True
    if _OPERATOR_RE.match(s) or _KEYWORD_RE.match(s):
        return True
    if len(s) >= 2 and s[0] in "'\"`" and s[-1] in "'\"`":
        return True
    return bool(_CALL_RE.match(s)) and not _has_space(s)


def is_invalid_hardcoded_text(text: str) -> bool:
    """字符串是否明显不是界面文案。"""
    if any(p.search(text) for p in _NOISE_PATTERNS):
        return True
    if not _has_space(text):
        if _PATH_RE.match(text):
            return True
        if _DOTTED_RE.match(text) and not any(c.isupper() for c in text):
            return True
        # printf / strftime 之类的格式串
        if _FORMAT_RE.search(text) and text.count("%") >= 2:
            return True
    if any(c in "*?" for c in text) and _MASK_RE.match(text):
        return True
    return _is_regex_like(text) or _is_code_like(text)


def is_extractable_text(text: str, cjk_only: bool = False) -> bool:
    if not text.strip() or is_invalid_hardcoded_text(text):
        return False
    if not any(c.isalpha() for c in text):
        return False
    if cjk_only and not any(_is_cjk(c) for c in text):
        return False
    return True


def _is_cjk(c: str) -> bool:
    o = ord(c)
    return 0x3400 <= o <= 0x9FFF or 0x3040 <= o <= 0x30FF or 0xAC00 <= o <= 0xD7AF


def _cjk_only(ctx: LangContext) -> bool:
    intro = resolve_lang(ctx.referred_lang, ctx.lang_alias_custom_mappings) if ctx.referred_lang else None
    return intro is not None and intro.key in _CJK_LANGS


# ----------------------------
# 候选
# ----------------------------
def _scan_root(ctx: LangContext, query: ExtractQuery) -> Path:
    root = Path(ctx.project_path)
    if not query.scope_path.strip():
        return root
    scope = Path(query.scope_path.strip())
    return scope if scope.is_absolute() else root / scope


def collect_candidates(ctx: LangContext, query: Optional[ExtractQuery] = None) -> List[StringLiteral]:
    """project_path（或 scope_path）下可以提取的硬编码文案；模板文件只看 <script>。"""
    query = query or ctx.extract_query
    if not ctx.project_path or not Path(ctx.project_path).is_dir():
        return []
    root = _scan_root(ctx, query).resolve()
    cjk_only = _cjk_only(ctx)
    out: List[StringLiteral] = []
    for p in iter_source_files(ctx):
        resolved = p.resolve()
        if resolved != root and root not in resolved.parents:
            continue
        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        for lit in scan_string_literals(text, ctx.call_names, str(p), script_only=True):
            if "\n" in lit.raw or not is_extractable_text(lit.text.strip(), cjk_only):
                continue
            if query.texts is not None and lit.text.strip() not in query.texts:
                continue
            out.append(lit)
    return out


# ----------------------------
# key 生成
# ----------------------------
def key_for_text(text: str, stem: str, prefix: str, is_taken: Callable[[str], bool]) -> str:
    """
    英文文案取前几个单词拼成 camelCase（Save changes -> saveChanges）；
    没有英文单词时用文件名 + 序号（homeText01）。
    """
    words = [w.lower() for w in _WORD_RE.findall(text)][:_KEY_MAX_WORDS]
    if words and not words[0][0].isdigit():
        base = words[0] + "".join(w.capitalize() for w in words[1:])
        candidates = [base] + [f"{base}{i}" for i in range(2, 100)]
    else:
        stem = re.sub(r"[^A-Za-z0-9]", "", stem) or "extracted"
        stem = stem[0].lower() + stem[1:]
        candidates = [f"{stem}Text{i:02d}" for i in range(1, 1000)]
    for name in candidates:
        full = f"{prefix}.{name}" if prefix else name
        if not is_taken(full):
            return full
    raise ValueError(f"无法为文案生成 key：{text}")


def _replacement(ctx: LangContext, lit: StringLiteral, name: str) -> str:
    quote = lit.raw[0] if lit.raw[0] in "'\"" else "'"
    func = ctx.call_names[0] if ctx.call_names else "t"
    escaped = name.replace(quote, "\\" + quote)
    return f"{func}({quote}{escaped}{quote})"


def run(ctx: LangContext) -> ExecutionResult:
    """
    把源码里的硬编码文案替换成 t("key")：
    - 文案和参考语言里已有的值一致时复用该词条
    - 否则生成新 key，参考语言写入原文
    """
    referred_lang = ctx.referred_lang
    if not referred_lang or referred_lang not in ctx.lang_country_map:
        return ExecutionResult.fail(ResultCode.NO_REFERRED_LANG, "❌ 没有可用的参考语言")

    query = ctx.extract_query
    candidates = collect_candidates(ctx, query)
    if not candidates:
        return ExecutionResult(success=True, message="✅ 没有需要提取的文案", code=ResultCode.NO_HARDCODED_TEXT)

    existing: Dict[str, str] = {}
    for key, value in ctx.lang_country_map[referred_lang].items():
        existing.setdefault(text_id(value), key)

    prefix = query.key_prefix.strip().strip(".")
    generated: Set[str] = set()
    new_keys: Dict[str, str] = {}
    reused = 0
    for lit in candidates:
        text = lit.text.strip()
        tid = text_id(text)
        if tid in existing:
            name = unescape_string(existing[tid])
            reused += 1
        elif tid in new_keys:
            name = new_keys[tid]
        else:
            name = key_for_text(
                text, Path(lit.path).stem, prefix,
                lambda k: k in generated or resolve_name(ctx, k) is not None,
            )
            generated.add(name)
            new_keys[tid] = name
            ctx.update_payloads.append(UpdatePayload(
                type=PayloadType.ADD,
                key=name,
                value_changes={referred_lang: ValueChange(before=None, after=text)},
            ))
        patch = IdPatch(id=name, raw=lit.raw, fixed_raw=_replacement(ctx, lit, name), pos=f"{lit.start},{lit.end}")
        ctx.patched_entry_id_info.setdefault(lit.path, []).append(patch)

    res = rewrite.run(ctx)
    if not res.success:
        return res
    ctx.extract_query = ExtractQuery()
    return ExecutionResult.ok(
        f"✅ 已提取 {len(candidates)} 处文案，新增 {len(new_keys)} 条词条",
        extracted=len(candidates),
        added=sorted(new_keys.values()),
        reused=reused,
        patched_files=res.data.get("patched_files", []),
    )
