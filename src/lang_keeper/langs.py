from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple


@dataclass(frozen=True)
class LangIntro:
    key: str
    en_name: str
    cn_name: str
    code: str


# key -> (英文名, 中文名, 通用代码)
LANG_TABLE: Dict[str, Tuple[str, str, str]] = {
    "en": ("English", "英语", "en"),
    "zh-cn": ("Simplified Chinese", "简体中文", "zh-CN"),
    "zh-tw": ("Traditional Chinese", "繁體中文", "zh-TW"),
    "ja": ("Japanese", "日语", "ja"),
    "ko": ("Korean", "韩语", "ko"),
    "fr": ("French", "法语", "fr"),
    "de": ("German", "德语", "de"),
    "es": ("Spanish", "西班牙语", "es"),
    "it": ("Italian", "意大利语", "it"),
    "pt": ("Portuguese", "葡萄牙语", "pt"),
    "pt-br": ("Brazilian Portuguese", "巴西葡萄牙语", "pt-BR"),
    "ru": ("Russian", "俄语", "ru"),
    "ar": ("Arabic", "阿拉伯语", "ar"),
    "th": ("Thai", "泰语", "th"),
    "vi": ("Vietnamese", "越南语", "vi"),
    "id": ("Indonesian", "印尼语", "id"),
    "ms": ("Malay", "马来语", "ms"),
    "tr": ("Turkish", "土耳其语", "tr"),
    "pl": ("Polish", "波兰语", "pl"),
    "nl": ("Dutch", "荷兰语", "nl"),
    "sv": ("Swedish", "瑞典语", "sv"),
    "da": ("Danish", "丹麦语", "da"),
    "fi": ("Finnish", "芬兰语", "fi"),
    "nb": ("Norwegian", "挪威语", "no"),
    "cs": ("Czech", "捷克语", "cs"),
    "el": ("Greek", "希腊语", "el"),
    "he": ("Hebrew", "希伯来语", "iw"),
    "hi": ("Hindi", "印地语", "hi"),
    "uk": ("Ukrainian", "乌克兰语", "uk"),
    "hu": ("Hungarian", "匈牙利语", "hu"),
    "ro": ("Romanian", "罗马尼亚语", "ro"),
    "bg": ("Bulgarian", "保加利亚语", "bg"),
    "fa": ("Persian", "波斯语", "fa"),
    "bn": ("Bengali", "孟加拉语", "bn"),
}

# 额外别名（文件名 / 表头里常见的写法）
DEFAULT_ALIASES: Dict[str, List[str]] = {
    "en": ["english", "eng", "en-us", "en-gb"],
    "zh-cn": ["zh", "cn", "zh-hans", "zh-sg", "chs", "sc", "chinese", "简体", "中文"],
    "zh-tw": ["zh-hant", "zh-hk", "zh-mo", "cht", "tc", "tw", "繁体中文", "繁体"],
    "ja": ["jp", "jpn", "日本語"],
    "ko": ["kr", "kor", "한국어"],
    "nb": ["no", "nn", "norsk"],
    "he": ["iw"],
    "es": ["es-419", "es-mx"],
}


def _std(s: str) -> str:
    return s.strip().lower().replace("_", "-")


def _split_name(s: str) -> List[str]:
    parts = re.findall(r"[a-z0-9-]+", s.lower())
    if not parts:
        return []
    return parts if len(parts) > 1 else [parts[0], "".join(parts)]


def build_reverse_map(custom: Optional[Mapping[str, Iterable[str]]] = None) -> Dict[str, str]:
    """别名（标准化后）-> 主 key"""
    rev: Dict[str, str] = {}
    for key, (en_name, cn_name, code) in LANG_TABLE.items():
        for alias in (key, en_name, cn_name, code):
            rev[_std(alias)] = key
    for key, aliases in DEFAULT_ALIASES.items():
        for alias in aliases:
            rev.setdefault(_std(alias), key)
    for key, aliases in (custom or {}).items():
        k = _std(key)
        if k not in LANG_TABLE:
            continue
        for alias in aliases:
            rev[_std(str(alias))] = k
    return rev


def _intro(key: str) -> LangIntro:
    en_name, cn_name, code = LANG_TABLE[key]
    return LangIntro(key=key, en_name=en_name, cn_name=cn_name, code=code)


def resolve_lang(name: str, custom: Optional[Mapping[str, Iterable[str]]] = None) -> Optional[LangIntro]:
    """
    按文件名 / 表头识别语种：
    1) 完整名字命中别名表
    2) 拆段后精确匹配主 key
    3) 带区域码（en-US -> en）
    4) 数字区域码（es-419）
    """
    if not name or not name.strip():
        return None
    rev = build_reverse_map(custom)
    base = _std(name)
    if base in rev:
        return _intro(rev[base])
    for part in _split_name(base):
        if part in LANG_TABLE:
            return _intro(part)
        head = part.split("-")[0]
        if head and head != part:
            if head in LANG_TABLE:
                return _intro(head)
            if head in rev:
                return _intro(rev[head])
        if re.search(r"\d+$", part):
            word = next((p for p in part.split("-") if not p.isdigit()), None)
            if word is not None and word in rev:
                return _intro(rev[word])
    return None


def is_lang_name(name: str, custom: Optional[Mapping[str, Iterable[str]]] = None) -> bool:
    return resolve_lang(name, custom) is not None


def lang_display_name(name: str, custom: Optional[Mapping[str, Iterable[str]]] = None) -> str:
    intro = resolve_lang(name, custom)
    return intro.en_name if intro else ""


def header_candidates(lang: str, custom: Optional[Mapping[str, Iterable[str]]] = None) -> Set[str]:
    """表头里可能代表该语种的写法（已标准化）。"""
    out = {_std(lang)}
    intro = resolve_lang(lang, custom)
    if intro is None:
        return out
    out.update(_std(x) for x in (intro.key, intro.en_name, intro.cn_name, intro.code))
    out.update(_std(x) for x in DEFAULT_ALIASES.get(intro.key, []))
    for key, aliases in (custom or {}).items():
        if _std(key) == intro.key:
            out.update(_std(str(a)) for a in aliases)
    return out


def normalize_header(s: object) -> str:
    return re.sub(r"\s+", " ", _std(str(s if s is not None else "")))
