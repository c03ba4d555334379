from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Set


# =========================
# Strategies (resolved once at read time)
# =========================

class NamespaceStrategy(str, Enum):
    AUTO = "auto"
    FULL = "full"
    FILE = "file"
    NONE = "none"


class LanguageStructure(str, Enum):
    AUTO = "auto"
    FLAT = "flat"
    NESTED = "nested"


class SortMode(str, Enum):
    NONE = "none"
    BY_KEY = "byKey"
    BY_POSITION = "byPosition"


class ImportMode(str, Enum):
    KEY = "key"
    LANGUAGE = "language"


class IndentType(str, Enum):
    SPACE = "space"
    TAB = "tab"


class QuoteStyle(str, Enum):
    NONE = "none"
    SINGLE = "single"
    DOUBLE = "double"


class PayloadType(str, Enum):
    ADD = "add"
    EDIT = "edit"
    RENAME = "rename"
    DELETE = "delete"
    FILL = "fill"


# =========================
# Result codes
# =========================

class ResultCode(IntEnum):
    NO_LACK_ENTRIES = 104
    NO_TRIM_ENTRIES = 105
    NO_SORTING_APPLIED = 106
    NO_HARDCODED_TEXT = 107
    SUCCESS = 200
    PROCESSING = 301
    CANCELLED = 302
    NO_LANG_PATH_DETECTED = 303
    IMPORT_NO_KEY = 304
    IMPORT_NO_LANG = 305
    TRANSLATOR_PARTIAL_FAILED = 306
    NO_REFERRED_LANG = 307
    UNKNOWN_ERROR = 400
    UNKNOWN_CHECK_ERROR = 401
    UNKNOWN_FIX_ERROR = 402
    UNKNOWN_REWRITE_ERROR = 403
    UNKNOWN_EXPORT_ERROR = 404
    UNKNOWN_IMPORT_ERROR = 405
    UNKNOWN_MODIFY_ERROR = 406
    TRANSLATOR_FAILED = 407
    UNKNOWN_EXTRACT_ERROR = 408
    INVALID_EXPORT_PATH = 420
    INVALID_ENTRY_NAME = 421


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    message: str
    code: ResultCode
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "", **data: Any) -> "ExecutionResult":
        return cls(success=True, message=message, code=ResultCode.SUCCESS, data=dict(data))

    @classmethod
    def fail(cls, code: ResultCode, message: str) -> "ExecutionResult":
        return cls(success=False, message=message, code=code)


# =========================
# Catalog Models
# =========================

@dataclass
class Entry:
    """One logical translation entry in the dictionary."""
    full_path: str
    file_scope: str = ""
    value: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FileExtraInfo:
    """
    Formatting fingerprint of one language file, captured at read time:
    - prefix / suffix: text around the object literal (e.g. `export default `)
    - inner_var: spread lines such as `...common` kept verbatim
    """
    prefix: str = ""
    suffix: str = ""
    inner_var: str = ""
    indent_type: IndentType = IndentType.SPACE
    indent_size: int = 2
    is_flat: bool = True
    key_quotes: QuoteStyle = QuoteStyle.DOUBLE
    value_quotes: QuoteStyle = QuoteStyle.DOUBLE
    line_ending: str = "\n"

    @property
    def indent(self) -> str:
        if self.indent_type == IndentType.TAB:
            return "\t"
        return " " * self.indent_size


@dataclass
class DirNode:
    """On-disk layout node: `directory` holds children, `file` holds the extension."""
    type: str
    children: Dict[str, "DirNode"] = field(default_factory=dict)
    ext: str = ""

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @classmethod
    def directory(cls, children: Optional[Dict[str, "DirNode"]] = None) -> "DirNode":
        return cls(type="directory", children=dict(children or {}))

    @classmethod
    def file(cls, ext: str) -> "DirNode":
        return cls(type="file", ext=ext)


# =========================
# Update Payloads
# =========================

@dataclass(frozen=True)
class ValueChange:
    before: Optional[str] = None
    after: Optional[str] = None


@dataclass(frozen=True)
class KeyChange:
    key_after: str
    file_pos_before: str = ""
    file_pos_after: str = ""
    full_path_after: str = ""


@dataclass(frozen=True)
class UpdatePayload:
    type: PayloadType
    key: str
    value_changes: Dict[str, ValueChange] = field(default_factory=dict)
    key_change: Optional[KeyChange] = None


@dataclass(frozen=True)
class IdPatch:
    """
    A call-site replacement in a source file.
    pos: "start,end" or "a,b,start,end" (the last pair wins).
    """
    id: str
    raw: str
    fixed_raw: str
    pos: str


# =========================
# Census Models
# =========================

# text -> file path -> set of "start,end"
UsageMap = Dict[str, Dict[str, Set[str]]]


@dataclass(frozen=True)
class TCall:
    """A translation call site found by the scanner."""
    raw: str
    text: str
    vars: List[str] = field(default_factory=list)
    pos: str = ""
    raw_range: str = ""
    path: str = ""

    @property
    def has_vars(self) -> bool:
        return bool(self.vars)


@dataclass(frozen=True)
class TranslateResult:
    success: bool
    data: List[str] = field(default_factory=list)
    message: str = ""
