import json
import sys
from pathlib import Path

import pytest


# Ensure 'src/' is on sys.path so 'lang_keeper' can be imported when running tests from repo root.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

from lang_keeper.context import LangContext  # noqa: E402


@pytest.fixture
def chdir_tmp(tmp_path, monkeypatch):
    """切到临时目录执行（避免污染仓库）。"""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write_json(path: Path, obj) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def write_json():
    return _write_json


@pytest.fixture
def make_project(tmp_path):
    """
    在 tmp_path 下生成：
    - src/i18n/<lang>.json（单文件）或 src/i18n/<lang>/<file>.json（多文件：value 为 {相对路径: obj}）
    - src/ 下的源码文件
    返回指向它们的 LangContext。
    """

    def _make(langs, sources=None, multi=False, **options):
        lang_root = tmp_path / "src" / "i18n"
        for lang, data in langs.items():
            if multi:
                for rel, obj in data.items():
                    _write_json(lang_root / lang / f"{rel}.json", obj)
            else:
                _write_json(lang_root / f"{lang}.json", data)
        for rel, text in (sources or {}).items():
            p = tmp_path / "src" / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(text, encoding="utf-8")
        ctx = LangContext(lang_path=str(lang_root), project_path=str(tmp_path / "src"))
        ctx.apply_options(options)
        return ctx

    return _make


def read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def load_json():
    return read_json
