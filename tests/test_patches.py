from pathlib import Path

from lang_keeper.models import IdPatch
from lang_keeper.patches import apply_code_patches, insert_import, parse_range, patch_text


def test_parse_range():
    assert parse_range("3,7") == (3, 7)
    assert parse_range("3,7,1,9") == (1, 9)
    assert parse_range("x,y") is None
    assert parse_range("5") is None


def test_patch_text_applies_from_the_end():
    content = 't("Hello"); t("Bye")'
    patches = [
        IdPatch(id="hello", raw='t("Hello")', fixed_raw='t("hello")', pos="0,10"),
        IdPatch(id="bye", raw='t("Bye")', fixed_raw='t("common.bye")', pos="12,20"),
    ]
    out, applied = patch_text(content, patches)
    assert out == 't("hello"); t("common.bye")'
    assert applied == 2


def test_patch_text_skips_stale_or_out_of_range():
    content = 't("Changed")'
    patches = [
        IdPatch(id="a", raw='t("Hello")', fixed_raw='t("a")', pos="0,10"),
        IdPatch(id="b", raw="", fixed_raw="x", pos="5,100"),
    ]
    out, applied = patch_text(content, patches)
    assert out == content
    assert applied == 0


def test_insert_import():
    stmt = "import { t } from '@/i18n'"
    assert insert_import("t('a')\n", stmt, Path("a.js")) == stmt + "\nt('a')\n"
    assert insert_import(stmt + "\n", stmt, Path("a.js")) == stmt + "\n"

    vue = "<template></template>\n<script setup>\nconst a = 1\n</script>\n"
    out = insert_import(vue, stmt, Path("a.vue"))
    assert out == "<template></template>\n<script setup>\n" + stmt + "\nconst a = 1\n</script>\n"
    assert insert_import("<template></template>", stmt, Path("b.vue")) == "<template></template>"


def test_apply_code_patches_writes_only_changed_files(tmp_path):
    a = tmp_path / "a.js"
    b = tmp_path / "b.js"
    a.write_text('t("Hello")\n', encoding="utf-8")
    b.write_text('t("Other")\n', encoding="utf-8")
    info = {
        str(a): [IdPatch(id="hello", raw='t("Hello")', fixed_raw='t("hello")', pos="0,10")],
        str(b): [IdPatch(id="x", raw='t("Nope")', fixed_raw='t("x")', pos="0,8")],
    }
    changed = apply_code_patches(info, "import t from './t'")
    assert changed == [str(a)]
    assert a.read_text(encoding="utf-8") == "import t from './t'\nt(\"hello\")\n"
    assert b.read_text(encoding="utf-8") == 't("Other")\n'
