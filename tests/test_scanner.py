from lang_keeper.scanner import call_pattern, scan_source, scan_string_literals, scan_t_calls


def test_scan_plain_calls_with_positions():
    src = 'a = t("hi")'
    calls = scan_t_calls(src, path="a.js")
    assert len(calls) == 1
    c = calls[0]
    assert c.text == "hi"
    assert c.raw == 't("hi")'
    assert c.pos == "7,9"
    assert c.raw_range == "4,11"
    assert src[7:9] == "hi"
    assert c.path == "a.js"
    assert not c.has_vars


def test_scan_call_names_and_preceders():
    src = "\n".join([
        "const x = $t('a.b') + i18n.t(\"c\")",
        "set('nope'); at('nope'); format('nope')",
        "<span>{{ $t('tpl.key') }}</span>",
    ])
    texts = [c.text for c in scan_t_calls(src)]
    assert texts == ["a.b", "c", "tpl.key"]


def test_scan_skips_comments_and_strings():
    src = """
// t("comment.line")
/* t("comment.block") */
const s = "t('in.string')"
t("real.key")
"""
    assert [c.text for c in scan_t_calls(src)] == ["real.key"]


def test_scan_template_and_concat_become_vars():
    src = 't(`user.${role}.name`); t("page." + name); t(variableOnly)'
    calls = scan_t_calls(src)
    assert [c.text for c in calls] == ["user.{t0}.name", "page.{t0}"]
    assert calls[0].vars == ["role"]
    assert calls[1].vars == ["name"]
    assert all(c.has_vars for c in calls)


def test_scan_extra_arguments_kept_in_raw():
    calls = scan_t_calls('t("greet", { name: user.name })')
    assert calls[0].text == "greet"
    assert calls[0].raw == 't("greet", { name: user.name })'


def test_custom_call_names():
    src = 'translate("a"); t("b")'
    assert [c.text for c in scan_t_calls(src, names=["translate"])] == ["a"]


def test_call_pattern_matches_candidates():
    call = scan_t_calls("t(`user.${role}.name`)")[0]
    pattern = call_pattern(call)
    assert pattern.match("user.admin.name")
    assert pattern.match("user.guest.name")
    assert not pattern.match("user.admin.title")


VUE = """<template>
  <el-button :title="$t('common.ok')">Don't</el-button>
  <p>{{ $t('page.title') }}</p>
</template>
<script setup>
const label = t("common.cancel")
</script>
<style>
.a::after { content: "t('css.noise')"; }
</style>
<!-- $t('comment.noise') -->
"""


def test_scan_source_vue_regions():
    """场景：模板文件只扫描属性绑定、插值和 <script>；位置相对整个文件"""
    calls = scan_source(VUE, path="App.vue")
    assert [c.text for c in calls] == ["common.ok", "page.title", "common.cancel"]
    for c in calls:
        a, b = (int(x) for x in c.pos.split(","))
        assert VUE[a:b] == c.text
        start, end = (int(x) for x in c.raw_range.split(","))
        assert VUE[start:end] == c.raw


def test_scan_source_plain_file_is_whole_text():
    src = 'const a = t("x")'
    assert scan_source(src, path="a.ts") == scan_t_calls(src, path="a.ts")


def test_scan_string_literals_skips_calls_imports_and_keys():
    src = "\n".join([
        "import x from 'lib'",
        "const y = require('other')",
        "const o = { 'key': \"Value text\", label: t('not.me') }",
        "const s = `tpl ${x}`",
        "const plain = `Plain tpl`",
    ])
    lits = scan_string_literals(src, path="a.js")
    assert [lit.text for lit in lits] == ["Value text", "Plain tpl"]
    for lit in lits:
        assert src[lit.start:lit.end] == lit.raw


def test_scan_string_literals_script_only():
    lits = scan_string_literals(VUE, path="App.vue", script_only=True)
    assert lits == []
    src = '<template><b :x="\'attr\'"></b></template><script>const a = "Hello"</script>'
    assert [lit.text for lit in scan_string_literals(src, path="A.vue", script_only=True)] == ["Hello"]
    assert [lit.text for lit in scan_string_literals(src, path="A.vue")] == ["attr", "Hello"]
