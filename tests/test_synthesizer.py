import pytest

from sandbox.synthesizer import (
    BODY_START_LINE,
    CAPTURE_FUNCTION,
    find_call_end,
    normalize_indentation,
    rewrite_print_calls,
    split_source_lines,
    synthesize,
)


# --- print rewriting ---


def test_rewrite_simple_print() -> None:
    assert rewrite_print_calls('print("hi")') == f'{CAPTURE_FUNCTION}("hi")'


def test_rewrite_nested_parentheses() -> None:
    rewritten = rewrite_print_calls("print(foo(1, 2), (3 + 4) * 2)")
    assert rewritten == f"{CAPTURE_FUNCTION}(foo(1, 2), (3 + 4) * 2)"


def test_rewrite_ignores_parentheses_inside_strings() -> None:
    rewritten = rewrite_print_calls('print(")", "(")\nprint(1)')
    assert rewritten == f'{CAPTURE_FUNCTION}(")", "(")\n{CAPTURE_FUNCTION}(1)'


def test_rewrite_handles_every_call_in_order() -> None:
    code = "print(1)\nx = 2\nprint(x)\nif x:\n    print('yes')"
    assert rewrite_print_calls(code).count(f"{CAPTURE_FUNCTION}(") == 3
    assert "print(" not in rewrite_print_calls(code)


def test_rewrite_print_inside_print_arguments() -> None:
    assert rewrite_print_calls("print(print(1))") == f"{CAPTURE_FUNCTION}({CAPTURE_FUNCTION}(1))"


@pytest.mark.parametrize(
    "code",
    [
        "obj.print(1)",
        "obj . print(1)",
        "def print(x):\n    return x",
        "sprint(1)",
        "print_all(1)",
        "x = 'print(1)'",
        'x = f"{print}(1)"',
        "# print(1)",
        "x = print",
        'print("unclosed"',
    ],
)
def test_rewrite_leaves_non_calls_alone(code: str) -> None:
    assert rewrite_print_calls(code) == code


def test_rewrite_allows_space_before_parenthesis() -> None:
    assert rewrite_print_calls("print (1)") == f"{CAPTURE_FUNCTION}(1)"


def test_rewrite_triple_quoted_string_untouched() -> None:
    code = 'doc = """\nprint(1)\n"""\nprint(2)'
    assert rewrite_print_calls(code) == f'doc = """\nprint(1)\n"""\n{CAPTURE_FUNCTION}(2)'


def test_find_call_end_rejects_mismatched_bracket() -> None:
    assert find_call_end("(1, 2]", 0) is None
    assert find_call_end("(a[1], {2: (3)})", 0) == 15


# --- indentation ---


def test_normalize_converts_groups_of_four_spaces() -> None:
    code = "if x:\n    y = 1\n        z = 2\n"
    assert normalize_indentation(code) == "if x:\n\ty = 1\n\t\tz = 2\n"


def test_normalize_keeps_inner_text() -> None:
    assert normalize_indentation("        a    =    1") == "\t\ta    =    1"


def test_normalize_leaves_off_width_indentation_alone() -> None:
    code = "for i in x:\n  if i:\n    total += i\n"
    assert normalize_indentation(code) == code


def test_normalize_skips_lines_inside_strings() -> None:
    code = 'if x:\n    doc = """\n    kept\n  also kept\n"""\n'
    assert normalize_indentation(code) == 'if x:\n\tdoc = """\n    kept\n  also kept\n"""\n'


def test_split_source_lines_flags_string_continuations() -> None:
    code = "a = '''x\n  y\n'''\nb = 'q' # '''\nc = 1"
    assert split_source_lines(code) == [
        ("a = '''x", False),
        ("  y", True),
        ("'''", True),
        ("b = 'q' # '''", False),
        ("c = 1", False),
    ]


def test_normalize_custom_width() -> None:
    assert normalize_indentation("    x", indent_width=2) == "\t\tx"


def test_normalize_rejects_zero_width() -> None:
    with pytest.raises(ValueError):
        normalize_indentation("x", indent_width=0)


@pytest.mark.parametrize(
    "code",
    [
        "x = 1",
        "if a:\n    b\n        c\n",
        "   three\n     five\n\t    mixed\n",
        "\n\n    \n",
    ],
)
def test_normalize_is_idempotent(code: str) -> None:
    once = normalize_indentation(code)
    assert normalize_indentation(once) == once


# --- template assembly ---


def test_synthesized_unit_compiles() -> None:
    unit = synthesize("for i in range(3):\n    print(i)\nresult = 42")
    compile(unit.source, "<unit>", "exec")
    assert f"\t{CAPTURE_FUNCTION}(i)" in unit.source
    assert "async def _ready(node):" in unit.source


def test_synthesized_unit_body_is_indented_one_level() -> None:
    unit = synthesize("a = 1\nif a:\n    b = 2")
    lines = unit.source.splitlines()
    body = lines[unit.body_start_line - 1:unit.body_start_line - 1 + unit.body_line_count]
    assert body == ["\ta = 1", "\tif a:", "\t\tb = 2"]


def test_synthesize_keeps_multiline_strings_verbatim() -> None:
    unit = synthesize('text = """a\n    b\n\n  \nc"""\nresult = text')
    assert '\ttext = """a\n    b\n\n  \nc"""\n\tresult = text' in unit.source
    compile(unit.source, "<unit>", "exec")


def test_synthesize_two_space_nesting_compiles() -> None:
    unit = synthesize("for i in range(3):\n  if i:\n    total = i")
    assert "\tfor i in range(3):\n\t  if i:\n\t    total = i" in unit.source
    compile(unit.source, "<unit>", "exec")


def test_fragment_line_mapping() -> None:
    unit = synthesize("a = 1\nb = 2")
    assert unit.body_start_line == BODY_START_LINE
    assert unit.fragment_line(BODY_START_LINE) == 1
    assert unit.fragment_line(BODY_START_LINE + 1) == 2
    assert unit.fragment_line(BODY_START_LINE + 2) is None
    assert unit.fragment_line(1) is None
    assert unit.fragment_line(None) is None


def test_synthesized_unit_defines_only_its_own_names() -> None:
    unit = synthesize("result = 1")
    code = compile(unit.source, "<unit>", "exec")
    namespace: dict[str, object] = {}
    exec(code, namespace)
    for name in ("result", "output_lines", "error_message", CAPTURE_FUNCTION, "_ready", "OK", "FAILED"):
        assert name in namespace
