"""Tests for LaTeX delimiter pairing."""

from app.prompting.system_prompt import load_template, render_system_prompt
from app.validation.math_delimiters import (
    MathSpan,
    check_math_delimiters,
    find_math_spans,
    mask_code_spans,
)


def codes(text):
    return [issue.code for issue in check_math_delimiters(text)]


class TestShippedPrompt:
    def test_template_delimiters_are_paired(self):
        assert check_math_delimiters(load_template()) == []

    def test_rendered_prompt_spans(self, fixed_now):
        spans = find_math_spans(render_system_prompt(now=fixed_now))
        assert [span.kind for span in spans] == ["inline", "display"]
        assert spans[0].content == "e^{i\\pi} + 1 = 0"


class TestPairing:
    def test_inline_span(self):
        spans = find_math_spans("Euler: \\( e^{i\\pi} = -1 \\)")
        assert spans == [MathSpan("inline", 1, 1, "e^{i\\pi} = -1")]

    def test_display_span_across_lines(self):
        text = "Result:\n\\[\nx^2\n\\]\n"
        spans = find_math_spans(text)
        assert spans == [MathSpan("display", 2, 4, "x^2")]
        assert check_math_delimiters(text) == []

    def test_unclosed(self):
        issues = check_math_delimiters("text \\( a + b")
        assert [issue.code for issue in issues] == ["unclosed-math"]
        assert issues[0].line == 1

    def test_stray_close(self):
        assert codes("a \\) b") == ["stray-close"]

    def test_mismatched(self):
        assert codes("\\( a \\] b") == ["mismatched-close"]

    def test_nested(self):
        assert codes("\\( a \\( b \\)") == ["nested-math"]

    def test_blank_line_ends_region(self):
        issues = check_math_delimiters("\\[\nx\n\n\\]\n")
        assert [(issue.code, issue.line) for issue in issues] == [
            ("unclosed-math", 1),
            ("stray-close", 4),
        ]


class TestEscapes:
    def test_escaped_backslash_is_not_a_delimiter(self):
        text = "path C:\\\\(x)"
        assert check_math_delimiters(text) == []
        assert find_math_spans(text) == []

    def test_triple_backslash_is_a_delimiter(self):
        assert codes("\\\\\\( open") == ["unclosed-math"]

    def test_other_commands_ignored(self):
        assert check_math_delimiters("\\frac{1}{2} and \\, and \\{") == []


class TestCodeIsIgnored:
    def test_inline_code(self):
        assert check_math_delimiters("Use `\\(` to open.") == []

    def test_double_backtick_code(self):
        assert check_math_delimiters("Use ``a ` \\[`` here.") == []

    def test_fenced_code(self):
        assert check_math_delimiters("```\n\\(\n```\n") == []

    def test_unmatched_backtick_is_literal(self):
        assert codes("a ` \\(") == ["unclosed-math"]

    def test_mask_keeps_newlines(self):
        assert mask_code_spans("a `b\nc` d") == "a   \n   d"
