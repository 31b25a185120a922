"""Tests for the Nix tokenizer."""

import pytest

from app.buildenv.lexer import NixSyntaxError, tokenize


def kinds(text):
    return [tok.kind for tok in tokenize(text)][:-1]


def values(text):
    return [tok.value for tok in tokenize(text)][:-1]


class TestTokenKinds:
    def test_select_chain(self):
        assert kinds("pkgs.python312") == ["ID", ".", "ID"]

    def test_identifier_with_dash(self):
        assert values("pkg-config") == ["pkg-config"]

    def test_keywords(self):
        assert kinds("let x = 1; in x") == ["let", "ID", "=", "INT", ";", "in", "ID"]

    def test_or_is_an_identifier(self):
        assert kinds("a.b or c") == ["ID", ".", "ID", "ID", "ID"]

    def test_paths(self):
        assert kinds("./.") == ["PATH"]
        assert kinds("./src/main.nix") == ["PATH"]
        assert kinds("~/config") == ["PATH"]

    def test_path_with_interpolation(self):
        tokens = tokenize("./src/${name}.nix")
        assert tokens[0].kind == "PATH"
        head, interp, tail = tokens[0].value
        assert head == "./src/"
        assert [tok.value for tok in interp] == ["name"]
        assert tail == ".nix"
        assert tokens[1].kind == "EOF"

    def test_path_segment_with_interpolation(self):
        tokens = tokenize("~/cfg${suffix}")
        assert tokens[0].kind == "PATH"
        assert tokens[0].value[0] == "~/cfg"

    def test_search_path(self):
        tokens = tokenize("<nixpkgs>")
        assert tokens[0].kind == "SPATH"
        assert tokens[0].value == "<nixpkgs>"

    def test_uri(self):
        tokens = tokenize("https://example.org/a.tar.gz")
        assert tokens[0].kind == "URI"

    def test_lambda_argument_is_not_a_uri(self):
        assert kinds("x: x") == ["ID", ":", "ID"]

    def test_numbers(self):
        tokens = tokenize("42 1.5 .25")
        assert [(tok.kind, tok.value) for tok in tokens[:-1]] == [
            ("INT", 42),
            ("FLOAT", 1.5),
            ("FLOAT", 0.25),
        ]

    def test_operators_longest_first(self):
        assert kinds("a // b ++ c -> d") == ["ID", "//", "ID", "++", "ID", "->", "ID"]

    def test_ellipsis(self):
        assert kinds("{ a, ... }") == ["{", "ID", ",", "...", "}"]


class TestComments:
    def test_line_and_block_comments_are_skipped(self):
        assert kinds("# note\na /* inline */ b") == ["ID", "ID"]

    def test_positions_after_comment(self):
        tokens = tokenize("# first\n  value")
        assert (tokens[0].line, tokens[0].column) == (2, 3)


class TestStrings:
    def test_plain(self):
        assert values('"hello"') == [["hello"]]

    def test_escapes(self):
        assert values(r'"a\nb\"c\${d}"') == [['a\nb"c${d}']]

    def test_interpolation_parts(self):
        parts = values('"x-${name}-y"')[0]
        assert parts[0] == "x-"
        assert [tok.value for tok in parts[1]] == ["name"]
        assert parts[2] == "-y"

    def test_nested_braces_in_interpolation(self):
        parts = values('"${f { a = 1; }}"')[0]
        assert [tok.kind for tok in parts[0]] == ["ID", "{", "ID", "=", "INT", ";", "}"]

    def test_indented_string_strips_common_indent(self):
        text = "''\n    foo\n    bar\n  ''"
        assert values(text) == [["foo\nbar\n"]]

    def test_indented_string_keeps_relative_indent(self):
        text = "''\n  a\n    b\n''"
        assert values(text) == [["a\n  b\n"]]

    def test_indented_string_escapes(self):
        assert values("''a'''b''") == [["a''b"]]
        assert values("''''${x}''") == [["${x}"]]
        assert values("''a''\\nb''") == [["a\nb"]]

    def test_indented_interpolation(self):
        parts = values("''\n  run ${cmd}\n''")[0]
        assert parts[0] == "run "
        assert [tok.value for tok in parts[1]] == ["cmd"]
        assert parts[2] == "\n"

    def test_bare_interpolation(self):
        tokens = tokenize("${name}")
        assert tokens[0].kind == "INTERP"


class TestErrors:
    def test_unterminated_string(self):
        with pytest.raises(NixSyntaxError) as excinfo:
            tokenize('"abc')
        assert excinfo.value.reason == "unterminated string"

    def test_unterminated_comment(self):
        with pytest.raises(NixSyntaxError):
            tokenize("/* open")

    def test_unexpected_character(self):
        with pytest.raises(NixSyntaxError) as excinfo:
            tokenize("a %")
        assert excinfo.value.line == 1
        assert excinfo.value.column == 3

    def test_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            tokenize("''never closed")
