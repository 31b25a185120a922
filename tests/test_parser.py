"""Tests for the Nix parser and canonical printer."""

import pytest

from app.buildenv import nodes
from app.buildenv.lexer import NixSyntaxError
from app.buildenv.parser import parse
from app.buildenv.printer import to_source

V = nodes.Var
I = nodes.Int


class TestOperators:
    def test_multiplication_binds_tighter(self):
        assert parse("1 + 2 * 3") == nodes.BinOp("+", I(1), nodes.BinOp("*", I(2), I(3)))

    def test_subtraction_is_left_associative(self):
        assert parse("a - b - c") == nodes.BinOp("-", nodes.BinOp("-", V("a"), V("b")), V("c"))

    def test_update_is_right_associative(self):
        assert parse("a // b // c") == nodes.BinOp("//", V("a"), nodes.BinOp("//", V("b"), V("c")))

    def test_concat_binds_tighter_than_update(self):
        tree = parse("a // b ++ c")
        assert tree == nodes.BinOp("//", V("a"), nodes.BinOp("++", V("b"), V("c")))

    def test_implication_is_loosest(self):
        tree = parse("a || b -> c && d")
        assert tree == nodes.BinOp(
            "->",
            nodes.BinOp("||", V("a"), V("b")),
            nodes.BinOp("&&", V("c"), V("d")),
        )

    def test_equality_is_not_associative(self):
        with pytest.raises(NixSyntaxError):
            parse("a == b == c")

    def test_comparison_is_not_associative(self):
        with pytest.raises(NixSyntaxError):
            parse("a < b < c")

    def test_not_binds_tighter_than_equality(self):
        tree = parse("!a == b")
        assert tree == nodes.BinOp("==", nodes.UnaryOp("!", V("a")), V("b"))

    def test_not_binds_looser_than_addition(self):
        tree = parse("!a + b")
        assert tree == nodes.UnaryOp("!", nodes.BinOp("+", V("a"), V("b")))

    def test_negation_covers_the_application(self):
        tree = parse("-f x")
        assert tree == nodes.UnaryOp("-", nodes.Apply(V("f"), V("x")))

    def test_has_attr(self):
        tree = parse("pkgs ? python && true")
        assert tree == nodes.BinOp("&&", nodes.HasAttr(V("pkgs"), ["python"]), V("true"))


class TestApplicationAndSelect:
    def test_application_is_left_associative(self):
        assert parse("f a b") == nodes.Apply(nodes.Apply(V("f"), V("a")), V("b"))

    def test_select_binds_tighter_than_application(self):
        tree = parse("f pkgs.hello")
        assert tree == nodes.Apply(V("f"), nodes.Select(V("pkgs"), ["hello"]))

    def test_select_with_default(self):
        tree = parse("a.b.c or d")
        assert tree == nodes.Select(V("a"), ["b", "c"], V("d"))

    def test_quoted_attribute(self):
        assert parse('a."b c"') == nodes.Select(V("a"), ["b c"])

    def test_dynamic_attribute(self):
        tree = parse("a.${name}")
        assert tree == nodes.Select(V("a"), [V("name")])

    def test_list_items_are_not_applications(self):
        tree = parse("[ f x pkgs.y ]")
        assert tree == nodes.ListExpr([V("f"), V("x"), nodes.Select(V("pkgs"), ["y"])])


class TestBindings:
    def test_attrset_with_nested_path(self):
        tree = parse("{ a.b = 1; c = 2; }")
        assert tree == nodes.AttrSet([
            nodes.Binding(["a", "b"], I(1)),
            nodes.Binding(["c"], I(2)),
        ])

    def test_rec(self):
        assert parse("rec { a = 1; b = a; }").recursive is True

    def test_inherit(self):
        tree = parse("{ inherit a b; inherit (pkgs) hello; }")
        assert tree.bindings == [
            nodes.Inherit(["a", "b"]),
            nodes.Inherit(["hello"], V("pkgs")),
        ]

    def test_let(self):
        tree = parse("let x = 1; y = x; in x + y")
        assert isinstance(tree, nodes.Let)
        assert [item.path for item in tree.bindings] == [["x"], ["y"]]
        assert tree.body == nodes.BinOp("+", V("x"), V("y"))

    def test_legacy_let_rejected(self):
        with pytest.raises(NixSyntaxError):
            parse("let { body = 1; }")

    def test_with_and_if(self):
        tree = parse("with pkgs; if a then b else c")
        assert tree == nodes.With(V("pkgs"), nodes.If(V("a"), V("b"), V("c")))

    def test_assert(self):
        assert parse("assert a; b") == nodes.Assert(V("a"), V("b"))


class TestFunctions:
    def test_simple_argument(self):
        assert parse("x: x") == nodes.Lambda(V("x"), arg="x")

    def test_curried(self):
        assert parse("a: b: a") == nodes.Lambda(nodes.Lambda(V("a"), arg="b"), arg="a")

    def test_formals_with_defaults_and_ellipsis(self):
        tree = parse("{ pkgs ? import <nixpkgs> { }, lib, ... }: lib")
        assert tree.arg is None
        assert tree.ellipsis is True
        assert [formal.name for formal in tree.formals] == ["pkgs", "lib"]
        assert tree.formals[0].default == nodes.Apply(
            nodes.Apply(V("import"), nodes.SearchPath("nixpkgs")),
            nodes.AttrSet([]),
        )

    def test_formals_alias(self):
        before = parse("args@{ a }: a")
        after = parse("{ a }@args: a")
        assert before == after
        assert before.arg == "args"

    def test_empty_formals(self):
        tree = parse("{ }: 1")
        assert tree == nodes.Lambda(I(1), formals=[])

    def test_empty_attrset_is_not_a_function(self):
        assert parse("{ }") == nodes.AttrSet([])


class TestPaths:
    def test_interpolated_path(self):
        tree = parse("./src/${name}")
        assert tree == nodes.InterpolatedPath(["./src/", V("name")])

    def test_plain_path(self):
        assert parse("./src/main.nix") == nodes.Path("./src/main.nix")

    def test_select_on_parenthesized_path(self):
        assert parse("(./foo).bar") == nodes.Select(nodes.Path("./foo"), ["bar"])


class TestStrings:
    def test_indented_and_quoted_strings_are_equal(self):
        indented = parse("''\n  echo ${name}\n  done\n''")
        quoted = parse('"echo ${name}\\ndone\\n"')
        assert indented == quoted

    def test_constant(self):
        assert parse('"abc"').constant() == "abc"
        assert parse('"a${b}"').constant() is None


class TestErrors:
    def test_missing_semicolon(self):
        with pytest.raises(NixSyntaxError) as excinfo:
            parse("{ a = 1 }")
        assert excinfo.value.line == 1
        assert excinfo.value.column == 9

    def test_empty_input(self):
        with pytest.raises(NixSyntaxError):
            parse("   # only a comment\n")

    def test_trailing_tokens(self):
        with pytest.raises(NixSyntaxError):
            parse("a; b")

    def test_unclosed_list(self):
        with pytest.raises(NixSyntaxError):
            parse("[ a b")


class TestPrinter:
    @pytest.mark.parametrize(
        "source",
        [
            "1 + 2 * 3",
            "(1 + 2) * 3",
            "a // (b // c) // d",
            "-(-1)",
            "!(a && b)",
            "f (g x) (a.b or c)",
            "(x: x) 1",
            "{ a ? 1, ... }@args: args",
            'rec { "with space" = 1; or = 2; inherit (p) q; }',
            '"quote \\" dollar \\${x} ${y}"',
            "let a = 1.5e10; in [ a 0.25 ./. <nixpkgs> https://x.org/y ]",
            "if a ? b.c then [ ] else { }",
            "./src/${name}.nix",
            "import ./nix/${system}/default.nix { }",
            "(./foo).bar",
            "(1).x",
            "(https://x.org/y).z or 2",
        ],
    )
    def test_round_trip(self, source):
        tree = parse(source)
        assert parse(to_source(tree)) == tree

    def test_flake_round_trip(self, flake_text):
        tree = parse(flake_text)
        assert parse(to_source(tree)) == tree

    def test_path_base_is_parenthesized(self):
        assert to_source(parse("(./foo).bar")) == "(./foo).bar\n"

    def test_output_ends_with_newline(self):
        assert to_source(parse("1")) == "1\n"

    def test_lists_one_item_per_line(self):
        assert to_source(parse("[ a b ]")) == "[\n  a\n  b\n]\n"
