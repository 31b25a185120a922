"""Recursive-descent / Pratt parser for Nix expressions.

Architectural role:
    Turns `app.buildenv.lexer` tokens into `app.buildenv.nodes` trees for the
    manifest extractor and the scope checker.

Grammar coverage:
    Everything a flake or `shell.nix` normally contains: attribute sets
    (plain and `rec`), `let ... in`, `with`, `assert`, `if`, functions with
    simple or destructured arguments, application, attribute selection with
    `or` defaults, `?`, lists, strings with interpolation, paths, URIs and all
    binary/unary operators. Operator precedence follows the Nix manual.
    The deprecated `let { ... }` form is not supported.

Failure handling:
    Every syntax problem raises `NixSyntaxError` with the offending token's
    position.
"""

from typing import List

from app.buildenv import nodes
from app.buildenv.lexer import NixSyntaxError, Token, tokenize


# Binding power and associativity, loosest first.
INFIX = {
    "->": (10, "right"),
    "||": (20, "left"),
    "&&": (30, "left"),
    "==": (40, "none"),
    "!=": (40, "none"),
    "<": (50, "none"),
    "<=": (50, "none"),
    ">": (50, "none"),
    ">=": (50, "none"),
    "//": (60, "right"),
    "+": (80, "left"),
    "-": (80, "left"),
    "*": (90, "left"),
    "/": (90, "left"),
    "++": (100, "right"),
    "?": (110, "left"),
}

NOT_POWER = 70
NEGATE_POWER = 120

PRIMARY_START = {"ID", "INT", "FLOAT", "STRING", "PATH", "SPATH", "URI", "(", "[", "{", "rec"}


class Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    # -----------------------------------------------------
    # Token helpers
    # -----------------------------------------------------

    def peek(self, offset=0) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def next(self) -> Token:
        tok = self.peek()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def at(self, kind) -> bool:
        return self.peek().kind == kind

    def expect(self, kind) -> Token:
        tok = self.peek()
        if tok.kind != kind:
            self.error(f"expected {kind!r}", tok)
        return self.next()

    def error(self, message, tok=None):
        tok = tok or self.peek()
        found = "end of input" if tok.kind == "EOF" else repr(tok.value)
        raise NixSyntaxError(f"{message}, found {found}", tok.line, tok.column)

    # -----------------------------------------------------
    # Entry
    # -----------------------------------------------------

    def parse(self) -> nodes.Node:
        if self.at("EOF"):
            self.error("empty expression")
        expr = self.parse_expr()
        if not self.at("EOF"):
            self.error("unexpected token after expression")
        return expr

    def parse_expr(self) -> nodes.Node:
        tok = self.peek()

        if tok.kind == "let":
            self.next()
            if self.at("{"):
                self.error("'let { ... }' is not supported", tok)
            bindings = self.parse_bindings("in")
            self.expect("in")
            return nodes.Let(bindings, self.parse_expr())

        if tok.kind == "with":
            self.next()
            env = self.parse_expr()
            self.expect(";")
            return nodes.With(env, self.parse_expr())

        if tok.kind == "assert":
            self.next()
            cond = self.parse_expr()
            self.expect(";")
            return nodes.Assert(cond, self.parse_expr())

        if tok.kind == "if":
            self.next()
            cond = self.parse_expr()
            self.expect("then")
            then = self.parse_expr()
            self.expect("else")
            return nodes.If(cond, then, self.parse_expr())

        if tok.kind == "ID" and self.peek(1).kind in (":", "@"):
            return self.parse_lambda()

        if tok.kind == "{" and self._looks_like_formals():
            return self.parse_lambda()

        return self.parse_op(0)

    # -----------------------------------------------------
    # Functions
    # -----------------------------------------------------

    def _looks_like_formals(self) -> bool:
        first = self.peek(1).kind
        if first == "...":
            return True
        if first == "}":
            return self.peek(2).kind in (":", "@")
        if first == "ID":
            second = self.peek(2).kind
            if second in (",", "?"):
                return True
            if second == "}":
                return self.peek(3).kind in (":", "@")
        return False

    def parse_lambda(self) -> nodes.Node:
        arg = None
        formals = None
        ellipsis = False

        if self.at("ID"):
            arg = self.next().value
            if self.at("@"):
                self.next()
                formals, ellipsis = self.parse_formals()
        else:
            formals, ellipsis = self.parse_formals()
            if self.at("@"):
                self.next()
                arg = self.expect("ID").value

        self.expect(":")
        body = self.parse_expr()
        return nodes.Lambda(body, arg=arg, formals=formals, ellipsis=ellipsis)

    def parse_formals(self):
        self.expect("{")
        formals = []
        ellipsis = False

        while not self.at("}"):
            if self.at("..."):
                self.next()
                ellipsis = True
            else:
                name = self.expect("ID").value
                default = None
                if self.at("?"):
                    self.next()
                    default = self.parse_expr()
                formals.append(nodes.Formal(name, default))

            if self.at(","):
                self.next()
            elif not self.at("}"):
                self.error("expected ',' or '}' in function arguments")

        self.expect("}")
        return formals, ellipsis

    # -----------------------------------------------------
    # Operators
    # -----------------------------------------------------

    def parse_op(self, min_power) -> nodes.Node:
        tok = self.peek()

        if tok.kind == "!":
            self.next()
            left = nodes.UnaryOp("!", self.parse_op(NOT_POWER))
        elif tok.kind == "-":
            self.next()
            left = nodes.UnaryOp("-", self.parse_op(NEGATE_POWER))
        else:
            left = self.parse_app()

        while True:
            kind = self.peek().kind
            if kind not in INFIX:
                break
            power, assoc = INFIX[kind]
            if power <= min_power:
                break
            self.next()

            if kind == "?":
                left = nodes.HasAttr(left, self.parse_attrpath())
                continue

            right_power = power - 1 if assoc == "right" else power
            right = self.parse_op(right_power)

            if assoc == "none" and self.peek().kind in INFIX and INFIX[self.peek().kind][0] == power:
                self.error(f"operator {self.peek().kind!r} is not associative")

            left = nodes.BinOp(kind, left, right)

        return left

    def parse_app(self) -> nodes.Node:
        func = self.parse_select()
        while self.peek().kind in PRIMARY_START:
            func = nodes.Apply(func, self.parse_select())
        return func

    def parse_select(self) -> nodes.Node:
        base = self.parse_primary()
        if not self.at("."):
            return base

        self.next()
        path = self.parse_attrpath()
        default = None
        if self.at("ID") and self.peek().value == "or":
            self.next()
            default = self.parse_select()
        return nodes.Select(base, path, default)

    # -----------------------------------------------------
    # Attribute paths and bindings
    # -----------------------------------------------------

    def parse_attr(self):
        tok = self.peek()
        if tok.kind == "ID":
            return self.next().value
        if tok.kind == "STRING":
            value = self.string_node(self.next())
            constant = value.constant()
            return constant if constant is not None else value
        if tok.kind == "INTERP":
            return self.sub_expression(self.next())
        self.error("expected attribute name")

    def parse_attrpath(self):
        path = [self.parse_attr()]
        while self.at("."):
            self.next()
            path.append(self.parse_attr())
        return path

    def parse_bindings(self, terminator):
        items = []

        while not self.at(terminator):
            if self.at("EOF"):
                self.error(f"expected {terminator!r}")

            if self.at("inherit"):
                tok = self.next()
                source = None
                if self.at("("):
                    self.next()
                    source = self.parse_expr()
                    self.expect(")")
                names = []
                while not self.at(";"):
                    name = self.parse_attr()
                    if not isinstance(name, str):
                        self.error("dynamic attribute in inherit")
                    names.append(name)
                self.expect(";")
                items.append(nodes.Inherit(names, source, line=tok.line))
                continue

            path = self.parse_attrpath()
            self.expect("=")
            value = self.parse_expr()
            self.expect(";")
            items.append(nodes.Binding(path, value))

        return items

    # -----------------------------------------------------
    # Primaries
    # -----------------------------------------------------

    def sub_expression(self, tok: Token) -> nodes.Node:
        """Parse the token list captured for a `${ ... }` interpolation."""
        inner = list(tok.value)
        if inner:
            last = inner[-1]
            inner.append(Token("EOF", None, last.line, last.column))
        else:
            inner.append(Token("EOF", None, tok.line, tok.column))
        return Parser(inner).parse()

    def _parts(self, tok: Token):
        """Merge adjacent text and parse each interpolation of a STRING or PATH token."""
        parts = []
        for part in tok.value:
            if isinstance(part, str):
                if parts and isinstance(parts[-1], str):
                    parts[-1] += part
                else:
                    parts.append(part)
            else:
                parts.append(self.sub_expression(Token("INTERP", part, tok.line, tok.column)))
        return parts

    def string_node(self, tok: Token) -> nodes.Str:
        return nodes.Str(self._parts(tok))

    def parse_primary(self) -> nodes.Node:
        tok = self.peek()
        kind = tok.kind

        if kind == "ID":
            self.next()
            return nodes.Var(tok.value, line=tok.line)
        if kind == "INT":
            self.next()
            return nodes.Int(tok.value)
        if kind == "FLOAT":
            self.next()
            return nodes.Float(tok.value)
        if kind == "STRING":
            self.next()
            return self.string_node(tok)
        if kind == "PATH":
            self.next()
            if isinstance(tok.value, list):
                return nodes.InterpolatedPath(self._parts(tok))
            return nodes.Path(tok.value)
        if kind == "SPATH":
            self.next()
            return nodes.SearchPath(tok.value[1:-1])
        if kind == "URI":
            self.next()
            return nodes.Uri(tok.value)
        if kind == "(":
            self.next()
            expr = self.parse_expr()
            self.expect(")")
            return expr
        if kind == "[":
            self.next()
            items = []
            while not self.at("]"):
                if self.at("EOF"):
                    self.error("expected ']'")
                items.append(self.parse_select())
            self.expect("]")
            return nodes.ListExpr(items)
        if kind == "rec":
            self.next()
            self.expect("{")
            bindings = self.parse_bindings("}")
            self.expect("}")
            return nodes.AttrSet(bindings, recursive=True)
        if kind == "{":
            self.next()
            bindings = self.parse_bindings("}")
            self.expect("}")
            return nodes.AttrSet(bindings)

        self.error("unexpected token")


def parse(text: str) -> nodes.Node:
    """Parse Nix source text into a syntax tree."""
    return Parser(tokenize(text)).parse()
