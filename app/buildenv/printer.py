"""Canonical Nix source rendering for parsed trees.

The output is meant to be re-parsed, not read: comments and the original
layout are lost, strings are always double-quoted, and any compound operand
is parenthesized. Parsing `to_source(tree)` yields a tree equal to `tree`.
"""

import re

from app.buildenv import nodes
from app.buildenv.lexer import KEYWORDS


INDENT = "  "

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_'\-]*$")

# Nodes that never need parentheses as an operand.
_ATOMS = (
    nodes.Var, nodes.Int, nodes.Float, nodes.Str, nodes.Path,
    nodes.SearchPath, nodes.Uri, nodes.ListExpr, nodes.AttrSet, nodes.InterpolatedPath,
)

# Atoms whose text would absorb a following `.attr` when re-lexed.
_DOT_ABSORBING = (nodes.Int, nodes.Float, nodes.Path, nodes.InterpolatedPath, nodes.Uri)


def escape_string(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("$", "\\$")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


class Printer:
    def __init__(self):
        self.level = 0

    def _pad(self, extra=0):
        return INDENT * (self.level + extra)

    # -----------------------------------------------------
    # Operand wrapping
    # -----------------------------------------------------

    def _simple(self, node):
        """Render `node` where only a select-level expression is allowed."""
        text = self.render(node)
        if isinstance(node, _ATOMS) or (isinstance(node, nodes.Select) and node.default is None):
            return text
        return f"({text})"

    def _operand(self, node):
        """Render `node` as an operator operand or application part."""
        text = self.render(node)
        if isinstance(node, _ATOMS + (nodes.Select, nodes.Apply)):
            return text
        return f"({text})"

    # -----------------------------------------------------
    # Names
    # -----------------------------------------------------

    def attr_name(self, part):
        if isinstance(part, str):
            if _IDENTIFIER.match(part) and part not in KEYWORDS and part != "or":
                return part
            return f'"{escape_string(part)}"'
        return "${" + self.render(part) + "}"

    def attr_path(self, path):
        return ".".join(self.attr_name(part) for part in path)

    # -----------------------------------------------------
    # Bindings
    # -----------------------------------------------------

    def bindings(self, items):
        lines = []
        self.level += 1
        for item in items:
            if isinstance(item, nodes.Inherit):
                source = f" ({self.render(item.source)})" if item.source is not None else ""
                names = "".join(" " + self.attr_name(name) for name in item.names)
                lines.append(f"{self._pad()}inherit{source}{names};")
            else:
                lines.append(f"{self._pad()}{self.attr_path(item.path)} = {self.render(item.value)};")
        self.level -= 1
        return lines

    # -----------------------------------------------------
    # Dispatch
    # -----------------------------------------------------

    def render(self, node) -> str:
        method = getattr(self, "render_" + type(node).__name__)
        return method(node)

    def render_Var(self, node):
        return node.name

    def render_Int(self, node):
        return str(node.value)

    def render_Float(self, node):
        text = repr(node.value)
        if "e" in text and "." not in text:
            mantissa, exponent = text.split("e", 1)
            text = f"{mantissa}.0e{exponent}"
        return text

    def render_Str(self, node):
        out = []
        for part in node.parts:
            if isinstance(part, str):
                out.append(escape_string(part))
            else:
                out.append("${" + self.render(part) + "}")
        return '"' + "".join(out) + '"'

    def render_Path(self, node):
        return node.value

    def render_InterpolatedPath(self, node):
        out = []
        for part in node.parts:
            if isinstance(part, str):
                out.append(part)
            else:
                out.append("${" + self.render(part) + "}")
        return "".join(out)

    def render_SearchPath(self, node):
        return f"<{node.value}>"

    def render_Uri(self, node):
        return node.value

    def render_ListExpr(self, node):
        if not node.items:
            return "[ ]"
        self.level += 1
        items = [self._pad() + self._simple(item) for item in node.items]
        self.level -= 1
        return "[\n" + "\n".join(items) + "\n" + self._pad() + "]"

    def render_AttrSet(self, node):
        prefix = "rec " if node.recursive else ""
        if not node.bindings:
            return prefix + "{ }"
        lines = self.bindings(node.bindings)
        return prefix + "{\n" + "\n".join(lines) + "\n" + self._pad() + "}"

    def render_Let(self, node):
        lines = self.bindings(node.bindings)
        return "let\n" + "\n".join(lines) + "\n" + self._pad() + "in\n" + self._pad() + self.render(node.body)

    def render_With(self, node):
        return f"with {self.render(node.env)}; {self.render(node.body)}"

    def render_If(self, node):
        return (
            f"if {self.render(node.cond)} then {self.render(node.then)} "
            f"else {self.render(node.else_)}"
        )

    def render_Assert(self, node):
        return f"assert {self.render(node.cond)}; {self.render(node.body)}"

    def render_Lambda(self, node):
        if node.formals is None:
            return f"{node.arg}: {self.render(node.body)}"

        formals = []
        for formal in node.formals:
            if formal.default is None:
                formals.append(formal.name)
            else:
                formals.append(f"{formal.name} ? {self.render(formal.default)}")
        if node.ellipsis:
            formals.append("...")
        head = "{ " + ", ".join(formals) + " }" if formals else "{ }"
        if node.arg is not None:
            head = f"{head}@{node.arg}"
        return f"{head}: {self.render(node.body)}"

    def render_Apply(self, node):
        func = self.render(node.func) if isinstance(node.func, nodes.Apply) else self._simple(node.func)
        return f"{func} {self._simple(node.arg)}"

    def render_Select(self, node):
        text = f"{self._simple_base(node.base)}.{self.attr_path(node.path)}"
        if node.default is not None:
            text += f" or {self._simple(node.default)}"
        return text

    def _simple_base(self, node):
        text = self.render(node)
        if isinstance(node, _ATOMS) and not isinstance(node, _DOT_ABSORBING):
            return text
        return f"({text})"

    def render_HasAttr(self, node):
        return f"{self._operand(node.base)} ? {self.attr_path(node.path)}"

    def render_BinOp(self, node):
        return f"{self._operand(node.left)} {node.op} {self._operand(node.right)}"

    def render_UnaryOp(self, node):
        return f"{node.op}{self._operand(node.operand)}"


def to_source(node) -> str:
    """Render a syntax tree as Nix source text ending in a newline."""
    return Printer().render(node) + "\n"
