"""Syntax-tree node types for parsed Nix expressions.

Nodes compare by structure only; source positions are excluded from equality
so a re-parsed canonical rendering compares equal to the original tree.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union


class Node:
    pass


@dataclass
class Var(Node):
    name: str
    line: Optional[int] = field(default=None, compare=False, repr=False)


@dataclass
class Int(Node):
    value: int


@dataclass
class Float(Node):
    value: float


@dataclass
class Str(Node):
    """String literal; `parts` holds plain text and interpolated expressions."""

    parts: List[Union[str, Node]]

    def constant(self) -> Optional[str]:
        """Return the literal text, or `None` when the string interpolates."""
        if all(isinstance(part, str) for part in self.parts):
            return "".join(self.parts)
        return None


@dataclass
class Path(Node):
    value: str


@dataclass
class InterpolatedPath(Node):
    """Path with `${...}` parts, e.g. `./src/${name}`; `parts` are text or expressions."""

    parts: List[Union[str, Node]]


@dataclass
class SearchPath(Node):
    """`<nixpkgs>` style lookup path; `value` excludes the angle brackets."""

    value: str


@dataclass
class Uri(Node):
    value: str


@dataclass
class ListExpr(Node):
    items: List[Node]


# Attribute names are plain strings for static names, or an expression for
# `"${...}"` / `${...}` dynamic names.
AttrName = Union[str, Node]


@dataclass
class Binding(Node):
    path: List[AttrName]
    value: Node


@dataclass
class Inherit(Node):
    names: List[str]
    source: Optional[Node] = None
    line: Optional[int] = field(default=None, compare=False, repr=False)


@dataclass
class AttrSet(Node):
    bindings: List[Union[Binding, Inherit]]
    recursive: bool = False

    def static_names(self) -> List[str]:
        """First-level names this set defines without evaluation."""
        names = []
        for item in self.bindings:
            if isinstance(item, Inherit):
                names.extend(item.names)
            elif isinstance(item.path[0], str):
                names.append(item.path[0])
        return names


@dataclass
class Let(Node):
    bindings: List[Union[Binding, Inherit]]
    body: Node


@dataclass
class With(Node):
    env: Node
    body: Node


@dataclass
class If(Node):
    cond: Node
    then: Node
    else_: Node


@dataclass
class Assert(Node):
    cond: Node
    body: Node


@dataclass
class Formal(Node):
    name: str
    default: Optional[Node] = None


@dataclass
class Lambda(Node):
    """Function; either `arg` alone, or `formals` with an optional `arg` alias."""

    body: Node
    arg: Optional[str] = None
    formals: Optional[List[Formal]] = None
    ellipsis: bool = False


@dataclass
class Apply(Node):
    func: Node
    arg: Node


@dataclass
class Select(Node):
    base: Node
    path: List[AttrName]
    default: Optional[Node] = None


@dataclass
class HasAttr(Node):
    base: Node
    path: List[AttrName]


@dataclass
class BinOp(Node):
    op: str
    left: Node
    right: Node


@dataclass
class UnaryOp(Node):
    op: str
    operand: Node


def attr_path_text(path) -> Optional[str]:
    """Dotted form of a static attribute path, `None` if any part is dynamic."""
    names: List[str] = []
    for part in path:
        if not isinstance(part, str):
            return None
        names.append(part)
    return ".".join(names)


def dotted_name(node: Node) -> Optional[str]:
    """`pkgs.python.pkgs.foo` for `Var`/`Select` chains with static names."""
    if isinstance(node, Var):
        return node.name
    if isinstance(node, Select) and node.default is None:
        base = dotted_name(node.base)
        rest = attr_path_text(node.path)
        if base is not None and rest is not None:
            return f"{base}.{rest}"
    return None


def iter_children(node: Node):
    """Yield direct child nodes in source order."""
    if isinstance(node, (Str, InterpolatedPath)):
        for part in node.parts:
            if isinstance(part, Node):
                yield part
    elif isinstance(node, ListExpr):
        yield from node.items
    elif isinstance(node, (AttrSet, Let)):
        for item in node.bindings:
            yield item
        if isinstance(node, Let):
            yield node.body
    elif isinstance(node, Binding):
        for part in node.path:
            if isinstance(part, Node):
                yield part
        yield node.value
    elif isinstance(node, Inherit):
        if node.source is not None:
            yield node.source
    elif isinstance(node, With):
        yield node.env
        yield node.body
    elif isinstance(node, If):
        yield node.cond
        yield node.then
        yield node.else_
    elif isinstance(node, Assert):
        yield node.cond
        yield node.body
    elif isinstance(node, Lambda):
        for formal in node.formals or []:
            if formal.default is not None:
                yield formal.default
        yield node.body
    elif isinstance(node, Apply):
        yield node.func
        yield node.arg
    elif isinstance(node, (Select, HasAttr)):
        yield node.base
        for part in node.path:
            if isinstance(part, Node):
                yield part
        if isinstance(node, Select) and node.default is not None:
            yield node.default
    elif isinstance(node, BinOp):
        yield node.left
        yield node.right
    elif isinstance(node, UnaryOp):
        yield node.operand


def walk(node: Node):
    """Depth-first pre-order traversal."""
    yield node
    for child in iter_children(node):
        yield from walk(child)
