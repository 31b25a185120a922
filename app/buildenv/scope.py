"""Static variable resolution for Nix syntax trees.

Resolution order for an identifier follows Nix semantics:
    1. lexical bindings (function arguments, `let`, `rec` sets),
    2. the global builtins below,
    3. the innermost enclosing `with` (dynamic, cannot be checked statically).

Names that fall through to step 3 are reported as `with_names`; in a flake
these are the packages taken from `pkgs`. Names that resolve nowhere are
`undefined`.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List

from app.buildenv import nodes


# Names in the initial Nix scope.
BUILTIN_NAMES = frozenset({
    "abort", "baseNameOf", "break", "builtins", "derivation", "derivationStrict",
    "dirOf", "false", "fetchGit", "fetchMercurial", "fetchTarball", "fetchTree",
    "fromTOML", "import", "isNull", "map", "null", "placeholder", "removeAttrs",
    "scopedImport", "throw", "toString", "true",
    "__currentSystem", "__currentTime", "__nixPath", "__storeDir", "__curPos",
})


@dataclass
class ScopeReport:
    undefined: List[nodes.Var] = field(default_factory=list)
    with_names: List[nodes.Var] = field(default_factory=list)

    def undefined_names(self) -> List[str]:
        seen = []
        for var in self.undefined:
            if var.name not in seen:
                seen.append(var.name)
        return seen


class _Resolver:
    def __init__(self):
        self.report = ScopeReport()

    def var(self, var: nodes.Var, scope: FrozenSet[str], with_depth: int):
        if var.name in scope or var.name in BUILTIN_NAMES:
            return
        if with_depth > 0:
            self.report.with_names.append(var)
        else:
            self.report.undefined.append(var)

    def bindings(self, items, inner: FrozenSet[str], outer: FrozenSet[str], with_depth: int):
        """Visit binding values in `inner`; plain `inherit` names resolve in `outer`."""
        for item in items:
            if isinstance(item, nodes.Inherit):
                if item.source is not None:
                    self.visit(item.source, inner, with_depth)
                else:
                    for name in item.names:
                        self.var(nodes.Var(name, line=item.line), outer, with_depth)
                continue
            for part in item.path:
                if isinstance(part, nodes.Node):
                    self.visit(part, inner, with_depth)
            self.visit(item.value, inner, with_depth)

    def visit(self, node, scope: FrozenSet[str], with_depth: int):
        if isinstance(node, nodes.Var):
            self.var(node, scope, with_depth)

        elif isinstance(node, nodes.AttrSet):
            inner = scope | frozenset(node.static_names()) if node.recursive else scope
            self.bindings(node.bindings, inner, scope, with_depth)

        elif isinstance(node, nodes.Let):
            names = nodes.AttrSet(node.bindings).static_names()
            inner = scope | frozenset(names)
            self.bindings(node.bindings, inner, scope, with_depth)
            self.visit(node.body, inner, with_depth)

        elif isinstance(node, nodes.With):
            self.visit(node.env, scope, with_depth)
            self.visit(node.body, scope, with_depth + 1)

        elif isinstance(node, nodes.Lambda):
            names = {formal.name for formal in node.formals or []}
            if node.arg is not None:
                names.add(node.arg)
            inner = scope | frozenset(names)
            for formal in node.formals or []:
                if formal.default is not None:
                    self.visit(formal.default, inner, with_depth)
            self.visit(node.body, inner, with_depth)

        else:
            for child in nodes.iter_children(node):
                self.visit(child, scope, with_depth)


def resolve(node: nodes.Node, scope=frozenset()) -> ScopeReport:
    """Resolve every identifier in `node` against `scope` plus builtins."""
    resolver = _Resolver()
    resolver.visit(node, frozenset(scope), 0)
    return resolver.report


def free_variables(node: nodes.Node) -> List[str]:
    """Names used in `node` that no binding, builtin, or `with` can supply."""
    return resolve(node).undefined_names()
