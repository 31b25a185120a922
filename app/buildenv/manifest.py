"""Build-environment declaration (`flake.nix`) reader and checker.

Architectural role:
    Extracts the dependency manifest from the development shell a flake (or a
    plain `shell.nix`) declares, and checks the declaration for the structural
    properties the repository promises: it parses, it references no undefined
    variables, and a canonical re-rendering yields the same dependency list.

Shell discovery:
    1. A binding named `devShell`, or any binding under `devShells`, whose
       value reaches a `mkShell` call through `with`, `let` and application.
    2. Otherwise the first `mkShell` call anywhere in the file.

    A shell may also come from `mkShell.override { ... }` applied to the
    shell attributes.

Package discovery:
    The first `defaultPackage` or `packages.<name>` binding whose value is a
    builder call (for example `buildPythonApplication { ... }`). Recorded as
    `package_attr` and `package_builder`; a declaration without one is valid.

Determinism:
    Pure functions of the source text except `load_manifest`, which reads the
    declaration from disk.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from app.buildenv import nodes
from app.buildenv.lexer import NixSyntaxError
from app.buildenv.parser import parse
from app.buildenv.printer import to_source
from app.buildenv.scope import resolve
from app.validation.issues import Issue

load_dotenv()

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
BUILD_DECLARATION_PATH = os.getenv("BUILD_DECLARATION_PATH", os.path.join(BASE_DIR, "flake.nix"))

# mkShell attributes that are not environment variables.
SHELL_ATTRS = {"buildInputs", "nativeBuildInputs", "packages", "inputsFrom", "shellHook", "name"}


@dataclass
class BuildManifest:
    inputs: Dict[str, str] = field(default_factory=dict)
    build_inputs: List[str] = field(default_factory=list)
    native_build_inputs: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    shell_hook: Optional[str] = None
    shell_attr: str = ""
    package_attr: str = ""
    package_builder: Optional[str] = None


# =========================================================
# TREE HELPERS
# =========================================================

def _unwrap(node):
    """Step through `with`, `let`, `assert` and parentheses-free wrappers."""
    while isinstance(node, (nodes.With, nodes.Let, nodes.Assert)):
        node = node.body
    return node


def _is_mkshell(func) -> bool:
    """`mkShell`, or `mkShell.override { ... }` which returns a configured mkShell."""
    if isinstance(func, nodes.Apply):
        name = nodes.dotted_name(func.func)
        return name is not None and name.split(".")[-2:] == ["mkShell", "override"]
    name = nodes.dotted_name(func)
    return name is not None and name.split(".")[-1] == "mkShell"


def _find_mkshell_arg(node) -> Optional[nodes.AttrSet]:
    """Return the attrset passed to `mkShell` within `node`, if any."""
    node = _unwrap(node)
    while isinstance(node, nodes.Apply):
        if _is_mkshell(node.func) and isinstance(node.arg, nodes.AttrSet):
            return node.arg
        node = _unwrap(node.func)
    return None


def flatten_bindings(attrset: nodes.AttrSet, prefix=()) -> Dict[tuple, nodes.Node]:
    """Map static attribute paths to values, descending into nested plain sets."""
    flat = {}
    for item in attrset.bindings:
        if not isinstance(item, nodes.Binding):
            continue
        if not all(isinstance(part, str) for part in item.path):
            continue
        path = prefix + tuple(item.path)
        if isinstance(item.value, nodes.AttrSet) and not item.value.recursive:
            flat.update(flatten_bindings(item.value, path))
        else:
            flat[path] = item.value
    return flat


def _locate_shell(tree):
    candidates = []

    for node in nodes.walk(tree):
        if not isinstance(node, nodes.AttrSet):
            continue
        for item in node.bindings:
            if not isinstance(item, nodes.Binding):
                continue
            path = [part if isinstance(part, str) else "*" for part in item.path]
            if path[-1] == "devShell" or "devShells" in path:
                attrs = _find_mkshell_arg(item.value)
                if attrs is None and isinstance(item.value, nodes.AttrSet):
                    for sub in item.value.bindings:
                        if isinstance(sub, nodes.Binding):
                            attrs = _find_mkshell_arg(sub.value)
                            if attrs is not None:
                                path = path + [str(p) for p in sub.path]
                                break
                if attrs is not None:
                    candidates.append((".".join(path), attrs))

    if candidates:
        return candidates[0]

    for node in nodes.walk(tree):
        if isinstance(node, nodes.Apply):
            attrs = _find_mkshell_arg(node)
            if attrs is not None:
                return "", attrs

    return None


def _locate_package(tree):
    """First `defaultPackage` or `packages.<name>` bound to a builder call."""
    for node in nodes.walk(tree):
        if not isinstance(node, nodes.AttrSet):
            continue
        for item in node.bindings:
            if not isinstance(item, nodes.Binding):
                continue
            path = [part if isinstance(part, str) else "*" for part in item.path]
            if path[-1] != "defaultPackage" and not (path[0] == "packages" and len(path) > 1):
                continue
            value = _unwrap(item.value)
            if not isinstance(value, nodes.Apply):
                continue
            while isinstance(value, nodes.Apply):
                value = _unwrap(value.func)
            return ".".join(path), nodes.dotted_name(value)
    return None


def package_name(node) -> str:
    """Dependency name for a list element: dotted path or canonical source."""
    name = nodes.dotted_name(node)
    if name is not None:
        return name
    return to_source(node).strip()


def _package_list(value) -> List[str]:
    value = _unwrap(value)
    if isinstance(value, nodes.ListExpr):
        return [package_name(item) for item in value.items]
    if isinstance(value, nodes.BinOp) and value.op == "++":
        return _package_list(value.left) + _package_list(value.right)
    return [package_name(value)]


def _inputs(tree) -> Dict[str, str]:
    if not isinstance(tree, nodes.AttrSet):
        return {}

    inputs = {}
    for path, value in flatten_bindings(tree).items():
        if len(path) < 2 or path[0] != "inputs":
            continue
        if len(path) == 2 or (len(path) == 3 and path[2] == "url"):
            if isinstance(value, nodes.Str) and value.constant() is not None:
                inputs[path[1]] = value.constant()
            elif isinstance(value, nodes.Uri):
                inputs[path[1]] = value.value
    return inputs


# =========================================================
# PUBLIC API
# =========================================================

def manifest_from_tree(tree) -> Optional[BuildManifest]:
    """Build a manifest from a parsed tree; `None` when no shell is declared."""
    located = _locate_shell(tree)
    if located is None:
        return None
    shell_attr, attrs = located

    manifest = BuildManifest(inputs=_inputs(tree), shell_attr=shell_attr)

    package = _locate_package(tree)
    if package is not None:
        manifest.package_attr, manifest.package_builder = package

    for item in attrs.bindings:
        if isinstance(item, nodes.Inherit):
            for name in item.names:
                if name not in SHELL_ATTRS:
                    manifest.env[name] = name
            continue
        if len(item.path) != 1 or not isinstance(item.path[0], str):
            continue
        name = item.path[0]

        if name == "buildInputs":
            manifest.build_inputs.extend(_package_list(item.value))
        elif name in ("nativeBuildInputs", "packages"):
            manifest.native_build_inputs.extend(_package_list(item.value))
        elif name == "shellHook":
            if isinstance(item.value, nodes.Str) and item.value.constant() is not None:
                manifest.shell_hook = item.value.constant()
            else:
                manifest.shell_hook = to_source(item.value).strip()
        elif name not in SHELL_ATTRS:
            manifest.env[name] = to_source(item.value).strip()

    return manifest


def parse_manifest(text: str) -> Optional[BuildManifest]:
    """Parse declaration text; raises `NixSyntaxError` on invalid syntax."""
    return manifest_from_tree(parse(text))


def load_manifest(path=None) -> Optional[BuildManifest]:
    path = path or BUILD_DECLARATION_PATH
    with open(path, "r", encoding="utf-8") as f:
        return parse_manifest(f.read())


def dependency_names(manifest: BuildManifest) -> List[str]:
    """Build inputs followed by native build inputs, in declaration order."""
    return list(manifest.build_inputs) + list(manifest.native_build_inputs)


def round_trip(text: str) -> bool:
    """Check that rendering and re-parsing preserves tree and dependencies."""
    tree = parse(text)
    reparsed = parse(to_source(tree))
    if reparsed != tree:
        logger.warning("Canonical rendering changed the syntax tree")
        return False

    first = manifest_from_tree(tree)
    second = manifest_from_tree(reparsed)
    if first is None or second is None:
        return first is None and second is None
    return (
        dependency_names(first) == dependency_names(second)
        and list(first.env) == list(second.env)
        and first.package_attr == second.package_attr
    )


def validate_manifest(text: str) -> List[Issue]:
    """Check declaration text; returns issues instead of raising.

    Issue codes: `syntax`, `undefined-variable`, `no-shell`, `empty-inputs`,
    `duplicate-input`, `round-trip`.
    """
    try:
        tree = parse(text)
    except NixSyntaxError as err:
        return [Issue("syntax", err.reason, err.line)]

    issues = []

    reported = set()
    for var in resolve(tree).undefined:
        if var.name in reported:
            continue
        reported.add(var.name)
        issues.append(Issue("undefined-variable", f"undefined variable '{var.name}'", var.line))

    manifest = manifest_from_tree(tree)
    if manifest is None:
        issues.append(Issue("no-shell", "no mkShell development shell found"))
        return issues

    deps = dependency_names(manifest)
    if not deps:
        issues.append(Issue("empty-inputs", "development shell declares no packages"))

    seen = set()
    for name in deps:
        if name in seen:
            issues.append(Issue("duplicate-input", f"package '{name}' is listed more than once"))
        seen.add(name)

    if not round_trip(text):
        issues.append(Issue("round-trip", "canonical rendering does not reproduce the dependency list"))

    return issues
