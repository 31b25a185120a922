"""Build-environment declaration package.

Module split:
    - `lexer`, `parser`, `nodes`: Nix expression syntax.
    - `printer`: canonical re-rendering of parsed trees.
    - `scope`: static identifier resolution (undefined-variable check).
    - `manifest`: dev-shell dependency extraction and declaration checks.

Nothing here evaluates Nix or talks to a package manager.
"""

from app.buildenv.lexer import NixSyntaxError
from app.buildenv.manifest import (
    BuildManifest,
    dependency_names,
    load_manifest,
    parse_manifest,
    round_trip,
    validate_manifest,
)
from app.buildenv.parser import parse
from app.buildenv.printer import to_source

__all__ = [
    "BuildManifest",
    "NixSyntaxError",
    "dependency_names",
    "load_manifest",
    "parse",
    "parse_manifest",
    "round_trip",
    "to_source",
    "validate_manifest",
]
