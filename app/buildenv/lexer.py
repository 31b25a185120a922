"""Tokenizer for the Nix expression language.

Architectural role:
    First stage of reading the build declaration (`flake.nix`). Produces a
    flat token list for `app.buildenv.parser`.

String handling:
    Double-quoted and `''` indented strings are lexed in one step into a
    single `STRING` token whose value is a list of parts: plain text (escapes
    already resolved) or a token list for each `${ ... }` interpolation.
    Indented strings have their common indentation removed here, so both
    quoting styles yield the same parts for the same value.
    Paths that interpolate (`./src/${name}`) become one `PATH` token whose
    value is a part list in the same shape; plain paths keep a string value.

Failure handling:
    Malformed input raises `NixSyntaxError` carrying 1-based line and column.
"""

import re
from dataclasses import dataclass
from typing import Any, List


class NixSyntaxError(ValueError):
    """Raised for input that is not valid Nix syntax."""

    def __init__(self, message, line=None, column=None):
        self.line = line
        self.column = column
        location = f" at line {line}, column {column}" if line is not None else ""
        super().__init__(f"{message}{location}")
        self.reason = message


@dataclass
class Token:
    kind: str
    value: Any
    line: int
    column: int

    def __repr__(self):
        return f"Token({self.kind}, {self.value!r}, {self.line}:{self.column})"


KEYWORDS = {"let", "in", "rec", "with", "inherit", "if", "then", "else", "assert"}

# Longest operators first.
PUNCTUATION = [
    "...", "${", "//", "++", "==", "!=", "<=", ">=", "&&", "||", "->",
    "{", "}", "[", "]", "(", ")", ";", ":", ",", "=", "@", ".", "?",
    "+", "-", "*", "/", "<", ">", "!",
]

_PATH_CHAR = r"[a-zA-Z0-9._\-+]"

_PATTERNS = [
    ("URI", re.compile(r"[a-zA-Z][a-zA-Z0-9+\-.]*:[a-zA-Z0-9%/?:@&=+$,\-_.!~*']+")),
    ("PATH", re.compile(_PATH_CHAR + r"*(?:/" + _PATH_CHAR + r"+)+/?")),
    ("HPATH", re.compile(r"~(?:/" + _PATH_CHAR + r"+)+/?")),
    ("SPATH", re.compile(r"<" + _PATH_CHAR + r"+(?:/" + _PATH_CHAR + r"+)*>")),
    ("FLOAT", re.compile(r"(?:[1-9][0-9]*\.[0-9]*|0?\.[0-9]+)(?:[Ee][+-]?[0-9]+)?")),
    ("INT", re.compile(r"[0-9]+")),
    ("ID", re.compile(r"[a-zA-Z_][a-zA-Z0-9_'\-]*")),
]

# A path prefix that continues with `${`, e.g. `./src/` in `./src/${name}`.
_PATH_PREFIX = re.compile(r"(?:~|" + _PATH_CHAR + r"*)(?:/" + _PATH_CHAR + r"+)*/(?=\$\{)")
_PATH_TAIL = re.compile(r"[a-zA-Z0-9._\-+/]+")

# Placeholder for interpolations while indentation is stripped.
_HOLE = "\x00"


class Lexer:
    def __init__(self, text: str):
        self.text = text.replace("\r\n", "\n")
        self.pos = 0
        self.line = 1
        self.column = 1

    # -----------------------------------------------------
    # Position helpers
    # -----------------------------------------------------

    def _error(self, message):
        raise NixSyntaxError(message, self.line, self.column)

    def _advance(self, count=1):
        for _ in range(count):
            if self.pos >= len(self.text):
                return
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def _peek(self, offset=0):
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def _startswith(self, s):
        return self.text.startswith(s, self.pos)

    def _skip_trivia(self):
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char in " \t\n\r":
                self._advance()
            elif char == "#":
                while self.pos < len(self.text) and self.text[self.pos] != "\n":
                    self._advance()
            elif self._startswith("/*"):
                end = self.text.find("*/", self.pos + 2)
                if end < 0:
                    self._error("unterminated comment")
                self._advance(end + 2 - self.pos)
            else:
                return

    # -----------------------------------------------------
    # Token stream
    # -----------------------------------------------------

    def tokenize(self) -> List[Token]:
        tokens = self._tokens_until(None)
        tokens.append(Token("EOF", None, self.line, self.column))
        return tokens

    def _tokens_until(self, closer):
        """Lex tokens until EOF, or until the `}` closing an interpolation."""
        tokens = []
        depth = 0

        while True:
            self._skip_trivia()
            if self.pos >= len(self.text):
                if closer is not None:
                    self._error("unterminated interpolation")
                return tokens

            if closer is not None and self._peek() == "}" and depth == 0:
                self._advance()
                return tokens

            token = self._next_token()
            if token.kind in ("{", "${"):
                depth += 1
            elif token.kind == "}":
                depth -= 1
            tokens.append(token)

    def _next_token(self) -> Token:
        line, column = self.line, self.column

        if self._peek() == '"':
            self._advance()
            return Token("STRING", self._double_quoted(), line, column)

        if self._startswith("''"):
            self._advance(2)
            return Token("STRING", self._indented(), line, column)

        match = _PATH_PREFIX.match(self.text, self.pos)
        if match:
            self._advance(len(match.group(0)))
            return Token("PATH", self._path_parts(match.group(0)), line, column)

        if self._startswith("${"):
            self._advance(2)
            parts = self._tokens_until("}")
            return Token("INTERP", parts, line, column)

        for kind, pattern in _PATTERNS:
            match = pattern.match(self.text, self.pos)
            if not match:
                continue
            value = match.group(0)
            self._advance(len(value))
            if kind == "ID" and value in KEYWORDS:
                return Token(value, value, line, column)
            if kind == "HPATH":
                kind = "PATH"
            if kind == "PATH" and self._startswith("${"):
                return Token(kind, self._path_parts(value), line, column)
            if kind == "INT":
                value = int(value)
            elif kind == "FLOAT":
                value = float(value)
            return Token(kind, value, line, column)

        for punct in PUNCTUATION:
            if self._startswith(punct):
                self._advance(len(punct))
                return Token(punct, punct, line, column)

        self._error(f"unexpected character {self._peek()!r}")

    def _path_parts(self, head):
        """Lex the rest of a path that interpolates; returns text and token-list parts."""
        parts: List[Any] = [head]
        while True:
            if self._startswith("${"):
                self._advance(2)
                parts.append(self._tokens_until("}"))
                continue
            match = _PATH_TAIL.match(self.text, self.pos)
            if not match:
                return parts
            self._advance(len(match.group(0)))
            if isinstance(parts[-1], str):
                parts[-1] += match.group(0)
            else:
                parts.append(match.group(0))

    # -----------------------------------------------------
    # Strings
    # -----------------------------------------------------

    def _double_quoted(self):
        parts: List[Any] = []
        buf = []

        while True:
            if self.pos >= len(self.text):
                self._error("unterminated string")
            char = self._peek()

            if char == '"':
                self._advance()
                break
            if char == "\\":
                nxt = self._peek(1)
                if not nxt:
                    self._error("unterminated string")
                buf.append({"n": "\n", "r": "\r", "t": "\t"}.get(nxt, nxt))
                self._advance(2)
            elif char == "$" and self._peek(1) == "{":
                self._advance(2)
                if buf:
                    parts.append("".join(buf))
                    buf = []
                parts.append(self._tokens_until("}"))
            elif char == "$" and self._peek(1) == "$":
                buf.append("$$")
                self._advance(2)
            else:
                buf.append(char)
                self._advance()

        if buf:
            parts.append("".join(buf))
        return parts

    def _indented(self):
        pieces = []
        holes = []

        while True:
            if self.pos >= len(self.text):
                self._error("unterminated indented string")

            if self._startswith("''"):
                nxt = self._peek(2)
                if nxt == "'":
                    pieces.append("''")
                    self._advance(3)
                elif nxt == "$":
                    pieces.append("$")
                    self._advance(3)
                elif nxt == "\\":
                    escaped = self._peek(3)
                    pieces.append({"n": "\n", "r": "\r", "t": "\t"}.get(escaped, escaped))
                    self._advance(4)
                else:
                    self._advance(2)
                    break
            elif self._startswith("${"):
                self._advance(2)
                holes.append(self._tokens_until("}"))
                pieces.append(_HOLE)
            elif self._startswith("$$"):
                pieces.append("$$")
                self._advance(2)
            else:
                pieces.append(self._peek())
                self._advance()

        return _split_holes(_strip_indentation("".join(pieces)), holes)


def _strip_indentation(raw: str) -> str:
    """Apply indented-string layout rules: drop the common indentation, a
    whitespace-only first line, and trailing spaces after the last newline."""
    lines = raw.split("\n")

    if len(lines) > 1 and not lines[0].strip(" \t"):
        lines = lines[1:]

    indents = [
        len(line) - len(line.lstrip(" "))
        for line in lines
        if line.strip(" \t")
    ]
    common = min(indents) if indents else 0

    stripped = [line[common:] for line in lines]
    if len(stripped) > 1 and not stripped[-1].strip(" \t"):
        stripped[-1] = ""

    return "\n".join(stripped)


def _split_holes(text: str, holes):
    parts: List[Any] = []
    chunks = text.split(_HOLE)
    for index, chunk in enumerate(chunks):
        if chunk:
            parts.append(chunk)
        if index < len(holes):
            parts.append(holes[index])
    return parts


def tokenize(text: str) -> List[Token]:
    return Lexer(text).tokenize()
