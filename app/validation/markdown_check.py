"""CommonMark structure checks for the prompt template.

Architectural role:
    Confirms that the prompt document is well-formed CommonMark before it is
    shipped to a model. Parsing uses markdown-it-py in `commonmark` mode with
    the GFM `table` rule enabled, since the prompt itself asks for tables.

Validation model:
    A CommonMark parser accepts any input, so "valid" here means the parse
    does not silently absorb structure the author did not intend:
        - `unclosed-fence`: a fenced code block runs to the end of its
          container because the closing fence is missing.
        - `table-columns`: a table row has a different cell count than its
          header. markdown-it pads or truncates such rows without complaint.
        - `empty-document`: nothing to send.

Determinism:
    Pure function of the input text.
"""

import re
from typing import List, Tuple

from markdown_it import MarkdownIt

from app.validation.issues import Issue


_md = MarkdownIt("commonmark").enable("table")

# Blockquote markers in front of a line inside a container.
_CONTAINER_PREFIX = re.compile(r"^\s*(?:>\s?)*")
_UNESCAPED_PIPE = re.compile(r"(?<!\\)\|")


def split_lines(text: str) -> List[str]:
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def parse(text: str):
    """Return the markdown-it token stream for `text`."""
    return _md.parse(text)


# =========================================================
# CODE REGIONS
# =========================================================

def fenced_code_ranges(text: str, tokens=None) -> List[Tuple[int, int]]:
    """Return 0-based `[start, end)` line ranges covered by code blocks.

    Covers fenced and indented code blocks at any nesting depth. Used by the
    math checker to skip literal code.
    """
    if tokens is None:
        tokens = parse(text)
    return [
        (tok.map[0], tok.map[1])
        for tok in tokens
        if tok.type in ("fence", "code_block") and tok.map
    ]


def _is_closing_fence(line: str, markup: str) -> bool:
    stripped = _CONTAINER_PREFIX.sub("", line).strip()
    if len(stripped) < len(markup):
        return False
    return set(stripped) == {markup[0]}


# =========================================================
# TABLES
# =========================================================

def _split_row(line: str) -> List[str]:
    row = _CONTAINER_PREFIX.sub("", line).strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|") and not row.endswith("\\|"):
        row = row[:-1]
    return [cell.strip() for cell in _UNESCAPED_PIPE.split(row)]


def _table_issues(lines: List[str], start: int, end: int) -> List[Issue]:
    issues = []
    header = _split_row(lines[start])

    for offset, line in enumerate(lines[start + 2:end], start=2):
        if not line.strip():
            continue
        cells = _split_row(line)
        if len(cells) != len(header):
            issues.append(Issue(
                "table-columns",
                f"table row has {len(cells)} cells, header has {len(header)}",
                start + offset + 1,
            ))

    return issues


# =========================================================
# ENTRYPOINT
# =========================================================

def check_markdown(text: str) -> List[Issue]:
    """Check `text` for CommonMark structure problems.

    Returns:
        Issues in document order. Empty list means the document is clean.
    """
    if not text or not text.strip():
        return [Issue("empty-document", "document is empty")]

    lines = split_lines(text)
    tokens = parse(text)
    issues = []

    for tok in tokens:
        if not tok.map:
            continue
        start, end = tok.map

        if tok.type == "fence":
            closed = end - 1 > start and _is_closing_fence(lines[end - 1], tok.markup)
            if not closed:
                issues.append(Issue(
                    "unclosed-fence",
                    f"code fence {tok.markup!r} opened here is never closed",
                    start + 1,
                ))

        elif tok.type == "table_open":
            issues.extend(_table_issues(lines, start, end))

    issues.sort(key=lambda issue: issue.line or 0)
    return issues
