"""LaTeX math-delimiter pairing for the prompt template.

The prompt tells the model to write inline math between `\\(` and `\\)` and
display math between `\\[` and `\\]`, so the prompt must itself use those
delimiters consistently.

Delimiter rules:
    - A delimiter is a backslash followed by one of `( ) [ ]`, where the
      backslash is not itself escaped: an odd-length run of backslashes ends
      in a delimiter, an even-length run is escaped backslashes only.
    - Fenced/indented code blocks and inline code spans are ignored.
    - A math region must close inside the paragraph that opened it. A blank
      line ends the paragraph.
    - Regions do not nest.

Issue codes:
    `unclosed-math`, `stray-close`, `nested-math`, `mismatched-close`.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from app.validation.issues import Issue
from app.validation.markdown_check import split_lines, fenced_code_ranges


OPENERS = {"(": "inline", "[": "display"}
CLOSERS = {")": "inline", "]": "display"}
DELIMITER_TEXT = {
    ("inline", True): "\\(",
    ("inline", False): "\\)",
    ("display", True): "\\[",
    ("display", False): "\\]",
}


@dataclass(frozen=True)
class MathSpan:
    """A matched math region. Lines are 1-based, `content` excludes delimiters."""

    kind: str
    start_line: int
    end_line: int
    content: str


# =========================================================
# PARAGRAPH SPLITTING
# =========================================================

def _paragraphs(text: str) -> List[Tuple[int, List[str]]]:
    """Group non-blank lines outside code blocks into paragraphs.

    Returns `(first_line_index, lines)` pairs with 0-based indices.
    """
    lines = split_lines(text)
    in_code = [False] * len(lines)
    for start, end in fenced_code_ranges(text):
        for i in range(start, min(end, len(lines))):
            in_code[i] = True

    paragraphs = []
    current: List[str] = []
    first = 0

    for i, line in enumerate(lines):
        if in_code[i] or not line.strip():
            if current:
                paragraphs.append((first, current))
                current = []
            continue
        if not current:
            first = i
        current.append(line)

    if current:
        paragraphs.append((first, current))

    return paragraphs


def mask_code_spans(text: str) -> str:
    """Replace inline code spans (delimiters included) with spaces.

    Newlines are kept so offsets still map to lines. A backtick run without a
    matching run of the same length is literal text.
    """
    out = list(text)
    i = 0
    n = len(text)

    while i < n:
        if text[i] != "`":
            i += 1
            continue

        j = i
        while j < n and text[j] == "`":
            j += 1
        run = j - i

        k = j
        close = -1
        while k < n:
            if text[k] != "`":
                k += 1
                continue
            m = k
            while m < n and text[m] == "`":
                m += 1
            if m - k == run:
                close = m
                break
            k = m

        if close < 0:
            i = j
            continue

        for p in range(i, close):
            if out[p] != "\n":
                out[p] = " "
        i = close

    return "".join(out)


# =========================================================
# SCANNING
# =========================================================

def _scan(text: str):
    """Yield `(offset, char)` for every unescaped delimiter in `text`."""
    i = 0
    n = len(text)
    while i < n:
        if text[i] != "\\":
            i += 1
            continue
        j = i
        while j < n and text[j] == "\\":
            j += 1
        if (j - i) % 2 == 1 and j < n and text[j] in "()[]":
            yield j - 1, text[j]
            i = j + 1
        else:
            i = j


def _analyse(text: str):
    spans: List[MathSpan] = []
    issues: List[Issue] = []

    for first, para_lines in _paragraphs(text):
        block = mask_code_spans("\n".join(para_lines))

        def line_of(offset):
            return first + block.count("\n", 0, offset) + 1

        opened: Optional[Tuple[str, int]] = None

        for offset, char in _scan(block):
            if char in OPENERS:
                kind = OPENERS[char]
                if opened is not None:
                    issues.append(Issue(
                        "nested-math",
                        f"{DELIMITER_TEXT[(kind, True)]} opened inside "
                        f"{opened[0]} math started on line {line_of(opened[1])}",
                        line_of(offset),
                    ))
                opened = (kind, offset)
                continue

            kind = CLOSERS[char]
            if opened is None:
                issues.append(Issue(
                    "stray-close",
                    f"{DELIMITER_TEXT[(kind, False)]} has no matching opener",
                    line_of(offset),
                ))
                continue

            open_kind, open_offset = opened
            if open_kind != kind:
                issues.append(Issue(
                    "mismatched-close",
                    f"{DELIMITER_TEXT[(open_kind, True)]} closed by "
                    f"{DELIMITER_TEXT[(kind, False)]}",
                    line_of(offset),
                ))
            else:
                spans.append(MathSpan(
                    kind,
                    line_of(open_offset),
                    line_of(offset),
                    block[open_offset + 2:offset].strip(),
                ))
            opened = None

        if opened is not None:
            issues.append(Issue(
                "unclosed-math",
                f"{DELIMITER_TEXT[(opened[0], True)]} is not closed before the paragraph ends",
                line_of(opened[1]),
            ))

    return spans, issues


def find_math_spans(text: str) -> List[MathSpan]:
    """Return matched math regions in document order."""
    return _analyse(text)[0]


def check_math_delimiters(text: str) -> List[Issue]:
    """Return delimiter problems; an empty list means every region is paired."""
    return _analyse(text)[1]
