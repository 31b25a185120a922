"""Issue record shared by the prompt and build-declaration checkers."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Issue:
    """One finding from a checker.

    `line` is 1-based; `None` when the finding is not tied to a line.
    """

    code: str
    message: str
    line: Optional[int] = None

    def format(self, source: str = "") -> str:
        location = source
        if self.line is not None:
            location = f"{source}:{self.line}" if source else f"line {self.line}"
        prefix = f"{location}: " if location else ""
        return f"{prefix}[{self.code}] {self.message}"
