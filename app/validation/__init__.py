"""Well-formedness checks for the shipped text artifacts.

Module split:
    - `issues`: shared `Issue` record returned by every checker.
    - `markdown_check`: CommonMark structure checks on the prompt template.
    - `math_delimiters`: LaTeX delimiter pairing on the prompt template.

Checkers never raise for malformed content; they report issues.
"""

from app.validation.issues import Issue

__all__ = ["Issue"]
