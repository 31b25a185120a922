"""Chat-message assembly around the rendered system prompt.

This module is intentionally narrow: it only arranges already-rendered prompt
text, prior turns, and the user question into an OpenAI-style message list.
Provider selection, transport, and response parsing happen in `app.llm`.

Design constraints:
    - Deterministic construction for identical inputs.
    - Fixed ordering: system prompt, history, question.
    - No hidden side effects (no I/O beyond loading the template when no
      system prompt is supplied).

Prompt safety model:
    - The system prompt is passed verbatim; it is never edited or merged with
      client-supplied system text.
    - History entries with unknown roles are dropped rather than forwarded.
"""

from typing import Dict, List, Optional

from app.prompting.system_prompt import render_system_prompt


# =========================================================
# MESSAGE LIST
# =========================================================
# Component order:
#   1) system message (rendered template)
#   2) history turns, oldest first
#   3) user question

HISTORY_ROLES = ("user", "assistant")


def clean_history(history) -> List[Dict[str, str]]:
    """Keep only well-formed `user`/`assistant` turns with non-empty text.

    Items may be dicts or objects with `role`/`content` attributes (pydantic
    request models). Content is kept unstripped apart from the emptiness test.
    """
    cleaned = []

    for item in history or []:
        if isinstance(item, dict):
            role = item.get("role")
            content = item.get("content")
        else:
            role = getattr(item, "role", None)
            content = getattr(item, "content", None)

        if role not in HISTORY_ROLES:
            continue
        if not isinstance(content, str) or not content.strip():
            continue

        cleaned.append({"role": role, "content": content})

    return cleaned


def build_messages(
    question: str,
    history=None,
    system_prompt: Optional[str] = None,
    now=None,
) -> List[Dict[str, str]]:
    """Build the message list for one model call.

    Args:
        question: Latest user text.
        history: Prior turns (see `clean_history`).
        system_prompt: Pre-rendered prompt. Rendered on demand when omitted.
        now: Date override forwarded to `render_system_prompt`.

    Returns:
        Messages with the system prompt first and the stripped question last.

    Edge cases:
        - Empty or whitespace-only `question` raises `ValueError`.
        - A trailing history turn identical to `question` is not duplicated.
    """
    if not isinstance(question, str) or not question.strip():
        raise ValueError("question must be a non-empty string")

    if system_prompt is None:
        system_prompt = render_system_prompt(now=now)

    turns = clean_history(history)
    text = question.strip()

    if turns and turns[-1]["role"] == "user" and turns[-1]["content"].strip() == text:
        turns = turns[:-1]

    return (
        [{"role": "system", "content": system_prompt}]
        + turns
        + [{"role": "user", "content": text}]
    )


# =========================================================
# PAYLOAD
# =========================================================

def build_payload(messages, model: str, stream: bool = False, **sampling) -> dict:
    """Wrap messages into an OpenAI-compatible request body.

    `None` sampling values are omitted so provider defaults apply.
    """
    payload = {
        "model": model,
        "messages": list(messages),
    }
    if stream:
        payload["stream"] = True

    for key, value in sampling.items():
        if value is not None:
            payload[key] = value

    return payload
