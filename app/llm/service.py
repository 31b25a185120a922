"""Question-to-payload adapter for LLM invocation.

Architectural role:
    Canonical text-generation entrypoint for the CLI and HTTP adapters. Bridges
    message assembly (`app.prompting.prompt_builder`) to transport
    (`app.llm.client`).

Model call flow:
    question + history -> `build_messages` (rendered system prompt first)
    -> `build_payload` -> `client.send_request(...)`.

Determinism:
    Payload construction is deterministic for fixed inputs, date, and
    configuration. Generated output is not, because inference runs remotely.
"""

from app.llm import provider_config
from app.llm.client import send_request
from app.prompting.prompt_builder import build_messages, build_payload


def prepare_payload(question: str, history=None, stream=False, now=None, system_prompt=None) -> dict:
    """Build the provider-agnostic request body for one question."""
    messages = build_messages(question, history=history, system_prompt=system_prompt, now=now)
    return build_payload(
        messages,
        provider_config.MODEL_NAME,
        stream=stream,
        temperature=provider_config.TEMPERATURE,
        max_tokens=provider_config.MAX_TOKENS,
    )


def generate_answer(question: str, history=None, stream=False, now=None, system_prompt=None):
    """Ask the configured model one question under the system prompt.

    Returns:
        Provider response: a generator of text deltas in streaming paths, the
        final string otherwise, or a sanitized error string (see `client`).

    Failure scenarios:
        `ValueError` for an empty question is raised before any request.
        Transport failures are returned as values, not raised.
    """
    payload = prepare_payload(
        question,
        history=history,
        stream=stream,
        now=now,
        system_prompt=system_prompt,
    )
    return send_request(payload, stream)
