"""Provider-specific transport client for LLM requests.

Architectural role:
    Executes HTTP requests against the configured model provider and
    normalizes streaming and non-streaming responses to plain text.

Model invocation flow:
    `service.generate_answer` -> `send_request(payload, stream)` -> provider
    branch (OpenAI-compatible / Anthropic) -> parsed text or streamed deltas.

System prompt handling:
    The system message produced by `app.prompting` is forwarded verbatim.
    OpenAI-compatible providers receive it as the first message; Anthropic
    receives it in the top-level `system` field.

Retry behavior:
    No retry loop is implemented. Each HTTP call is attempted once with
    `REQUEST_TIMEOUT`.

Failure handling model:
    Exceptions are logged and converted into sanitized error strings (or a
    streamed error chunk) to keep caller-side control flow stable.
"""

import json
import logging

import requests

from app.llm import provider_config
from app.llm.provider_config import ANTHROPIC_VERSION, load_key

logger = logging.getLogger(__name__)


def _build_sanitized_http_error(provider_name: str, err: requests.exceptions.RequestException) -> str:
    """Build provider-labeled HTTP error text without exposing raw internals."""
    status_code = None
    if getattr(err, "response", None) is not None:
        status_code = getattr(err.response, "status_code", None)

    label = str(provider_name or "provider").upper()
    if status_code:
        return f"\n{label} HTTP ERROR ({status_code})\n"
    return f"\n{label} HTTP ERROR\n"


def _sanitize_runtime_error(provider_name: str) -> str:
    """Build generic provider-labeled runtime failure text."""
    label = str(provider_name or "provider").upper()
    return f"\n{label} REQUEST FAILED\n"


def _openai_headers(provider: str, api_key):
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    if provider == "openrouter":
        if provider_config.OPENROUTER_REFERER:
            headers["HTTP-Referer"] = provider_config.OPENROUTER_REFERER
        if provider_config.OPENROUTER_TITLE:
            headers["X-Title"] = provider_config.OPENROUTER_TITLE
    return headers


def extract_delta(data: dict):
    """Return the text delta from one OpenAI-compatible stream chunk, if any."""
    choices = data.get("choices") or []
    if choices:
        choice = choices[0]
        delta = choice.get("delta") or {}
        if delta.get("content"):
            return delta["content"]
        message = choice.get("message") or {}
        if message.get("content"):
            return message["content"]
        if choice.get("text"):
            return choice["text"]
    return None


def _stream_openai(provider, url, headers, payload):
    """Yield incremental text deltas from an SSE chat-completion stream."""
    try:
        with requests.post(
            url,
            headers=headers,
            json=payload,
            stream=True,
            timeout=provider_config.REQUEST_TIMEOUT,
        ) as response:

            response.raise_for_status()
            response.encoding = "utf-8"

            for line in response.iter_lines(decode_unicode=True):

                if not line or line.startswith(":"):
                    continue

                if line.startswith("data:"):
                    line = line[5:].lstrip()

                if line.strip() == "[DONE]":
                    break

                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    continue

                delta = extract_delta(data)
                if delta:
                    yield delta

    except requests.exceptions.RequestException as err:
        logger.exception("Streaming request to %s failed", provider)
        yield _build_sanitized_http_error(provider, err)


def to_anthropic_payload(payload: dict) -> dict:
    """Map an OpenAI-style payload to the Anthropic Messages format.

    The system message moves unchanged into the `system` field; only `user`
    and `assistant` turns are kept in `messages`.
    """
    system_prompt = None
    messages = []

    for msg in payload.get("messages", []):
        if not isinstance(msg, dict):
            continue
        role = msg.get("role")
        content = msg.get("content", "")
        if role == "system":
            if isinstance(content, str) and content.strip():
                system_prompt = content
        elif role in ("user", "assistant"):
            messages.append({"role": role, "content": content})

    anthropic_payload = {
        "model": payload.get("model", provider_config.MODEL_NAME),
        "max_tokens": payload.get("max_tokens") or 1024,
        "messages": messages,
    }
    if system_prompt:
        anthropic_payload["system"] = system_prompt
    for key in ("temperature", "top_p"):
        if key in payload:
            anthropic_payload[key] = payload[key]
    return anthropic_payload


def send_request(payload: dict, stream: bool, provider=None):
    """Send one request to the configured provider and parse response content.

    Returns:
        - Generator of text deltas for OpenAI-compatible stream mode.
        - Final response string otherwise.
        - Sanitized error string on failure.

    Failure scenarios:
        - Missing keys return `<PROVIDER> KEY FILE NOT FOUND`.
        - Unknown provider returns `INVALID PROVIDER`.
        - Request/runtime errors return sanitized provider-labeled text.
    """
    provider = provider or provider_config.PROVIDER

    try:
        if provider not in provider_config.PROVIDERS:
            return "\nINVALID PROVIDER\n"

        config = provider_config.PROVIDERS[provider]
        api_key = None
        if config["key_file"]:
            api_key = load_key(config["key_file"])
            if not api_key:
                return f"\n{provider.upper()} KEY FILE NOT FOUND\n"

        if provider == "anthropic":
            headers = {
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            }
            response = requests.post(
                config["url"],
                headers=headers,
                json=to_anthropic_payload(payload),
                timeout=provider_config.REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
            return data["content"][0]["text"].strip()

        headers = _openai_headers(provider, api_key)

        if stream:
            body = dict(payload, stream=True)
            return _stream_openai(provider, config["url"], headers, body)

        body = {key: value for key, value in payload.items() if key != "stream"}
        response = requests.post(
            config["url"],
            headers=headers,
            json=body,
            timeout=provider_config.REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
        return data["choices"][0]["message"]["content"].strip()

    except KeyboardInterrupt:
        return ""

    except requests.exceptions.RequestException as err:
        logger.exception("Request to %s failed", provider)
        return _build_sanitized_http_error(provider, err)

    except (KeyError, IndexError, TypeError, ValueError):
        logger.exception("Unexpected response shape from %s", provider)
        return _sanitize_runtime_error(provider)

    except Exception:
        logger.exception("Request to %s failed unexpectedly", provider)
        return _sanitize_runtime_error(provider)
