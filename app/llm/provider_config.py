"""Provider/runtime configuration for the LLM layer.

Architectural role:
    Centralizes model/provider selection and credential lookup for
    `app.llm.service` and `app.llm.client`.

Model call flow integration:
    - `service.generate_answer` consumes `MODEL_NAME` and the sampling defaults.
    - `client.send_request` consumes the provider endpoint map and key lookup.

Determinism:
    Values are resolved at import time from the process environment (after
    `load_dotenv()`), plus runtime key-file reads in `load_key`.

Failure behavior:
    Missing key material is represented as `None` and turned into a
    provider-labeled error string by `client`.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Primary model routing controls.
PROVIDER = os.getenv("PROVIDER", "openrouter")
MODEL_NAME = os.getenv("MODEL_NAME", "openai/gpt-4o-mini")

REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "120"))

# Sampling defaults; empty env values leave the provider default in place.
_temperature = os.getenv("TEMPERATURE", "0.7")
TEMPERATURE = float(_temperature) if _temperature else None
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "0")) or None

# OpenAI-compatible endpoints. Anthropic is handled separately in `client`.
PROVIDERS = {

    "local": {
        "url": "http://127.0.0.1:8080/v1/chat/completions",
        "key_file": None
    },

    "openai": {
        "url": "https://api.openai.com/v1/chat/completions",
        "key_file": "config/openai.key"
    },

    "openrouter": {
        "url": "https://openrouter.ai/api/v1/chat/completions",
        "key_file": "config/openrouter.key"
    },

    "groq": {
        "url": "https://api.groq.com/openai/v1/chat/completions",
        "key_file": "config/groq.key"
    },

    "mistral": {
        "url": "https://api.mistral.ai/v1/chat/completions",
        "key_file": "config/mistral.key"
    },

    "anthropic": {
        "url": "https://api.anthropic.com/v1/messages",
        "key_file": "config/anthropic.key"
    }

}

ANTHROPIC_VERSION = "2023-06-01"

# OpenRouter ranks apps by these optional headers.
OPENROUTER_REFERER = os.getenv("OPENROUTER_REFERER")
OPENROUTER_TITLE = os.getenv("OPENROUTER_TITLE", "assistant-prompt")


def load_key(path):
    """Load API key from environment override or key file.

    Resolution order:
        1. Environment variable inferred from file stem (for example
           `config/openrouter.key` -> `OPENROUTER_API_KEY`).
        2. Raw file contents at `path`.

    Edge cases:
        - `None` path returns `None`.
        - Missing file returns `None`.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip()
