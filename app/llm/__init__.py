"""LLM access package.

Architectural role:
    Provides provider configuration, request-payload construction, and
    transport adapters that hand the rendered system prompt to a
    text-generation backend.

Module split:
    - `provider_config`: environment-driven provider and model configuration.
    - `service`: canonical question-to-payload adapter.
    - `client`: provider-specific HTTP transport and response parsing.
"""
