"""Tests for the question-to-payload adapter."""

import pytest

from app.llm import provider_config, service


@pytest.fixture
def sent(monkeypatch):
    captured = []

    def fake_send(payload, stream):
        captured.append((payload, stream))
        return "answer"

    monkeypatch.setattr(service, "send_request", fake_send)
    monkeypatch.setattr(provider_config, "MODEL_NAME", "test/model")
    monkeypatch.setattr(provider_config, "TEMPERATURE", 0.3)
    monkeypatch.setattr(provider_config, "MAX_TOKENS", None)
    return captured


class TestPreparePayload:
    def test_system_prompt_comes_first(self, sent, fixed_now):
        payload = service.prepare_payload("What day is it?", now=fixed_now)

        assert payload["model"] == "test/model"
        assert payload["temperature"] == 0.3
        assert "max_tokens" not in payload
        assert "stream" not in payload

        system, question = payload["messages"]
        assert system["role"] == "system"
        assert "Current date: Saturday, 17 October 2026" in system["content"]
        assert question == {"role": "user", "content": "What day is it?"}

    def test_stream_flag(self, sent):
        payload = service.prepare_payload("q", stream=True, system_prompt="S")
        assert payload["stream"] is True


class TestGenerateAnswer:
    def test_forwards_payload(self, sent):
        history = [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "reply"},
        ]
        assert service.generate_answer("second", history=history, system_prompt="S") == "answer"

        payload, stream = sent[0]
        assert stream is False
        assert [msg["role"] for msg in payload["messages"]] == ["system", "user", "assistant", "user"]

    def test_empty_question_raises_before_request(self, sent):
        with pytest.raises(ValueError):
            service.generate_answer("   ")
        assert sent == []
