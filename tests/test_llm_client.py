from __future__ import annotations

from types import SimpleNamespace

import pytest

from pagegen.config import settings
from pagegen.llm.client import LLMClient, LLMClientConfigError, LLMGenerationParams, strip_code_fence


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeMessages:
    def __init__(self, text):
        self.text = text
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


def test_provider_routing():
    client = LLMClient("gpt-4o-mini")

    assert client.provider_for("gpt-4o-mini") == "openai"
    assert client.provider_for("o3-mini") == "openai"
    assert client.provider_for("claude-3-5-haiku-latest") == "anthropic"
    with pytest.raises(LLMClientConfigError):
        client.provider_for("gemini-1.5-pro")


def test_openai_request_carries_system_prompt_and_response_format():
    client = LLMClient("gpt-4o-mini")
    completions = FakeCompletions('{"ok": true}')
    client._openai_client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    response_format = {"type": "json_schema", "json_schema": {"name": "Draft", "schema": {"type": "object"}}}

    text = client.generate_text(
        "Write it",
        LLMGenerationParams(
            model="gpt-4o-mini",
            max_tokens=100,
            temperature=0.3,
            system_prompt="Be brief.",
            response_format=response_format,
        ),
    )

    assert text == '{"ok": true}'
    assert completions.kwargs["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Write it"},
    ]
    assert completions.kwargs["response_format"] == response_format
    assert completions.kwargs["max_tokens"] == 100
    assert completions.kwargs["temperature"] == 0.3


def test_openai_empty_content_raises():
    client = LLMClient("gpt-4o-mini")
    client._openai_client = SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(None)))

    with pytest.raises(RuntimeError, match="no content"):
        client.generate_text("Write it")


def test_anthropic_request_embeds_schema_and_strips_fence():
    client = LLMClient("claude-3-5-haiku-latest")
    messages = FakeMessages('```json\n{"ok": true}\n```')
    client._anthropic_client = SimpleNamespace(messages=messages)

    text = client.generate_text(
        "Write it",
        LLMGenerationParams(
            model="claude-3-5-haiku-latest",
            system_prompt="Be brief.",
            response_format={"type": "json_schema", "json_schema": {"name": "Draft", "schema": {"type": "object"}}},
        ),
    )

    assert text == '{"ok": true}'
    assert messages.kwargs["system"] == "Be brief."
    assert messages.kwargs["max_tokens"] == 4096
    content = messages.kwargs["messages"][0]["content"]
    assert content.startswith("Write it")
    assert '{"type": "object"}' in content


def test_missing_keys_raise_config_error(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", None)

    with pytest.raises(LLMClientConfigError, match="OPENAI_API_KEY"):
        LLMClient("gpt-4o-mini").generate_text("hi")
    with pytest.raises(LLMClientConfigError, match="ANTHROPIC_API_KEY"):
        LLMClient("claude-3-5-haiku-latest").generate_text("hi")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('{"a": 1}', '{"a": 1}'),
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ("```\ntext\n```", "text"),
        ("  plain  ", "plain"),
    ],
)
def test_strip_code_fence(raw, expected):
    assert strip_code_fence(raw) == expected
