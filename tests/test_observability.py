from __future__ import annotations

import pytest
from openai import OpenAI

from pagegen.config import settings
from pagegen.observability import langfuse as langfuse_module


@pytest.fixture(autouse=True)
def reset_langfuse():
    langfuse_module.shutdown_langfuse()
    yield
    langfuse_module.shutdown_langfuse()


def test_disabled_langfuse_is_a_no_op():
    assert langfuse_module.get_langfuse_client() is None
    assert langfuse_module.get_openai_client_class() is OpenAI

    with langfuse_module.start_langfuse_generation(name="pagegen.test", model="gpt-4o-mini") as generation:
        assert generation is None


def test_enabled_langfuse_requires_keys(monkeypatch):
    monkeypatch.setattr(settings, "LANGFUSE_ENABLED", True)
    monkeypatch.setattr(settings, "LANGFUSE_PUBLIC_KEY", None)

    with pytest.raises(langfuse_module.LangfuseConfigError, match="LANGFUSE_PUBLIC_KEY"):
        langfuse_module.initialize_langfuse()


def test_enabled_langfuse_validates_sample_rate(monkeypatch):
    monkeypatch.setattr(settings, "LANGFUSE_ENABLED", True)
    monkeypatch.setattr(settings, "LANGFUSE_PUBLIC_KEY", "pk")
    monkeypatch.setattr(settings, "LANGFUSE_SECRET_KEY", "sk")
    monkeypatch.setattr(settings, "LANGFUSE_SAMPLE_RATE", 1.5)

    with pytest.raises(langfuse_module.LangfuseConfigError, match="SAMPLE_RATE"):
        langfuse_module.initialize_langfuse()
