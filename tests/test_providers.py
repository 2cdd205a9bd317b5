"""Tests for provider message conversion and construction; no network calls."""

import pytest

from roundtable.models import BackendId, ChatMessage, ImageInput, PdfInput
from roundtable.providers.anthropic import AnthropicProvider, _to_anthropic_message
from roundtable.providers.base import ProviderError, sdk_status_code
from roundtable.providers.factory import Credentials, build_backends
from roundtable.providers.gemini import _to_gemini_content
from roundtable.providers.openai_provider import OpenAIProvider, _to_openai_message

IMAGE = ImageInput(data="aGVsbG8=", mime_type="image/png")
PDF = PdfInput(data="JVBERi0=", name="paper.pdf")


def test_openai_plain_message():
    assert _to_openai_message(ChatMessage("user", "hi")) == {"role": "user", "content": "hi"}


def test_openai_message_with_attachments():
    converted = _to_openai_message(ChatMessage("user", "What is this?", images=[IMAGE], pdfs=[PDF]))
    parts = converted["content"]
    assert parts[0]["type"] == "text"
    assert "paper.pdf" in parts[0]["text"]
    assert parts[0]["text"].endswith("What is this?")
    assert parts[1] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,aGVsbG8="}}


def test_anthropic_message_block_order():
    converted = _to_anthropic_message(ChatMessage("user", "Explain", images=[IMAGE], pdfs=[PDF]))
    assert [b["type"] for b in converted["content"]] == ["document", "image", "text"]
    assert converted["content"][0]["source"]["media_type"] == "application/pdf"


def test_gemini_content_parts():
    content = _to_gemini_content(ChatMessage("user", "Explain", images=[IMAGE]))
    assert content.role == "user"
    assert len(content.parts) == 2
    assert content.parts[-1].text == "Explain"


def test_provider_requires_key(sample_model_config, monkeypatch):
    monkeypatch.delenv(sample_model_config.api_key_env, raising=False)
    with pytest.raises(ProviderError, match="Missing API key"):
        AnthropicProvider(sample_model_config)


def test_provider_uses_explicit_key(sample_model_config):
    provider = AnthropicProvider(sample_model_config, api_key="sk-ant-test")
    assert provider.name() == "claude"
    assert provider.model_string() == "claude-sonnet-4-20250514"


def test_sdk_status_code():
    class Err(Exception):
        status_code = 429

    assert sdk_status_code(Err()) == 429
    assert sdk_status_code(RuntimeError("x")) is None


def test_credentials_env_fallback(sample_app_config, monkeypatch):
    monkeypatch.setenv("TEST_GOOGLE_KEY", "g-env")
    monkeypatch.delenv("TEST_ANTHROPIC_KEY", raising=False)
    creds = Credentials(openai=" sk-1 ").with_env_fallback(sample_app_config)
    assert creds.openai == "sk-1"
    assert creds.google == "g-env"
    assert creds.missing() == [BackendId.CLAUDE]


def test_build_backends(sample_app_config):
    backends = build_backends(Credentials("sk-1", "sk-ant-1", "g-1"), sample_app_config)
    assert set(backends) == set(BackendId)
    assert isinstance(backends[BackendId.CHATGPT], OpenAIProvider)
    assert backends[BackendId.GEMINI].model_string() == "gemini-2.0-flash"
