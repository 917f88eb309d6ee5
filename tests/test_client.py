"""Tests for the completion client and the OpenAI provider."""

from types import SimpleNamespace

import httpx
import pytest
from openai import APIStatusError

from tradecopilot.errors import UpstreamProviderError
from tradecopilot.llm.client import (
    JSON_RESPONSE_FORMAT,
    CompletionClient,
    OpenAICompletionProvider,
)


def test_image_requests_use_vision_model(copilot_config, fake_provider):
    client = CompletionClient(fake_provider, copilot_config)

    completion = client.complete([{"role": "user", "content": "hi"}], has_images=True, request_analysis=True)

    call = fake_provider.calls[0]
    assert completion.model == "gpt-4o"
    assert call["model"] == "gpt-4o"
    assert call["max_tokens"] == 1500
    assert call["temperature"] == 0.7
    assert call["response_format"] == JSON_RESPONSE_FORMAT


def test_text_requests_use_text_model(copilot_config, fake_provider):
    client = CompletionClient(fake_provider, copilot_config)

    completion = client.complete([{"role": "user", "content": "hi"}], has_images=False)

    assert completion.model == "gpt-4o-mini"
    assert fake_provider.calls[0]["max_tokens"] == 500
    assert len(fake_provider.calls) == 1


def test_provider_errors_propagate(copilot_config, make_provider):
    provider = make_provider(UpstreamProviderError("Chat completion failed", 500, "boom"))
    client = CompletionClient(provider, copilot_config)

    with pytest.raises(UpstreamProviderError) as exc_info:
        client.complete([], has_images=False)

    assert exc_info.value.status_code == 500
    assert "500" in str(exc_info.value)
    assert "boom" in str(exc_info.value)


def test_openai_provider_without_key_fails_fast():
    provider = OpenAICompletionProvider(api_key=None)

    assert provider.is_available is False
    with pytest.raises(UpstreamProviderError):
        provider.complete([], model="gpt-4o-mini", max_tokens=10, temperature=0.7)


def _fake_sdk(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def test_openai_provider_returns_first_choice():
    provider = OpenAICompletionProvider(api_key="sk-test")
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        message = SimpleNamespace(content='{"narrative": "hi"}')
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    provider._client = _fake_sdk(create)

    text = provider.complete(
        [{"role": "user", "content": "hi"}],
        model="gpt-4o-mini",
        max_tokens=500,
        temperature=0.7,
        response_format=JSON_RESPONSE_FORMAT,
    )

    assert text == '{"narrative": "hi"}'
    assert seen["response_format"] == {"type": "json_object"}
    assert seen["max_tokens"] == 500


def test_openai_provider_empty_choices_is_empty_text():
    provider = OpenAICompletionProvider(api_key="sk-test")
    provider._client = _fake_sdk(lambda **kwargs: SimpleNamespace(choices=[]))

    assert provider.complete([], model="gpt-4o-mini", max_tokens=10, temperature=0.7) == ""


def test_openai_provider_maps_status_errors():
    provider = OpenAICompletionProvider(api_key="sk-test")
    request = httpx.Request("POST", "https://api.example.test/v1/chat/completions")
    response = httpx.Response(503, request=request, text="upstream overloaded")

    def create(**kwargs):
        raise APIStatusError("Service Unavailable", response=response, body=None)

    provider._client = _fake_sdk(create)

    with pytest.raises(UpstreamProviderError) as exc_info:
        provider.complete([], model="gpt-4o-mini", max_tokens=10, temperature=0.7)

    assert exc_info.value.status_code == 503
    assert exc_info.value.body == "upstream overloaded"
    assert exc_info.value.is_retryable([503])


def test_missing_key_error_is_never_retryable():
    provider = OpenAICompletionProvider(api_key=None)

    with pytest.raises(UpstreamProviderError) as exc_info:
        provider.complete([], model="gpt-4o-mini", max_tokens=10, temperature=0.7)

    assert exc_info.value.status_code is None
    assert exc_info.value.is_retryable([429, 502, 503, 504]) is False


def test_connection_failures_are_retryable_by_default():
    assert UpstreamProviderError("Could not reach completion provider").is_retryable([]) is True
