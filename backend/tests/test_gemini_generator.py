from __future__ import annotations

import json
import logging

import httpx
import pytest

from app.core.errors import UpstreamError
from app.services.generation.base import GenerationRequest
from app.services.generation.gemini import GeminiGenerator, extract_text

REQUEST = GenerationRequest(model="gemini-2.5-pro", prompt="Split these tasks", max_output_tokens=2048, temperature=0.2)


def _generator(handler) -> GeminiGenerator:
    return GeminiGenerator(
        api_key="secret-key",
        base_url="https://gemini.test/v1beta/",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_request_shape_and_parts_response() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "[1,"}, {"text": "2]"}]}}]},
        )

    result = _generator(handler).generate(REQUEST)

    assert result.text == "[1,2]"
    assert result.provider == "gemini"
    assert seen["url"].path == "/v1beta/models/gemini-2.5-pro:generateContent"
    assert seen["url"].params["key"] == "secret-key"
    assert seen["body"] == {
        "contents": [{"role": "user", "parts": [{"text": "Split these tasks"}]}],
        "generationConfig": {"temperature": 0.2, "maxOutputTokens": 2048},
    }


def test_legacy_string_content_is_still_understood() -> None:
    generator = _generator(lambda request: httpx.Response(200, json={"candidates": [{"content": "[]"}]}))

    assert generator.generate(REQUEST).text == "[]"


def test_missing_text_raises_and_logs_body(caplog) -> None:
    generator = _generator(lambda request: httpx.Response(200, json={"candidates": [], "promptFeedback": "BLOCKED"}))

    with caplog.at_level(logging.ERROR, logger="app.services.generation.gemini"):
        with pytest.raises(UpstreamError):
            generator.generate(REQUEST)

    assert "BLOCKED" in caplog.text


def test_http_error_status_raises_upstream_error() -> None:
    generator = _generator(lambda request: httpx.Response(503, text="overloaded"))

    with pytest.raises(UpstreamError) as excinfo:
        generator.generate(REQUEST)

    assert excinfo.value.details == {"status_code": 503}


def test_transport_failure_does_not_leak_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as excinfo:
        _generator(handler).generate(REQUEST)

    assert "secret-key" not in excinfo.value.message


def test_extract_text_prefers_parts_over_legacy() -> None:
    name, text = extract_text({"candidates": [{"content": {"parts": [{"text": "new"}]}}]})

    assert (name, text) == ("parts", "new")
    with pytest.raises(UpstreamError):
        extract_text(["not", "an", "object"])
