from __future__ import annotations

import base64
import json

import pytest
import requests

from sentinel_pipeline.core.errors import ModelError, RateLimitError
from sentinel_pipeline.processing.llm_client import GeminiClient, extract_json, parse_retry_delay


class _Resp:
    def __init__(self, status_code: int, payload=None, text: str = "", headers=None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text or (json.dumps(payload) if payload is not None else "")
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _Session:
    def __init__(self, responses: list) -> None:
        self._responses = list(responses)
        self.calls: list[dict] = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "json": json})
        nxt = self._responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def _text_payload(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _build_client(responses: list, sleeps: list | None = None) -> tuple[GeminiClient, _Session]:
    session = _Session(responses)
    client = GeminiClient(
        api_key="test-key",
        model="gemini-test",
        max_retries=2,
        backoff_sec=1.5,
        session=session,  # type: ignore[arg-type]
        sleep_func=(sleeps.append if sleeps is not None else (lambda _s: None)),
    )
    return client, session


def test_extract_json_from_fenced_block() -> None:
    text = 'Here you go:\n```json\n{"title": "A", "body": "B {inner}"}\n```\nThanks!'
    obj, err = extract_json(text)
    assert err == ""
    assert obj == {"title": "A", "body": "B {inner}"}


def test_extract_json_keeps_fences_inside_string_values() -> None:
    text = '```json\n{"title": "A", "description": "d", "body": "Wrap config in ```json fences"}\n```'
    obj, err = extract_json(text)
    assert err == ""
    assert obj["body"] == "Wrap config in ```json fences"


def test_extract_json_reports_errors_instead_of_raising() -> None:
    assert extract_json("") == (None, "empty response")
    assert extract_json("no braces at all") == (None, "no JSON object found")
    obj, err = extract_json('{"title": "A",}')
    assert obj is None
    assert err.startswith("invalid JSON")


def test_parse_retry_delay_from_error_details() -> None:
    payload = json.dumps(
        {
            "error": {
                "code": 429,
                "details": [
                    {"@type": "type.googleapis.com/google.rpc.QuotaFailure"},
                    {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "37s"},
                ],
            }
        }
    )
    assert parse_retry_delay(payload) == 37.0


def test_parse_retry_delay_prefers_header_and_handles_absence() -> None:
    assert parse_retry_delay("", {"Retry-After": "12"}) == 12.0
    assert parse_retry_delay('quota exceeded "retryDelay":"45s"') == 45.0
    assert parse_retry_delay("quota exceeded") is None


def test_client_requires_api_key() -> None:
    with pytest.raises(ModelError):
        GeminiClient(api_key="")


def test_generate_content_returns_text() -> None:
    client, session = _build_client([_Resp(200, _text_payload(" hello "))])
    assert client.generate_content("prompt") == "hello"
    assert session.calls[0]["url"].endswith("/models/gemini-test:generateContent")


def test_rate_limit_raises_without_retry() -> None:
    body = {"error": {"code": 429, "details": [{"retryDelay": "20s"}]}}
    client, session = _build_client([_Resp(429, body)])

    with pytest.raises(RateLimitError) as exc_info:
        client.generate_content("prompt")

    assert exc_info.value.retry_after == 20.0
    assert len(session.calls) == 1


def test_server_errors_retry_with_exponential_backoff() -> None:
    sleeps: list[float] = []
    client, session = _build_client(
        [
            _Resp(503, text="unavailable"),
            requests.ConnectionError("reset"),
            _Resp(200, _text_payload("ok")),
        ],
        sleeps,
    )

    assert client.generate_content("prompt") == "ok"
    assert sleeps == [1.5, 3.0]
    assert len(session.calls) == 3


def test_client_error_is_model_error() -> None:
    client, _ = _build_client([_Resp(400, text="bad request")])
    with pytest.raises(ModelError):
        client.generate_content("prompt")


def test_generate_image_decodes_inline_data() -> None:
    raw = b"\x89PNG fake"
    payload = {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {"text": "caption"},
                        {"inlineData": {"mimeType": "image/png", "data": base64.b64encode(raw).decode()}},
                    ]
                }
            }
        ]
    }
    client, _ = _build_client([_Resp(200, payload)])
    assert client.generate_image("draw") == raw
