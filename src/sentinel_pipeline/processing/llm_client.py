from __future__ import annotations

import base64
import json
import logging
import re
import time
from typing import Any, Callable

import requests

from sentinel_pipeline.core import config as cfg
from sentinel_pipeline.core.errors import ModelError, RateLimitError

logger = logging.getLogger(__name__)

_RETRY_DELAY_RE = re.compile(r"retryDelay\\?\"?\s*:\s*\\?\"?(\d+(?:\.\d+)?)s")
_RETRYABLE_STATUS = {500, 502, 503, 504}


def extract_json(text: str) -> tuple[dict[str, Any] | None, str]:
    """모델 자유 텍스트에서 JSON 객체 하나를 꺼낸다.

    원문 그대로 첫 `{`부터 마지막 `}`까지를 파싱한다. 바깥 펜스는 잘려 나가고
    문자열 값 안의 펜스는 보존된다.
    예외 대신 (obj, error)를 돌려주므로 호출부가 바로 대체 경로를 탈 수 있다.
    성공하면 error는 빈 문자열.
    """
    if not text or not text.strip():
        return None, "empty response"
    raw = text.strip()
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None, "no JSON object found"
    candidate = raw[start : end + 1]
    try:
        obj = json.loads(candidate)
    except json.JSONDecodeError as e:
        return None, f"invalid JSON: {e.msg} (pos {e.pos})"
    if not isinstance(obj, dict):
        return None, "JSON is not an object"
    return obj, ""


def parse_retry_delay(payload: str, headers: dict[str, str] | None = None) -> float | None:
    # Retry-After 헤더 또는 RetryInfo.retryDelay("37s") 힌트
    if headers:
        retry_after = headers.get("Retry-After") or headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
    if not payload:
        return None
    try:
        data = json.loads(payload)
    except Exception:
        data = None
    if isinstance(data, dict):
        details = (data.get("error") or {}).get("details") or []
        for detail in details:
            if not isinstance(detail, dict):
                continue
            delay = detail.get("retryDelay")
            if isinstance(delay, str) and delay.endswith("s"):
                try:
                    return float(delay[:-1])
                except ValueError:
                    continue
    match = _RETRY_DELAY_RE.search(payload)
    if match:
        return float(match.group(1))
    return None


def _extract_gemini_text(payload: dict[str, Any]) -> str:
    # Gemini REST 응답에서 텍스트 part만 이어 붙임
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except Exception:
        return ""
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()


def _extract_gemini_image(payload: dict[str, Any]) -> bytes | None:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except Exception:
        return None
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data") if isinstance(part, dict) else None
        if isinstance(inline, dict) and inline.get("data"):
            try:
                return base64.b64decode(inline["data"])
            except Exception:
                return None
    return None


class GeminiClient:
    """Gemini REST 클라이언트.

    429는 재시도하지 않고 RateLimitError로 올린다 (전역 cooldown은 호출부 책임).
    네트워크 오류와 5xx만 지수 backoff로 재시도한다.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str = cfg.GEMINI_MODEL,
        image_model: str = cfg.GEMINI_IMAGE_MODEL,
        api_base: str = cfg.GEMINI_API_BASE,
        timeout_sec: int = cfg.GEMINI_TIMEOUT_SEC,
        max_retries: int = cfg.GEMINI_MAX_RETRIES,
        backoff_sec: float = cfg.GEMINI_RETRY_BACKOFF_SEC,
        max_output_tokens: int = cfg.GEMINI_MAX_OUTPUT_TOKENS,
        session: requests.Session | None = None,
        sleep_func: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_key:
            raise ModelError("GEMINI_API_KEY is not configured")
        self._api_key = api_key
        self.model = model
        self.image_model = image_model
        self._api_base = api_base.rstrip("/")
        self._timeout_sec = timeout_sec
        self._max_attempts = max(1, max_retries + 1)
        self._backoff_sec = backoff_sec
        self._max_output_tokens = max_output_tokens
        self._session = session or requests.Session()
        self._sleep = sleep_func

    def _post(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._api_base}/models/{model}:generateContent"
        last_err = ""
        for attempt in range(1, self._max_attempts + 1):
            try:
                resp = self._session.post(
                    url,
                    headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
                    json=payload,
                    timeout=self._timeout_sec,
                )
            except requests.RequestException as e:
                last_err = f"{type(e).__name__}: {e}"
                if attempt < self._max_attempts:
                    self._sleep(self._backoff_sec * (2 ** (attempt - 1)))
                    continue
                raise ModelError(f"Gemini request failed: {last_err}") from e

            if resp.status_code == 429:
                raise RateLimitError(
                    f"429 Too Many Requests: {resp.text[:200]}",
                    retry_after=parse_retry_delay(resp.text, dict(resp.headers)),
                )
            if not resp.ok:
                last_err = f"{resp.status_code} {resp.text[:200]}"
                if resp.status_code in _RETRYABLE_STATUS and attempt < self._max_attempts:
                    self._sleep(self._backoff_sec * (2 ** (attempt - 1)))
                    continue
                raise ModelError(f"Gemini call failed: {last_err}")

            try:
                return resp.json()
            except ValueError as e:
                raise ModelError("Gemini response is not JSON") from e
        raise ModelError(f"Gemini call failed: {last_err}")

    def generate_content(self, prompt: str) -> str:
        data = self._post(
            self.model,
            {
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": 0.4,
                    "maxOutputTokens": self._max_output_tokens,
                },
            },
        )
        text = _extract_gemini_text(data)
        if not text:
            raise ModelError("Gemini returned empty text")
        return text

    def generate_image(self, prompt: str) -> bytes | None:
        data = self._post(
            self.image_model,
            {
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
            },
        )
        image = _extract_gemini_image(data)
        if image is None:
            logger.info("Gemini image response carried no inline image data")
        return image
