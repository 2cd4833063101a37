from __future__ import annotations

import re
from typing import Iterable

from sentinel_pipeline.models import SafetyResult

SAFETY_BASE_SCORE = 100.0
SENSITIVE_PENALTY = 20.0
BIAS_PENALTY = 10.0


def _compile(keywords: Iterable[str]) -> list[tuple[str, re.Pattern[str]]]:
    compiled: list[tuple[str, re.Pattern[str]]] = []
    seen: set[str] = set()
    for kw in keywords:
        key = (kw or "").strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        # 단어 경계 매칭 (부분 문자열 오탐 방지: "grape" ≠ "rape")
        compiled.append((key, re.compile(rf"(?<!\w){re.escape(key)}(?!\w)", re.IGNORECASE)))
    return compiled


class SafetyFilter:
    """키워드 휴리스틱 안전성 검사.

    민감 키워드가 하나라도 있으면 is_safe=False (무관용).
    점수는 100에서 민감 매칭당 -20, 편향 표현당 -10, 하한 0.
    I/O와 난수가 없는 순수 함수라 같은 입력에 항상 같은 결과를 낸다.
    """

    def __init__(
        self,
        *,
        sensitive_keywords: Iterable[str],
        bias_indicators: Iterable[str],
    ) -> None:
        self._sensitive = _compile(sensitive_keywords)
        self._bias = _compile(bias_indicators)

    @staticmethod
    def _matches(patterns: list[tuple[str, re.Pattern[str]]], text: str) -> list[str]:
        return [kw for kw, pattern in patterns if pattern.search(text)]

    def check(self, title: str, summary: str = "", body: str = "") -> SafetyResult:
        text = " ".join(x for x in (title, summary, body) if x)
        sensitive = self._matches(self._sensitive, text)
        bias = self._matches(self._bias, text)
        score = SAFETY_BASE_SCORE - SENSITIVE_PENALTY * len(sensitive) - BIAS_PENALTY * len(bias)
        return SafetyResult(
            is_safe=not sensitive,
            score=max(0.0, score),
            sensitive_flags=sensitive,
            bias_flags=bias,
        )
