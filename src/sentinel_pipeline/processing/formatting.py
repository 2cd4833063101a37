from __future__ import annotations

import html
import math
import re
from typing import Any

from sentinel_pipeline.core.constants import (
    DEFAULT_SECTION_HEADINGS,
    EMPHASIS_TERMS,
    HEADING_PATTERNS,
    KEY_POINT_HINTS,
    SOFT_EMPHASIS_TERMS,
)

READ_WORDS_PER_MINUTE = 225

_TAG_RE = re.compile(r"<[^>]*>")
_PARA_SPLIT_RE = re.compile(r"\n\s*\n")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*•]|\d+\.)\s+")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_QUOTE_CHARS = "\"'“”"
_HEADING_RES = [re.compile(p, re.IGNORECASE) for p in HEADING_PATTERNS]
_EMPHASIS_RES = [re.compile(p, re.IGNORECASE) for p in EMPHASIS_TERMS]
_SOFT_EMPHASIS_RES = [re.compile(p, re.IGNORECASE) for p in SOFT_EMPHASIS_TERMS]

QUALITY_GRADES = (  # (하한, 등급) 높은 순
    (90.0, "excellent"),
    (75.0, "good"),
    (60.0, "acceptable"),
    (45.0, "poor"),
)


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text or "")


def _is_heading(text: str, index: int) -> bool:
    # 첫 문단이 짧고 마침표가 없으면 소제목으로 본다
    if index == 0 and len(text) < 100 and "." not in text:
        return True
    if len(text) >= 100 or text.endswith("."):
        return False
    return any(p.match(text) for p in _HEADING_RES)


def _is_quote(text: str) -> bool:
    return len(text) > 1 and text[0] in _QUOTE_CHARS and text[-1] in _QUOTE_CHARS


def _is_list(text: str) -> bool:
    return bool(_LIST_ITEM_RE.match(text))


def _format_list(text: str) -> str:
    items = [_LIST_ITEM_RE.sub("", line).strip() for line in text.splitlines() if line.strip()]
    if len(items) == 1:
        return f"<p><strong>• {items[0]}</strong></p>"
    return "<ul>" + "".join(f"<li>{item}</li>" for item in items) + "</ul>"


def _emphasize(text: str) -> str:
    out = text
    for pattern in _EMPHASIS_RES:
        out = pattern.sub(lambda m: f"<strong>{m.group(0)}</strong>", out)
    for pattern in _SOFT_EMPHASIS_RES:
        out = pattern.sub(lambda m: f"<em>{m.group(0)}</em>", out)
    return out


def _add_default_structure(blocks: list[str]) -> list[str]:
    # 소제목이 하나도 없으면 처음/중간에 기본 소제목 삽입
    if len(blocks) <= 2:
        return blocks
    middle = len(blocks) // 2
    out: list[str] = []
    for idx, block in enumerate(blocks):
        if idx == 0:
            out.append(f"<h2>{DEFAULT_SECTION_HEADINGS[0]}</h2>")
        elif idx == middle:
            out.append(f"<h2>{DEFAULT_SECTION_HEADINGS[1]}</h2>")
        out.append(block)
    return out


def format_article_content(content: str) -> str:
    """평문 본문을 소제목/인용/목록/강조가 있는 HTML로 변환.

    입력의 기존 태그는 지우고 다시 구성한다. 빈 입력은 빈 문자열.
    """
    if not content or not isinstance(content, str):
        return ""
    clean = strip_tags(content).strip()
    if not clean:
        return ""
    paragraphs = [p.strip() for p in _PARA_SPLIT_RE.split(clean) if p.strip()]

    blocks: list[str] = []
    has_heading = False
    for idx, paragraph in enumerate(paragraphs):
        escaped = html.escape(paragraph, quote=False)
        if _is_heading(paragraph, idx):
            blocks.append(f"<h2>{escaped.lstrip('# ').strip()}</h2>")
            has_heading = True
        elif _is_quote(paragraph):
            blocks.append(f"<blockquote>{escaped.strip(_QUOTE_CHARS).strip()}</blockquote>")
        elif _is_list(paragraph):
            blocks.append(_format_list(escaped))
        else:
            blocks.append(f"<p>{_emphasize(escaped)}</p>")

    if not has_heading:
        blocks = _add_default_structure(blocks)
    return "".join(blocks)


def _sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if len(s.strip()) > 10]


def count_words(content: str) -> int:
    return len(strip_tags(content).split())


def calculate_read_time(content: str) -> int:
    """분 단위 읽기 시간 (225 wpm, 올림, 최소 1분). 빈 본문은 0."""
    words = count_words(content)
    if words == 0:
        return 0
    return max(1, math.ceil(words / READ_WORDS_PER_MINUTE))


def extract_content_info(content: str) -> dict[str, Any]:
    if not content:
        return {"summary": "", "keyPoints": [], "wordCount": 0, "readTime": 0}
    clean = strip_tags(content)
    sentences = _sentences(clean)
    key_points = [
        s
        for s in sentences
        if 20 < len(s) < 150 and any(hint in s.lower() for hint in KEY_POINT_HINTS)
    ][:5]
    return {
        "summary": ". ".join(sentences[:3]).strip(),
        "keyPoints": key_points,
        "wordCount": count_words(clean),
        "readTime": calculate_read_time(clean),
    }


def quality_grade(score: float) -> str:
    for threshold, grade in QUALITY_GRADES:
        if score >= threshold:
            return grade
    return "unacceptable"


def quality_tags(quality: dict[str, Any]) -> list[str]:
    """품질 분석 결과에서 붙일 태그 (등급 태그 + 보조 태그)."""
    grade = quality.get("grade") or quality_grade(float(quality.get("score") or 0.0))
    tags = [f"quality-{grade}"]
    if quality.get("wordCount", 0) >= 300 and quality.get("keyPointCount", 0) >= 2:
        tags.append("comprehensive")
    if grade in ("poor", "unacceptable"):
        tags.append("needs-review")
    return tags


def quality_keywords(quality: dict[str, Any]) -> list[str]:
    keywords: list[str] = []
    if quality.get("grade") == "excellent":
        keywords.append("high-quality")
    if quality.get("wordCount", 0) >= 300 and quality.get("keyPointCount", 0) >= 2:
        keywords.extend(["comprehensive", "detailed"])
    return keywords


def analyze_content_quality(
    body: str,
    *,
    formatted_html: str = "",
    key_insights: list[str] | None = None,
    relevance_score: float = 0.0,
    safety_score: float = 100.0,
) -> dict[str, Any]:
    """로컬 휴리스틱 품질 분석 (0~100 점수 + 등급)."""
    info = extract_content_info(body)
    words = info["wordCount"]
    paragraphs = len([p for p in _PARA_SPLIT_RE.split(strip_tags(body or "")) if p.strip()])
    headings = (formatted_html or "").count("<h2>")
    key_points = len(key_insights or []) or len(info["keyPoints"])

    score = 0.0
    if words >= 600:
        score += 30
    elif words >= 300:
        score += 20
    elif words >= 150:
        score += 10
    if paragraphs >= 5:
        score += 15
    elif paragraphs >= 3:
        score += 10
    if headings:
        score += 10
    if key_points >= 2:
        score += 10
    score += max(0.0, min(100.0, relevance_score)) * 0.15
    score += max(0.0, min(100.0, safety_score)) * 0.20
    score = round(min(100.0, score), 1)

    return {
        "score": score,
        "grade": quality_grade(score),
        "wordCount": words,
        "paragraphCount": paragraphs,
        "headingCount": headings,
        "keyPointCount": key_points,
        "readTime": info["readTime"],
    }
