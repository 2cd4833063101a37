from __future__ import annotations

import calendar
import datetime
import email.utils
import html
import re
import time
from typing import Any

_WS_RE = re.compile(r"\s+")  # 연속 공백을 단일 공백으로 축약
_TAG_RE = re.compile(r"<[^>]+>")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")  # 바이너리/제어문자 검출용
_TITLE_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)
_SLUG_RE = re.compile(r"[^a-z0-9]+")
_LATIN_RE = re.compile(r"[A-Za-z]")
_LETTER_RE = re.compile(r"[^\W\d_]", re.UNICODE)


def clean_text(s: str) -> str:
    """HTML 엔티티/태그를 제거하고 공백을 정리한 깔끔한 텍스트로 정규화."""
    if not s:
        return ""
    s = html.unescape(s)
    s = s.replace("\u00a0", " ")
    s = _TAG_RE.sub("", s)
    return _WS_RE.sub(" ", s).strip()


def clean_text_ws(text: str) -> str:
    return _WS_RE.sub(" ", (text or "").strip())


def sanitize_text(text: str) -> str:
    """모델 입력 전에 제어문자를 제거."""
    if not text:
        return ""
    text = _CONTROL_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def normalize_for_hash(text: str) -> str:
    # 소문자 + 공백 축약 (내용 해시 입력)
    return clean_text_ws((text or "").lower())


def normalize_title(title: str) -> str:
    t = clean_text(title).lower()
    t = _TITLE_PUNCT_RE.sub(" ", t)
    return clean_text_ws(t)


def title_prefix(title: str, words: int = 4) -> str:
    tokens = normalize_title(title).split()
    return " ".join(tokens[:words])


def slugify(text: str) -> str:
    s = _SLUG_RE.sub("-", (text or "").lower())
    return s.strip("-")


def is_mostly_non_latin(text: str, threshold: float = 0.5) -> bool:
    """문자 중 라틴 알파벳 비율이 threshold 미만이면 True."""
    letters = _LETTER_RE.findall(text or "")
    if not letters:
        return False
    latin = sum(1 for ch in letters if _LATIN_RE.match(ch))
    return latin / len(letters) < threshold


def parse_datetime_utc(value: str) -> datetime.datetime | None:
    if not value:
        return None
    try:
        dt = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except Exception:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except Exception:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def struct_time_to_utc(value: Any) -> datetime.datetime | None:
    # feedparser의 *_parsed(time.struct_time, UTC 기준)를 datetime으로
    if not value:
        return None
    try:
        if isinstance(value, time.struct_time):
            ts = calendar.timegm(value)
        else:
            ts = calendar.timegm(tuple(value)[:6] + (0, 0, 0))
        return datetime.datetime.fromtimestamp(ts, tz=datetime.timezone.utc)
    except Exception:
        return None


def to_iso(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value else None


def truncate(text: str, limit: int) -> str:
    if not text or len(text) <= limit:
        return text or ""
    return text[:limit]
