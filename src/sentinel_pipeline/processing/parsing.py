from __future__ import annotations

import re
from typing import Any, Callable

from sentinel_pipeline.models import RawItem, Source
from sentinel_pipeline.utils import clean_text, parse_datetime_utc, struct_time_to_utc

BODY_SNIPPET_MAX_CHARS = 4000

_IMG_SRC_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE)


def _get(entry: Any, name: str, default: Any = None) -> Any:
    # feedparser 항목(FeedParserDict)과 단순 객체/딕셔너리 모두 지원
    if isinstance(entry, dict):
        return entry.get(name, default)
    return getattr(entry, name, default)


class EntryParser:
    def __init__(
        self,
        *,
        clean_text_func: Callable[[str], str] = clean_text,
        body_max_chars: int = BODY_SNIPPET_MAX_CHARS,
    ) -> None:
        self._clean_text = clean_text_func
        self._body_max_chars = body_max_chars

    def strip_source_from_text(self, text: str, source_name: str) -> str:
        # 제목/요약 끝에 붙는 출처 표기 제거 (예: "제목 - BBC News")
        if not text or not source_name:
            return text
        src = re.escape(source_name.strip())
        cleaned = re.sub(
            rf"(?:\s*[\|\-–—·•:]\s*){src}\s*\.{{0,3}}\s*$",
            "",
            text,
            flags=re.IGNORECASE,
        )
        return cleaned.strip()

    def _content_parts(self, entry: Any) -> list[str]:
        # entry.content의 value들을 원본 순서대로 수집 (정제 전 HTML)
        content_list = _get(entry, "content")
        parts: list[str] = []
        if isinstance(content_list, list):
            for content in content_list:
                if isinstance(content, dict):
                    value = content.get("value", "") or ""
                else:
                    value = getattr(content, "value", "") or ""
                if value:
                    parts.append(value)
        return parts

    def extract_body(self, entry: Any) -> str:
        parts = self._content_parts(entry)
        if not parts:
            return ""
        body = self._clean_text(" ".join(parts))
        return body[: self._body_max_chars]

    def extract_image_url(self, entry: Any) -> str | None:
        """enclosure → media:content → media:thumbnail → 본문 첫 <img> 순서로 탐색."""
        for enclosure in _get(entry, "enclosures") or []:
            if not isinstance(enclosure, dict):
                continue
            href = enclosure.get("href") or enclosure.get("url")
            kind = enclosure.get("type") or ""
            if href and (not kind or kind.startswith("image")):
                return href
        for key in ("media_content", "media_thumbnail"):
            for media in _get(entry, key) or []:
                if isinstance(media, dict) and media.get("url"):
                    return media["url"]
        html_parts = self._content_parts(entry)
        summary_raw = _get(entry, "summary") or ""
        for html in [*html_parts, summary_raw]:
            match = _IMG_SRC_RE.search(str(html))
            if match:
                return match.group(1)
        return None

    def extract_published(self, entry: Any):
        for key in ("published_parsed", "updated_parsed"):
            dt = struct_time_to_utc(_get(entry, key))
            if dt is not None:
                return dt
        for key in ("published", "updated", "isoDate", "pubDate"):
            raw = _get(entry, key)
            if raw:
                dt = parse_datetime_utc(str(raw))
                if dt is not None:
                    return dt
        return None

    def build_guid(self, entry: Any, source_name: str, title: str) -> str:
        for key in ("id", "guid", "link"):
            value = _get(entry, key)
            if value:
                return str(value).strip()
        return f"{source_name}-{title}"

    def parse_entry(self, entry: Any, source: Source) -> RawItem | None:
        # 제목이 없으면 기사로 취급하지 않는다
        title_raw = str(_get(entry, "title") or "").strip()
        title = self.strip_source_from_text(self._clean_text(title_raw), source.name)
        if not title:
            return None
        summary = self.strip_source_from_text(
            self._clean_text(str(_get(entry, "summary") or "")),
            source.name,
        )
        body = self.extract_body(entry)
        return RawItem(
            guid=self.build_guid(entry, source.name, title),
            title=title,
            summary=summary,
            body_snippet=body or summary,
            link=str(_get(entry, "link") or "").strip(),
            published_at=self.extract_published(entry),
            source_name=source.name,
            source_reliability=source.reliability,
            source_priority=source.priority,
            image_url=self.extract_image_url(entry),
        )
