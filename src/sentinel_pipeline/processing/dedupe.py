from __future__ import annotations

import datetime
import hashlib
import threading
from typing import Callable

from sentinel_pipeline.core.constants import DEDUPE_TITLE_PREFIX_WORDS
from sentinel_pipeline.models import DuplicateCheck
from sentinel_pipeline.processing.types import DocumentStore, LogFunc, null_log
from sentinel_pipeline.utils import normalize_for_hash, title_prefix

MIN_PREFIX_WORDS = 2  # 이보다 짧은 제목은 prefix 조회 생략 (오탐 위험)


def content_hash(title: str, summary: str) -> str:
    raw = f"{normalize_for_hash(title)} {normalize_for_hash(summary)}".strip()
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ContentHashCache:
    """최근 window 동안 본 내용 해시 (프로세스 메모리, best-effort)."""

    def __init__(
        self,
        *,
        window: datetime.timedelta,
        now_provider: Callable[[], datetime.datetime],
    ) -> None:
        self._window = window
        self._now_provider = now_provider
        self._seen: dict[str, datetime.datetime] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._seen)

    def _purge(self, now: datetime.datetime) -> None:
        cutoff = now - self._window
        expired = [h for h, ts in self._seen.items() if ts < cutoff]
        for h in expired:
            del self._seen[h]

    def contains(self, digest: str) -> bool:
        with self._lock:
            now = self._now_provider()
            self._purge(now)
            return digest in self._seen

    def add(self, digest: str) -> None:
        with self._lock:
            self._seen[digest] = self._now_provider()


class Deduplicator:
    def __init__(
        self,
        *,
        store: DocumentStore,
        window_hours: float = 12.0,
        prefix_words: int = DEDUPE_TITLE_PREFIX_WORDS,
        now_provider: Callable[[], datetime.datetime] | None = None,
        logger: LogFunc = null_log,
    ) -> None:
        self._store = store
        self._prefix_words = prefix_words
        self._log = logger
        self._cache = ContentHashCache(
            window=datetime.timedelta(hours=window_hours),
            now_provider=now_provider or (lambda: datetime.datetime.now(datetime.timezone.utc)),
        )

    @property
    def cache(self) -> ContentHashCache:
        return self._cache

    def check(self, guid: str, title: str, summary: str) -> DuplicateCheck:
        # 1단계: 메모리 해시 캐시
        digest = content_hash(title, summary)
        if self._cache.contains(digest):
            return DuplicateCheck(True, "recent_content_hash")

        # 2단계: 저장소 제목 prefix 조회 (짧은 prefix + substring 의미)
        prefix = title_prefix(title, self._prefix_words)
        if len(prefix.split()) < MIN_PREFIX_WORDS:
            return DuplicateCheck(False)
        try:
            match = self._store.find_article_by_title_prefix(prefix)
        except Exception as e:
            self._log("warning", f"⚠️ [Sentinel] dedupe lookup failed for {guid}: {e}")
            return DuplicateCheck(False)
        if match:
            matched_id = str(match.get("_id") or match.get("id") or "") or None
            return DuplicateCheck(True, f"title_prefix:{prefix}", matched_id)
        return DuplicateCheck(False)

    def remember(self, title: str, summary: str) -> None:
        self._cache.add(content_hash(title, summary))
