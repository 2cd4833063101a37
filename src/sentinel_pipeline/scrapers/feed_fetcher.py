from __future__ import annotations

import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Optional, Sequence

import feedparser
import requests

from sentinel_pipeline.models import RawItem, Source
from sentinel_pipeline.processing.parsing import EntryParser
from sentinel_pipeline.processing.types import FeedFetchFunc, LogFunc, SleepFunc, null_log
from sentinel_pipeline.scrapers.feed_fetcher_config import FeedFetcherConfig


class FeedFetchError(Exception):
    pass


class NotAFeedError(FeedFetchError):
    """응답은 받았지만 피드로 파싱되지 않음 (bozo + 항목 0건)."""


class GuidCache:
    """최근 처리한 guid (삽입 순서 유지, 상한 초과 시 오래된 것부터 제거)."""

    def __init__(self, max_size: int) -> None:
        self._max_size = max(1, max_size)
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, guid: object) -> bool:
        with self._lock:
            return guid in self._seen

    def add(self, guid: str) -> None:
        if not guid:
            return
        with self._lock:
            self._seen[guid] = None
            self._seen.move_to_end(guid)
            while len(self._seen) > self._max_size:
                self._seen.popitem(last=False)


def download_feed(url: str, timeout_sec: int, config: Optional[FeedFetcherConfig] = None) -> Any:
    cfg = config or FeedFetcherConfig()
    resp = requests.get(
        url,
        headers={"User-Agent": cfg.user_agent, "Accept": cfg.accept},
        timeout=timeout_sec,
    )
    resp.raise_for_status()
    return feedparser.parse(resp.content)


class FeedFetcher:
    def __init__(
        self,
        *,
        config: Optional[FeedFetcherConfig] = None,
        entry_parser: Optional[EntryParser] = None,
        feed_fetch: Optional[FeedFetchFunc] = None,
        sleep_func: SleepFunc = time.sleep,
        logger: LogFunc = null_log,
    ) -> None:
        self._config = config or FeedFetcherConfig()
        self._entry_parser = entry_parser or EntryParser()
        self._feed_fetch = feed_fetch or (lambda url, timeout: download_feed(url, timeout, self._config))
        self._sleep = sleep_func
        self._log = logger
        self._guids = GuidCache(self._config.guid_cache_max)
        self.last_errors: dict[str, str] = {}

    @property
    def guid_cache(self) -> GuidCache:
        return self._guids

    def mark_seen(self, guid: str) -> None:
        self._guids.add(guid)

    def _download_with_retry(self, source: Source, retries: Optional[int] = None) -> Any:
        attempts = (self._config.max_retries if retries is None else max(0, retries)) + 1
        last_err = ""
        last_exc: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                parsed = self._feed_fetch(source.feed_url, self._config.timeout_sec)
                entries = getattr(parsed, "entries", None)
                if entries is None and isinstance(parsed, dict):
                    entries = parsed.get("entries")
                bozo = getattr(parsed, "bozo", False) or (
                    isinstance(parsed, dict) and parsed.get("bozo", False)
                )
                # 파싱 오류 + 항목 0건은 실패로 본다
                if bozo and not entries:
                    exc = getattr(parsed, "bozo_exception", None) or "malformed feed"
                    raise NotAFeedError(str(exc))
                return parsed
            except Exception as e:
                last_exc = e
                last_err = f"{type(e).__name__}: {e}"
                if attempt < attempts:
                    delay = self._config.backoff_sec * (2 ** (attempt - 1))
                    self._log(
                        "warning",
                        f"⚠️ [Sentinel] {source.name} fetch attempt {attempt}/{attempts} failed: {last_err}; retry in {delay:.1f}s",
                    )
                    self._sleep(delay)
        if isinstance(last_exc, NotAFeedError):
            raise last_exc
        raise FeedFetchError(last_err)

    def parse_feed(self, parsed: Any, source: Source) -> list[RawItem]:
        entries = getattr(parsed, "entries", None)
        if entries is None and isinstance(parsed, dict):
            entries = parsed.get("entries")
        items: list[RawItem] = []
        for entry in list(entries or [])[: self._config.max_entries_per_feed]:
            try:
                item = self._entry_parser.parse_entry(entry, source)
            except Exception as e:
                self._log("warning", f"⚠️ [Sentinel] {source.name} entry parse failed: {e}")
                continue
            if item is not None:
                items.append(item)
        return items

    def fetch_source(self, source: Source) -> list[RawItem]:
        """소스 하나를 가져온다. 실패하면 로그만 남기고 빈 리스트."""
        try:
            parsed = self._download_with_retry(source)
        except FeedFetchError as e:
            self.last_errors[source.name] = str(e)
            self._log("error", f"❌ [Sentinel] {source.name} ({source.feed_url}) failed: {e}")
            return []
        self.last_errors.pop(source.name, None)
        return self.parse_feed(parsed, source)

    def fetch_all(self, sources: Sequence[Source]) -> list[RawItem]:
        enabled = [s for s in sources if s.enabled]
        if not enabled:
            return []

        results: list[RawItem] = []
        with ThreadPoolExecutor(max_workers=len(enabled)) as executor:
            future_map = {executor.submit(self.fetch_source, s): s for s in enabled}
            for future in as_completed(future_map):
                source = future_map[future]
                try:
                    results.extend(future.result())
                except Exception as e:
                    self._log("error", f"❌ [Sentinel] {source.name} worker error: {e}")

        fresh: list[RawItem] = []
        batch_guids: set[str] = set()
        for item in results:
            if item.guid in self._guids or item.guid in batch_guids:
                continue
            batch_guids.add(item.guid)
            fresh.append(item)
        return fresh

    def fetch_single(self, url: str, source: Optional[Source] = None) -> list[RawItem]:
        """URL 하나를 즉시 파싱 (수동 import용). guid 캐시는 보지 않는다.

        재시도 없이 한 번만 받는다. 일반 기사 페이지일 수 있으므로 실패는
        빈 리스트로 돌려주고 호출부가 페이지 추출로 넘어간다.
        """
        src = source or Source(name="Manual Import", feed_url=url, reliability=0.5, priority="medium")
        try:
            parsed = self._download_with_retry(src, retries=0)
        except NotAFeedError:
            self._log("info", f"[Sentinel] {url} is not a feed; trying page extraction")
            return []
        except FeedFetchError as e:
            self._log("warning", f"⚠️ [Sentinel] import feed fetch failed ({url}): {e}")
            return []
        return self.parse_feed(parsed, src)
