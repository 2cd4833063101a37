from __future__ import annotations

import datetime

from sentinel_pipeline.processing.dedupe import ContentHashCache, Deduplicator, content_hash
from sentinel_pipeline.store import JsonDocumentStore

NOW = datetime.datetime(2026, 1, 10, 12, 0, tzinfo=datetime.timezone.utc)


class _Clock:
    def __init__(self, now: datetime.datetime) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now


class _BrokenStore:
    def find_article_by_title_prefix(self, prefix: str):
        raise RuntimeError("connection refused")


def _build(store=None, clock: _Clock | None = None) -> Deduplicator:
    return Deduplicator(
        store=store or JsonDocumentStore(),
        window_hours=12,
        now_provider=clock or _Clock(NOW),
    )


def test_content_hash_normalizes_case_and_whitespace() -> None:
    assert content_hash("Hello  World", "A\nB") == content_hash("hello world", "a b")
    assert content_hash("Hello", "A") != content_hash("Hello", "B")


def test_remembered_content_is_duplicate() -> None:
    dedupe = _build()
    assert not dedupe.check("g1", "Port opens", "Cargo").is_duplicate

    dedupe.remember("Port opens", "Cargo")
    result = dedupe.check("g2", "PORT  opens", "cargo")

    assert result.is_duplicate
    assert result.reason == "recent_content_hash"


def test_hash_cache_expires_after_window() -> None:
    clock = _Clock(NOW)
    cache = ContentHashCache(window=datetime.timedelta(hours=12), now_provider=clock)
    cache.add("abc")
    assert cache.contains("abc")

    clock.now = NOW + datetime.timedelta(hours=13)
    assert not cache.contains("abc")
    assert len(cache) == 0


def test_title_prefix_matches_stored_article() -> None:
    store = JsonDocumentStore()
    article_id = store.insert_article(
        {"title": {"en": "Cambodia launches national digital payment system"}, "source": {"guid": "x"}}
    )
    dedupe = _build(store)

    result = dedupe.check("new-guid", "Cambodia Launches National Digital ID plan", "")

    assert result.is_duplicate
    assert result.reason == "title_prefix:cambodia launches national digital"
    assert result.matched_id == article_id


def test_single_word_title_skips_store_lookup() -> None:
    store = JsonDocumentStore()
    store.insert_article({"title": {"en": "Elections"}, "source": {"guid": "x"}})
    assert not _build(store).check("g", "Elections", "").is_duplicate


def test_store_failure_is_not_a_duplicate() -> None:
    assert not _build(_BrokenStore()).check("g", "Cambodia launches new fund", "").is_duplicate
