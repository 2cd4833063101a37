from __future__ import annotations

from types import SimpleNamespace

from sentinel_pipeline.models import Source
from sentinel_pipeline.scrapers.feed_fetcher import FeedFetcher, GuidCache
from sentinel_pipeline.scrapers.feed_fetcher_config import FeedFetcherConfig

GOOD = Source(name="Good", feed_url="https://good.example.com/rss")
BAD = Source(name="Bad", feed_url="https://bad.example.com/rss")


def _feed(*guids: str) -> SimpleNamespace:
    entries = [{"id": g, "title": f"Story {g}", "summary": f"Summary {g}"} for g in guids]
    return SimpleNamespace(entries=entries, bozo=False)


def _build(feeds: dict, *, sleeps: list | None = None, logs: list | None = None, **config) -> FeedFetcher:
    def feed_fetch(url: str, timeout: int):
        value = feeds[url]
        if isinstance(value, Exception):
            raise value
        return value

    return FeedFetcher(
        config=FeedFetcherConfig(**config),
        feed_fetch=feed_fetch,
        sleep_func=(sleeps.append if sleeps is not None else (lambda _s: None)),
        logger=(lambda level, msg: logs.append((level, msg))) if logs is not None else (lambda level, msg: None),
    )


def test_failing_source_does_not_block_others() -> None:
    sleeps: list[float] = []
    logs: list = []
    fetcher = _build(
        {GOOD.feed_url: _feed("a", "b"), BAD.feed_url: RuntimeError("timeout")},
        sleeps=sleeps,
        logs=logs,
    )

    items = fetcher.fetch_all([GOOD, BAD])

    assert sorted(i.guid for i in items) == ["a", "b"]
    assert sleeps == [1.0, 2.0]
    assert "Bad" in fetcher.last_errors
    assert any(level == "error" and "Bad" in msg for level, msg in logs)


def test_bozo_feed_without_entries_counts_as_failure() -> None:
    broken = SimpleNamespace(entries=[], bozo=True, bozo_exception="not well-formed")
    fetcher = _build({BAD.feed_url: broken}, max_retries=0)

    assert fetcher.fetch_source(BAD) == []
    assert "not well-formed" in fetcher.last_errors["Bad"]


def test_bozo_feed_with_entries_is_still_used() -> None:
    partial = SimpleNamespace(entries=[{"id": "p", "title": "Partial"}], bozo=True)
    fetcher = _build({GOOD.feed_url: partial})
    assert [i.guid for i in fetcher.fetch_source(GOOD)] == ["p"]


def test_seen_guids_and_batch_duplicates_are_filtered() -> None:
    other = Source(name="Other", feed_url="https://other.example.com/rss")
    fetcher = _build({GOOD.feed_url: _feed("a", "b"), other.feed_url: _feed("b", "c")})
    fetcher.mark_seen("a")
    assert "a" in fetcher.guid_cache

    items = fetcher.fetch_all([GOOD, other])

    assert sorted(i.guid for i in items) == ["b", "c"]


def test_disabled_sources_are_not_fetched() -> None:
    disabled = Source(name="Off", feed_url="https://off.example.com/rss", enabled=False)
    fetcher = _build({})
    assert fetcher.fetch_all([disabled]) == []


def test_entries_are_capped_per_feed() -> None:
    fetcher = _build({GOOD.feed_url: _feed("1", "2", "3", "4")}, max_entries_per_feed=2)
    assert [i.guid for i in fetcher.fetch_source(GOOD)] == ["1", "2"]


def test_fetch_single_ignores_guid_cache() -> None:
    url = "https://manual.example.com/rss"
    fetcher = _build({url: _feed("seen")})
    fetcher.mark_seen("seen")

    items = fetcher.fetch_single(url)

    assert [i.guid for i in items] == ["seen"]
    assert items[0].source_name == "Manual Import"


def test_guid_cache_evicts_oldest() -> None:
    cache = GuidCache(max_size=2)
    cache.add("a")
    cache.add("b")
    cache.add("c")

    assert "a" not in cache
    assert "b" in cache and "c" in cache
    assert len(cache) == 2


def test_fetch_single_makes_one_attempt_and_treats_html_as_not_a_feed() -> None:
    url = "https://news.example.com/story"
    html_page = SimpleNamespace(entries=[], bozo=True, bozo_exception="syntax error")
    calls: list[str] = []
    sleeps: list[float] = []
    logs: list = []

    def feed_fetch(target: str, timeout: int):
        calls.append(target)
        return html_page

    fetcher = FeedFetcher(
        feed_fetch=feed_fetch,
        sleep_func=sleeps.append,
        logger=lambda level, msg: logs.append((level, msg)),
    )

    assert fetcher.fetch_single(url) == []
    assert calls == [url]
    assert sleeps == []
    assert fetcher.last_errors == {}
    assert [level for level, _ in logs] == ["info"]


def test_fetch_single_network_failure_is_a_warning() -> None:
    logs: list = []
    fetcher = _build({"https://down.example.com/rss": RuntimeError("timeout")}, logs=logs)

    assert fetcher.fetch_single("https://down.example.com/rss") == []
    assert [level for level, _ in logs] == ["warning"]
