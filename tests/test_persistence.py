from __future__ import annotations

import datetime

from sentinel_pipeline.models import Draft, RawItem
from sentinel_pipeline.processing.persistence import DUPLICATE_GUID, DUPLICATE_TITLE, PersistenceGuard
from sentinel_pipeline.store import JsonDocumentStore

NOW = datetime.datetime(2026, 1, 10, 12, 0, tzinfo=datetime.timezone.utc)


class _ExplodingStore(JsonDocumentStore):
    def insert_article(self, document):
        raise OSError("disk full")


def _item(guid: str = "g-1", title: str = "Harbour opens") -> RawItem:
    return RawItem(
        guid=guid,
        title=title,
        summary="s",
        body_snippet="b",
        link="https://news.example.com/harbour",
        published_at=NOW,
        source_name="Test Source",
        source_reliability=0.8,
        source_priority="high",
    )


def _draft(title: str = "Harbour opens to cargo", category: str = "business") -> Draft:
    return Draft(
        source={"guid": "g-1"},
        category=category,
        tags=[f"t{i}" for i in range(9)],
        title={"en": title, "km": "ផែ"},
        description={"en": "Cargo ships dock.", "km": "ផែ"},
        content={"en": "<p>Body</p>", "km": "<p>ផែ</p>"},
        thumbnail_url="https://cdn.example.com/a.jpg",
        is_breaking=True,
        seo_meta={"metaDescription": {"en": "Cargo ships dock."}, "keywords": "harbour, trade"},
        safety_score=90.0,
        generation_metadata={"model": "gemini-test"},
    )


def _seeded_store() -> JsonDocumentStore:
    store = JsonDocumentStore()
    store.seed_defaults()
    return store


def _guard(store) -> PersistenceGuard:
    return PersistenceGuard(store=store, now_provider=lambda: NOW)


def test_persist_creates_draft_document() -> None:
    store = _seeded_store()
    result = _guard(store).persist(_draft(), _item())

    assert result.created
    assert result.article_id
    doc = result.document
    assert doc["_id"] == result.article_id
    assert doc["status"] == "draft"
    assert doc["slug"] == "harbour-opens-to-cargo"
    assert doc["tags"] == [f"t{i}" for i in range(7)]
    assert doc["isBreaking"] is True
    assert doc["source"] == {
        "name": "Test Source",
        "url": "https://news.example.com/harbour",
        "publishedAt": NOW.isoformat(),
        "guid": "g-1",
    }
    assert doc["ingestion"] == {"method": "sentinel", "model": "gemini-test", "retries": 0}
    assert doc["metaDescription"] == {"en": "Cargo ships dock.", "km": "Cargo ships dock."}
    assert doc["createdAt"] == NOW.isoformat()
    assert doc["category"] == store.find_category_by_slug("business")["_id"]
    assert doc["author"] == store.find_admin_user()["_id"]
    assert store.count_articles() == 1


def test_second_persist_of_same_guid_is_rejected() -> None:
    store = _seeded_store()
    guard = _guard(store)
    first = guard.persist(_draft(), _item())

    second = guard.persist(_draft(title="Completely different headline"), _item())

    assert not second.created
    assert second.reason == DUPLICATE_GUID
    assert second.article_id == first.article_id
    assert store.count_articles() == 1


def test_same_title_under_new_guid_is_rejected() -> None:
    store = _seeded_store()
    guard = _guard(store)
    guard.persist(_draft(), _item())

    result = guard.persist(_draft(title="Harbour Opens to Cargo!"), _item(guid="g-2"))

    assert result.reason == DUPLICATE_TITLE


def test_unknown_category_falls_back_to_any_category() -> None:
    store = JsonDocumentStore()
    only = store.add_category("local", "Local")
    store.add_user("editor", role="editor")

    result = _guard(store).persist(_draft(category="astrology"), _item())

    assert result.created
    assert result.document["category"] == only


def test_missing_category_or_author_skips() -> None:
    no_category = JsonDocumentStore()
    no_category.add_user("editor")
    assert _guard(no_category).persist(_draft(), _item()).reason == "no_category"

    no_author = JsonDocumentStore()
    no_author.add_category("business", "Business")
    assert _guard(no_author).persist(_draft(), _item()).reason == "no_author"


def test_store_failure_is_reported_not_raised() -> None:
    store = _ExplodingStore()
    store.seed_defaults()

    result = _guard(store).persist(_draft(), _item())

    assert not result.created
    assert result.reason == "store_error: disk full"
